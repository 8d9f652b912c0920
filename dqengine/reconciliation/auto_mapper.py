# -*- coding: utf-8 -*-
"""
Auto-Mapper Engine - DQ-RECON-001: Field Reconciliation

Proposes source-to-target data element correspondences between two
repositories using label similarity. Matching is greedy in source input
order: each source element takes the best still-unused target, so an
earlier source can claim a target that a later source would have scored
higher. This order sensitivity is the accepted behaviour; the mapper
never searches for a globally optimal assignment.

Assignment rules:
    - Display names are scored; when both elements carry a form name the
      form-name score is used instead if it is strictly better.
    - A candidate replaces the running best only when strictly greater,
      so among equal scores the earliest target wins.
    - The winner must reach ``min_similarity`` and a confidence tier
      (>= 0.30); its target is then unavailable for the rest of the call.
    - Suggestions are stable-sorted by descending overall similarity.

Example:
    >>> from dqengine.reconciliation.auto_mapper import AutoMapper
    >>> from dqengine.reconciliation.models import DataElement
    >>> mapper = AutoMapper()
    >>> suggestions = mapper.generate_mappings(
    ...     [DataElement(id="s1", display_name="Number of malaria cases")],
    ...     [DataElement(id="t1", display_name="Malaria cases, number")],
    ... )
    >>> suggestions[0].confidence.value
    'high'

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set

from dqengine.reconciliation.models import (
    ConfidenceLevel,
    DataElement,
    LogicalFieldGroup,
    MappingSuggestion,
    SimilarityScore,
)
from dqengine.reconciliation.provenance import build_hash
from dqengine.reconciliation.similarity_scorer import (
    SimilarityScorer,
    extract_key_terms,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_MIN_SIMILARITY",
    "AutoMapper",
    "build_match_reasons",
    "generate_auto_mappings",
    "suggestions_to_mapping",
    "unmapped_elements",
    "generate_cross_repository_mappings",
    "build_field_groups",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_MIN_SIMILARITY = 0.30

REASON_NEARLY_IDENTICAL = "Nearly identical names"
REASON_CONTAINS = "One name contains the other"
REASON_TERM_OVERLAP = "High overlap in key terms"
REASON_SPELLING = "Very similar spelling"
REASON_MODERATE = "Moderate similarity in name structure"

_NEARLY_IDENTICAL_THRESHOLD = 0.9
_CONTAINMENT_REASON_THRESHOLD = 0.7
_TERM_OVERLAP_REASON_THRESHOLD = 0.7
_SPELLING_REASON_THRESHOLD = 0.8


def build_match_reasons(
    similarity: SimilarityScore,
    source_label: str,
    target_label: str,
    max_terms: int = 3,
) -> List[str]:
    """Explain why two labels were matched.

    At most one headline reason is chosen from the sub-scores, followed by
    the shared key terms of the two labels. When neither applies a
    generic reason is returned so the list is never empty.

    Args:
        similarity: Score of the matched pair.
        source_label: Source display name.
        target_label: Target display name.
        max_terms: Maximum number of shared terms listed.

    Returns:
        Ordered list of reason strings.
    """
    reasons: List[str] = []

    if similarity.overall >= _NEARLY_IDENTICAL_THRESHOLD:
        reasons.append(REASON_NEARLY_IDENTICAL)
    elif similarity.containment >= _CONTAINMENT_REASON_THRESHOLD:
        reasons.append(REASON_CONTAINS)
    elif similarity.term_overlap >= _TERM_OVERLAP_REASON_THRESHOLD:
        reasons.append(REASON_TERM_OVERLAP)
    elif similarity.jaro_winkler >= _SPELLING_REASON_THRESHOLD:
        reasons.append(REASON_SPELLING)

    target_terms = set(extract_key_terms(target_label))
    common = [t for t in extract_key_terms(source_label) if t in target_terms]
    if common:
        reasons.append(f"Common terms: {', '.join(common[:max_terms])}")

    if not reasons:
        reasons.append(REASON_MODERATE)
    return reasons


# ---------------------------------------------------------------------------
# AutoMapper
# ---------------------------------------------------------------------------


class AutoMapper:
    """Greedy label-similarity mapper between two element lists.

    Attributes:
        _scorer: Similarity scorer used for every label pair.
        _max_reason_terms: Number of shared terms listed in reasons.
    """

    def __init__(
        self,
        scorer: Optional[SimilarityScorer] = None,
        max_reason_terms: int = 3,
    ) -> None:
        self._scorer = scorer or SimilarityScorer()
        self._max_reason_terms = max_reason_terms

    def generate_mappings(
        self,
        source: Sequence[DataElement],
        target: Sequence[DataElement],
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> List[MappingSuggestion]:
        """Propose one target per source element, greedily in input order.

        Args:
            source: Source repository elements, in processing order.
            target: Target repository elements.
            min_similarity: Minimum overall similarity for a candidate.

        Returns:
            Suggestions sorted by descending overall similarity. A target
            appears at most once; unmapped sources are omitted.
        """
        suggestions: List[MappingSuggestion] = []
        used_targets: Set[str] = set()

        for source_element in source:
            best_target: Optional[DataElement] = None
            best_similarity: Optional[SimilarityScore] = None
            best_score = 0.0

            for target_element in target:
                if target_element.id in used_targets:
                    continue
                similarity = self.score_elements(source_element, target_element)
                if similarity.overall > best_score and similarity.overall >= min_similarity:
                    best_score = similarity.overall
                    best_target = target_element
                    best_similarity = similarity

            if best_target is None or best_similarity is None:
                logger.debug("No mapping candidate for source %s", source_element.id)
                continue

            confidence = ConfidenceLevel.from_score(best_similarity.overall)
            if confidence is None:
                logger.debug(
                    "Best candidate %s for %s below confidence tiers (%.3f)",
                    best_target.id, source_element.id, best_similarity.overall,
                )
                continue

            suggestions.append(self._build_suggestion(
                source_element, best_target, best_similarity, confidence,
            ))
            used_targets.add(best_target.id)

        suggestions.sort(key=lambda s: s.similarity.overall, reverse=True)

        logger.info(
            "Auto-mapping produced %d suggestions for %d source / %d target elements",
            len(suggestions), len(source), len(target),
        )
        return suggestions

    def score_elements(
        self, source_element: DataElement, target_element: DataElement,
    ) -> SimilarityScore:
        """Score two elements, preferring the form-name score when strictly better."""
        display = self._scorer.score(
            source_element.display_name, target_element.display_name,
        )
        if source_element.form_name and target_element.form_name:
            form = self._scorer.score(
                source_element.form_name, target_element.form_name,
            )
            if form.overall > display.overall:
                return form
        return display

    def _build_suggestion(
        self,
        source_element: DataElement,
        target_element: DataElement,
        similarity: SimilarityScore,
        confidence: ConfidenceLevel,
    ) -> MappingSuggestion:
        reasons = build_match_reasons(
            similarity,
            source_element.display_name,
            target_element.display_name,
            max_terms=self._max_reason_terms,
        )
        provenance_hash = build_hash({
            "source": source_element.id,
            "target": target_element.id,
            "similarity": similarity.model_dump(),
            "confidence": confidence.value,
        })
        return MappingSuggestion(
            source_element=source_element,
            target_element=target_element,
            similarity=similarity,
            confidence=confidence,
            reasons=reasons,
            provenance_hash=provenance_hash,
        )


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def suggestions_to_mapping(
    suggestions: Sequence[MappingSuggestion],
) -> Dict[str, str]:
    """Convert suggestions to a ``{source_id: target_id}`` mapping."""
    return {s.source_id: s.target_id for s in suggestions}


def unmapped_elements(
    source: Sequence[DataElement],
    suggestions: Sequence[MappingSuggestion],
) -> List[DataElement]:
    """Return the source elements that received no suggestion, in input order."""
    mapped = {s.source_id for s in suggestions}
    return [element for element in source if element.id not in mapped]


def generate_cross_repository_mappings(
    source: Sequence[DataElement],
    targets: Mapping[str, Sequence[DataElement]],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    mapper: Optional[AutoMapper] = None,
) -> Dict[str, List[MappingSuggestion]]:
    """Map one source repository onto several target repositories.

    Each target repository is mapped independently, so a source element
    may be suggested for one target element per repository.

    Args:
        source: Source repository elements.
        targets: Target elements keyed by repository id.
        min_similarity: Minimum overall similarity for a candidate.
        mapper: Mapper to use (a default AutoMapper when omitted).

    Returns:
        Suggestions keyed by target repository id.
    """
    mapper = mapper or AutoMapper()
    return {
        repository_id: mapper.generate_mappings(source, elements, min_similarity)
        for repository_id, elements in targets.items()
    }


def build_field_groups(
    source_repository_id: str,
    source: Sequence[DataElement],
    suggestions_by_repository: Mapping[str, Sequence[MappingSuggestion]],
    include_unmatched: bool = False,
) -> List[LogicalFieldGroup]:
    """Turn cross-repository suggestions into logical field groups.

    One group is created per source element (in source order), named
    after the source element's display name, with the source repository
    in the first slot followed by the target repositories.

    Args:
        source_repository_id: Repository the source elements belong to.
        source: Source repository elements.
        suggestions_by_repository: Suggestions keyed by target repository id.
        include_unmatched: Whether to emit groups for source elements
            that matched no target repository.

    Returns:
        Logical field groups ready for reconciliation.
    """
    repository_ids = [source_repository_id, *suggestions_by_repository]
    lookup: Dict[str, Dict[str, DataElement]] = {
        repository_id: {s.source_id: s.target_element for s in suggestions}
        for repository_id, suggestions in suggestions_by_repository.items()
    }

    groups: List[LogicalFieldGroup] = []
    for element in source:
        matched = {
            repository_id: targets[element.id]
            for repository_id, targets in lookup.items()
            if element.id in targets
        }
        if not matched and not include_unmatched:
            continue
        groups.append(LogicalFieldGroup.from_mapping(
            group_id=f"group_{len(groups) + 1}",
            logical_name=element.display_name or element.id,
            repository_ids=repository_ids,
            elements={source_repository_id: element, **matched},
        ))
    return groups


_default_mapper = AutoMapper()


def generate_auto_mappings(
    source: Sequence[DataElement],
    target: Sequence[DataElement],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
) -> List[MappingSuggestion]:
    """Propose mappings with the shared default mapper."""
    return _default_mapper.generate_mappings(source, target, min_similarity)
