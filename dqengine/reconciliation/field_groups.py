# -*- coding: utf-8 -*-
"""
Field Group Session - DQ-RECON-001: Field Reconciliation

Manages the logical field groups of one comparison session. Every group
has one slot per repository; an element may sit in at most one group's
slot at a time. Groups can be seeded by position (the n-th element of
each repository grouped together) or from auto-mapping suggestions, and
then edited by adding, removing and reassigning elements.

Nothing is persisted; a session lives as long as its FieldGroupSet.

Example:
    >>> from dqengine.reconciliation.field_groups import FieldGroupSet
    >>> session = FieldGroupSet(["repo_a", "repo_b"])
    >>> group = session.add_group("Malaria cases")
    >>> group.id
    'group_1'

Author: DQ Engine Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from dqengine.reconciliation.auto_mapper import build_field_groups
from dqengine.reconciliation.models import (
    MAX_REPOSITORY_SLOTS,
    DataElement,
    LogicalFieldGroup,
    MappingSuggestion,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ElementAlreadyAssignedError",
    "FieldGroupSet",
]


class ElementAlreadyAssignedError(ValueError):
    """Raised when an element is assigned while held by another group."""

    def __init__(self, repository_id: str, element_id: str, group_id: str) -> None:
        self.repository_id = repository_id
        self.element_id = element_id
        self.group_id = group_id
        super().__init__(
            f"element {element_id} of repository {repository_id} "
            f"is already assigned to {group_id}"
        )


class FieldGroupSet:
    """Ordered collection of logical field groups over fixed repositories.

    Attributes:
        _repository_ids: Repository ids shared by every group, in slot order.
        _groups: Groups keyed by id, in creation order.
        _owners: ``(repository_id, element_id)`` -> owning group id.
        _counter: Sequence number used for generated group ids.
        _lock: Guards all mutations.
    """

    def __init__(self, repository_ids: Sequence[str]) -> None:
        repo_ids = list(repository_ids)
        if not repo_ids or len(repo_ids) > MAX_REPOSITORY_SLOTS:
            raise ValueError(
                f"between 1 and {MAX_REPOSITORY_SLOTS} repositories required, "
                f"got {len(repo_ids)}"
            )
        if len(set(repo_ids)) != len(repo_ids):
            raise ValueError("repository ids must be distinct")
        self._repository_ids = repo_ids
        self._groups: Dict[str, LogicalFieldGroup] = {}
        self._owners: Dict[Tuple[str, str], str] = {}
        self._counter = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_positions(
        cls,
        elements_by_repository: Mapping[str, Sequence[DataElement]],
    ) -> FieldGroupSet:
        """Group the n-th element of every repository together.

        The number of groups equals the longest element list; shorter
        repositories leave their trailing slots empty. Groups are named
        after the first element present in the row.
        """
        session = cls(list(elements_by_repository))
        width = max((len(v) for v in elements_by_repository.values()), default=0)
        for position in range(width):
            row = {
                repo_id: elements[position]
                for repo_id, elements in elements_by_repository.items()
                if position < len(elements)
            }
            first = next(iter(row.values()))
            group = session.add_group(first.display_name or first.id)
            for repo_id, element in row.items():
                session.assign(group.id, repo_id, element)
        logger.info(
            "Position-based grouping created %d groups over %d repositories",
            width, len(elements_by_repository),
        )
        return session

    @classmethod
    def from_suggestions(
        cls,
        source_repository_id: str,
        source: Sequence[DataElement],
        suggestions_by_repository: Mapping[str, Sequence[MappingSuggestion]],
        include_unmatched: bool = False,
    ) -> FieldGroupSet:
        """Seed a session from auto-mapping suggestions."""
        session = cls([source_repository_id, *suggestions_by_repository])
        for group in build_field_groups(
            source_repository_id, source, suggestions_by_repository,
            include_unmatched=include_unmatched,
        ):
            new_group = session.add_group(group.logical_name)
            for repo_id, element in group.assigned():
                session.assign(new_group.id, repo_id, element)
        return session

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def repository_ids(self) -> List[str]:
        return list(self._repository_ids)

    @property
    def groups(self) -> List[LogicalFieldGroup]:
        """Snapshot copies of the groups, in creation order."""
        with self._lock:
            return [g.model_copy(deep=True) for g in self._groups.values()]

    def get_group(self, group_id: str) -> LogicalFieldGroup:
        """Return a snapshot copy of one group.

        Raises:
            KeyError: If the group does not exist.
        """
        with self._lock:
            return self._require(group_id).model_copy(deep=True)

    def owner_of(self, repository_id: str, element_id: str) -> Optional[str]:
        """Return the id of the group holding an element, if any."""
        with self._lock:
            return self._owners.get((repository_id, element_id))

    def available_elements(
        self,
        repository_id: str,
        elements: Sequence[DataElement],
    ) -> List[DataElement]:
        """Return the elements of a repository not yet held by any group."""
        with self._lock:
            return [
                element for element in elements
                if (repository_id, element.id) not in self._owners
            ]

    def __len__(self) -> int:
        return len(self._groups)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_group(
        self,
        logical_name: str,
        group_id: Optional[str] = None,
    ) -> LogicalFieldGroup:
        """Create an empty group and return a snapshot of it.

        Raises:
            ValueError: If ``group_id`` is already used.
        """
        with self._lock:
            if group_id is None:
                self._counter += 1
                group_id = f"group_{self._counter}"
                while group_id in self._groups:
                    self._counter += 1
                    group_id = f"group_{self._counter}"
            elif group_id in self._groups:
                raise ValueError(f"group {group_id} already exists")
            group = LogicalFieldGroup(
                id=group_id,
                logical_name=logical_name,
                repository_ids=list(self._repository_ids),
            )
            self._groups[group_id] = group
            return group.model_copy(deep=True)

    def delete_group(self, group_id: str) -> None:
        """Delete a group, releasing its elements.

        Raises:
            KeyError: If the group does not exist.
        """
        with self._lock:
            group = self._require(group_id)
            for repo_id, element in group.assigned():
                self._owners.pop((repo_id, element.id), None)
            del self._groups[group_id]

    def rename_group(self, group_id: str, logical_name: str) -> None:
        with self._lock:
            self._require(group_id).logical_name = logical_name

    def assign(
        self,
        group_id: str,
        repository_id: str,
        element: DataElement,
    ) -> None:
        """Place an element in a group's repository slot.

        An element already in the slot is released. Assigning the element
        the slot already holds is a no-op.

        Raises:
            KeyError: If the group or repository does not exist.
            ElementAlreadyAssignedError: If another group holds the element.
        """
        with self._lock:
            self._assign_locked(group_id, repository_id, element)

    def remove(self, group_id: str, repository_id: str) -> Optional[DataElement]:
        """Clear a repository slot and return the element it held.

        Raises:
            KeyError: If the group or repository does not exist.
        """
        with self._lock:
            return self._remove_locked(group_id, repository_id)

    def reassign(
        self,
        repository_id: str,
        element: DataElement,
        to_group_id: str,
    ) -> None:
        """Move an element from whichever group holds it into another group.

        Raises:
            KeyError: If the target group or repository does not exist.
        """
        with self._lock:
            self._require(to_group_id).slot_index(repository_id)
            owner = self._owners.get((repository_id, element.id))
            if owner is not None and owner != to_group_id:
                self._remove_locked(owner, repository_id)
            self._assign_locked(to_group_id, repository_id, element)
        logger.debug(
            "Reassigned %s/%s from %s to %s",
            repository_id, element.id, owner, to_group_id,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, group_id: str) -> LogicalFieldGroup:
        group = self._groups.get(group_id)
        if group is None:
            raise KeyError(f"group {group_id} not found")
        return group

    def _assign_locked(
        self, group_id: str, repository_id: str, element: DataElement,
    ) -> None:
        group = self._require(group_id)
        index = group.slot_index(repository_id)
        key = (repository_id, element.id)
        owner = self._owners.get(key)
        if owner is not None and owner != group_id:
            raise ElementAlreadyAssignedError(repository_id, element.id, owner)
        current = group.elements[index]
        if current is not None:
            self._owners.pop((repository_id, current.id), None)
        group.elements[index] = element
        self._owners[key] = group_id

    def _remove_locked(self, group_id: str, repository_id: str) -> Optional[DataElement]:
        group = self._require(group_id)
        index = group.slot_index(repository_id)
        current = group.elements[index]
        if current is not None:
            self._owners.pop((repository_id, current.id), None)
            group.elements[index] = None
        return current
