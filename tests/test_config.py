"""
Test suite for reconciliation configuration.

Covers:
- Defaults
- Environment variable overrides and invalid values
- Thread-safe singleton accessors
"""

from dqengine.reconciliation.config import (
    ReconciliationConfig,
    get_config,
    reset_config,
    set_config,
)


class TestReconciliationConfig:
    """Test configuration defaults and environment loading."""

    def test_defaults(self):
        """Test the default settings."""
        config = ReconciliationConfig()
        assert config.default_min_similarity == 0.30
        assert config.max_reason_terms == 3
        assert config.include_empty_groups is True
        assert config.max_logged_mismatches == 5
        assert config.max_batch_size == 10_000
        assert config.enable_provenance is True
        assert config.enable_metrics is True
        assert config.log_level == "INFO"

    def test_from_env_overrides(self, monkeypatch):
        """Test DQ_RECON_ variables override defaults."""
        monkeypatch.setenv("DQ_RECON_DEFAULT_MIN_SIMILARITY", "0.5")
        monkeypatch.setenv("DQ_RECON_MAX_REASON_TERMS", "5")
        monkeypatch.setenv("DQ_RECON_ENABLE_PROVENANCE", "no")
        monkeypatch.setenv("DQ_RECON_INCLUDE_EMPTY_GROUPS", "YES")
        monkeypatch.setenv("DQ_RECON_LOG_LEVEL", "DEBUG")

        config = ReconciliationConfig.from_env()

        assert config.default_min_similarity == 0.5
        assert config.max_reason_terms == 5
        assert config.enable_provenance is False
        assert config.include_empty_groups is True
        assert config.log_level == "DEBUG"

    def test_invalid_numbers_fall_back(self, monkeypatch):
        """Test unparsable numbers keep their defaults."""
        monkeypatch.setenv("DQ_RECON_MAX_BATCH_SIZE", "lots")
        monkeypatch.setenv("DQ_RECON_DEFAULT_MIN_SIMILARITY", "high")

        config = ReconciliationConfig.from_env()

        assert config.max_batch_size == 10_000
        assert config.default_min_similarity == 0.30


class TestConfigSingleton:
    """Test the singleton accessors."""

    def test_get_config_returns_same_instance(self):
        """Test repeated calls share one instance."""
        assert get_config() is get_config()

    def test_set_config(self):
        """Test installing a custom configuration."""
        custom = ReconciliationConfig(max_batch_size=7)
        set_config(custom)
        assert get_config() is custom

    def test_reset_config_reloads_from_env(self, monkeypatch):
        """Test a reset singleton is rebuilt from the environment."""
        monkeypatch.setenv("DQ_RECON_MAX_LOGGED_MISMATCHES", "9")
        reset_config()
        assert get_config().max_logged_mismatches == 9
