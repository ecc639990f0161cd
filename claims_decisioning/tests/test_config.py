"""Tests for claims_decisioning.config.

Covers:
- Defaults
- YAML loading and error reporting
- Environment overrides (``CLAIMS_*``)
- Source priority
- Validation
- Thresholds shared between stages
- save / load round trip
"""

import os
from unittest.mock import patch

import pytest

from claims_decisioning.config import (
    ConfigLoader,
    DecisionConfig,
    FraudConfig,
    PipelineConfig,
    load_config,
    save_config,
    validate_config,
)
from claims_decisioning.exceptions import ConfigurationError


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


# ============================================================================
# TestDefaults
# ============================================================================


class TestDefaults:
    def test_defaults(self):
        config = load_config()
        assert config == PipelineConfig()
        assert config.decision.auto_approval_ceiling == 2500.0
        assert config.decision.min_confidence == 0.8
        assert config.fraud.siu_threshold == 50.0
        assert config.stage_workers == 4

    def test_missing_yaml_falls_back_to_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == PipelineConfig()


# ============================================================================
# TestYamlLoading
# ============================================================================


class TestYamlLoading:
    def test_nested_sections(self, tmp_path):
        path = _write(
            tmp_path / "config.yaml",
            "parallel_workers: 3\ndecision:\n  auto_approval_ceiling: 5000\nfraud:\n  suspicious_locations: [alley]\n",
        )
        config = load_config(path)
        assert config.parallel_workers == 3
        assert config.decision.auto_approval_ceiling == 5000
        assert config.decision.min_confidence == 0.8  # untouched sibling
        assert config.fraud.suspicious_locations == ["alley"]

    def test_empty_file(self, tmp_path):
        assert ConfigLoader.load_from_yaml(_write(tmp_path / "empty.yaml", "")) == {}

    def test_invalid_yaml(self, tmp_path):
        path = _write(tmp_path / "bad.yaml", "decision: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = _write(tmp_path / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = _write(tmp_path / "typo.yaml", "decision:\n  auto_aproval_ceiling: 10\n")
        with pytest.raises(ConfigurationError, match="Unknown or invalid"):
            load_config(path)

    def test_loader_raises_for_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_from_yaml(str(tmp_path / "absent.yaml"))


# ============================================================================
# TestEnvironment
# ============================================================================


class TestEnvironment:
    def test_env_overrides(self):
        env = {
            "CLAIMS_PARALLEL_WORKERS": "6",
            "CLAIMS_MIN_CONFIDENCE": "0.9",
            "CLAIMS_ENABLE_QA": "false",
            "CLAIMS_SAVE_RESULTS": "yes",
        }
        with patch.dict(os.environ, env):
            config = load_config()
        assert config.parallel_workers == 6
        assert config.decision.min_confidence == 0.9
        assert config.enable_qa_review is False
        assert config.save_results is True

    def test_bad_env_value_is_ignored(self):
        with patch.dict(os.environ, {"CLAIMS_STAGE_WORKERS": "many"}):
            assert ConfigLoader.load_from_env().get("stage_workers") is None
            assert load_config().stage_workers == 4

    def test_priority_order(self, tmp_path):
        """override_dict > environment > YAML > defaults."""
        path = _write(tmp_path / "config.yaml", "parallel_workers: 2\nstage_workers: 2\noutput_dir: from_yaml\n")
        with patch.dict(os.environ, {"CLAIMS_PARALLEL_WORKERS": "5", "CLAIMS_STAGE_WORKERS": "5"}):
            config = load_config(path, override_dict={"stage_workers": 7})
        assert config.output_dir == "from_yaml"
        assert config.parallel_workers == 5
        assert config.stage_workers == 7


# ============================================================================
# TestValidation
# ============================================================================


class TestValidation:
    def test_default_config_is_valid(self):
        validate_config(PipelineConfig())

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            load_config(override_dict={"severity": {"weight_damage": 0.5}})

    def test_min_confidence_range(self):
        with pytest.raises(ConfigurationError, match="min_confidence"):
            load_config(override_dict={"decision": {"min_confidence": 1.5}})

    def test_worker_counts(self):
        with pytest.raises(ConfigurationError, match="workers"):
            load_config(override_dict={"parallel_workers": 0})

    def test_log_level(self):
        with pytest.raises(ConfigurationError, match="log level"):
            load_config(override_dict={"log_level": "LOUD"})


# ============================================================================
# TestSharedThresholds
# ============================================================================


class TestSharedThresholds:
    def test_decision_value_reaches_severity(self):
        config = load_config(override_dict={"decision": {"auto_approval_ceiling": 4000}})
        assert config.severity.auto_approval_ceiling == 4000

    def test_stage_value_reaches_decision(self, tmp_path):
        path = _write(tmp_path / "config.yaml", "fraud:\n  siu_threshold: 65\nvalidator:\n  fraud_threshold: 40\n")
        config = load_config(path)
        assert config.decision.siu_threshold == 65
        assert config.decision.fraud_pass_threshold == 40

    def test_higher_priority_source_wins(self, tmp_path):
        path = _write(tmp_path / "config.yaml", "severity:\n  auto_approval_ceiling: 1000\n")
        with patch.dict(os.environ, {"CLAIMS_AUTO_APPROVAL_CEILING": "3000"}):
            config = load_config(path)
        assert config.decision.auto_approval_ceiling == 3000
        assert config.severity.auto_approval_ceiling == 3000

    def test_conflicting_pair_in_one_source(self):
        with pytest.raises(ConfigurationError, match="siu_threshold"):
            load_config(override_dict={"decision": {"siu_threshold": 50}, "fraud": {"siu_threshold": 70}})

    def test_mismatched_dataclasses_rejected(self):
        config = PipelineConfig(fraud=FraudConfig(siu_threshold=70.0), decision=DecisionConfig(siu_threshold=50.0))
        with pytest.raises(ConfigurationError, match="must match"):
            validate_config(config)


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        config = load_config(override_dict={"output_dir": "out", "fraud": {"siu_threshold": 65.0}})
        path = tmp_path / "nested" / "saved.yaml"
        save_config(config, str(path))
        assert path.exists()
        assert load_config(str(path)) == config
