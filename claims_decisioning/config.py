"""Configuration management for the claims decisioning pipeline.

Loads configuration from multiple sources with priority:
1. Programmatic overrides (highest priority)
2. Environment variables (``CLAIMS_*``)
3. YAML config file
4. Default values (lowest priority)

Every threshold the scoring stages use is a policy constant here rather than
a literal in the scoring code.
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from claims_decisioning.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class SeverityConfig:
    """Severity Scorer weights and thresholds"""

    # Sub-score weights (sum to 1.0)
    weight_damage: float = 0.25
    weight_injury: float = 0.35
    weight_complexity: float = 0.20
    weight_risk: float = 0.15
    weight_litigation: float = 0.05

    # Complexity ladder on the overall score
    critical_score_threshold: int = 80
    complex_score_threshold: int = 60
    moderate_score_threshold: int = 35

    # Escalation
    auto_approval_ceiling: float = 2500.0
    escalation_value_multiplier: float = 3.0  # value > ceiling * multiplier escalates
    critical_flag_escalation_count: int = 2

    # ADAS sensor zone flag
    sensor_zone_max_vehicle_age: int = 5
    sensor_zone_min_damage: float = 1000.0


@dataclass
class LiabilityConfig:
    """Liability Assessor configuration"""

    disputed_margin: int = 20  # |insured - other| below this is "disputed"
    subrogation_min_amount: float = 2000.0
    subrogation_min_other_fault: int = 50
    subrogation_fault_without_insurer: int = 75
    high_liability_threshold: int = 50
    max_confidence: float = 0.95


@dataclass
class EvaluationConfig:
    """Valuation and reserve analysis configuration"""

    salvage_ratio: float = 0.25
    mileage_per_year: int = 12000
    mileage_adjustment_per_mile: float = 0.05
    max_mileage_adjustment_ratio: float = 0.20
    branded_title_discount: float = 0.20
    rental_daily_rate: float = 45.0
    adjuster_authority: float = 50000.0
    supervisor_authority: float = 100000.0
    high_value_reserve: float = 25000.0


@dataclass
class ComplianceConfig:
    """Compliance Monitor configuration"""

    unfair_delay_days: int = 90
    warning_window_days: int = 7
    at_risk_window_days: int = 3
    non_compliant_score: int = 70
    # Score deductions
    penalty_critical: int = 25
    penalty_high: int = 15
    penalty_medium: int = 10
    penalty_low: int = 5
    penalty_overdue: int = 5


@dataclass
class FraudConfig:
    """Fraud/pattern detection configuration (scores on a 0-100 scale)"""

    # Risk levels
    medium_risk_threshold: float = 40.0
    high_risk_threshold: float = 60.0
    critical_risk_threshold: float = 80.0
    siu_threshold: float = 50.0
    # Timing
    recent_policy_days: int = 30
    very_recent_policy_days: int = 7
    late_report_days: int = 30
    # Location keywords
    suspicious_locations: list[str] = field(default_factory=lambda: ["parking lot", "parking garage", "staged"])
    # Amount anomaly (z-score against book statistics)
    claim_amount_mean: float = 8000.0
    claim_amount_std: float = 5000.0
    claim_amount_outlier_threshold: float = 3.0
    # Vehicle
    old_vehicle_age: int = 10
    old_vehicle_claim_amount: float = 20000.0
    # Medical billing
    watchlist_provider_patterns: list[str] = field(
        default_factory=lambda: ["pain management", "injury center", "accident clinic", "lien-based"]
    )
    max_visit_amount: float = 500.0  # E&M codes 992xx
    max_therapy_amount: float = 200.0  # therapy codes 971xx
    extended_treatment_days: int = 90
    excessive_therapy_sessions: int = 50
    provider_points_cap: float = 45.0
    billing_points_cap: float = 60.0


@dataclass
class ValidatorConfig:
    """Final Validator configuration"""

    max_settlement_amount: float = 100000.0
    fraud_threshold: float = 50.0
    # Confidence penalties per failing check
    penalty_data: int = 20
    penalty_policy: int = 30
    penalty_amount: int = 15
    penalty_fraud: int = 25
    penalty_compliance: int = 10


@dataclass
class DecisionConfig:
    """Decision policy applied at phase 7"""

    auto_approval_ceiling: float = 2500.0
    min_confidence: float = 0.80
    fraud_pass_threshold: float = 50.0
    siu_threshold: float = 50.0
    require_auto_routing: bool = True  # severity routing must be auto_approval


@dataclass
class PipelineConfig:
    """Pipeline orchestration configuration"""

    # Output
    output_dir: str = "results"
    save_results: bool = False
    audit_log_path: str | None = None  # JSONL audit trail; in-memory when None

    # Processing
    parallel_workers: int = 1  # claims processed concurrently in a batch
    stage_workers: int = 4  # stages run concurrently inside a phase
    continue_on_error: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None
    log_json: bool = False

    # Component configs
    severity: SeverityConfig = field(default_factory=SeverityConfig)
    liability: LiabilityConfig = field(default_factory=LiabilityConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    compliance: ComplianceConfig = field(default_factory=ComplianceConfig)
    fraud: FraudConfig = field(default_factory=FraudConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    decision: DecisionConfig = field(default_factory=DecisionConfig)

    # Feature flags for the supplementary stages
    enable_evidence_collection: bool = True
    enable_valuation: bool = True
    enable_reserve_analysis: bool = True
    enable_communication_plan: bool = True
    enable_qa_review: bool = True

    enable_metrics: bool = True


_SECTIONS: dict[str, type] = {
    "severity": SeverityConfig,
    "liability": LiabilityConfig,
    "evaluation": EvaluationConfig,
    "compliance": ComplianceConfig,
    "fraud": FraudConfig,
    "validator": ValidatorConfig,
    "decision": DecisionConfig,
}


# Thresholds read by more than one stage; setting either key sets both
SHARED_THRESHOLDS: tuple[tuple[str, str], ...] = (
    ("decision.auto_approval_ceiling", "severity.auto_approval_ceiling"),
    ("decision.siu_threshold", "fraud.siu_threshold"),
    ("decision.fraud_pass_threshold", "validator.fraud_threshold"),
)


def _lookup(config: Any, dotted: str) -> Any:
    section, key = dotted.split(".")
    if isinstance(config, dict):
        values = config.get(section)
        return values.get(key) if isinstance(values, dict) else None
    return getattr(getattr(config, section), key)


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigLoader:
    """Loads configuration from YAML and environment variables"""

    @staticmethod
    def load_from_yaml(yaml_path: str) -> dict[str, Any]:
        """Load configuration from YAML file"""
        yaml_path_obj = Path(yaml_path)
        if not yaml_path_obj.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path_obj, encoding="utf-8") as f:
            try:
                config_dict = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

        if config_dict is not None and not isinstance(config_dict, dict):
            raise ConfigurationError(f"Top level of {yaml_path} must be a mapping")
        return config_dict or {}

    @staticmethod
    def load_from_env() -> dict[str, Any]:
        """Load configuration from environment variables"""
        env_config: dict[str, Any] = {}

        env_mappings = {
            "CLAIMS_OUTPUT_DIR": ("output_dir", str),
            "CLAIMS_SAVE_RESULTS": ("save_results", _to_bool),
            "CLAIMS_AUDIT_LOG": ("audit_log_path", str),
            "CLAIMS_LOG_LEVEL": ("log_level", str),
            "CLAIMS_LOG_FILE": ("log_file", str),
            "CLAIMS_LOG_JSON": ("log_json", _to_bool),
            "CLAIMS_PARALLEL_WORKERS": ("parallel_workers", int),
            "CLAIMS_STAGE_WORKERS": ("stage_workers", int),
            "CLAIMS_CONTINUE_ON_ERROR": ("continue_on_error", _to_bool),
            # Decision policy
            "CLAIMS_AUTO_APPROVAL_CEILING": ("decision.auto_approval_ceiling", float),
            "CLAIMS_MIN_CONFIDENCE": ("decision.min_confidence", float),
            "CLAIMS_FRAUD_PASS_THRESHOLD": ("decision.fraud_pass_threshold", float),
            "CLAIMS_SIU_THRESHOLD": ("decision.siu_threshold", float),
            # Scorers
            "CLAIMS_SEVERITY_CRITICAL_SCORE": ("severity.critical_score_threshold", int),
            "CLAIMS_VALIDATOR_MAX_AMOUNT": ("validator.max_settlement_amount", float),
            # Feature flags
            "CLAIMS_ENABLE_EVIDENCE": ("enable_evidence_collection", _to_bool),
            "CLAIMS_ENABLE_VALUATION": ("enable_valuation", _to_bool),
            "CLAIMS_ENABLE_RESERVES": ("enable_reserve_analysis", _to_bool),
            "CLAIMS_ENABLE_COMMUNICATIONS": ("enable_communication_plan", _to_bool),
            "CLAIMS_ENABLE_QA": ("enable_qa_review", _to_bool),
        }

        for env_var, (config_key, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                converted_value = converter(value)
            except (ValueError, TypeError) as e:
                logger.warning("Ignoring env var %s=%r: %s", env_var, value, e)
                continue
            # Nested keys like "decision.min_confidence"
            keys = config_key.split(".")
            current = env_config
            for key in keys[:-1]:
                current = current.setdefault(key, {})
            current[keys[-1]] = converted_value

        return env_config

    @staticmethod
    def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
        """Merge multiple config dictionaries (later configs override earlier ones)"""
        merged: dict[str, Any] = {}
        for config in configs:
            merged = ConfigLoader._deep_merge(merged, config)
        return merged

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def sync_shared_thresholds(merged: dict[str, Any], *sources: dict[str, Any]) -> dict[str, Any]:
        """Copy each shared threshold set in ``sources`` onto both of its keys.

        Sources are applied lowest priority first. A single source that sets
        both keys of a pair to different values is rejected.
        """
        for source in sources:
            for primary, mirror in SHARED_THRESHOLDS:
                given = {_lookup(source, key) for key in (primary, mirror)} - {None}
                if not given:
                    continue
                if len(given) > 1:
                    raise ConfigurationError(f"{primary} and {mirror} must match (got {', '.join(map(repr, given))})")
                value = given.pop()
                for key in (primary, mirror):
                    section, name = key.split(".")
                    merged[section] = {**merged[section], name: value}
        return merged

    @staticmethod
    def dict_to_config(config_dict: dict[str, Any]) -> PipelineConfig:
        """Convert dictionary to PipelineConfig dataclass"""
        config_dict = dict(config_dict)
        sections = {}
        try:
            for name, section_cls in _SECTIONS.items():
                sections[name] = section_cls(**(config_dict.pop(name, None) or {}))
            config = PipelineConfig(**config_dict, **sections)
        except TypeError as e:
            raise ConfigurationError(f"Unknown or invalid configuration key: {e}") from e

        validate_config(config)
        return config


def validate_config(config: PipelineConfig) -> None:
    """Reject configurations the pipeline cannot run with."""
    sev = config.severity
    weights = [sev.weight_damage, sev.weight_injury, sev.weight_complexity, sev.weight_risk, sev.weight_litigation]
    if abs(sum(weights) - 1.0) > 1e-6:
        raise ConfigurationError(f"Severity weights must sum to 1.0 (got {sum(weights):.3f})")
    if not 0.0 <= config.decision.min_confidence <= 1.0:
        raise ConfigurationError("decision.min_confidence must be within [0, 1]")
    if config.parallel_workers < 1 or config.stage_workers < 1:
        raise ConfigurationError("parallel_workers and stage_workers must be >= 1")
    if config.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(f"Unknown log level: {config.log_level}")
    for primary, mirror in SHARED_THRESHOLDS:
        if _lookup(config, primary) != _lookup(config, mirror):
            raise ConfigurationError(f"{primary} and {mirror} must match")


def load_config(yaml_path: str | None = None, override_dict: dict[str, Any] | None = None) -> PipelineConfig:
    """
    Load configuration from multiple sources.

    Priority (highest to lowest):
    1. override_dict (programmatic overrides)
    2. Environment variables
    3. YAML file
    4. Default values

    Args:
        yaml_path: Path to YAML config file (optional)
        override_dict: Programmatic overrides (optional)

    Returns:
        PipelineConfig instance

    Raises:
        ConfigurationError: unknown keys or values the pipeline cannot use.
    """
    loader = ConfigLoader()

    default_config = asdict(PipelineConfig())

    yaml_config: dict[str, Any] = {}
    if yaml_path:
        try:
            yaml_config = loader.load_from_yaml(yaml_path)
        except FileNotFoundError as e:
            logger.warning("%s; using defaults", e)

    env_config = loader.load_from_env()

    merged_config = loader.merge_configs(default_config, yaml_config, env_config, override_dict or {})
    merged_config = loader.sync_shared_thresholds(merged_config, yaml_config, env_config, override_dict or {})
    return loader.dict_to_config(merged_config)


def save_config(config: PipelineConfig, yaml_path: str):
    """Save configuration to YAML file"""
    config_dict = asdict(config)

    def convert_for_yaml(obj):
        if isinstance(obj, dict):
            return {k: convert_for_yaml(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_for_yaml(v) for v in obj]
        elif isinstance(obj, Enum):
            return obj.value
        else:
            return obj

    config_dict = convert_for_yaml(config_dict)

    yaml_path_obj = Path(yaml_path)
    yaml_path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(yaml_path_obj, "w", encoding="utf-8") as f:
        yaml.dump(config_dict, f, default_flow_style=False, allow_unicode=True, indent=2)
