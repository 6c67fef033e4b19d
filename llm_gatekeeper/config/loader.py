"""
Configuration management and loading.

Handles service settings: throttling, budget, cache, retry, timeout and
the tier to provider model mapping.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from llm_gatekeeper.core.pricing import ModelTier


DEFAULT_MODELS = {
    ModelTier.FAST: "gpt-3.5-turbo",
    ModelTier.SMART: "gpt-4-turbo",
}


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed-window request quota."""
    max_requests: int = 10
    window_seconds: float = 60.0

    def __post_init__(self):
        """Validate rate limit values are positive."""
        if self.max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


@dataclass(frozen=True)
class BudgetConfig:
    """Daily spend ceiling and warning thresholds."""
    daily_limit: float = 10.0
    warning_ratio: float = 0.8
    critical_ratio: float = 0.95

    def __post_init__(self):
        """Validate budget values."""
        if self.daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")
        if not 0 < self.warning_ratio <= self.critical_ratio <= 1:
            raise ValueError("ratios must satisfy 0 < warning_ratio <= critical_ratio <= 1")


@dataclass(frozen=True)
class CacheConfig:
    """Response cache settings."""
    ttl_seconds: float = 300.0
    max_entries: int = 1000

    def __post_init__(self):
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if self.max_entries <= 0:
            raise ValueError("max_entries must be > 0")


@dataclass(frozen=True)
class RetryConfig:
    """Retry and backoff settings."""
    max_attempts: int = 3
    base_delay_seconds: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")


@dataclass(frozen=True)
class GatekeeperConfig:
    """Complete service configuration."""
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: float = 30.0
    models: Dict[ModelTier, str] = field(default_factory=lambda: dict(DEFAULT_MODELS))

    def __post_init__(self):
        """Validate timeout and that every tier maps to a model id."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        missing = [tier.value for tier in ModelTier if not self.models.get(tier)]
        if missing:
            raise ValueError(f"Missing provider model for tiers: {missing}")

    def model_id(self, tier: ModelTier) -> str:
        """Get the provider model id for a tier."""
        return self.models[ModelTier.parse(tier)]


_SECTION_KEYS = {
    'rate_limit': {'max_requests', 'window_seconds'},
    'budget': {'daily_limit', 'warning_ratio', 'critical_ratio'},
    'cache': {'ttl_seconds', 'max_entries'},
    'retry': {'max_attempts', 'base_delay_seconds'},
}


def load_config(path: str) -> GatekeeperConfig:
    """Load and validate service configuration from YAML file.

    Every section is optional; omitted values keep their defaults. Unknown
    keys are rejected so a typo cannot silently disable a limit.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated GatekeeperConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    # Load YAML content
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    return parse_config(raw_config)


def parse_config(raw_config: Dict[str, Any]) -> GatekeeperConfig:
    """Build a GatekeeperConfig from an already-loaded mapping.

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_top_keys = set(_SECTION_KEYS) | {'timeout_seconds', 'models'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {
        name: _parse_section(raw_config.get(name, {}), name)
        for name in _SECTION_KEYS
    }

    kwargs: Dict[str, Any] = {
        'rate_limit': RateLimitConfig(**sections['rate_limit']),
        'budget': BudgetConfig(**sections['budget']),
        'cache': CacheConfig(**sections['cache']),
        'retry': RetryConfig(**sections['retry']),
    }

    if 'timeout_seconds' in raw_config:
        kwargs['timeout_seconds'] = _number(raw_config['timeout_seconds'], 'timeout_seconds')

    if 'models' in raw_config:
        kwargs['models'] = _parse_models(raw_config['models'])

    return GatekeeperConfig(**kwargs)


def _parse_section(data: Any, path: str) -> Dict[str, float]:
    """Validate one numeric section.

    Args:
        data: Section data
        path: Path for error messages

    Returns:
        Keyword arguments for the section dataclass

    Raises:
        ValueError: If the section is invalid
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    unknown_keys = set(data.keys()) - _SECTION_KEYS[path]
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    parsed = {}
    for key, value in data.items():
        number = _number(value, f"{path}.{key}")
        if key in ('max_requests', 'max_entries', 'max_attempts'):
            if number != int(number):
                raise ValueError(f"'{path}.{key}' must be an integer")
            number = int(number)
        parsed[key] = number
    return parsed


def _parse_models(data: Any) -> Dict[ModelTier, str]:
    """Validate the tier to provider model mapping, filling unset tiers with defaults."""
    if not isinstance(data, dict):
        raise ValueError("'models' must be a dictionary")

    models = dict(DEFAULT_MODELS)
    for tier_name, model_id in data.items():
        try:
            tier = ModelTier.parse(tier_name)
        except ValueError:
            valid_tiers = [tier.value for tier in ModelTier]
            raise ValueError(f"Unknown model tier '{tier_name}', must be one of: {valid_tiers}")
        if not isinstance(model_id, str) or not model_id.strip():
            raise ValueError(f"'models.{tier_name}' must be a non-empty string")
        models[tier] = model_id.strip()
    return models


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)
