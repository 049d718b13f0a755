"""
Configuration — loads settings from .differ.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "max_file_size": 5 * 1024 * 1024,
    "timeout_ms": 30000,
    "parallel_validation": True,
    "parallel_threshold": 20,
    "validate_target_existence": True,
    "tolerate_syntax_errors": False,
    "large_code_block": 1000,
    "log_dir": ".differ/logs",
    "log_level": "INFO",
    "metrics_dir": ".differ",
}

# Config file search locations
_CONFIG_FILENAMES = [".differ.yaml", ".differ.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Engine configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables (``DIFFER_*``)
    3. .differ.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes")
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        # Workspace limits
        self.MAX_FILE_SIZE = _get("DIFFER_MAX_FILE_SIZE", "max_file_size",
                                  _DEFAULTS["max_file_size"], cast=int)

        # Validation
        validation = yd.get("validation", {}) if isinstance(yd.get("validation"), dict) else {}
        vd = dict(yd, **validation)

        def _vget(env_key, key, cast=int):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            val = vd.get(key)
            return cast(val) if val is not None else _DEFAULTS[key]

        self.TIMEOUT_MS = _vget("DIFFER_TIMEOUT_MS", "timeout_ms")
        self.PARALLEL_THRESHOLD = _vget("DIFFER_PARALLEL_THRESHOLD", "parallel_threshold")
        self.LARGE_CODE_BLOCK = _vget("DIFFER_LARGE_CODE_BLOCK", "large_code_block")
        self.PARALLEL_VALIDATION = _vget(
            "DIFFER_PARALLEL_VALIDATION", "parallel_validation", cast=_as_bool,
        )
        self.VALIDATE_TARGET_EXISTENCE = _vget(
            "DIFFER_VALIDATE_TARGET_EXISTENCE", "validate_target_existence", cast=_as_bool,
        )

        # Parsing
        self.TOLERATE_SYNTAX_ERRORS = _get_bool("DIFFER_TOLERATE_SYNTAX_ERRORS",
                                                "tolerate_syntax_errors",
                                                _DEFAULTS["tolerate_syntax_errors"])

        # Logging and metrics
        self.LOG_DIR = _get("DIFFER_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])
        self.LOG_LEVEL = _get("DIFFER_LOG_LEVEL", "log_level",
                              _DEFAULTS["log_level"]).upper()
        self.METRICS_DIR = _get("DIFFER_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])

        self._check()

    def _check(self) -> None:
        if self.MAX_FILE_SIZE <= 0:
            raise ValueError("max_file_size must be positive")
        if self.TIMEOUT_MS <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.PARALLEL_THRESHOLD < 0:
            raise ValueError("parallel_threshold must not be negative")

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)
