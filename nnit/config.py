"""Harness configuration: YAML file, then environment overrides."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "nnit.yaml"
DEFAULT_SOURCE_URL = "https://joule.s3.amazonaws.com/other+resources/mnistmlp.zip"

# Tolerances of the golden-value comparisons
DEFAULT_RTOL = 1e-3
DEFAULT_ATOL = 1e-5

_ENV_OVERRIDES = {
    "NNIT_DATA_DIR": "data_dir",
    "NNIT_SOURCE_URL": "source_url",
    "NNIT_DEVICE": "device",
}


class ConfigError(ValueError):
    """Raised when the configuration file or a value in it is invalid."""


@dataclass
class HarnessConfig:
    """Settings shared by the artifact stager, the engine and assertions.

    Attributes:
        data_dir: Per-user cache holding downloaded archives and models.
        source_url: Archive URL of the MNIST MLP checkpoint.
        archive_name: File name the archive is downloaded to.
        model_name: Extraction directory and artifact prefix.
        timeout: HTTP timeout in seconds.
        device: torch device for loaded models.
        rtol: Relative tolerance of ``assert_almost_equals``.
        atol: Absolute tolerance of ``assert_almost_equals``.
    """

    data_dir: str = field(default_factory=lambda: str(Path.home() / ".nnit_data"))
    source_url: str = DEFAULT_SOURCE_URL
    archive_name: str = "mnistmlp.zip"
    model_name: str = "mnist"
    timeout: float = 60.0
    device: str = "cpu"
    rtol: float = DEFAULT_RTOL
    atol: float = DEFAULT_ATOL

    def validate(self) -> None:
        if not self.source_url.startswith(("http://", "https://")):
            raise ConfigError(f"source_url must be an http(s) URL, got '{self.source_url}'")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.rtol < 0 or self.atol < 0:
            raise ConfigError("rtol and atol must be non-negative")
        if not self.model_name or "/" in self.model_name:
            raise ConfigError(f"Invalid model_name: '{self.model_name}'")

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()


def load_config(path: str | Path | None = None) -> HarnessConfig:
    """Build a config from *path* (default ``nnit.yaml`` if present) and env vars."""
    cfg_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    raw: dict = {}
    if cfg_path.is_file():
        with open(cfg_path, encoding="utf-8") as fh:
            try:
                raw = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{cfg_path} must contain a mapping")
        logger.debug("Loaded config from %s", cfg_path)
    elif path:
        raise ConfigError(f"Config file not found: {cfg_path}")

    known = {f.name: f for f in fields(HarnessConfig)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    for env, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env)
        if value:
            raw[key] = value

    try:
        cfg = HarnessConfig(**{
            k: float(v) if known[k].type == "float" else str(v)
            for k, v in raw.items()
        })
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    cfg.validate()
    return cfg


# Process-wide instance, guarded by a lock
_config_lock = threading.Lock()
_global_config: HarnessConfig | None = None


def get_config() -> HarnessConfig:
    global _global_config  # pylint: disable=global-statement
    with _config_lock:
        if _global_config is None:
            _global_config = load_config()
        return _global_config


def set_config(config: HarnessConfig) -> HarnessConfig:
    global _global_config  # pylint: disable=global-statement
    config.validate()
    with _config_lock:
        _global_config = config
    return config


def reset_config() -> None:
    global _global_config  # pylint: disable=global-statement
    with _config_lock:
        _global_config = None
