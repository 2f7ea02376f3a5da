"""Engine configuration loaded from YAML with environment overrides."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = "config/engine.yaml"

ENV_CONFIG = "ATHYRA_CONFIG"
ENV_STORAGE_DIR = "ATHYRA_STORAGE_DIR"
ENV_PRICING_URL = "ATHYRA_PRICING_URL"
ENV_PRICING_API_KEY = "ATHYRA_PRICING_API_KEY"
ENV_LOG_LEVEL = "ATHYRA_LOG_LEVEL"

PRICING_BACKENDS = ("catalog", "http")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class PricingConfig:
    backend: str = "catalog"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 10.0
    memo_size: int = 1024
    memo_ttl: float = 300.0


@dataclass
class EngineConfig:
    """Paths and settings for one engine instance.

    Relative data paths are resolved against ``data_dir``.
    """

    data_dir: str = "data"
    storage_dir: Optional[str] = None  # None -> in-memory storage
    catalog_path: str = "ingredients/catalog.json"
    recipes_path: str = "recipes/library.json"
    substitutions_path: str = "substitutions.yaml"
    pricing: PricingConfig = field(default_factory=PricingConfig)
    lock_timeout_seconds: float = 30.0
    expansion_workers: int = 1
    log_level: str = "INFO"

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.data_dir) / candidate

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Build a config from parsed YAML.

        Raises:
            ValueError: If the pricing backend is not recognised
        """
        pricing_data = data.get("pricing") or {}
        backend = str(pricing_data.get("backend", "catalog")).lower()
        if backend not in PRICING_BACKENDS:
            raise ValueError(
                f"Unknown pricing backend '{backend}', expected one of {PRICING_BACKENDS}"
            )

        defaults = cls()
        return cls(
            data_dir=str(data.get("data_dir", defaults.data_dir)),
            storage_dir=data.get("storage_dir") or None,
            catalog_path=str(data.get("catalog_path", defaults.catalog_path)),
            recipes_path=str(data.get("recipes_path", defaults.recipes_path)),
            substitutions_path=str(data.get("substitutions_path", defaults.substitutions_path)),
            pricing=PricingConfig(
                backend=backend,
                base_url=pricing_data.get("base_url"),
                api_key=pricing_data.get("api_key"),
                timeout=float(pricing_data.get("timeout", 10.0)),
                memo_size=int(pricing_data.get("memo_size", 1024)),
                memo_ttl=float(pricing_data.get("memo_ttl", 300.0)),
            ),
            lock_timeout_seconds=float(data.get("lock_timeout_seconds", defaults.lock_timeout_seconds)),
            expansion_workers=int(data.get("expansion_workers", defaults.expansion_workers)),
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "EngineConfig":
        """Override settings from ATHYRA_* environment variables."""
        env = os.environ if environ is None else environ
        if env.get(ENV_STORAGE_DIR):
            self.storage_dir = env[ENV_STORAGE_DIR]
        if env.get(ENV_PRICING_URL):
            self.pricing.base_url = env[ENV_PRICING_URL]
            self.pricing.backend = "http"
        if env.get(ENV_PRICING_API_KEY):
            self.pricing.api_key = env[ENV_PRICING_API_KEY]
        if env.get(ENV_LOG_LEVEL):
            self.log_level = env[ENV_LOG_LEVEL].upper()
        return self


class ConfigLoader:
    """Loader for engine configuration from YAML."""

    def __init__(self, yaml_path: Optional[str] = None):
        """Initialize loader.

        Args:
            yaml_path: Path to the YAML file; defaults to $ATHYRA_CONFIG or
                config/engine.yaml
        """
        self.yaml_path = Path(yaml_path or os.environ.get(ENV_CONFIG) or DEFAULT_CONFIG_PATH)

    def load(self, environ: Optional[Dict[str, str]] = None) -> EngineConfig:
        """Load the config; a missing file yields the defaults.

        Raises:
            ValueError: If the file is not a YAML mapping or has bad values
        """
        data: Dict[str, Any] = {}
        if self.yaml_path.exists():
            with open(self.yaml_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {self.yaml_path} must contain a mapping")
        return EngineConfig.from_dict(data).apply_env(environ)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and server entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
