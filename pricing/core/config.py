"""
Configuration management for the pricing service.

Loads tunables from a YAML config file and provides typed access. Store
credentials are read from the environment (.env is loaded first).
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml

from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of the pricing package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = Path(os.getenv("PRICING_CONFIG", _project_root() / "config" / "default.yaml"))


@dataclass
class PricingConfig:
    """Configuration for the pricing service."""

    # Discounts
    first_order_code: str = "WELCOME30"     # canonical first-purchase promotion
    auto_apply_candidate_limit: int = 1     # rows fetched for auto-apply selection

    # Backing store
    store_timeout_seconds: float = 5.0      # per-read bound; timeout = store failure
    store_retry_attempts: int = 3           # total attempts for transient faults
    store_retry_backoff_seconds: float = 0.1

    log_level: Optional[str] = None

    # Seed data for the in-memory store (local development without Supabase)
    seed_discounts: List[Dict[str, Any]] = field(default_factory=list)
    seed_tax_rates: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def supabase_url(self) -> str:
        return os.environ.get("SUPABASE_URL", "")

    @property
    def supabase_key(self) -> str:
        return os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_KEY", "")

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "PricingConfig":
        """Load configuration from YAML file."""
        path = Path(config_path or DEFAULT_CONFIG_PATH)
        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        pricing_config = data.get('pricing', {})
        store_config = data.get('store', {})
        seed_config = data.get('seed', {})

        return cls(
            first_order_code=str(pricing_config.get('first_order_code', 'WELCOME30')).upper(),
            auto_apply_candidate_limit=int(pricing_config.get('auto_apply_candidate_limit', 1)),
            store_timeout_seconds=float(store_config.get('timeout_seconds', 5.0)),
            store_retry_attempts=int(store_config.get('retry_attempts', 3)),
            store_retry_backoff_seconds=float(store_config.get('retry_backoff_seconds', 0.1)),
            log_level=data.get('log_level'),
            seed_discounts=list(seed_config.get('discount_codes') or []),
            seed_tax_rates=list(seed_config.get('tax_rates') or []),
        )


# Global config instance
_config: Optional[PricingConfig] = None


def get_config() -> PricingConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = PricingConfig.from_yaml()
    return _config


def set_config(config: PricingConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
