"""
Runtime configuration.

All settings come from environment variables and are read once at startup.
SECURITY: there are no defaults for secrets. A component whose secret is
missing is left unconfigured and its endpoints fail closed.
"""
import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_SETTLEMENT_API_BASE = "https://developer.worldcoin.org/api/v2"

# 1 token with 18 decimals
DEFAULT_PRICE_PER_RESOURCE = 10**18


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class Settings:
    attestor_private_key: Optional[str] = None
    api_secret: Optional[str] = None
    settlement_app_id: Optional[str] = None
    settlement_api_key: Optional[str] = None
    settlement_api_base: str = DEFAULT_SETTLEMENT_API_BASE
    settlement_timeout_secs: float = 10.0
    token_ttl_secs: int = 300
    challenge_ttl_secs: int = 300
    price_per_resource: int = DEFAULT_PRICE_PER_RESOURCE
    ledger_path: Optional[str] = None
    storage_api_base: Optional[str] = None
    storage_api_key: Optional[str] = None
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            attestor_private_key=os.getenv("ATTESTOR_PRIVATE_KEY"),
            api_secret=os.getenv("API_SECRET"),
            settlement_app_id=os.getenv("SETTLEMENT_APP_ID"),
            settlement_api_key=os.getenv("SETTLEMENT_API_KEY"),
            settlement_api_base=os.getenv("SETTLEMENT_API_BASE", DEFAULT_SETTLEMENT_API_BASE),
            settlement_timeout_secs=float(os.getenv("SETTLEMENT_TIMEOUT_SECS", "10")),
            token_ttl_secs=_int_env("TOKEN_TTL_SECS", 300),
            challenge_ttl_secs=_int_env("CHALLENGE_TTL_SECS", 300),
            price_per_resource=_int_env("PRICE_PER_RESOURCE", DEFAULT_PRICE_PER_RESOURCE),
            ledger_path=os.getenv("LEDGER_PATH") or None,
            storage_api_base=os.getenv("STORAGE_API_BASE") or None,
            storage_api_key=os.getenv("STORAGE_API_KEY") or None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    def __repr__(self) -> str:
        # Secrets stay out of logs and tracebacks
        return (
            f"Settings(settlement_api_base={self.settlement_api_base!r}, "
            f"ledger_path={self.ledger_path!r}, token_ttl_secs={self.token_ttl_secs})"
        )
