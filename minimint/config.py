from __future__ import annotations

"""
Configuration loader for minimint.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Every variable uses the ``MINIMINT_`` prefix.
- Exposes a cached `get_settings()` accessor.

Environment variables:
    MINIMINT_COLLECTION_NAME   (str, default "Minimint")    ledger name
    MINIMINT_SYMBOL            (str, default "MINT")        ledger symbol
    MINIMINT_MAX_SUPPLY        (int, default 10000)         initial supply cap
    MINIMINT_SUPPLY_CEILING    (int, optional)              highest value the cap may be raised to;
                                                              defaults to MAX_SUPPLY (cap cannot grow)
    MINIMINT_MAX_BATCH_SIZE    (int, default 50)            bound for batch mint / whitelist / airdrop
    MINIMINT_MAX_ROYALTY_BPS   (int, default 1000)          royalty ceiling in basis points
    MINIMINT_WALLET_MINT_LIMIT (int, default 0)             per-wallet limit, 0 = unlimited
    MINIMINT_BASE_URI          (str, default "")            fallback prefix for token URIs
    MINIMINT_MINT_FEE          (int, default 0)             controller price per token, 0 = free
    MINIMINT_STAKING_ENABLED   (bool, default false)        open staking at deploy
    MINIMINT_CHAIN_ID          (int, default 1337)          chain id for signing domains
    MINIMINT_GENESIS_TIMESTAMP (int, default 1700000000)    clock start for fresh runtimes
    MINIMINT_LOG_LEVEL         (str, default "INFO")
    MINIMINT_LOG_FORMAT        ("json" | "console", default "json")
    MINIMINT_STATE_PATH        (path, default "./minimint-state.cbor")
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upper bound imposed by the royalty table itself; settings may only tighten it.
ROYALTY_HARD_CAP_BPS = 1000


class Settings(BaseSettings):
    # Collection
    collection_name: str = Field("Minimint", description="Ledger name")
    symbol: str = Field("MINT", description="Ledger symbol")
    max_supply: int = Field(10_000, ge=0, description="Initial supply cap")
    supply_ceiling: Optional[int] = Field(
        None, ge=0, description="Highest value max_supply may be raised to"
    )
    max_batch_size: int = Field(50, ge=1, description="Bound for batched operations")
    max_royalty_bps: int = Field(ROYALTY_HARD_CAP_BPS, ge=0, le=ROYALTY_HARD_CAP_BPS)
    wallet_mint_limit: int = Field(0, ge=0, description="0 means unlimited")
    base_uri: str = ""
    mint_fee: int = Field(0, ge=0, description="Controller price per token")
    staking_enabled: bool = False

    # Environment
    chain_id: int = Field(1337, ge=0, description="Chain id bound into signing domains")
    genesis_timestamp: int = Field(1_700_000_000, ge=0)

    # Ops
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field("json", description='"json" or "console"')
    state_path: Path = Path("./minimint-state.cbor")

    model_config = SettingsConfigDict(
        env_prefix="MINIMINT_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("log_format")
    @classmethod
    def _check_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def _check_ceiling(self) -> "Settings":
        if self.supply_ceiling is not None and self.supply_ceiling < self.max_supply:
            raise ValueError("supply_ceiling must be >= max_supply")
        return self

    @property
    def effective_ceiling(self) -> int:
        return self.max_supply if self.supply_ceiling is None else self.supply_ceiling


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor. Call `get_settings.cache_clear()` after changing env."""
    return Settings()


__all__ = ["Settings", "get_settings", "ROYALTY_HARD_CAP_BPS"]
