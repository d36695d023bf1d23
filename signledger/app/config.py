"""
Runtime configuration for the signing service.

This module centralizes environment-driven configuration and feature
flags. Configuration is read once at startup and is immutable afterwards.

Only ENABLE_HASH_CHAIN can influence digest values, and only for
signatures created while it is set. Presentation settings (display
timezone) never reach a digest.
"""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class SignLedgerConfig(BaseModel):
    """
    Runtime configuration for the signing service.

    Environment-driven and frozen.
    """

    # ------------------------------------------------------------------
    # Safety and resource limits
    # ------------------------------------------------------------------

    MAX_PDF_SIZE_MB: int = Field(
        25,
        gt=0,
        description="Maximum accepted PDF size in megabytes",
    )

    MAX_PAGE_COUNT: int = Field(
        500,
        gt=0,
        description="Maximum number of pages in a source document",
    )

    # ------------------------------------------------------------------
    # Binding semantics
    # ------------------------------------------------------------------

    ENABLE_HASH_CHAIN: bool = Field(
        False,
        description=(
            "Append the previous signer digest (|PREV:...|) to each new "
            "signer payload. When false, signer digests are independent."
        ),
    )

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    DISPLAY_TIMEZONE: str = Field(
        "UTC",
        description="IANA zone used to render signing times on the protocol page",
    )

    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level for the HTTP entrypoint",
    )

    # ------------------------------------------------------------------
    # Session persistence (HTTP surface only)
    # ------------------------------------------------------------------

    SESSION_STORE_PATH: Path | None = Field(
        None,
        description=(
            "JSON file backing the session key-value store. "
            "In-memory when unset."
        ),
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("DISPLAY_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown DISPLAY_TIMEZONE '{v}'") from exc
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"Unsupported LOG_LEVEL '{v}'. "
                f"Allowed values: {sorted(_LOG_LEVELS)}"
            )
        return level

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "SignLedgerConfig":
        """
        Load configuration from SIGNLEDGER_* environment variables.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        store_path = os.getenv("SIGNLEDGER_SESSION_STORE_PATH")

        return cls(
            MAX_PDF_SIZE_MB=int(
                os.getenv("SIGNLEDGER_MAX_PDF_SIZE_MB", "25")
            ),
            MAX_PAGE_COUNT=int(
                os.getenv("SIGNLEDGER_MAX_PAGE_COUNT", "500")
            ),
            ENABLE_HASH_CHAIN=env_bool(
                "SIGNLEDGER_ENABLE_HASH_CHAIN", False
            ),
            DISPLAY_TIMEZONE=os.getenv(
                "SIGNLEDGER_DISPLAY_TIMEZONE", "UTC"
            ),
            LOG_LEVEL=os.getenv("SIGNLEDGER_LOG_LEVEL", "INFO"),
            SESSION_STORE_PATH=(
                Path(store_path)
                if store_path
                else None
            ),
        )

    model_config = {
        "frozen": True,
    }
