"""
Access Ledger - Configuration

Settings are read from ``ACCESS_LEDGER_*`` environment variables or a
local ``.env`` file.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Host configuration for an access ledger instance."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_LEDGER_",
        env_file=".env",
        extra="ignore",
    )

    database_path: str = Field(default=":memory:", description="SQLite path for the ledger")
    audit_database_path: Optional[str] = Field(
        default=None, description="SQLite path for the audit journal; unset disables it"
    )
    audit_signer_id: Optional[str] = None
    audit_signing_key_path: Optional[Path] = Field(
        default=None, description="PEM private key used to sign journal entries"
    )
    log_level: str = "INFO"


def load_settings() -> LedgerSettings:
    """Load ledger settings from the environment."""
    return LedgerSettings()


def configure_logging(settings: LedgerSettings):
    """Console logging for hosts and scripts; the library itself adds no handlers."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
