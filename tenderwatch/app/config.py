"""Configuration for Tenderwatch.

Settings come from ``config.json`` (see ``infrastructure.db.config``) with
environment variables taking precedence for secrets and deployment paths.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from tenderwatch.infrastructure.db.config import load_config

DEFAULT_BASE_URL = "https://api.mercadopublico.cl/servicios/v1/publico"
DEFAULT_TIMEZONE = "America/Santiago"

PLACEHOLDER_TICKETS = frozenset(
    {"YOUR_API_KEY_HERE", "YOUR_TICKET_HERE", "CHANGEME", "CHANGE_ME", "TICKET", "XXX"}
)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or unusable."""


@dataclass
class ApiSettings:
    """Connection settings for the remote tender API."""

    ticket: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0

    def __repr__(self) -> str:
        return (
            f"ApiSettings(ticket={'***' if self.ticket else None!r}, "
            f"base_url={self.base_url!r}, timeout_seconds={self.timeout_seconds!r})"
        )

    def validate(self) -> None:
        """Fail fast when the API ticket is unset or an obvious placeholder.

        Raises:
            ConfigurationError: If the ticket cannot be used.
        """
        ticket = (self.ticket or "").strip()
        if not ticket:
            raise ConfigurationError(
                "Mercado Público API ticket is required; set MERCADOPUBLICO_TICKET "
                "or mercadopublico.ticket in config.json"
            )
        if ticket.upper() in PLACEHOLDER_TICKETS:
            raise ConfigurationError(
                "Mercado Público API ticket is still a placeholder value"
            )


@dataclass
class SyncSettings:
    """Tuning for the sync cycle and enrichment pipeline."""

    pacing_seconds: float = 3.0
    progress_every: int = 50
    timezone: str = DEFAULT_TIMEZONE


@dataclass
class Settings:
    api: ApiSettings = field(default_factory=ApiSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name, {})
    return value if isinstance(value, dict) else {}


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Build :class:`Settings` from ``config.json`` and the environment.

    ``MERCADOPUBLICO_TICKET`` and ``MERCADOPUBLICO_BASE_URL`` override the
    file. Validation is left to the caller (see :meth:`ApiSettings.validate`).
    """
    cfg = load_config(config_path)
    api_cfg = _section(cfg, "mercadopublico")
    sync_cfg = _section(cfg, "sync")

    api = ApiSettings(
        ticket=os.environ.get("MERCADOPUBLICO_TICKET") or api_cfg.get("ticket"),
        base_url=os.environ.get("MERCADOPUBLICO_BASE_URL")
        or api_cfg.get("base_url", DEFAULT_BASE_URL),
        timeout_seconds=float(api_cfg.get("timeout_seconds", 30.0)),
    )
    sync = SyncSettings(
        pacing_seconds=float(sync_cfg.get("pacing_seconds", 3.0)),
        progress_every=int(sync_cfg.get("progress_every", 50)),
        timezone=str(sync_cfg.get("timezone", DEFAULT_TIMEZONE)),
    )
    return Settings(api=api, sync=sync)


__all__ = [
    "ApiSettings",
    "ConfigurationError",
    "Settings",
    "SyncSettings",
    "load_settings",
]
