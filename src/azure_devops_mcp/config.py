"""Configuration loading for azure-devops-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The personal access token is a secret and must never be emitted to agents, logs, or audit
reasons.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import CONFIG, SafeError

DEFAULT_API_VERSION = "7.1"
DEFAULT_TOTAL_TIMEOUT_S = 60.0
DEFAULT_READ_TIMEOUT_S = 30.0


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Non-functional transport limits."""

    total_timeout_s: float = DEFAULT_TOTAL_TIMEOUT_S
    connect_timeout_s: float = 5.0
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Organization binding configuration."""

    organization_url: str
    personal_access_token: str
    api_version: str

    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    limits: LimitsConfig

    def __repr__(self) -> str:
        return (
            f"AppConfig(organization_url={self.organization_url!r}, "
            f"api_version={self.api_version!r}, personal_access_token='<redacted>')"
        )


def _normalize_org_url(value: str) -> str:
    url = value.strip().rstrip("/")
    if "://" not in url:
        # Bare organization name.
        return f"https://dev.azure.com/{url}"
    if not url.startswith("https://"):
        raise SafeError(code=CONFIG, message="AZURE_DEVOPS_ORG_URL must use https")
    return url


def _parse_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_TOTAL_TIMEOUT_S
    try:
        timeout = float(value)
    except ValueError as exc:
        raise SafeError(code=CONFIG, message="AZURE_DEVOPS_MCP_TIMEOUT_S must be a number") from exc
    if timeout <= 0:
        raise SafeError(code=CONFIG, message="AZURE_DEVOPS_MCP_TIMEOUT_S must be greater than 0")
    return timeout


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        SafeError: If configuration is missing/invalid.
    """
    org_url_raw = os.getenv("AZURE_DEVOPS_ORG_URL")
    pat = os.getenv("AZURE_DEVOPS_PAT")

    if not org_url_raw or not org_url_raw.strip() or not pat:
        raise SafeError(
            code=CONFIG,
            message="Missing required configuration (AZURE_DEVOPS_ORG_URL, AZURE_DEVOPS_PAT)",
        )

    organization_url = _normalize_org_url(org_url_raw)
    api_version = (os.getenv("AZURE_DEVOPS_API_VERSION") or DEFAULT_API_VERSION).strip()
    total_timeout_s = _parse_timeout(os.getenv("AZURE_DEVOPS_MCP_TIMEOUT_S"))

    audit_path_raw = os.getenv("AZURE_DEVOPS_MCP_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise SafeError(code=CONFIG, message="AZURE_DEVOPS_MCP_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    return AppConfig(
        organization_url=organization_url,
        personal_access_token=pat,
        api_version=api_version,
        audit_log_path=audit_path,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        limits=LimitsConfig(
            total_timeout_s=total_timeout_s,
            read_timeout_s=min(DEFAULT_READ_TIMEOUT_S, total_timeout_s),
        ),
    )
