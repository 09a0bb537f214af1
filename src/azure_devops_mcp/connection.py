"""Connection handle passed to every operation adapter."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .ado_client import AzureDevOpsClient, RequestBudget
from .auth import PatAuth
from .config import AppConfig
from .core_api import CoreApi, WorkItemApi
from .git_api import GitApi


@dataclass(frozen=True, slots=True)
class Connection:
    """Read-only bundle of resource-area clients; safe to share across calls."""

    client: AzureDevOpsClient
    git: GitApi
    core: CoreApi
    work_items: WorkItemApi


def connect(config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> Connection:
    """Build a connection for the configured organization (no network I/O)."""
    client = AzureDevOpsClient(
        auth=PatAuth(config=config),
        organization_url=config.organization_url,
        api_version=config.api_version,
        limits=config.limits,
        transport=transport,
    )
    budget = RequestBudget(total_timeout_s=config.limits.total_timeout_s)
    return Connection(
        client=client,
        git=GitApi(client, budget=budget),
        core=CoreApi(client, budget=budget),
        work_items=WorkItemApi(client, budget=budget),
    )
