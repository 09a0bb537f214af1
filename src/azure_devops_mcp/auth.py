"""Personal access token authentication.

Builds the Basic authorization header and verifies, once at start-up, that the
organization accepts the token. The token itself must never be exposed.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

from .config import AppConfig
from .errors import AUTH, SafeError, describe

if TYPE_CHECKING:
    from .ado_client import AzureDevOpsClient, RequestBudget

logger = logging.getLogger(__name__)


class PatAuth:
    """Supplies authorization headers for a single organization."""

    def __init__(self, *, config: AppConfig) -> None:
        self._header = "Basic " + base64.b64encode(f":{config.personal_access_token}".encode("utf-8")).decode("ascii")

    def authorization_header(self) -> str:
        """Return the value for the ``Authorization`` header."""
        return self._header


async def verify_connection(client: AzureDevOpsClient, *, budget: RequestBudget) -> None:
    """Fail fast if the organization rejects the configured token.

    Raises:
        SafeError: ``Auth`` code, whatever the underlying failure was.
    """
    try:
        data = await client.request_json(method="GET", path="_apis/connectionData", budget=budget)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise SafeError(code=AUTH, message=f"Failed to authenticate with Azure DevOps: {describe(exc)}") from exc
    if data is None:
        raise SafeError(code=AUTH, message="Failed to authenticate with Azure DevOps: organization not found")

    user = data.get("authenticatedUser") if isinstance(data, dict) else None
    if isinstance(user, dict) and user.get("providerDisplayName"):
        logger.info("Authenticated to Azure DevOps as %s", user["providerDisplayName"])
    else:
        logger.info("Authenticated to Azure DevOps")
