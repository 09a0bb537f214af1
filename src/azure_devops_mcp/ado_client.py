"""Azure DevOps REST client wrapper.

Provides:
- https-only organization URL and no-redirect behavior
- finite timeouts
- api-version pinning
- safe error translation
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .auth import PatAuth
from .config import LimitsConfig
from .errors import AZURE_DEVOPS, CONFIG, NETWORK, SafeError, azure_devops_auth_failed

logger = logging.getLogger(__name__)

JSON_PATCH = "application/json-patch+json"


@dataclass(frozen=True, slots=True)
class RequestBudget:
    """Budget for a single tool call."""

    total_timeout_s: float


def segment(value: str | int) -> str:
    """Quote one URL path segment (project and repository names may contain spaces)."""
    return quote(str(value), safe="")


def unwrap_collection(payload: Any) -> list[Any]:
    """Unwrap the ``{"count": n, "value": [...]}`` collection envelope."""
    if isinstance(payload, dict):
        value = payload.get("value")
        return list(value) if isinstance(value, list) else []
    if isinstance(payload, list):
        return payload
    return []


class AzureDevOpsClient:
    """Minimal Azure DevOps REST client bound to one organization."""

    def __init__(
        self,
        *,
        auth: PatAuth,
        organization_url: str,
        api_version: str,
        limits: LimitsConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create an Azure DevOps REST client.

        Args:
            auth: Supplies the Authorization header.
            organization_url: e.g. https://dev.azure.com/contoso (https enforced).
            api_version: Value sent as the ``api-version`` query parameter.
            limits: Timeouts.
            transport: Optional httpx transport for tests.
        """
        self._auth = auth
        self._base_url = organization_url.rstrip("/")
        self._api_version = api_version
        self._limits = limits
        self._transport = transport

        if not self._base_url.startswith("https://"):
            raise SafeError(code=CONFIG, message="Only https organization URLs are allowed")

    @property
    def organization_url(self) -> str:
        return self._base_url

    def _headers(self, content_type: str | None) -> dict[str, str]:
        return {
            "Authorization": self._auth.authorization_header(),
            "Accept": "application/json",
            "Content-Type": content_type or "application/json",
        }

    @staticmethod
    def _service_message(resp: httpx.Response) -> str | None:
        try:
            payload = resp.json()
        except Exception:  # pylint: disable=broad-exception-caught
            return None
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            return payload["message"]
        return None

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        content_type: str | None = None,
        allow_not_found: bool = False,
        budget: RequestBudget,
    ) -> Any:
        """Make a request and return decoded JSON.

        Returns None for an empty body, and for 404 when ``allow_not_found`` is set
        (single-entity lookups treat absence as a result, not a failure).
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        query: dict[str, Any] = {k: v for k, v in (params or {}).items() if v is not None}
        query["api-version"] = self._api_version

        timeout = httpx.Timeout(
            timeout=min(budget.total_timeout_s, self._limits.total_timeout_s),
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        body: bytes | None = None
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")

        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers(content_type),
                    content=body,
                    params=query,
                )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc.__class__.__name__)
            raise SafeError(code=NETWORK, message="Network request failed") from exc

        logger.debug("%s %s -> %s", method, path, resp.status_code)

        if resp.status_code in (401, 403):
            raise azure_devops_auth_failed(status_code=resp.status_code)

        if resp.status_code == 404 and allow_not_found:
            return None

        if resp.status_code >= 400:
            service_message = self._service_message(resp)
            message = f"Azure DevOps request failed ({resp.status_code})"
            if service_message:
                message = f"{message}: {service_message}"
            raise SafeError(
                code=AZURE_DEVOPS,
                message=message,
                hint=service_message,
                status_code=resp.status_code,
            )

        if not resp.content:
            return None

        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise SafeError(code=AZURE_DEVOPS, message="Azure DevOps returned invalid JSON") from exc
