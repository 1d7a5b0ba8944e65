"""GraphQL client for the authorization server's environment API.

Two operations are used:

- ``_env`` query: read every server-side environment variable.
- ``_update_env`` mutation: apply a partial update.

Both are authenticated with the admin secret header. Reads raise
``FetchError`` on any failure; updates never raise and report rejection in
the returned ``SubmitResult`` instead.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
import logging

import httpx
from pydantic import BaseModel

from config import settings
from config.env_schema import SERVER_FIELD_NAMES
from core.errors import FetchError

logger = logging.getLogger(__name__)

ADMIN_SECRET_HEADER = "x-authorizer-admin-secret"

ENV_QUERY = "query {\n  _env {\n" + "".join(f"    {name}\n" for name in SERVER_FIELD_NAMES) + "  }\n}"

UPDATE_ENV_MUTATION = """mutation updateEnvVariables($params: UpdateEnvInput!) {
  _update_env(params: $params) {
    message
  }
}"""


class SubmitError(BaseModel):
    message: str


class SubmitResult(BaseModel):
    """Outcome of an update; ``error`` is set when the server refused it."""
    message: Optional[str] = None
    error: Optional[SubmitError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _first_error_message(errors: Any) -> str:
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
    return "unknown server error"


class EnvClient:
    """Reads and updates environment variables over GraphQL."""

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        admin_secret: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url or settings.graphql_url
        self.admin_secret = admin_secret if admin_secret is not None else settings.authorizer_admin_secret
        self.timeout = timeout or httpx.Timeout(
            connect=settings.request_connect_timeout_seconds,
            read=settings.request_read_timeout_seconds,
            write=settings.request_write_timeout_seconds,
            pool=settings.request_connect_timeout_seconds,
        )
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.admin_secret:
            headers[ADMIN_SECRET_HEADER] = self.admin_secret
        return headers

    async def _post(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, json=payload, headers=self._headers())
            resp.raise_for_status()
            body = resp.json()

        if not isinstance(body, dict):
            raise ValueError("GraphQL response is not a JSON object")
        return body

    async def fetch_config(self) -> Dict[str, Any]:
        """Return the current environment variables as sent by the server."""
        try:
            body = await self._post(ENV_QUERY)
        except httpx.HTTPStatusError as e:
            raise FetchError(f"environment query failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"could not reach {self.url}: {e}") from e
        except ValueError as e:
            raise FetchError(f"invalid response from {self.url}: {e}") from e

        if body.get("errors"):
            raise FetchError(_first_error_message(body["errors"]))

        data = (body.get("data") or {}).get("_env")
        if not isinstance(data, dict):
            raise FetchError("environment query returned no data")
        return data

    async def submit_config(self, patch: Mapping[str, Any]) -> SubmitResult:
        """Apply a partial update containing only the fields in ``patch``."""
        params: Dict[str, Any] = {k: list(v) if isinstance(v, list) else v for k, v in patch.items()}
        try:
            body = await self._post(UPDATE_ENV_MUTATION, {"params": params})
        except httpx.HTTPStatusError as e:
            logger.warning("Environment update failed with HTTP %s", e.response.status_code)
            return SubmitResult(error=SubmitError(message=f"update failed with HTTP {e.response.status_code}"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Environment update failed: %s", e)
            return SubmitResult(error=SubmitError(message=f"update failed: {e}"))

        if body.get("errors"):
            return SubmitResult(error=SubmitError(message=_first_error_message(body["errors"])))

        data = (body.get("data") or {}).get("_update_env") or {}
        message = data.get("message") if isinstance(data, dict) else None
        return SubmitResult(message=message)

    async def ping(self) -> int:
        """Fetch once and return how many variables the server exposes."""
        data = await self.fetch_config()
        return len(data)
