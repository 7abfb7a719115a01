"""
Iceberg REST Catalog Client

Async client for the table endpoints used by the weighted benchmark. Every call
takes the run's RunContext so an in-flight request is abandoned as soon as the
run is cancelled.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, runtime_checkable
from urllib.parse import quote

import httpx

from catalog_bench.config import settings
from catalog_bench.connectors.sigv4 import AwsSigV4Auth
from catalog_bench.core.context import RunContext

logger = logging.getLogger(__name__)

# Multi-level namespaces are joined with the ASCII unit separator in URLs.
NAMESPACE_SEPARATOR = "\x1f"


class CatalogError(Exception):
    """Base class for catalog request failures."""


class CatalogTransportError(CatalogError):
    """The request never produced an HTTP response (connect, timeout, protocol)."""

    def __init__(self, message: str, *, method: str, url: str):
        super().__init__(message)
        self.method = method
        self.url = url


class CatalogHTTPError(CatalogError):
    """The catalog answered with a non-2xx status."""

    def __init__(
        self,
        *,
        method: str,
        url: str,
        status_code: int,
        message: str,
        error_type: Optional[str] = None,
        body: str = "",
    ):
        super().__init__(f"{method} {url}: HTTP {status_code}: {message}")
        self.method = method
        self.url = url
        self.status_code = status_code
        self.error_type = error_type
        self.body = body


@runtime_checkable
class CatalogClient(Protocol):
    """The two calls the benchmark issues against a sampled table."""

    async def fetch(
        self, ctx: RunContext, catalog: str, namespace: Sequence[str], name: str
    ) -> Dict[str, Any]: ...

    async def mutate(
        self,
        ctx: RunContext,
        catalog: str,
        namespace: Sequence[str],
        name: str,
        patch: Mapping[str, str],
    ) -> Dict[str, Any]: ...


def _normalize_base_url(base_url: str) -> str:
    value = (base_url or "").strip()
    if not value:
        raise ValueError("base_url must be a non-empty URL")
    return value.rstrip("/")


def _normalize_prefix(prefix: str) -> str:
    cleaned = (prefix or "").strip().strip("/")
    return f"/{cleaned}" if cleaned else ""


def _error_details(response: httpx.Response) -> tuple[str, Optional[str]]:
    """Extract (message, type) from an Iceberg ErrorModel body, if present."""
    try:
        payload = response.json()
    except ValueError:
        return (response.text[:500] or response.reason_phrase), None
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or response.reason_phrase), err.get("type")
    return response.reason_phrase, None


def set_properties_request(patch: Mapping[str, str]) -> Dict[str, Any]:
    """CommitTableRequest that only sets table properties."""
    return {
        "requirements": [],
        "updates": [
            {
                "action": "set-properties",
                "updates": {str(k): str(v) for k, v in patch.items()},
            }
        ],
    }


class RestCatalogClient:
    """Async Iceberg REST catalog client built on httpx."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_prefix: Optional[str] = None,
        token: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        session_token: Optional[str] = None,
        region: Optional[str] = None,
        service: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        connect_timeout_seconds: Optional[float] = None,
        max_connections: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Catalog base URL (defaults to settings.ICEBERG_CATALOG_URI)
            api_prefix: API prefix such as "/v1" (defaults to settings.ICEBERG_API_PREFIX)
            token: Optional bearer token, used only without SigV4 credentials
            access_key: SigV4 access key (defaults to settings.ICEBERG_ACCESS_KEY)
            secret_key: SigV4 secret key (defaults to settings.ICEBERG_SECRET_KEY)
            session_token: Optional SigV4 session token
            region: SigV4 signing region (defaults to settings.ICEBERG_REGION)
            service: SigV4 signing service (defaults to settings.ICEBERG_SERVICE)
            timeout_seconds: Per-request timeout
            connect_timeout_seconds: Connect timeout
            max_connections: Connection pool size; should cover the worker count
            headers: Extra headers sent with every request
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = _normalize_base_url(
            settings.ICEBERG_CATALOG_URI if base_url is None else base_url
        )
        self.api_prefix = _normalize_prefix(
            settings.ICEBERG_API_PREFIX if api_prefix is None else api_prefix
        )
        self._root = self.base_url + self.api_prefix

        access_key = settings.ICEBERG_ACCESS_KEY if access_key is None else access_key
        secret_key = settings.ICEBERG_SECRET_KEY if secret_key is None else secret_key
        self.auth: Optional[AwsSigV4Auth] = None
        if access_key or secret_key:
            self.auth = AwsSigV4Auth(
                access_key=access_key,
                secret_key=secret_key,
                session_token=(
                    settings.ICEBERG_SESSION_TOKEN if session_token is None else session_token
                ),
                region=settings.ICEBERG_REGION if region is None else region,
                service=settings.ICEBERG_SERVICE if service is None else service,
            )

        request_headers: Dict[str, str] = {"Accept": "application/json"}
        auth_token = settings.ICEBERG_TOKEN if token is None else token
        if auth_token and self.auth is None:
            request_headers["Authorization"] = f"Bearer {auth_token}"
        request_headers.update(headers or {})

        timeout = httpx.Timeout(
            settings.ICEBERG_REQUEST_TIMEOUT if timeout_seconds is None else timeout_seconds,
            connect=(
                settings.ICEBERG_CONNECT_TIMEOUT
                if connect_timeout_seconds is None
                else connect_timeout_seconds
            ),
        )
        pool_size = settings.ICEBERG_MAX_CONNECTIONS if max_connections is None else max_connections
        limits = httpx.Limits(
            max_connections=max(1, int(pool_size)),
            max_keepalive_connections=max(1, int(pool_size)),
        )
        self._client = httpx.AsyncClient(
            headers=request_headers,
            auth=self.auth,
            timeout=timeout,
            limits=limits,
            transport=transport,
        )

    async def __aenter__(self) -> RestCatalogClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def table_url(self, catalog: str, namespace: Sequence[str], name: str) -> str:
        ns = quote(NAMESPACE_SEPARATOR.join(namespace), safe="")
        return (
            f"{self._root}/{quote(catalog, safe='')}/namespaces/{ns}"
            f"/tables/{quote(name, safe='')}"
        )

    async def _request(
        self,
        ctx: RunContext,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await ctx.guard(self._client.request(method, url, json=json))
        except httpx.TimeoutException as e:
            raise CatalogTransportError(
                f"{method} {url}: timeout: {e}", method=method, url=url
            ) from e
        except httpx.HTTPError as e:
            raise CatalogTransportError(
                f"{method} {url}: {type(e).__name__}: {e}", method=method, url=url
            ) from e

        if not 200 <= response.status_code < 300:
            message, error_type = _error_details(response)
            raise CatalogHTTPError(
                method=method,
                url=url,
                status_code=response.status_code,
                message=message,
                error_type=error_type,
                body=response.text[:2000],
            )

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            return {"raw": response.text}
        return payload if isinstance(payload, dict) else {"result": payload}

    async def get_table(
        self, ctx: RunContext, catalog: str, namespace: Sequence[str], name: str
    ) -> Dict[str, Any]:
        """Load table metadata (GET .../tables/{name})."""
        return await self._request(ctx, "GET", self.table_url(catalog, namespace, name))

    async def update_table(
        self,
        ctx: RunContext,
        catalog: str,
        namespace: Sequence[str],
        name: str,
        request: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Commit table updates (POST .../tables/{name})."""
        return await self._request(
            ctx, "POST", self.table_url(catalog, namespace, name), json=request
        )

    async def fetch(
        self, ctx: RunContext, catalog: str, namespace: Sequence[str], name: str
    ) -> Dict[str, Any]:
        return await self.get_table(ctx, catalog, namespace, name)

    async def mutate(
        self,
        ctx: RunContext,
        catalog: str,
        namespace: Sequence[str],
        name: str,
        patch: Mapping[str, str],
    ) -> Dict[str, Any]:
        return await self.update_table(
            ctx, catalog, namespace, name, set_properties_request(patch)
        )
