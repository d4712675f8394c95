"""Authenticated HTTP access to a Solid pod.

Wraps httpx with the pod's three verbs (GET a document, PATCH it with a
SPARQL Update body, POST a new container) and maps transport failures onto
NetworkError.  Every side-effecting call runs the session guard first so a
superseded session never writes.
"""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from solid_health.fitness.errors import NetworkError, RemoteRejection

logger = logging.getLogger("solidhealth.fitness.pod.client")

SPARQL_UPDATE = "application/sparql-update"
TURTLE = "text/turtle"
_ACCEPT = "text/turtle, application/ld+json;q=0.9, application/rdf+xml;q=0.8"


class PodClient:
    """HTTP client bound to one user's credentials.

    Args:
        access_token: Bearer token for the pod (None for public resources).
        http_client:  Optional pre-configured httpx client (for testing).
        timeout_s:    Per-request timeout in seconds.
        guard:        Called before every PATCH/POST; raises to veto the write.
    """

    def __init__(
        self,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
        guard: Callable[[], None] | None = None,
    ) -> None:
        self._access_token = access_token
        self._http_client = http_client
        self._timeout_s = timeout_s
        self._timeout = httpx.Timeout(timeout_s)
        self._guard = guard

    def with_guard(self, guard: Callable[[], None]) -> "PodClient":
        """Return a client sharing this one's transport with a different guard."""
        return PodClient(
            access_token=self._access_token,
            http_client=self._http_client,
            timeout_s=self._timeout_s,
            guard=guard,
        )

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    async def get(self, uri: str) -> httpx.Response:
        """GET a document.  Non-success statuses are returned, not raised."""
        return await self._request("GET", uri, headers={"Accept": _ACCEPT})

    async def patch(self, uri: str, update: str) -> httpx.Response:
        """PATCH a document with a SPARQL Update body."""
        self._check_guard()
        logger.debug("PATCH %s\n%s", uri, update)
        return await self._request(
            "PATCH", uri, headers={"Content-Type": SPARQL_UPDATE}, content=update
        )

    async def create_container(
        self, parent_uri: str, slug: str, body: str
    ) -> httpx.Response:
        """POST a new basic container named ``slug`` into ``parent_uri``."""
        self._check_guard()
        headers = {
            "Content-Type": TURTLE,
            "Link": '<http://www.w3.org/ns/ldp#BasicContainer>; rel="type"',
            "Slug": slug,
        }
        return await self._request("POST", parent_uri, headers=headers, content=body)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_guard(self) -> None:
        if self._guard is not None:
            self._guard()

    def _build_headers(self, extra: dict[str, str]) -> dict[str, str]:
        headers = dict(extra)
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        uri: str,
        headers: dict[str, str],
        content: str | None = None,
    ) -> httpx.Response:
        headers = self._build_headers(headers)
        try:
            if self._http_client:
                return await self._http_client.request(
                    method, uri, headers=headers, content=content, timeout=self._timeout
                )
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, uri, headers=headers, content=content)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{method} {uri} timed out", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {uri} failed: {exc}") from exc


def raise_for_rejection(
    response: httpx.Response,
    message: str,
    exc_cls: type[RemoteRejection] = RemoteRejection,
) -> None:
    """Raise ``exc_cls`` carrying status and body if the response is not 2xx."""
    if response.is_success:
        return
    try:
        body = response.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        body = ""
    raise exc_cls(message, status=response.status_code, body=body)
