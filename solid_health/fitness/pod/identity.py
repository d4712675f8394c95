"""Identity source: who is logged in, and how to talk to their pod.

Login and logout are driven from outside (the HTTP surface or a host
application).  Every change is broadcast to subscribers; the sync manager
reacts by starting a fresh session.

The WebID and the token issuer are not cross-checked here; whoever calls
``login`` is trusted to supply a token issued for that WebID.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from solid_health.fitness.pod.client import PodClient
from solid_health.fitness.sync.channels import Channel

logger = logging.getLogger("solidhealth.fitness.pod.identity")


@dataclass(frozen=True)
class Credentials:
    """The active user and the bearer token for their pod."""

    web_id: str
    access_token: str | None = None

    def __repr__(self) -> str:
        return f"Credentials(web_id={self.web_id!r})"


class IdentitySource(Channel[Optional[Credentials]]):
    """Broadcasts the active credentials; None when logged out.

    Args:
        http_client: Optional shared httpx client for pod requests (for testing).
        timeout_s:   Per-request timeout for pod requests.
    """

    def __init__(
        self,
        initial: Credentials | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        super().__init__(initial, name="identity")
        self._http_client = http_client
        self._timeout_s = timeout_s

    @property
    def web_id(self) -> str | None:
        return self.value.web_id if self.value else None

    def login(self, web_id: str, access_token: str | None = None) -> None:
        logger.info("Identity changed: %s", web_id)
        self.publish(Credentials(web_id=web_id, access_token=access_token))

    def logout(self) -> None:
        logger.info("Identity cleared")
        self.publish(None)

    def client_for(self, credentials: Credentials) -> PodClient:
        """Authenticated pod client for ``credentials``."""
        return PodClient(
            access_token=credentials.access_token,
            http_client=self._http_client,
            timeout_s=self._timeout_s,
        )
