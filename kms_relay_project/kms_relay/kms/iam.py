"""
IBM Cloud IAM token exchange.

Key Protect only accepts short-lived bearer tokens.  ``TokenExchanger``
trades the long-lived API key for one such token by posting a
form-encoded ``apikey`` grant to the IAM token endpoint.  A fresh token
is requested for every Key Protect call; nothing is cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .errors import AuthError

logger = logging.getLogger(__name__)

GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"


@dataclass(frozen=True)
class BearerToken:
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"

    def __repr__(self) -> str:
        return f"BearerToken(token_type={self.token_type!r}, expires_in={self.expires_in!r})"


class TokenExchanger:
    """Exchange an API key for a bearer token at the IAM endpoint."""

    def __init__(self, token_url: str, http: httpx.AsyncClient):
        self.token_url = token_url
        self.http = http

    async def exchange(self, api_key: str) -> BearerToken:
        """
        Request a new bearer token for ``api_key``.

        Raises ``AuthError`` when the request cannot be sent, times out,
        comes back with a non-2xx status, or the body is not JSON with an
        ``access_token`` field.
        """
        logger.debug("requesting IAM token")
        form = {"grant_type": GRANT_TYPE, "apikey": api_key}
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            resp = await self.http.post(self.token_url, data=form, headers=headers)
        except httpx.TimeoutException as exc:
            raise AuthError(f"IAM token request timed out: {exc}", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"IAM token request failed: {exc}") from exc

        if resp.is_error:
            logger.debug(
                "IAM token request rejected", extra={"status_code": resp.status_code}
            )
            raise AuthError(
                f"IAM token request returned HTTP {resp.status_code}",
                upstream_status=resp.status_code,
            )

        try:
            body: Dict[str, Any] = resp.json()
        except ValueError as exc:
            raise AuthError(
                "IAM token response is not valid JSON", upstream_status=resp.status_code
            ) from exc

        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise AuthError(
                "IAM token response has no access_token", upstream_status=resp.status_code
            )

        logger.debug("IAM token received")
        return BearerToken(
            access_token=token,
            token_type=body.get("token_type", "Bearer"),
            expires_in=body.get("expires_in"),
        )
