"""
Client for the Key Protect ``/api/v2/keys`` endpoint.

``KeyActionClient`` issues the three calls the relay needs: retrieving a
key, and wrapping or unwrapping data with a root key.  Each call first
fetches a brand new bearer token through ``TokenExchanger`` and then
sends exactly one request to Key Protect, so every relayed request costs
two sequential round trips.  Response bodies are returned as parsed JSON
without further validation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import httpx

from ..config import Settings
from .errors import KmsCallError
from .iam import TokenExchanger

logger = logging.getLogger(__name__)

KEY_MEDIA_TYPE = "application/vnd.ibm.kms.key+json"
KEY_ACTION_MEDIA_TYPE = "application/vnd.ibm.kms.key_action+json"


class KeyAction(str, Enum):
    RETRIEVE = "retrieve"
    WRAP = "wrap"
    UNWRAP = "unwrap"


# Name of the JSON body field each action sends its data in.
_DATA_FIELD = {
    KeyAction.WRAP: "plaintext",
    KeyAction.UNWRAP: "ciphertext",
}


@dataclass(frozen=True)
class KeyActionRequest:
    key_id: str
    action: KeyAction
    data: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        """Return the JSON body Key Protect expects for this action."""
        try:
            field = _DATA_FIELD[self.action]
        except KeyError:
            raise ValueError(f"{self.action.value} does not take a request body") from None
        return {field: self.data}


class KeyActionClient:
    """Authenticated access to Key Protect key operations."""

    def __init__(self, settings: Settings, tokens: TokenExchanger, http: httpx.AsyncClient):
        self.settings = settings
        self.tokens = tokens
        self.http = http

    def _key_url(self, key_id: str) -> str:
        return f"{self.settings.kms_base_url}/api/v2/keys/{quote(key_id, safe='')}"

    async def _headers(self, accept: str) -> Dict[str, str]:
        # AuthError from the exchange propagates untouched; no Key
        # Protect request is attempted without a token.
        token = await self.tokens.exchange(self.settings.ibm_api_key)
        return {
            "bluemix-instance": self.settings.key_protect_instance,
            "Accept": accept,
            "Authorization": token.authorization,
        }

    async def _send(self, req: KeyActionRequest, method: str, **kwargs) -> Dict[str, Any]:
        extra = {"key_id": req.key_id, "action": req.action.value}
        try:
            resp = await self.http.request(method, self._key_url(req.key_id), **kwargs)
        except httpx.TimeoutException as exc:
            logger.debug("Key Protect call timed out", extra=extra)
            raise KmsCallError(
                f"Key Protect {req.action.value} timed out: {exc}", timed_out=True
            ) from exc
        except httpx.HTTPError as exc:
            logger.debug("Key Protect call failed", extra=extra)
            raise KmsCallError(f"Key Protect {req.action.value} failed: {exc}") from exc

        if resp.is_error:
            logger.debug(
                "Key Protect call rejected", extra={**extra, "status_code": resp.status_code}
            )
            raise KmsCallError(
                f"Key Protect {req.action.value} returned HTTP {resp.status_code}",
                upstream_status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise KmsCallError(
                f"Key Protect {req.action.value} response is not valid JSON",
                upstream_status=resp.status_code,
            ) from exc

        logger.debug("Key Protect call succeeded", extra={**extra, "status_code": resp.status_code})
        return body

    async def retrieve_key(self, key_id: str) -> Dict[str, Any]:
        """GET a key (metadata and, for standard keys, its payload)."""
        headers = await self._headers(KEY_MEDIA_TYPE)
        return await self._send(
            KeyActionRequest(key_id, KeyAction.RETRIEVE), "GET", headers=headers
        )

    async def perform_action(
        self, key_id: str, action: Union[KeyAction, str], data: str
    ) -> Dict[str, Any]:
        """
        POST a ``wrap`` or ``unwrap`` action for ``key_id``.

        ``data`` is sent as ``plaintext`` when wrapping (it must already be
        base64) and as ``ciphertext`` when unwrapping.
        """
        action = KeyAction(action)
        if action not in _DATA_FIELD:
            raise ValueError(f"unsupported key action: {action.value}")
        req = KeyActionRequest(key_id, action, data)

        headers = await self._headers(KEY_ACTION_MEDIA_TYPE)
        headers["Content-Type"] = KEY_ACTION_MEDIA_TYPE
        headers["Prefer"] = "return=representation"
        return await self._send(
            req,
            "POST",
            params={"action": action.value},
            headers=headers,
            content=json.dumps(req.body()),
        )
