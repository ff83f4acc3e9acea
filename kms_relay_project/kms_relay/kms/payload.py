"""
Reshape caller payloads around Key Protect wrap and unwrap calls.

The sensitive value travels in a single field of an otherwise opaque
JSON object (``ssn`` by default).  Encrypting replaces it with the
wrapped ciphertext; decrypting replaces the ciphertext with the
original text.  Every other field is echoed back unchanged.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict

from .client import KeyAction, KeyActionClient
from .errors import KmsCallError, MalformedPayload

logger = logging.getLogger(__name__)

SENSITIVE_FIELD = "ssn"


def _b64e(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _b64d(data: str) -> str:
    return base64.b64decode(data.encode("ascii")).decode("utf-8", errors="replace")


class PayloadTransform:
    """Encrypt or decrypt the sensitive field of a payload in place."""

    def __init__(self, client: KeyActionClient, field: str = SENSITIVE_FIELD):
        self.client = client
        self.field = field

    def _value(self, payload: Dict[str, Any]) -> str:
        if not isinstance(payload, dict) or self.field not in payload:
            raise MalformedPayload(f"request body has no '{self.field}' field")
        value = payload[self.field]
        if not isinstance(value, str):
            raise MalformedPayload(f"'{self.field}' must be a string")
        return value

    @staticmethod
    def _extract(result: Dict[str, Any], name: str, action: KeyAction) -> str:
        value = result.get(name) if isinstance(result, dict) else None
        if not isinstance(value, str):
            raise KmsCallError(f"Key Protect {action.value} response has no '{name}' field")
        return value

    async def encrypt(self, key_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Wrap ``payload[field]`` with root key ``key_id``."""
        plaintext = _b64e(self._value(payload))
        result = await self.client.perform_action(key_id, KeyAction.WRAP, plaintext)
        payload[self.field] = self._extract(result, "ciphertext", KeyAction.WRAP)
        logger.debug("payload wrapped", extra={"key_id": key_id, "action": "wrap"})
        return payload

    async def decrypt(self, key_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Unwrap ``payload[field]`` with root key ``key_id``."""
        ciphertext = self._value(payload)
        result = await self.client.perform_action(key_id, KeyAction.UNWRAP, ciphertext)
        encoded = self._extract(result, "plaintext", KeyAction.UNWRAP)
        try:
            payload[self.field] = _b64d(encoded)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise KmsCallError("Key Protect unwrap returned plaintext that is not base64") from exc
        logger.debug("payload unwrapped", extra={"key_id": key_id, "action": "unwrap"})
        return payload
