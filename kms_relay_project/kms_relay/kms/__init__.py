"""
Key Protect helper package for the relay.

This package contains the IAM token exchange, the key action client
that talks to the Key Protect REST API and the payload transform that
reshapes caller JSON around wrap and unwrap calls.
"""

from .client import KeyAction, KeyActionClient, KeyActionRequest
from .errors import AuthError, KmsCallError, MalformedPayload, RelayError
from .iam import BearerToken, TokenExchanger
from .payload import PayloadTransform

__all__ = [
    "AuthError",
    "BearerToken",
    "KeyAction",
    "KeyActionClient",
    "KeyActionRequest",
    "KmsCallError",
    "MalformedPayload",
    "PayloadTransform",
    "RelayError",
    "TokenExchanger",
]
