"""
Error types raised by the relay.

Every error carries a short machine readable ``code`` and the HTTP
status the route layer should answer with.  Upstream failures keep the
status code returned by IAM or Key Protect (when there was one) so it
can be logged alongside the error.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for all errors surfaced by the relay."""

    code = "relay_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class AuthError(RelayError):
    """The API key could not be exchanged for a bearer token."""

    code = "auth_failed"
    status_code = 502


class KmsCallError(RelayError):
    """A retrieve, wrap or unwrap call against Key Protect failed."""

    code = "kms_call_failed"
    status_code = 502


class MalformedPayload(RelayError):
    """The caller's request body lacks the field the flow needs."""

    code = "malformed_payload"
    status_code = 400
