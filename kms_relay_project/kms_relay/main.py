"""
Main entry point for the Key Protect relay.

This module defines a very small REST API using FastAPI.  The API
exposes three relay endpoints:

    * ``GET /key/{keyid}`` – retrieves a key from the configured Key
      Protect instance and returns the raw Key Protect JSON.

    * ``POST /encrypt/{keyid}`` – accepts a JSON object with an ``ssn``
      field, wraps that value with the root key ``keyid`` and returns
      the same object with ``ssn`` replaced by the ciphertext.

    * ``POST /decrypt/{keyid}`` – accepts a JSON object whose ``ssn``
      field holds a ciphertext produced by ``/encrypt`` and returns the
      object with ``ssn`` restored to the original text.

plus ``GET /`` and ``GET /health`` for liveness checks.

Every relay call exchanges the configured IBM Cloud API key for a new
IAM bearer token before talking to Key Protect; see ``kms/client.py``.
Upstream failures are answered with 502 (504 on timeout) and a JSON
error body instead of leaving the connection hanging.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings, get_settings
from .kms import KeyActionClient, PayloadTransform, RelayError, TokenExchanger
from .log import setup_logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_client(request: Request) -> KeyActionClient:
    return request.app.state.kms_client


def get_transform(request: Request) -> PayloadTransform:
    return request.app.state.transform


@router.get("/")
async def root() -> Dict[str, str]:
    return {"message": "Yay.. I'm running!  But I am an API so there is nothing to see here!!"}


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "UP"}


@router.get("/key/{keyid}")
async def retrieve_key(keyid: str, client: KeyActionClient = Depends(get_client)):
    """Return the Key Protect representation of key ``keyid``."""
    logger.debug("retrieve key", extra={"key_id": keyid})
    return await client.retrieve_key(keyid)


@router.post("/encrypt/{keyid}")
async def encrypt(
    keyid: str,
    payload: Dict[str, Any] = Body(...),
    transform: PayloadTransform = Depends(get_transform),
):
    """
    Wrap the ``ssn`` field of the request body with root key ``keyid``.

    All other fields are echoed back unchanged.
    """
    logger.debug("encrypt payload", extra={"key_id": keyid, "fields": sorted(payload)})
    return await transform.encrypt(keyid, payload)


@router.post("/decrypt/{keyid}")
async def decrypt(
    keyid: str,
    payload: Dict[str, Any] = Body(...),
    transform: PayloadTransform = Depends(get_transform),
):
    """
    Unwrap the ``ssn`` field of the request body with root key ``keyid``.

    ``ssn`` must hold a ciphertext returned by ``/encrypt``; it is
    replaced by the decoded text.
    """
    logger.debug("decrypt payload", extra={"key_id": keyid, "fields": sorted(payload)})
    return await transform.decrypt(keyid, payload)


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    logger.warning(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"status_code": exc.upstream_status},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Build the relay application.

    ``transport`` replaces the network layer of the outbound HTTP client;
    tests pass an ``httpx.MockTransport`` here.  With ``configure_logging``
    the root logger is set up from ``settings`` on startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(settings.log_level, settings.log_json)
        missing = settings.missing_credentials()
        if missing:
            logger.warning("credentials not configured: %s", ", ".join(missing))
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.kms_http_timeout), transport=transport
        ) as http:
            tokens = TokenExchanger(settings.iam_token_url, http)
            app.state.kms_client = KeyActionClient(settings, tokens, http)
            app.state.transform = PayloadTransform(app.state.kms_client)
            logger.info("Listening on http://%s:%d", settings.host, settings.port)
            yield

    app = FastAPI(title="Key Protect Relay", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(RelayError, relay_error_handler)
    app.include_router(router)
    return app


def run() -> None:
    """Console entry point: serve the relay with uvicorn on HOST:PORT."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings, configure_logging=True),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


app = create_app(configure_logging=True)
