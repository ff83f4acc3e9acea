import httpx
import pytest

from kms_relay.kms.errors import AuthError
from kms_relay.kms.iam import GRANT_TYPE, BearerToken, TokenExchanger

pytestmark = pytest.mark.anyio


def _exchanger(upstream):
    http = httpx.AsyncClient(transport=upstream.transport)
    return http, TokenExchanger(upstream.iam_url, http)


async def test_exchange_posts_form_encoded_apikey_grant(upstream):
    http, tokens = _exchanger(upstream)
    async with http:
        token = await tokens.exchange("my-api-key")

    assert token == BearerToken(access_token="tok-1", expires_in=3600)
    assert token.authorization == "Bearer tok-1"

    (req,) = upstream.requests
    assert req.method == "POST"
    assert req.headers["content-type"] == "application/x-www-form-urlencoded"
    assert upstream.form(req) == {"grant_type": GRANT_TYPE, "apikey": "my-api-key"}
    assert req.content.decode().startswith("grant_type=urn%3Aibm%3Aparams%3Aoauth")


async def test_exchange_network_error_raises_auth_error(upstream):
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.iam = boom
    http, tokens = _exchanger(upstream)
    async with http:
        with pytest.raises(AuthError) as info:
            await tokens.exchange("k")
    assert info.value.status_code == 502
    assert info.value.upstream_status is None


async def test_exchange_timeout_maps_to_gateway_timeout(upstream):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.iam = slow
    http, tokens = _exchanger(upstream)
    async with http:
        with pytest.raises(AuthError) as info:
            await tokens.exchange("k")
    assert info.value.timed_out
    assert info.value.status_code == 504


async def test_exchange_rejects_non_2xx(upstream):
    upstream.iam = lambda request: httpx.Response(
        400, json={"errorCode": "BXNIM0415E", "errorMessage": "Provided API key could not be found"}
    )
    http, tokens = _exchanger(upstream)
    async with http:
        with pytest.raises(AuthError) as info:
            await tokens.exchange("bad")
    assert info.value.upstream_status == 400


async def test_exchange_rejects_non_json_body(upstream):
    upstream.iam = lambda request: httpx.Response(200, text="<html>gateway</html>")
    http, tokens = _exchanger(upstream)
    async with http:
        with pytest.raises(AuthError, match="not valid JSON"):
            await tokens.exchange("k")


async def test_exchange_requires_access_token(upstream):
    upstream.iam = lambda request: httpx.Response(200, json={"token_type": "Bearer"})
    http, tokens = _exchanger(upstream)
    async with http:
        with pytest.raises(AuthError, match="access_token"):
            await tokens.exchange("k")


def test_bearer_token_repr_hides_token():
    assert "secret" not in repr(BearerToken(access_token="secret"))
