import json
from urllib.parse import parse_qs

import httpx
import pytest

from kms_relay.config import Settings

IAM_URL = "https://iam.test/identity/token"
KMS_URL = "https://kms.test"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        ibm_api_key="test-api-key",
        key_protect_instance="instance-guid",
        iam_token_url=IAM_URL,
        kms_endpoint=KMS_URL,
        _env_file=None,
    )


class FakeUpstream:
    """Stand-in for IAM and Key Protect behind an ``httpx.MockTransport``.

    Every request is recorded in ``requests``.  By default wrap echoes the
    base64 plaintext back as ciphertext and unwrap echoes the ciphertext
    back as plaintext, so a wrap followed by an unwrap is the identity.
    """

    iam_url = IAM_URL

    def __init__(self):
        self.requests = []
        self.iam = lambda request: httpx.Response(
            200, json={"access_token": "tok-%d" % len(self.requests), "expires_in": 3600}
        )
        self.key = lambda request: httpx.Response(
            200, json={"metadata": {"collectionTotal": 1}, "resources": [{"id": "k"}]}
        )
        self.wrap = lambda request: httpx.Response(
            200, json={"ciphertext": json.loads(request.content)["plaintext"]}
        )
        self.unwrap = lambda request: httpx.Response(
            200, json={"plaintext": json.loads(request.content)["ciphertext"]}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == IAM_URL:
            return self.iam(request)
        action = request.url.params.get("action")
        if action == "wrap":
            return self.wrap(request)
        if action == "unwrap":
            return self.unwrap(request)
        return self.key(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def iam_requests(self):
        return [r for r in self.requests if str(r.url) == IAM_URL]

    def kms_requests(self):
        return [r for r in self.requests if r.url.host == "kms.test"]

    @staticmethod
    def form(request: httpx.Request) -> dict:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def upstream():
    return FakeUpstream()
