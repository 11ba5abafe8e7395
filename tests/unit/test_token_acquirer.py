from urllib.parse import parse_qs

import httpx
import pytest

from forge.core.errors import AuthFailure
from forge.core.token_acquirer import TokenAcquirer

pytestmark = [pytest.mark.anyio, pytest.mark.token]


def _acquirer(handler, calls=None):
    def counting(request):
        if calls is not None:
            calls.append(request)
        return handler(request)
    return TokenAcquirer(timeout=5, transport=httpx.MockTransport(counting))


async def test_password_grant_request_shape(credential):
    seen = []
    acquirer = _acquirer(lambda r: httpx.Response(200, json={"access_token": "abc", "expires_in": 3600}), seen)

    token = await acquirer.acquire(credential)

    assert token.access_token == "abc"
    assert token.expires_in == 3600
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == credential.identity_endpoint
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    assert form == {
        "grant_type": "password",
        "client_id": "reportforge",
        "client_secret": "client-s3cret",
        "username": "IFS_REPORTFORGE",
        "password": "svc-pa55",
    }


async def test_numeric_string_ttl_is_accepted(credential):
    acquirer = _acquirer(lambda r: httpx.Response(200, json={"access_token": "abc", "expires_in": "300"}))

    token = await acquirer.acquire(credential)

    assert token.expires_in == 300.0


async def test_rejected_credentials_surface_upstream_message(credential):
    calls = []
    body = {"error": "invalid_grant", "error_description": "Invalid user credentials"}
    acquirer = _acquirer(lambda r: httpx.Response(401, json=body), calls)

    with pytest.raises(AuthFailure) as exc_info:
        await acquirer.acquire(credential)

    err = exc_info.value
    assert err.status_code == 401
    assert "Invalid user credentials" in err.message
    assert err.step == "token"
    assert err.retryable is False
    # A single attempt: no retry loop against the identity server
    assert len(calls) == 1


async def test_non_json_response_is_auth_failure(credential):
    acquirer = _acquirer(lambda r: httpx.Response(200, text="<html>login</html>"))

    with pytest.raises(AuthFailure, match="not JSON"):
        await acquirer.acquire(credential)


async def test_missing_access_token_is_auth_failure(credential):
    acquirer = _acquirer(lambda r: httpx.Response(200, json={"expires_in": 3600}))

    with pytest.raises(AuthFailure, match="access_token"):
        await acquirer.acquire(credential)


@pytest.mark.parametrize("ttl", [None, "soon", 0, -5])
async def test_invalid_ttl_is_auth_failure(credential, ttl):
    acquirer = _acquirer(lambda r: httpx.Response(200, json={"access_token": "abc", "expires_in": ttl}))

    with pytest.raises(AuthFailure, match="expires_in"):
        await acquirer.acquire(credential)


async def test_network_error_is_auth_failure(credential):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AuthFailure, match="ConnectError"):
        await _acquirer(refuse).acquire(credential)


async def test_timeout_is_auth_failure(credential):
    def slow(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(AuthFailure, match="timed out"):
        await _acquirer(slow).acquire(credential)


async def test_any_2xx_token_response_is_accepted(credential):
    acquirer = _acquirer(lambda r: httpx.Response(201, json={"access_token": "abc", "expires_in": 600}))

    token = await acquirer.acquire(credential)

    assert token.access_token == "abc"
    assert token.expires_in == 600


async def test_redirect_token_response_is_auth_failure(credential):
    acquirer = _acquirer(lambda r: httpx.Response(302, headers={"Location": "https://login.example/"}))

    with pytest.raises(AuthFailure) as exc_info:
        await acquirer.acquire(credential)

    assert exc_info.value.status_code == 302
