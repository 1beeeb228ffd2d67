import time

import pytest
from integration_server import make_token
from vercel_deployment_action.config import OIDC_AUDIENCE
from vercel_deployment_action.credentials import (
    CredentialProvider,
    decode_expiry,
    needs_refresh,
)
from vercel_deployment_action.errors import AuthError, ConfigError, DecodeError
from vercel_deployment_action.models import Credential


def test_decode_expiry_returns_milliseconds():
    assert decode_expiry(make_token(1_700_000_000)) == 1_700_000_000_000


def test_decode_expiry_accepts_fractional_exp():
    assert decode_expiry(make_token(1_700_000_000.5)) == 1_700_000_000_500


HEADER = make_token(0).split(".")[0]


@pytest.mark.parametrize(
    "token",
    [
        "only.two",
        f"{HEADER}.e30.sig.extra",
        "not-a-header.e30.",
        f"{HEADER}.%%%not-base64%%%.",
        f"{HEADER}.bm90IGpzb24.",  # "not json"
        f"{HEADER}.WzEsIDJd.",  # "[1, 2]"
        make_token(0, {"exp": None}),
        make_token(0, {"exp": "1700000000"}),
        make_token(0, {"exp": True}),
    ],
)
def test_decode_expiry_rejects_malformed_tokens(token):
    with pytest.raises(DecodeError):
        decode_expiry(token)


@pytest.mark.parametrize(
    "remaining_ms, expected",
    [
        (30_001, False),
        (30_000, True),
        (20_000, True),
        (60_000, False),
        (0, True),
        (-5_000, True),
    ],
)
def test_needs_refresh_boundary(remaining_ms, expected):
    now_ms = 1_700_000_000_000
    credential = Credential(token="token", expires_at=now_ms + remaining_ms)
    assert needs_refresh(credential, now_ms) is expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "environ",
    [
        {},
        {"ACTIONS_ID_TOKEN_REQUEST_URL": "http://localhost:9999/token"},
        {"ACTIONS_ID_TOKEN_REQUEST_TOKEN": "runner-token"},
    ],
)
async def test_acquire_without_broker_env_makes_no_request(server, session, environ):
    provider = CredentialProvider(environ=environ)

    with pytest.raises(ConfigError):
        await provider.acquire(session)

    assert server.broker_requests == []


@pytest.mark.asyncio
async def test_acquire_returns_decoded_credential(server, session, broker_env):
    provider = CredentialProvider(environ=broker_env)

    credential = await provider.acquire(session)

    assert credential.token.count(".") == 2
    assert credential.expires_at == decode_expiry(credential.token)
    assert credential.expires_at > time.time() * 1000
    assert server.broker_requests == [
        {"audience": OIDC_AUDIENCE, "authorization": "Bearer runner-token"}
    ]


@pytest.mark.asyncio
async def test_acquire_rejected_by_broker(server, session, broker_env):
    server.broker_status = 500
    provider = CredentialProvider(environ=broker_env)

    with pytest.raises(AuthError, match="500"):
        await provider.acquire(session)


@pytest.mark.asyncio
async def test_acquire_with_wrong_runner_token(server, session, broker_env):
    broker_env["ACTIONS_ID_TOKEN_REQUEST_TOKEN"] = "stale"
    provider = CredentialProvider(environ=broker_env)

    with pytest.raises(AuthError, match="401"):
        await provider.acquire(session)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"value": ""}, {"value": 42}])
async def test_acquire_without_token_value(server, session, broker_env, body):
    server.broker_body = body
    provider = CredentialProvider(environ=broker_env)

    with pytest.raises(AuthError, match="no token value"):
        await provider.acquire(session)


@pytest.mark.asyncio
async def test_acquire_with_undecodable_token(server, session, broker_env):
    server.broker_body = {"value": "not-a-jwt"}
    provider = CredentialProvider(environ=broker_env)

    with pytest.raises(DecodeError):
        await provider.acquire(session)


@pytest.mark.asyncio
async def test_acquire_when_broker_unreachable(session, unused_tcp_port_factory):
    provider = CredentialProvider(
        environ={
            "ACTIONS_ID_TOKEN_REQUEST_URL": f"http://localhost:{unused_tcp_port_factory()}/token",
            "ACTIONS_ID_TOKEN_REQUEST_TOKEN": "runner-token",
        }
    )

    with pytest.raises(AuthError, match="could not reach"):
        await provider.acquire(session)
