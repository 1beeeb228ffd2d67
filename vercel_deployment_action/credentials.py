import asyncio
import os
from typing import Mapping, Optional

import aiohttp
import jwt
from loguru import logger

from vercel_deployment_action.config import (
    OIDC_AUDIENCE,
    TOKEN_REQUEST_TOKEN_ENV,
    TOKEN_REQUEST_URL_ENV,
)
from vercel_deployment_action.errors import AuthError, ConfigError, DecodeError
from vercel_deployment_action.models import Credential

# A credential with this much life left (or less) is replaced before use
REFRESH_THRESHOLD_MS = 30_000


def decode_expiry(token: str) -> int:
    """Returns the ``exp`` claim of a JWT in epoch milliseconds"""
    segments = token.split(".")
    if len(segments) != 3:
        raise DecodeError(f"expected 3 token segments, got {len(segments)}")

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise DecodeError(f"token claims could not be decoded: {e}") from e

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise DecodeError("token has no numeric exp claim")
    return int(exp * 1000)


def needs_refresh(credential: Credential, now_ms: float) -> bool:
    return credential.expires_at - now_ms <= REFRESH_THRESHOLD_MS


class CredentialProvider:
    """Obtains OIDC tokens from the GitHub Actions identity broker.

    The broker is only reachable from inside a workflow job, which exposes
    its request URL and a bearer token through the environment. Both are
    read on every ``acquire`` so a missing variable is reported before any
    request goes out.
    """

    def __init__(
        self,
        audience: str = OIDC_AUDIENCE,
        environ: Optional[Mapping[str, str]] = None,
        request_timeout: float = 30.0,
    ):
        self.audience = audience
        self.environ = os.environ if environ is None else environ
        self.request_timeout = request_timeout
        self.logger = logger

    def _broker_settings(self) -> tuple[str, str]:
        request_url = self.environ.get(TOKEN_REQUEST_URL_ENV)
        request_token = self.environ.get(TOKEN_REQUEST_TOKEN_ENV)
        if not request_url or not request_token:
            raise ConfigError(
                f"{TOKEN_REQUEST_URL_ENV} and {TOKEN_REQUEST_TOKEN_ENV} must be set; "
                "does the workflow grant `id-token: write`?"
            )
        return request_url, request_token

    async def acquire(self, session: aiohttp.ClientSession) -> Credential:
        request_url, request_token = self._broker_settings()

        try:
            async with session.get(
                request_url,
                params={"audience": self.audience},
                headers={"Authorization": f"Bearer {request_token}"},
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    body = await response.text(errors="replace")
                    raise AuthError(
                        f"identity broker returned {response.status} {response.reason}\n{body}"
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise AuthError(f"identity broker returned invalid JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthError(f"could not reach identity broker: {e!r}") from e

        value = data.get("value") if isinstance(data, dict) else None
        if not isinstance(value, str) or not value:
            raise AuthError("identity broker response has no token value")

        credential = Credential(token=value, expires_at=decode_expiry(value))
        self.logger.debug(f"Acquired credential expiring at {credential.expires_at}")
        return credential
