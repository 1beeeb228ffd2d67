import asyncio

import aiohttp
from loguru import logger
from pydantic import ValidationError

from vercel_deployment_action.errors import TransientError
from vercel_deployment_action.models import (
    Continue,
    Credential,
    Decision,
    DeploymentStatus,
    Fatal,
    StatusQuery,
    StatusResponse,
    Success,
)

AWAIT_DEPLOYMENT_PATH = "/api/integrations/v1/actions/await-vercel-deployment"

# Client errors that no amount of waiting will fix
FATAL_CLIENT_ERRORS = {
    400: "bad request",
    403: "forbidden",
    409: "conflict",
}


class StatusPoller:
    """Asks the integrations service once for the deployment of a commit.

    Each ``poll`` makes a single request and turns whatever comes back into
    a ``Success``, ``Continue`` or ``Fatal`` decision. Retrying is left to
    the caller.
    """

    def __init__(self, base_url: str, request_timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.logger = logger

    @property
    def url(self) -> str:
        return f"{self.base_url}{AWAIT_DEPLOYMENT_PATH}"

    async def _post_status_query(
        self,
        session: aiohttp.ClientSession,
        credential: Credential,
        query: StatusQuery,
    ) -> tuple[int, str, str]:
        """Sends the query and returns status code, reason and raw body"""
        try:
            async with session.post(
                self.url,
                json=query.to_payload(),
                headers={"Authorization": f"Bearer {credential.token}"},
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            ) as response:
                body = await response.text(errors="replace")
                self.logger.debug(f"POST {self.url} -> {response.status}")
                return response.status, response.reason or "", body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientError(f"transient network error: {e!r}") from e

    async def poll(
        self,
        session: aiohttp.ClientSession,
        credential: Credential,
        query: StatusQuery,
    ) -> Decision:
        try:
            status, reason, body = await self._post_status_query(
                session, credential, query
            )
        except TransientError as e:
            return Continue(reason=e.message)

        if status in FATAL_CLIENT_ERRORS:
            return Fatal(error=f"{FATAL_CLIENT_ERRORS[status]}: {status} {reason}\n{body}")
        if 500 <= status < 600:
            return Fatal(error=f"server error: {status} {reason}\n{body}")
        if status == 404:
            return Continue(reason="deployment not found yet")
        if not 200 <= status < 300:
            return Continue(reason=f"API request failed: {status} {reason}\n{body}")

        try:
            response = StatusResponse.model_validate_json(body)
        except ValidationError as e:
            return Continue(reason=f"invalid response payload: {e}")

        return self.classify(response)

    @staticmethod
    def classify(response: StatusResponse) -> Decision:
        """Maps a successfully fetched deployment status to a decision"""
        known_status = response.known_status

        if known_status is DeploymentStatus.READY:
            if response.deployment_url:
                return Success(response=response)
            return Fatal(error="ready but no URL provided")
        if known_status is not None and known_status.is_terminal_failure:
            return Fatal(error=f"deployment failed with status: {response.status}")
        if known_status is not None and known_status.is_in_progress:
            return Continue(reason=f"deployment status: {response.status}")
        return Continue(reason=f"unknown deployment status: {response.status}")
