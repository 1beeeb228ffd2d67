import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import aiohttp
from loguru import logger

from vercel_deployment_action.credentials import CredentialProvider, needs_refresh
from vercel_deployment_action.errors import DeploymentTimeoutError, ServiceFatalError
from vercel_deployment_action.models import (
    Continue,
    Credential,
    Fatal,
    StatusQuery,
    StatusResponse,
    Success,
    WaitConfig,
    WaitState,
)
from vercel_deployment_action.status_poller import StatusPoller


class DeploymentWaiter:
    def __init__(
        self,
        credential_provider: CredentialProvider,
        poller: StatusPoller,
        config: Optional[WaitConfig] = None,
        on_continue: Optional[Callable[[Continue], Any]] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.credential_provider = credential_provider
        self.poller = poller
        self.config = config or WaitConfig()
        self.on_continue = on_continue
        self.clock = clock
        self.sleep = sleep
        self.logger = logger
        self.state = WaitState.polling
        self.poll_count = 0

    def _transition(self, state: WaitState) -> None:
        if state != self.state:
            self.logger.debug(f"Wait state {self.state.value} -> {state.value}")
        self.state = state

    async def _refresh_if_needed(
        self, session: aiohttp.ClientSession, credential: Credential
    ) -> Credential:
        """Returns the credential to use for the next poll, replacing it if it is about to expire"""
        if not needs_refresh(credential, self.clock() * 1000):
            return credential

        self._transition(WaitState.refreshing)
        self.logger.warning("Credential is about to expire, requesting a new one")
        try:
            refreshed = await self.credential_provider.acquire(session)
        except Exception:
            self._transition(WaitState.failed)
            raise
        self._transition(WaitState.polling)
        return refreshed

    async def _report_continue(self, decision: Continue) -> None:
        self.logger.info(decision.reason)
        if self.on_continue is not None:
            result = self.on_continue(decision)
            if asyncio.iscoroutine(result):
                await result

    async def wait_until_ready(
        self,
        initial_credential: Credential,
        query: StatusQuery,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> StatusResponse:
        """Poll the status service until the deployment is ready, fails or the timeout elapses"""
        timeout = self.config.timeout if timeout is None else timeout
        poll_interval = (
            self.config.poll_interval if poll_interval is None else poll_interval
        )
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        credential = initial_credential
        self.state = WaitState.polling
        self.poll_count = 0

        async with aiohttp.ClientSession() as session:
            while True:
                if loop.time() - start_time > timeout:
                    self._transition(WaitState.timed_out)
                    raise DeploymentTimeoutError(
                        f"Deployment was not ready within {timeout:g} seconds"
                    )

                credential = await self._refresh_if_needed(session, credential)

                decision = await self.poller.poll(session, credential, query)
                self.poll_count += 1

                if isinstance(decision, Success):
                    self._transition(WaitState.succeeded)
                    self.logger.info(
                        f"Deployment {decision.response.deployment_id} is ready at "
                        f"{decision.response.deployment_url}"
                    )
                    return decision.response

                if isinstance(decision, Fatal):
                    self._transition(WaitState.failed)
                    self.logger.error(decision.error)
                    raise ServiceFatalError(decision.error)

                await self._report_continue(decision)
                self.logger.debug(f"Waiting {poll_interval:g}s before next poll")
                await self.sleep(poll_interval)
