import asyncio

import aiohttp
from loguru import logger

from vercel_deployment_action.errors import ServiceFatalError, TransientError
from vercel_deployment_action.models import Credential

REGISTER_CHECK_PATH = "/api/integrations/v1/actions/register-vercel-check"


class CheckRegistrar:
    """Registers the Vercel deployment check for a commit"""

    def __init__(self, base_url: str, request_timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.logger = logger

    async def register(
        self, session: aiohttp.ClientSession, credential: Credential, sha: str
    ) -> None:
        url = f"{self.base_url}{REGISTER_CHECK_PATH}"
        try:
            async with session.post(
                url,
                json={"sha": sha},
                headers={"Authorization": f"Bearer {credential.token}"},
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            ) as response:
                if response.status != 200:
                    body = await response.text(errors="replace")
                    raise ServiceFatalError(
                        f"check registration failed: {response.status} {response.reason}\n{body}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientError(f"transient network error: {e!r}") from e

        self.logger.info(f"Registered Vercel check for {sha}")
