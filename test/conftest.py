import time
from typing import AsyncGenerator

import aiohttp
import pytest
import pytest_asyncio
from integration_server import BROKER_PATH, IntegrationServer, make_token
from vercel_deployment_action.models import Credential


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[IntegrationServer, None]:
    """Start and yield a fake broker and integrations service on a random port."""
    server_instance = IntegrationServer()
    await server_instance.start(port=unused_tcp_port_factory())
    try:
        yield server_instance
    finally:
        await server_instance.stop()


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[aiohttp.ClientSession, None]:
    async with aiohttp.ClientSession() as client_session:
        yield client_session


@pytest.fixture
def broker_env(server) -> dict:
    """Runner environment pointing the identity broker at the fake server."""
    return {
        "ACTIONS_ID_TOKEN_REQUEST_URL": f"{server.base_url}{BROKER_PATH}",
        "ACTIONS_ID_TOKEN_REQUEST_TOKEN": server.request_token,
    }


@pytest.fixture
def fresh_credential() -> Credential:
    expires_at = int((time.time() + 3600) * 1000)
    return Credential(token=make_token(expires_at // 1000), expires_at=expires_at)

