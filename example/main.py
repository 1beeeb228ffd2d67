import asyncio

import aiohttp
from integration_server import BROKER_PATH, IntegrationServer, status_body
from vercel_deployment_action.credentials import CredentialProvider
from vercel_deployment_action.deployment_waiter import DeploymentWaiter
from vercel_deployment_action.models import StatusQuery, WaitConfig
from vercel_deployment_action.status_poller import StatusPoller


async def status_changed(decision):
    print(f"Still waiting: {decision.reason}")


async def main():
    PORT = 8000
    server = IntegrationServer(
        status_script=[
            (404, ""),
            (200, status_body("QUEUED")),
            (200, status_body("BUILDING")),
            (200, status_body("READY", url="https://example.vercel.app")),
        ]
    )
    await server.start(port=PORT)
    print(f"Server started on {server.base_url}")

    provider = CredentialProvider(
        environ={
            "ACTIONS_ID_TOKEN_REQUEST_URL": f"{server.base_url}{BROKER_PATH}",
            "ACTIONS_ID_TOKEN_REQUEST_TOKEN": server.request_token,
        }
    )
    config = WaitConfig(timeout=60.0, poll_interval=1.0)
    waiter = DeploymentWaiter(
        provider,
        StatusPoller(server.base_url),
        config,
        on_continue=status_changed,
    )
    query = StatusQuery(sha="abc123", job_name="deploy", project_name="web")

    try:
        async with aiohttp.ClientSession() as session:
            credential = await provider.acquire(session)
        deployment = await waiter.wait_until_ready(credential, query)
        print(f"Deployment {deployment.deployment_id} ready at {deployment.deployment_url}")
        print(f"Polls: {waiter.poll_count}")
    except TimeoutError as e:
        print(f"Polling timed out: {e}")
    except Exception as e:
        print(f"Error occurred: {e}")
    finally:
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
