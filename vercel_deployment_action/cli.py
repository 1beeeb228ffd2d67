"""Click entry points for the ``await-vercel-deployment`` and
``register-vercel-check`` actions.

Inputs are read from the options or from the ``INPUT_*`` variables the
Actions runner sets for a step's ``with:`` block.
"""

import asyncio
import sys
from typing import Optional

import aiohttp
import click
from loguru import logger

from vercel_deployment_action.check_registration import CheckRegistrar
from vercel_deployment_action.config import ActionEnvironment
from vercel_deployment_action.credentials import CredentialProvider
from vercel_deployment_action.deployment_waiter import DeploymentWaiter
from vercel_deployment_action.errors import VercelActionError
from vercel_deployment_action.models import StatusQuery, StatusResponse, WaitConfig
from vercel_deployment_action.outputs import ActionOutputs
from vercel_deployment_action.status_poller import StatusPoller

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO", format=LOG_FORMAT)


def fail(ctx: click.Context, outputs: ActionOutputs, error: VercelActionError) -> None:
    message = error.message
    if error.retryable:
        message = f"{message}\n(transient failure, re-running the job may succeed)"
    logger.error(message)
    outputs.set_output("message", message)
    outputs.error(message)
    ctx.exit(1)


async def run_await_deployment(
    environment: ActionEnvironment, query: StatusQuery, config: WaitConfig
) -> StatusResponse:
    provider = CredentialProvider(request_timeout=config.request_timeout)
    poller = StatusPoller(environment.base_url, request_timeout=config.request_timeout)

    async with aiohttp.ClientSession() as session:
        credential = await provider.acquire(session)

    waiter = DeploymentWaiter(provider, poller, config)
    return await waiter.wait_until_ready(credential, query)


async def run_register_check(environment: ActionEnvironment) -> None:
    provider = CredentialProvider()
    registrar = CheckRegistrar(environment.base_url)

    async with aiohttp.ClientSession() as session:
        credential = await provider.acquire(session)
        await registrar.register(session, credential, environment.sha)


@click.command(name="await-vercel-deployment")
@click.option(
    "--project-name",
    envvar="INPUT_VERCEL-PROJECT-NAME",
    default=None,
    help="Vercel project name",
)
@click.option(
    "--project-id",
    envvar="INPUT_VERCEL-PROJECT-ID",
    default=None,
    help="Vercel project id",
)
@click.option(
    "--output-name",
    envvar="INPUT_OUTPUT-NAME",
    required=True,
    help="Environment variable the deployment URL is exported as",
)
@click.option(
    "--timeout",
    envvar="INPUT_TIMEOUT",
    type=click.IntRange(min=1),
    default=600,
    show_default=True,
    help="Seconds to wait for the deployment",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=5.0,
    show_default=True,
    help="Seconds between status requests",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def await_deployment(
    ctx: click.Context,
    project_name: Optional[str],
    project_id: Optional[str],
    output_name: str,
    timeout: int,
    poll_interval: float,
    verbose: bool,
) -> None:
    """Wait until the Vercel deployment for the current commit is ready."""
    configure_logging(verbose)
    outputs = ActionOutputs()

    try:
        environment = ActionEnvironment.from_environ()
        outputs = ActionOutputs(environment.output_file, environment.env_file)
        query = StatusQuery(
            sha=environment.sha,
            job_name=environment.require_job_name(),
            project_name=project_name or None,
            project_id=project_id or None,
        )
        config = WaitConfig(timeout=timeout, poll_interval=poll_interval)

        logger.info(f"Waiting for Vercel deployment of {query.sha}")
        response = asyncio.run(run_await_deployment(environment, query, config))
    except VercelActionError as e:
        fail(ctx, outputs, e)

    message = f"Deployment {response.deployment_id} is ready at {response.deployment_url}"
    outputs.set_output("deployment-url", response.deployment_url)
    outputs.set_output("deployment-id", response.deployment_id)
    outputs.set_output("message", message)
    outputs.export_variable(output_name, response.deployment_url)
    click.echo(message)


@click.command(name="register-vercel-check")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def register_check(ctx: click.Context, verbose: bool) -> None:
    """Register the Vercel deployment check for the current commit."""
    configure_logging(verbose)
    outputs = ActionOutputs()

    try:
        environment = ActionEnvironment.from_environ()
        outputs = ActionOutputs(environment.output_file, environment.env_file)
        asyncio.run(run_register_check(environment))
    except VercelActionError as e:
        fail(ctx, outputs, e)

    message = f"Registered Vercel check for {environment.sha}"
    outputs.set_output("message", message)
    click.echo(message)
