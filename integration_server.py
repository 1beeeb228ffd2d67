import time
from typing import Optional, Union

import jwt
from aiohttp import web
from loguru import logger

BROKER_PATH = "/oidc/token"
AWAIT_DEPLOYMENT_PATH = "/api/integrations/v1/actions/await-vercel-deployment"
REGISTER_CHECK_PATH = "/api/integrations/v1/actions/register-vercel-check"

ScriptedResponse = tuple[int, Union[dict, str, bytes]]


def make_token(exp: float, claims: Optional[dict] = None) -> str:
    """Builds an unsigned JWT whose only meaningful claim is ``exp``"""
    return jwt.encode({"exp": exp, **(claims or {})}, None, algorithm="none")


def status_body(
    status: str, url: Optional[str] = "https://example.vercel.app", deployment_id: str = "dpl_123"
) -> dict:
    body = {"deploymentId": deployment_id, "status": status}
    if url is not None:
        body["deploymentURL"] = url
    return body


class IntegrationServer:
    """Local stand-in for the identity broker and the integrations service.

    Status responses are served from ``status_script`` in order; the last
    entry keeps being served once the script runs out.
    """

    def __init__(
        self,
        status_script: Optional[list[ScriptedResponse]] = None,
        request_token: str = "runner-token",
        token_lifetime: float = 3600.0,
    ):
        self.status_script = list(status_script or [(404, "")])
        self.request_token = request_token
        self.token_lifetime = token_lifetime
        self.broker_status = 200
        self.broker_body: Optional[dict] = None
        self.register_status = 200
        self.broker_requests: list[dict] = []
        self.status_requests: list[dict] = []
        self.registered_shas: list[str] = []
        self.runner: Optional[web.AppRunner] = None
        self.port: Optional[int] = None
        self.app = web.Application()
        self.app.router.add_get(BROKER_PATH, self.handle_token)
        self.app.router.add_post(AWAIT_DEPLOYMENT_PATH, self.handle_status)
        self.app.router.add_post(REGISTER_CHECK_PATH, self.handle_register)
        self.logger = logger

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"

    async def handle_token(self, request):
        self.broker_requests.append(
            {
                "audience": request.query.get("audience"),
                "authorization": request.headers.get("Authorization"),
            }
        )

        if request.headers.get("Authorization") != f"Bearer {self.request_token}":
            return web.json_response({"message": "bad runner token"}, status=401)
        if self.broker_status != 200:
            return web.json_response({"message": "broker error"}, status=self.broker_status)
        if self.broker_body is not None:
            return web.json_response(self.broker_body)

        token = make_token(
            int(time.time() + self.token_lifetime),
            {"aud": request.query.get("audience")},
        )
        self.logger.info("Issuing token")
        return web.json_response({"value": token})

    async def handle_status(self, request):
        self.status_requests.append(
            {
                "authorization": request.headers.get("Authorization"),
                "body": await request.json(),
            }
        )

        if len(self.status_script) > 1:
            status, body = self.status_script.pop(0)
        else:
            status, body = self.status_script[0]

        self.logger.info(f"Returning {status} for status request")
        if isinstance(body, dict):
            return web.json_response(body, status=status)
        if isinstance(body, bytes):
            return web.Response(
                body=body, status=status, content_type="text/plain", charset="utf-8"
            )
        return web.Response(text=body, status=status)

    async def handle_register(self, request):
        body = await request.json()
        self.registered_shas.append(body["sha"])
        if self.register_status != 200:
            return web.Response(text="registration rejected", status=self.register_status)
        return web.Response(status=200)

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.port = port
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
