import json
import logging

from aiohttp import web

from .context import BridgeContext, create_context
from .router import FunctionRequest

__all__ = ["CONTEXT_KEY", "AppBuilder", "build_app"]

logger = logging.getLogger(__name__)

CONTEXT_KEY = web.AppKey("mcp_poll_bridge_context", BridgeContext)


class AppBuilder:
    """Aiohttp application builder serving the polling bridge."""

    __slots__ = ("_context",)

    def __init__(self, context: BridgeContext) -> None:
        self._context = context

    @property
    def context(self) -> BridgeContext:
        return self._context

    def build(self) -> web.Application:
        app = web.Application()
        app[CONTEXT_KEY] = self._context
        self.setup_routes(app)
        app.on_cleanup.append(self._on_cleanup)
        return app

    def setup_routes(self, app: web.Application) -> None:
        # The router does its own dispatching on method and path
        app.router.add_route("*", "/{tail:.*}", self.handler)

    async def handler(self, request: web.Request) -> web.Response:
        function_request = FunctionRequest(
            method=request.method,
            path=request.path_qs,
            headers=dict(request.headers),
            query=dict(request.query),
            body=await self._read_body(request),
        )
        response = await self._context.handle(function_request)
        return web.Response(body=response.body.encode(), status=response.status, headers=response.headers)

    @staticmethod
    async def _read_body(request: web.Request) -> object:
        if not request.can_read_body:
            return None
        text = await request.text()
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Request body is not JSON, passing it through as text")
            return text

    async def _on_cleanup(self, app: web.Application) -> None:
        await self._context.close()


def build_app(context: BridgeContext | None = None) -> web.Application:
    """Build the aiohttp application hosting the bridge."""
    return AppBuilder(context or create_context()).build()
