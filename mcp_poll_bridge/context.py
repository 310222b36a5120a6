import logging
from dataclasses import dataclass

import httpx

from .config import Settings
from .core import PollingMCP
from .registry import SessionRegistry
from .router import FunctionRequest, FunctionResponse, RequestRouter
from .transport import PollingTransport
from .weather import NWSClient, register_weather_tools

__all__ = ["BridgeContext", "create_context"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class BridgeContext:
    """Everything one hosting process shares between requests.

    Built once by the entry point and handed to every request.
    """

    settings: Settings
    registry: SessionRegistry
    transport: PollingTransport
    mcp: PollingMCP
    router: RequestRouter

    async def ensure_started(self) -> None:
        """Connect the MCP server to the transport on first use."""
        if not self.mcp.is_connected:
            await self.mcp.connect(self.transport)

    async def handle(self, request: FunctionRequest) -> FunctionResponse:
        await self.ensure_started()
        return await self.router.dispatch(request)

    async def close(self) -> None:
        await self.mcp.close()


def create_context(
    settings: Settings | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> BridgeContext:
    """Build a context with the weather tools registered."""
    if settings is None:
        settings = Settings()

    registry = SessionRegistry(idle_timeout=settings.session_idle_timeout)
    transport = PollingTransport(registry)
    mcp = PollingMCP(name=settings.server_name, version=settings.server_version, log_level=settings.log_level)
    register_weather_tools(mcp, NWSClient.from_settings(settings, transport=http_transport))
    logger.debug("Created context for server %s", settings.server_name)

    return BridgeContext(
        settings=settings,
        registry=registry,
        transport=transport,
        mcp=mcp,
        router=RequestRouter(registry, transport),
    )
