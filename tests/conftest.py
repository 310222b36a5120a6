from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from mcp_poll_bridge import BridgeContext, PollingTransport, SessionRegistry, Settings, create_context

NWSHandler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def anyio_backend() -> str:
    """Return the backend name for anyio. Test only against asyncio. Trio is not supported."""
    return "asyncio"


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def transport(registry: SessionRegistry) -> PollingTransport:
    return PollingTransport(registry)


@pytest.fixture
def nws_responses() -> dict[str, Any]:
    """URL path (with query) -> JSON payload served by the fake NWS API. Unknown paths get a 404."""
    return {}


@pytest.fixture
def nws_transport(nws_responses: dict[str, Any]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["User-Agent"] == "weather-app/1.0"
        assert request.headers["Accept"] == "application/geo+json"
        key = request.url.raw_path.decode()
        if key not in nws_responses:
            return httpx.Response(404, json={"title": "Not Found"})
        return httpx.Response(200, json=nws_responses[key])

    return httpx.MockTransport(handler)


@pytest.fixture
async def context(nws_transport: httpx.MockTransport) -> AsyncIterator[BridgeContext]:
    ctx = create_context(Settings(), http_transport=nws_transport)
    yield ctx
    await ctx.close()
