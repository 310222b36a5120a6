from aiohttp import web

from mcp_poll_bridge import Settings, build_app, create_context

settings = Settings(log_level="DEBUG")
app = build_app(create_context(settings))
web.run_app(app, host=settings.host, port=settings.port)
