import logging

from aiohttp import web

from .app import build_app
from .config import Settings
from .context import create_context


def main() -> None:
    settings = Settings()
    logging.basicConfig(level=settings.log_level)
    web.run_app(build_app(create_context(settings)), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
