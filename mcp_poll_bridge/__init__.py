from .app import AppBuilder, build_app
from .config import Settings
from .context import BridgeContext, create_context
from .core import PollingMCP
from .registry import Session, SessionRegistry
from .router import FunctionRequest, FunctionResponse, RequestRouter
from .transport import PollingTransport

__all__ = [
    "AppBuilder",
    "BridgeContext",
    "FunctionRequest",
    "FunctionResponse",
    "PollingMCP",
    "PollingTransport",
    "RequestRouter",
    "Session",
    "SessionRegistry",
    "Settings",
    "build_app",
    "create_context",
]
