"""Serverless function entry point.

The host calls :func:`main` once per HTTP request with a params dict
(``method``, ``path``, ``headers`` and optional ``query`` / ``body``) and
expects ``{"status", "headers", "body"}`` back. The context lives for as
long as the hosting process does.
"""

import logging
from typing import Any

from pydantic import ValidationError

from .context import BridgeContext, create_context
from .errors import ClientInputError
from .router import FunctionRequest, FunctionResponse

__all__ = ["main"]

logger = logging.getLogger(__name__)

context: BridgeContext = create_context()


async def main(params: dict[str, Any]) -> dict[str, Any]:
    try:
        request = FunctionRequest.model_validate(params)
    except ValidationError as err:
        logger.warning("Rejected malformed invocation params: %s", err)
        response = FunctionResponse.from_error(ClientInputError("Malformed request", details=str(err)))
        return response.model_dump()

    response = await context.handle(request)
    return response.model_dump()
