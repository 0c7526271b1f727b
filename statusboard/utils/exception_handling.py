"""
Reusable exception handling for route handlers: consistent logging and HTTPException generation.
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, ParamSpec, TypeVar

from fastapi import HTTPException

from statusboard.core.exceptions import StatusBoardException
from statusboard.core.logging import get_request_id

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def handle_exceptions(
    *,
    message: str = "Operation failed",
    status_code: int = 500,
    error_code: str | None = None,
    rethrow: tuple[type[BaseException], ...] = (),
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Decorator to standardize exception logging and HTTP responses for async route handlers.

    - HTTPException and StatusBoardException pass through; the app's handlers render them
    - Anything listed in `rethrow` passes through as well
    - Unknown exceptions are logged with the request id and become HTTPException(status_code)
    """
    passthrough = (HTTPException, StatusBoardException, *rethrow)

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except passthrough:
                raise
            except Exception as e:  # noqa: BLE001 - centralizing logging
                request_id = get_request_id()
                logger.error(
                    f"{message}: {e}",
                    exc_info=True,
                    extra={"request_id": request_id} if request_id else None,
                )
                detail: dict[str, Any] = {"detail": f"{message}: {str(e)}"}
                if request_id:
                    detail["request_id"] = request_id
                if error_code:
                    detail["code"] = error_code
                raise HTTPException(status_code=status_code, detail=detail) from e

        return wrapper

    return decorator
