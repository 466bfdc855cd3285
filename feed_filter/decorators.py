"""Decorators applied to every MCP tool at registration.

``exception_handler`` turns unexpected errors into the same
``{"success": False, "error": ...}`` shape the tools return for expected
failures. ``tool_logger`` logs each call and its duration.

Both use ``functools.wraps`` so FastMCP still sees the wrapped signature.
"""

import functools
import time
from typing import Any, Awaitable, Callable, Dict

from feed_filter.exceptions import FeedFilterError
from feed_filter.logging_config import get_logger


ToolFunc = Callable[..., Awaitable[Dict[str, Any]]]


def exception_handler(func: ToolFunc) -> ToolFunc:
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except FeedFilterError as e:
            get_logger(func.__module__).warning(f"{func.__name__} failed: {e}")
            return {"success": False, "error": str(e)}
        except Exception as e:
            get_logger(func.__module__).error(f"{func.__name__} raised an unexpected error: {e}", exc_info=True)
            return {"success": False, "error": f"Internal error: {e}"}

    return wrapper


def tool_logger(func: ToolFunc) -> ToolFunc:
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        started = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"{func.__name__} finished in {elapsed_ms:.1f} ms")

    return wrapper
