"""
Degrade-to-default combinator used at every dependency boundary.

A sub-operation that raises is logged and replaced with a named default;
the error never propagates to the calling step.

Usage:
    results = await guarded("search", search_client.search, query,
                            default_factory=SearchResults)
    count = guarded_sync("cache.get", cache_store.get, key, default=None)
"""

import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


def _fallback(label: str, error: Exception, default: Any, default_factory: Optional[Callable[[], Any]]) -> Any:
    logger.warning("%s degraded to default: %s", label, error)
    if default_factory is not None:
        return default_factory()
    return default


async def guarded(
    label: str,
    func: Callable[..., Any],
    *args: Any,
    default: Any = None,
    default_factory: Optional[Callable[[], Any]] = None,
    **kwargs: Any,
) -> Any:
    """Call a sync or async function; return its result or the default on error."""
    try:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        return _fallback(label, e, default, default_factory)


def guarded_sync(
    label: str,
    func: Callable[..., Any],
    *args: Any,
    default: Any = None,
    default_factory: Optional[Callable[[], Any]] = None,
    **kwargs: Any,
) -> Any:
    """Synchronous counterpart of `guarded` for call sites outside the event loop."""
    try:
        return func(*args, **kwargs)
    except Exception as e:
        return _fallback(label, e, default, default_factory)
