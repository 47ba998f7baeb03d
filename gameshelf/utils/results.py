"""
Typed outcomes for fail-soft fan-out.

Each optional enrichment source settles into either Ok(value) or
Unavailable(source, error). Reducers then decide what an Unavailable means
for their field instead of every call site null-coalescing on its own.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def value_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Unavailable:
    source: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False

    def value_or(self, default: Any) -> Any:
        return default


Result = Union[Ok[T], Unavailable]


async def settle(source: str, awaitable: Awaitable[T]) -> Result:
    """Await one source, capturing any exception as Unavailable."""
    try:
        return Ok(await awaitable)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"[Enrichment] {source} unavailable: {e}")
        return Unavailable(source, e)


async def gather_settled(**sources: Awaitable[Any]) -> Dict[str, Result]:
    """
    Run independent sources concurrently with all-settle semantics.

    Args:
        **sources: name -> awaitable

    Returns:
        name -> Ok / Unavailable, one entry per source
    """
    names = list(sources.keys())
    outcomes = await asyncio.gather(*(settle(name, sources[name]) for name in names))
    return dict(zip(names, outcomes))
