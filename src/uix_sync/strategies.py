"""
Ordered Fallback Strategies.

Several device operations have more than one way to get done (different dump
commands, different ways to read the focused activity). Each way is a
`Strategy`; `run_strategies` tries them in order and stops at the first success.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from .errors import StrategyError, UixSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RejectedResult(UixSyncError):
    """A strategy returned a value its caller could not use."""


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    attempt: Callable[[], Awaitable[T]]


async def run_strategies(
    strategies: Sequence[Strategy[T]],
    accept: Optional[Callable[[T], bool]] = None,
    label: str = "operation",
) -> T:
    """
    Runs strategies in order and returns the first accepted result.

    Args:
        strategies: Strategies in order of preference.
        accept: Optional validation of a result; a rejected result counts as a failure.
        label: Name of the overall operation for logs and errors.

    Raises:
        StrategyError: every strategy raised or had its result rejected. The error
            lists each strategy's failure in order.
    """
    failures: List[Tuple[str, BaseException]] = []
    for index, strategy in enumerate(strategies):
        logger.debug("%s: trying %s", label, strategy.name)
        try:
            result = await strategy.attempt()
        except UixSyncError as e:
            logger.debug("%s: %s failed: %s", label, strategy.name, e)
            failures.append((strategy.name, e))
            continue

        if accept is not None and not accept(result):
            logger.debug("%s: %s returned an unusable result", label, strategy.name)
            failures.append((strategy.name, RejectedResult(f"{strategy.name} returned an unusable result")))
            continue

        if index > 0:
            logger.info("%s succeeded using fallback %s", label, strategy.name)
        return result

    raise StrategyError(label, failures)
