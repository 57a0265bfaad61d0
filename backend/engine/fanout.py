"""Settle-all fan-out: every named coroutine yields Ok or Err, never an exception."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Err:
    reason: BaseException


Result = Union[Ok, Err]


async def settle_all(tasks: Dict[str, Awaitable]) -> Dict[str, Result]:
    """Await all coroutines concurrently; failures are captured per name."""
    names = list(tasks)
    outcomes = await asyncio.gather(*(tasks[n] for n in names), return_exceptions=True)
    results: Dict[str, Result] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning("%s failed: %s", name, outcome)
            results[name] = Err(outcome)
        else:
            results[name] = Ok(outcome)
    return results


def successful(results: Dict[str, Result]) -> List[Any]:
    return [r.value for r in results.values() if isinstance(r, Ok)]


def failed(results: Dict[str, Result]) -> List[str]:
    return [name for name, r in results.items() if isinstance(r, Err)]
