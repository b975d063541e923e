import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from argon.utils.ratelimit import TokenBucket

T = TypeVar("T")
R = TypeVar("R")

log = logging.getLogger("argon.batch")


class ErrorPolicy(str, enum.Enum):
    CONTINUE = "continue"
    RAISE = "raise"


@dataclass
class BatchOutcome(Generic[T, R]):
    results: list[R] = field(default_factory=list)
    errors: list[tuple[T, Exception]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.results) + len(self.errors)


async def for_each(
    units: Iterable[T],
    apply: Callable[[T], Awaitable[R]],
    *,
    policy: ErrorPolicy = ErrorPolicy.CONTINUE,
    limiter: TokenBucket | None = None,
    describe: Callable[[T], Any] = repr,
    logger: logging.Logger | None = None,
) -> BatchOutcome[T, R]:
    """Applies ``apply`` to every unit in order.

    With ``ErrorPolicy.CONTINUE`` a failing unit is logged and collected in
    ``BatchOutcome.errors`` and the loop moves on; ``ErrorPolicy.RAISE``
    re-raises the first failure. When a ``limiter`` is given, a token is
    taken before every unit whether or not the previous one failed.
    """
    logger = logger or log
    outcome: BatchOutcome[T, R] = BatchOutcome()

    for unit in units:
        if limiter is not None:
            await limiter.acquire()
        try:
            outcome.results.append(await apply(unit))
        except Exception as exc:
            if policy is ErrorPolicy.RAISE:
                raise
            logger.exception("Failed to process %s", describe(unit))
            outcome.errors.append((unit, exc))

    return outcome
