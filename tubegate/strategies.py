"""
Ordered fallback chains.

Every chain (stream, info, search) is a list of strategy objects sharing one
capability: ``attempt(...)`` returns a result or raises. ``run_strategies``
walks the list sequentially; the first success wins, and each failure is
logged and recorded before moving on. No attempts run in parallel.
"""

import logging
from typing import Any, List, Sequence

from .errors import StrategiesExhausted, StrategyFailed, StrategyFailure

logger = logging.getLogger(__name__)


class Strategy:
    """One self-contained way of producing a result."""

    name: str = "strategy"

    async def attempt(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


async def run_strategies(
    strategies: Sequence[Strategy],
    *args: Any,
    label: str = "resolve",
    **kwargs: Any,
) -> Any:
    """
    Try each strategy in order and return the first result.

    Raises StrategiesExhausted with the ordered failures when all of them fail.
    Cancellation is never swallowed.
    """
    total = len(strategies)
    failures: List[StrategyFailure] = []

    for idx, strategy in enumerate(strategies, 1):
        logger.info(f"🎯 [{label}] Strategy {idx}/{total}: {strategy.name}")

        try:
            result = await strategy.attempt(*args, **kwargs)
        except StrategyFailed as e:
            error_msg = str(e) or "unknown error"
        except Exception as e:
            error_msg = f"Unexpected exception in strategy: {e}"
            logger.debug(f"[{label}] {strategy.name} raised", exc_info=True)
        else:
            logger.info(f"✅ [{label}] Strategy {idx}/{total} ({strategy.name}) succeeded")
            return result

        logger.warning(f"⚠️ [{label}] Strategy {idx}/{total} ({strategy.name}) failed: {error_msg[:160]}")
        failures.append(StrategyFailure(strategy.name, error_msg))

    logger.error(f"❌ [{label}] All {total} strategies failed")
    raise StrategiesExhausted(label, failures)
