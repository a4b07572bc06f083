"""Outer loop restarting whole sessions within a retry budget."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import SessionConfig
from .errors import PowerTradeClientError, PowerTradeRetryBudgetExhausted
from .shutdown import ShutdownSignal
from .supervisor import SessionSupervisor

_LOGGER = logging.getLogger(__name__)

SupervisorFactory = Callable[[SessionConfig, ShutdownSignal], SessionSupervisor]


class RetrySupervisor:
    """Start fresh sessions until one ends cleanly or the budget runs out.

    The budget is a lifetime count of restarts: a session that ran for a
    long time before failing still consumes one retry.
    """

    def __init__(
        self,
        config: SessionConfig,
        shutdown: ShutdownSignal,
        *,
        retry_budget: int | None = None,
        supervisor_factory: SupervisorFactory | None = None,
    ) -> None:
        if retry_budget is None:
            retry_budget = config.max_retries
        if retry_budget < 0:
            raise ValueError("retry_budget must not be negative")
        self._config = config
        self._shutdown = shutdown
        self._retry_budget = retry_budget
        self._factory: SupervisorFactory = supervisor_factory or SessionSupervisor
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Session attempts started so far."""
        return self._attempts

    async def run(self) -> None:
        """Run sessions until success, shutdown or budget exhaustion.

        Raises:
            PowerTradeRetryBudgetExhausted: After ``retry_budget + 1`` failed attempts
        """
        remaining = self._retry_budget
        while True:
            self._attempts += 1
            supervisor = self._factory(self._config, self._shutdown)
            try:
                await supervisor.run()
            except PowerTradeClientError as err:
                _LOGGER.error(
                    "Session attempt %d against %s failed: %s: %s",
                    self._attempts,
                    self._config.endpoint,
                    type(err).__name__,
                    err,
                )
                if remaining <= 0:
                    _LOGGER.error(
                        "Max connection retries reached after %d attempt(s)",
                        self._attempts,
                    )
                    raise PowerTradeRetryBudgetExhausted(self._attempts) from err
                remaining -= 1
                _LOGGER.info(
                    "Retrying in %ss... attempts left: %d",
                    self._config.retry_delay,
                    remaining,
                )
                if await self._shutdown.wait(self._config.retry_delay):
                    _LOGGER.info("Shutdown requested, not retrying")
                    return
                continue

            _LOGGER.info("Session finished cleanly after %d attempt(s)", self._attempts)
            return


async def run_with_retry(
    config: SessionConfig,
    shutdown: ShutdownSignal,
    retry_budget: int | None = None,
) -> None:
    """Convenience wrapper around ``RetrySupervisor(...).run()``."""
    await RetrySupervisor(config, shutdown, retry_budget=retry_budget).run()
