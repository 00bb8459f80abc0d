"""Bounded fan-out of router tasks across a thread pool.

Each router is one unit of work.  At most ``max_concurrent_routers`` routers
are extracted at the same time; everything inside one router runs
sequentially so a single router never sees more than one in-flight request
from this importer.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable, Sequence

from importer_engine.models.run import ItemKind, ItemOutcome, ItemStatus
from importer_engine.models.topology import Router

RouterWork = Callable[[Router], list[ItemOutcome]]


class FetchDispatcher:
    """Run one task per router on a bounded :class:`ThreadPoolExecutor`.

    Parameters
    ----------
    max_concurrent_routers:
        Maximum number of routers processed simultaneously.
    logger:
        Logger for unexpected task failures.
    """

    def __init__(self, max_concurrent_routers: int, logger: logging.Logger | None = None) -> None:
        if max_concurrent_routers <= 0:
            raise ValueError("max_concurrent_routers must be positive")
        self._max_workers = max_concurrent_routers
        self._logger = logger or logging.getLogger(__name__)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def dispatch(self, routers: Sequence[Router], task: RouterWork) -> list[ItemOutcome]:
        """Run *task* for every router and return all outcomes.

        Blocks until every router has finished.  Outcomes are returned in
        router order, each router's outcomes in the order its task produced
        them.  A task that raises is logged and recorded as a failed
        router-level outcome; the remaining routers are unaffected.
        """
        if not routers:
            return []

        outcomes: list[ItemOutcome] = []
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="router",
        ) as pool:
            futures = [(router, pool.submit(task, router)) for router in routers]
            concurrent.futures.wait([future for _, future in futures])

        for router, future in futures:
            exc = future.exception()
            if exc is None:
                outcomes.extend(future.result())
                continue

            self._logger.error(
                "Unexpected error while extracting router %s: %s",
                router.name,
                exc,
                exc_info=exc,
                extra={"router": router.name},
            )
            outcomes.append(
                ItemOutcome(
                    kind=ItemKind.ROUTER,
                    series=router.name,
                    router=router.name,
                    status=ItemStatus.FAIL,
                    error=str(exc) or type(exc).__name__,
                )
            )

        return outcomes
