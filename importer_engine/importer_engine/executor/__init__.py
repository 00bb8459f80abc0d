"""Per-router extraction tasks and the bounded dispatcher that runs them."""

from importer_engine.executor.dispatcher import FetchDispatcher
from importer_engine.executor.router_task import RouterTask

__all__ = [
    "FetchDispatcher",
    "RouterTask",
]
