"""Extraction planning: which series to fetch, and from when."""

from importer_engine.planner.checkpoint import CheckpointResolver
from importer_engine.planner.extraction_planner import ExtractionTarget, plan_router_targets

__all__ = [
    "CheckpointResolver",
    "ExtractionTarget",
    "plan_router_targets",
]
