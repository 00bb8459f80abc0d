"""Shared fixtures for CLI tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """The CLI reconfigures the root logger; undo it after every test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "importer.toml"
    path.write_text(
        """
[target]
url = "https://conductor.example.com"
token = "jwt"

[influx]
address = "http://localhost:8086"
database = "conductor"

[metrics]
enabled = ["cpu/utilization"]
""",
        encoding="utf-8",
    )
    return path
