"""End-to-end extraction against a fake conductor and an in-memory sink.

Scenario: one metric (``aggregate-session/node/bandwidth``) enabled, one
router ``R1`` with one node ``N1``, a 3600 second lookback and an upstream
producing one sample per minute.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from importer_engine.config import Settings
from importer_engine.engine import ImportEngine
from importer_engine.models.metrics import Point
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import Authority, Configuration, Node, Router
from importer_engine.models.window import Window

SERIES = "aggregate-session/node/bandwidth"


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


class _MinuteSeries:
    """Upstream series with one sample per minute, honouring the relative window."""

    def __init__(self, clock: _Clock, origin: datetime) -> None:
        self._clock = clock
        self._origin = origin

    def __call__(self, router: str, series: str, window: Window, filters: TagSet) -> list[Point]:
        width = int(window.start.removeprefix("now-"))
        start = self._clock.now - timedelta(seconds=width)
        points: list[Point] = []
        t = self._origin
        while t <= self._clock.now:
            if t >= start:
                points.append(Point(value=(t - self._origin).total_seconds(), time=t))
            t += timedelta(seconds=60)
        return points


@pytest.fixture()
def scenario(api, sink, clock):
    now = clock()
    run_clock = _Clock(now)
    api.configuration = Configuration(authority=Authority(routers=[Router(name="R1", nodes=[Node(name="N1")])]))
    api.points = _MinuteSeries(run_clock, origin=now - timedelta(days=1))
    settings = Settings(
        target={"url": "https://conductor", "token": "jwt"},
        influx={"address": "http://localhost:8086", "database": "conductor"},
        metrics={"enabled": [SERIES], "max_query_time": 3600},
        alarm_history={"enabled": False},
    )
    return ImportEngine(settings, api, sink, clock=run_clock), run_clock


class TestExtractPipeline:
    def test_first_run_pulls_full_lookback(self, scenario, api, sink):
        engine, _ = scenario

        summary = engine.run()

        (outcome,) = summary.outcomes
        assert outcome.succeeded
        assert outcome.window_seconds == 3600
        assert outcome.tags == "router=R1,node=N1"

        (call,) = api.calls_named("get_metric")
        assert call[1] == "R1"
        assert call[3] == Window(start="now-3600", end="now")
        assert call[4] == TagSet([("node", "N1")])

        assert sink.write_calls == [(SERIES, 61)]
        rows = sink.series_rows(SERIES)
        assert len(rows) == 61
        assert all(tags == {"router": "R1", "node": "N1"} for tags, _, _ in rows)

    def test_immediate_rerun_is_idempotent(self, scenario, sink):
        engine, _ = scenario
        engine.run()
        before = dict(sink.rows)

        summary = engine.run()

        assert summary.outcomes[0].window_seconds == 0
        assert sink.rows == before

    def test_later_run_only_fetches_new_data(self, scenario, api, sink):
        engine, run_clock = scenario
        engine.run()

        run_clock.advance(120)
        summary = engine.run()

        assert summary.outcomes[0].window_seconds == 119
        assert api.calls_named("get_metric")[-1][3] == Window(start="now-119", end="now")
        assert len(sink.series_rows(SERIES)) == 63

    def test_long_outage_is_clamped_to_lookback(self, scenario, sink):
        engine, run_clock = scenario
        engine.run()

        run_clock.advance(6 * 3600)
        summary = engine.run()

        assert summary.outcomes[0].window_seconds == 3600
