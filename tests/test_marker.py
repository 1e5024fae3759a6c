# -*- coding: utf-8 -*-
"""Маркер перезапуска: свежесть, устаревание, битые и старые форматы."""

import json

from src.updater.marker import MARKER_FILENAME, MarkerState, UpdateMarker

NOW_MS = 1_700_000_000_000


def _marker(tmp_path, freshness=10.0):
    return UpdateMarker(tmp_path / MARKER_FILENAME, freshness_seconds=freshness)


def test_marker_written_3s_ago_is_fresh(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS - 3_000)

    assert marker.consume(now_ms=NOW_MS) is MarkerState.FRESH
    assert not marker.path.exists()


def test_marker_written_20s_ago_is_stale_and_removed(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS - 20_000)

    assert marker.consume(now_ms=NOW_MS) is MarkerState.STALE
    assert not marker.path.exists()


def test_absent_marker(tmp_path):
    assert _marker(tmp_path).consume(now_ms=NOW_MS) is MarkerState.ABSENT


def test_corrupt_marker_is_stale(tmp_path):
    marker = _marker(tmp_path)
    marker.path.write_text("{not json", encoding="utf-8")

    assert marker.consume(now_ms=NOW_MS) is MarkerState.STALE
    assert not marker.path.exists()


def test_legacy_integer_format_is_accepted(tmp_path):
    marker = _marker(tmp_path)
    marker.path.write_text(str(NOW_MS - 1_000), encoding="utf-8")

    assert marker.consume(now_ms=NOW_MS) is MarkerState.FRESH


def test_marker_from_the_future_is_stale(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS + 60_000)

    assert marker.consume(now_ms=NOW_MS) is MarkerState.STALE


def test_write_produces_json_payload(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS)

    assert json.loads(marker.path.read_text(encoding="utf-8")) == {"written_at_ms": NOW_MS}
    assert [p.name for p in tmp_path.iterdir()] == [MARKER_FILENAME]


def test_fresh_marker_carries_tracked_revision(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS - 1_000, revision="abc123")

    assert json.loads(marker.path.read_text(encoding="utf-8"))["tracked_revision"] == "abc123"
    assert marker.consume(now_ms=NOW_MS) is MarkerState.FRESH
    assert marker.revision == "abc123"


def test_stale_marker_revision_is_ignored(tmp_path):
    marker = _marker(tmp_path)
    marker.write(now_ms=NOW_MS - 60_000, revision="abc123")

    assert marker.consume(now_ms=NOW_MS) is MarkerState.STALE
    assert marker.revision is None
