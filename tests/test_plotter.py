"""Tests for the live plot feed."""

import pytest

pytest.importorskip("matplotlib")

import plotter  # noqa: E402
from status_text import StatusText  # noqa: E402


def test_feed_keeps_latest_points():
    feed = plotter.PlotFeed(max_points=3)
    for i in range(5):
        feed.add_point(i, float(i))
    points, _ = feed.snapshot()
    assert points == [(2, 2.0), (3, 3.0), (4, 4.0)]


def test_feed_status():
    feed = plotter.PlotFeed()
    status = StatusText(heart_rate="HR: 70 bpm")
    feed.set_status(status)
    assert feed.snapshot()[1] is status


def test_status_title():
    title = plotter.status_title(StatusText(heart_rate="HR: 70 bpm", mood="Mood: Relaxed"))
    assert "HR: 70 bpm" in title and "Mood: Relaxed" in title


def test_update_without_window_is_noop():
    plotter.close_plot()
    plotter.update_plot(plotter.PlotFeed())
