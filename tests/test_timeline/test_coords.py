"""Tests for the coordinate engine."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tasktimeline.timeline.coords import Span, Viewport, clamp_zoom, time_to_x, x_to_time

NOW = datetime(2024, 5, 1, 9, 0)


@pytest.fixture
def vp() -> Viewport:
    return Viewport(current_time=NOW, container_width=1200)


class TestMapping:
    def test_now_is_centred(self, vp):
        assert vp.time_to_x(NOW) == 600

    def test_one_hour_is_base_pixels(self, vp):
        assert vp.time_to_x(NOW + timedelta(hours=1)) == pytest.approx(720)
        assert vp.time_to_x(NOW - timedelta(minutes=30)) == pytest.approx(540)

    def test_zoom_scales_distance(self):
        vp = Viewport(current_time=NOW, container_width=1200, zoom=2.0)
        assert vp.time_to_x(NOW + timedelta(hours=1)) == pytest.approx(840)

    def test_offset_moves_centre(self):
        vp = Viewport(current_time=NOW, container_width=1200, view_offset=timedelta(hours=2))
        assert vp.time_to_x(NOW + timedelta(hours=2)) == 600
        assert vp.center == NOW + timedelta(hours=2)

    def test_inverse(self, vp):
        assert vp.x_to_time(600) == NOW
        assert vp.x_to_time(720) == NOW + timedelta(hours=1)

    @pytest.mark.parametrize("zoom", [0.2, 1.0, 1.5, 5.0])
    def test_round_trip(self, zoom):
        vp = Viewport(current_time=NOW, container_width=937, zoom=zoom, view_offset=timedelta(minutes=-47))
        t = datetime(2024, 5, 1, 11, 23, 17)
        assert abs(vp.x_to_time(vp.time_to_x(t)) - t) <= timedelta(milliseconds=1)
        assert vp.time_to_x(vp.x_to_time(123.5)) == pytest.approx(123.5)

    def test_module_functions(self):
        kw = dict(current_time=NOW, view_offset=timedelta(0), zoom=1.0, container_width=1000)
        assert time_to_x(NOW, **kw) == 500
        assert x_to_time(500, **kw) == NOW


class TestZoom:
    def test_clamp(self):
        assert clamp_zoom(0.01) == 0.2
        assert clamp_zoom(50) == 5.0
        assert clamp_zoom(1.2) == 1.2

    def test_constructor_clamps(self):
        assert Viewport(current_time=NOW, container_width=100, zoom=99).zoom == 5.0

    def test_zoom_in_out(self, vp):
        assert vp.zoom_in().zoom == pytest.approx(1.5)
        assert vp.zoom_out().zoom == pytest.approx(1 / 1.5)

    def test_zoom_bounded(self, vp):
        for _ in range(20):
            vp = vp.zoom_in()
        assert vp.zoom == 5.0
        for _ in range(40):
            vp = vp.zoom_out()
        assert vp.zoom == 0.2

    def test_viewport_is_immutable(self, vp):
        vp.zoom_in()
        assert vp.zoom == 1.0


class TestViewChanges:
    def test_pan_moves_content(self, vp):
        panned = vp.pan(120)
        assert panned.time_to_x(NOW) == pytest.approx(720)
        assert panned.view_offset == timedelta(hours=-1)

    def test_jump_to_now(self, vp):
        assert vp.pan(300).jump_to_now().view_offset == timedelta(0)

    def test_with_current_time_keeps_offset(self, vp):
        later = vp.pan(-120).with_current_time(NOW + timedelta(seconds=1))
        assert later.view_offset == timedelta(hours=1)
        assert later.current_time == NOW + timedelta(seconds=1)

    def test_pixels_to_duration(self, vp):
        assert vp.pixels_to_duration(60) == timedelta(minutes=30)
        assert vp.zoom_in().pixels_to_duration(180) == timedelta(hours=1)


class TestLayout:
    def test_visible_range(self, vp):
        start, end = vp.visible_range()
        assert start == NOW - timedelta(hours=5)
        assert end == NOW + timedelta(hours=5)

    def test_hour_markers(self, vp):
        markers = vp.hour_markers()
        major = [m for m in markers if m.major]
        assert [m.label for m in major][:3] == ["04:00", "05:00", "06:00"]
        assert any(m.time == NOW and m.x == 600 for m in major)
        assert all(m.label == "" for m in markers if not m.major)
        assert all(m.time.minute in (0, 15, 30, 45) for m in markers)

    def test_task_span(self, vp):
        span = vp.task_span(NOW, 60)
        assert span == Span(x=600, width=pytest.approx(120))

    def test_task_span_minimum_width(self, vp):
        assert vp.task_span(NOW, 15).width == 100

    def test_is_visible(self, vp):
        assert vp.is_visible(Span(x=0, width=10))
        assert vp.is_visible(Span(x=-150, width=100))
        assert not vp.is_visible(Span(x=-400, width=100))
        assert not vp.is_visible(Span(x=1301, width=100))
