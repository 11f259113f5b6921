"""Coordinate engine: maps wall-clock instants to timeline pixels and back.

The timeline is centred on ``current_time + view_offset``: that instant sits
at ``container_width / 2`` and every hour away from it is
``pixels_per_hour_base * zoom`` pixels. ``time_to_x`` and ``x_to_time`` are
algebraic inverses; a round trip only loses timedelta's microsecond
resolution.

Everything here is pure: methods that "change" the view return a new
:class:`Viewport`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from tasktimeline.config.constants import (
    MIN_TASK_WIDTH_PX,
    PIXELS_PER_HOUR_BASE,
    ZOOM_MAX,
    ZOOM_MIN,
    ZOOM_STEP,
)

HOUR = timedelta(hours=1)
MARKER_STEP = timedelta(minutes=15)

# Off-screen slack (px) before something is considered invisible.
HOUR_MARKER_MARGIN = 50.0
MINOR_MARKER_MARGIN = 10.0
TASK_MARGIN = 100.0


def clamp_zoom(zoom: float) -> float:
    return min(max(zoom, ZOOM_MIN), ZOOM_MAX)


def time_to_x(
    t: datetime,
    *,
    current_time: datetime,
    view_offset: timedelta,
    zoom: float,
    container_width: float,
    pixels_per_hour_base: float = PIXELS_PER_HOUR_BASE,
) -> float:
    center = current_time + view_offset
    return container_width / 2 + (t - center) / HOUR * pixels_per_hour_base * zoom


def x_to_time(
    x: float,
    *,
    current_time: datetime,
    view_offset: timedelta,
    zoom: float,
    container_width: float,
    pixels_per_hour_base: float = PIXELS_PER_HOUR_BASE,
) -> datetime:
    center = current_time + view_offset
    hours = (x - container_width / 2) / (pixels_per_hour_base * zoom)
    return center + HOUR * hours


@dataclass(frozen=True)
class Marker:
    """A ruler tick. Major ticks fall on the hour and carry an ``HH:00`` label."""

    time: datetime
    x: float
    major: bool

    @property
    def label(self) -> str:
        return self.time.strftime("%H:00") if self.major else ""


@dataclass(frozen=True)
class Span:
    x: float
    width: float


@dataclass(frozen=True)
class Viewport:
    current_time: datetime
    container_width: float
    view_offset: timedelta = timedelta(0)
    zoom: float = 1.0
    pixels_per_hour_base: float = PIXELS_PER_HOUR_BASE

    def __post_init__(self) -> None:
        object.__setattr__(self, "zoom", clamp_zoom(self.zoom))

    @property
    def pixels_per_hour(self) -> float:
        return self.pixels_per_hour_base * self.zoom

    @property
    def center(self) -> datetime:
        return self.current_time + self.view_offset

    # -- Mapping ---------------------------------------------------------------

    def time_to_x(self, t: datetime) -> float:
        return time_to_x(
            t,
            current_time=self.current_time,
            view_offset=self.view_offset,
            zoom=self.zoom,
            container_width=self.container_width,
            pixels_per_hour_base=self.pixels_per_hour_base,
        )

    def x_to_time(self, x: float) -> datetime:
        return x_to_time(
            x,
            current_time=self.current_time,
            view_offset=self.view_offset,
            zoom=self.zoom,
            container_width=self.container_width,
            pixels_per_hour_base=self.pixels_per_hour_base,
        )

    def pixels_to_duration(self, dx: float) -> timedelta:
        """Time covered by a horizontal drag of ``dx`` pixels."""
        return HOUR * (dx / self.pixels_per_hour)

    # -- View changes ----------------------------------------------------------

    def zoom_in(self) -> Viewport:
        return replace(self, zoom=self.zoom * ZOOM_STEP)

    def zoom_out(self) -> Viewport:
        return replace(self, zoom=self.zoom / ZOOM_STEP)

    def jump_to_now(self) -> Viewport:
        return replace(self, view_offset=timedelta(0))

    def pan(self, dx: float) -> Viewport:
        """Scroll the view so content moves ``dx`` pixels to the right."""
        return replace(self, view_offset=self.view_offset - self.pixels_to_duration(dx))

    def resized(self, container_width: float) -> Viewport:
        return replace(self, container_width=container_width)

    def with_current_time(self, current_time: datetime) -> Viewport:
        """Advance the clock; used only by the periodic time tick."""
        return replace(self, current_time=current_time)

    # -- Layout helpers --------------------------------------------------------

    def visible_range(self) -> tuple[datetime, datetime]:
        return self.x_to_time(0.0), self.x_to_time(self.container_width)

    def hour_markers(self) -> list[Marker]:
        """Hour and 15-minute ticks across the visible range."""
        start, end = self.visible_range()
        t = start.replace(minute=0, second=0, microsecond=0)
        markers: list[Marker] = []
        while t <= end + HOUR:
            major = t.minute == 0
            margin = HOUR_MARKER_MARGIN if major else MINOR_MARKER_MARGIN
            x = self.time_to_x(t)
            if -margin <= x <= self.container_width + margin:
                markers.append(Marker(t, x, major))
            t += MARKER_STEP
        return markers

    def task_span(self, start_time: datetime, duration_minutes: int) -> Span:
        width = max(duration_minutes / 60 * self.pixels_per_hour, MIN_TASK_WIDTH_PX)
        return Span(self.time_to_x(start_time), width)

    def is_visible(self, span: Span) -> bool:
        return not (span.x + span.width < -TASK_MARGIN or span.x > self.container_width + TASK_MARGIN)
