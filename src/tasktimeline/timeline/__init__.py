"""Timeline geometry and the render loop built on it."""

from tasktimeline.timeline.coords import Viewport, time_to_x, x_to_time

__all__ = ["Viewport", "time_to_x", "x_to_time"]
