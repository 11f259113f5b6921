"""Timeline view: lays out cached tasks on a fixed render cadence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from tasktimeline.config.constants import TIMELINE_LANES
from tasktimeline.protocol import Event, EventType
from tasktimeline.tasks.models import Task, TaskStatus
from tasktimeline.timeline.coords import Marker, Viewport

if TYPE_CHECKING:
    from tasktimeline.client.agent import ClientSyncAgent

logger = logging.getLogger("tasktimeline.timeline.view")

DEFAULT_FRAME_INTERVAL = 1 / 30


@dataclass(frozen=True)
class TaskBlock:
    task_id: str
    title: str
    x: float
    width: float
    lane: int
    color: str
    status: TaskStatus
    selected: bool = False


@dataclass(frozen=True)
class Frame:
    viewport: Viewport
    now_x: float
    markers: list[Marker] = field(default_factory=list)
    blocks: list[TaskBlock] = field(default_factory=list)


class TimelineView:
    """Turns the agent's cache into frames.

    The render loop only reads local state; it never awaits the network, so
    a slow mutation cannot stall redraws. The viewport clock advances only on
    ``time:update`` events from the server.
    """

    def __init__(
        self,
        agent: ClientSyncAgent,
        container_width: float,
        *,
        render: Callable[[Frame], None] | None = None,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
        current_time: datetime | None = None,
    ) -> None:
        self._agent = agent
        self._render = render
        self._frame_interval = frame_interval
        self.viewport = Viewport(current_time or datetime.now(), container_width)
        self.running = True
        self._stopped = asyncio.Event()
        agent.add_listener(self._on_event)

    def _on_event(self, event: Event) -> None:
        if event.type in (EventType.TIME_UPDATE, EventType.SYNC_ACK):
            self.viewport = self.viewport.with_current_time(event.instant)

    # -- Controls --------------------------------------------------------------

    def toggle(self) -> bool:
        """Pause or resume redraws. Returns the new running state."""
        self.running = not self.running
        return self.running

    def zoom_in(self) -> None:
        self.viewport = self.viewport.zoom_in()

    def zoom_out(self) -> None:
        self.viewport = self.viewport.zoom_out()

    def jump_to_now(self) -> None:
        self.viewport = self.viewport.jump_to_now()

    def pan(self, dx: float) -> None:
        self.viewport = self.viewport.pan(dx)

    def resize(self, container_width: float) -> None:
        self.viewport = self.viewport.resized(container_width)

    async def drag_task(self, task_id: str, dx: float) -> Task:
        """Move a task by ``dx`` pixels and persist its new start time."""
        task = self._agent.get(task_id)
        if task is None:
            raise KeyError(task_id)
        self._agent.select(task_id)
        new_start = task.start_time + self.viewport.pixels_to_duration(dx)
        return await self._agent.submit_update(task_id, {"startTime": new_start})

    # -- Rendering -------------------------------------------------------------

    def frame(self) -> Frame:
        vp = self.viewport
        blocks: list[TaskBlock] = []
        selected_id = self._agent.selected_id
        for index, task in enumerate(self._agent.tasks()):
            span = vp.task_span(task.start_time, task.duration)
            if not vp.is_visible(span):
                continue
            blocks.append(
                TaskBlock(
                    task_id=task.id,
                    title=task.title,
                    x=span.x,
                    width=span.width,
                    lane=index % TIMELINE_LANES,
                    color=task.color,
                    status=task.status,
                    selected=task.id == selected_id,
                )
            )
        return Frame(vp, vp.time_to_x(vp.current_time), vp.hour_markers(), blocks)

    async def run(self) -> None:
        """Render at a fixed cadence until :meth:`stop` is called."""
        self._stopped.clear()
        while not self._stopped.is_set():
            if self.running and self._render is not None:
                try:
                    self._render(self.frame())
                except Exception:
                    logger.exception("Render failed")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._frame_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
