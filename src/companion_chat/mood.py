"""Mood indicator state machine and its passive animations."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import logging
import random
from typing import assert_never

from .models import MoodState
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

BLINK_TASK = "mood.blink"
COOLDOWN_TASK = "mood.cooldown"

EXTERNAL_STATES = frozenset({MoodState.ASLEEP, MoodState.STARTLED, MoodState.WINKING})
EYES_CLOSED_STATES = frozenset({MoodState.ASLEEP, MoodState.FAILURE})
GAZE_STATES = frozenset({MoodState.IDLE, MoodState.SUCCESS})


@dataclass(frozen=True)
class MoodTiming:
    """Timer settings for the mood controller, in seconds."""

    success_cooldown_seconds: float = 3.0
    blink_min_seconds: float = 2.0
    blink_max_seconds: float = 5.0
    blink_duration_seconds: float = 0.15
    gaze_max_offset: float = 6.0


class EyeShape(str, Enum):
    OPEN = "open"
    CROSSED = "crossed"
    CLOSED = "closed"
    WINK = "wink"
    WIDE = "wide"


class MouthShape(str, Enum):
    SMALL_SMILE = "small_smile"
    ROUND = "round"
    WAVY = "wavy"
    BIG_SMILE = "big_smile"
    OPEN = "open"


@dataclass(frozen=True)
class MoodStyle:
    """Presentation hints for one mood; colors are hex strings."""

    foreground: str
    background: str
    status_dot: str
    eyes: EyeShape
    mouth: MouthShape
    pulsing: bool = False


def mood_style(state: MoodState) -> MoodStyle:
    """Return the visual style for ``state``."""
    match state:
        case MoodState.IDLE:
            return MoodStyle(
                "#4f46e5", "#e0e7ff", "#22c55e", EyeShape.OPEN, MouthShape.SMALL_SMILE
            )
        case MoodState.PENDING:
            return MoodStyle(
                "#9333ea",
                "#f3e8ff",
                "#a855f7",
                EyeShape.OPEN,
                MouthShape.ROUND,
                pulsing=True,
            )
        case MoodState.SUCCESS:
            return MoodStyle(
                "#16a34a", "#dcfce7", "#3b82f6", EyeShape.OPEN, MouthShape.BIG_SMILE
            )
        case MoodState.FAILURE:
            return MoodStyle(
                "#dc2626", "#fee2e2", "#ef4444", EyeShape.CROSSED, MouthShape.WAVY
            )
        case MoodState.ASLEEP:
            return MoodStyle(
                "#3b82f6", "#eff6ff", "#3b82f6", EyeShape.CLOSED, MouthShape.SMALL_SMILE
            )
        case MoodState.STARTLED:
            return MoodStyle(
                "#f97316", "#ffedd5", "#3b82f6", EyeShape.WIDE, MouthShape.OPEN
            )
        case MoodState.WINKING:
            return MoodStyle(
                "#ec4899", "#fce7f3", "#3b82f6", EyeShape.WINK, MouthShape.BIG_SMILE
            )
        case _:
            assert_never(state)


def _clamp(value: float, limit: float) -> float:
    return max(-limit, min(limit, value))


MoodListener = Callable[["MoodController"], None]


class MoodController:
    """Derive the visible mood from lifecycle events.

    Lifecycle events move between ``idle``, ``pending``, ``success`` and
    ``failure``; ``success`` falls back to ``idle`` after a cooldown. The
    ``asleep``, ``startled`` and ``winking`` states are only entered through
    ``trigger``.

    Two passive animations run on top of the state: a randomized blink while
    the eyes are open, and pointer gaze tracking in ``idle``/``success``.
    Blink and cooldown are named tasks; every transition cancels the ones the
    new state does not allow, and ``close()`` cancels all of them.
    """

    def __init__(
        self,
        timing: MoodTiming | None = None,
        *,
        rng: random.Random | None = None,
        tasks: TaskManager | None = None,
    ) -> None:
        self.timing = timing or MoodTiming()
        self._rng = rng or random.Random()
        self._tasks = tasks or TaskManager()
        self._state = MoodState.IDLE
        self._blinking = False
        self._gaze: tuple[float, float] = (0.0, 0.0)
        self._started = False
        self._listeners: list[MoodListener] = []

    @property
    def state(self) -> MoodState:
        return self._state

    @property
    def style(self) -> MoodStyle:
        return mood_style(self._state)

    @property
    def blinking(self) -> bool:
        return self._blinking

    @property
    def gaze(self) -> tuple[float, float]:
        return self._gaze

    @property
    def eyes_open(self) -> bool:
        return self._state not in EYES_CLOSED_STATES

    @property
    def scheduled_jobs(self) -> frozenset[str]:
        """Names of timers currently scheduled."""
        return self._tasks.names

    def on_change(self, listener: MoodListener) -> None:
        """Register a callback fired on state changes and blink toggles."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                LOGGER.error(
                    "mood.listener.failed",
                    extra={"event": "mood.listener.failed", "error": str(exc)},
                )

    # Lifecycle events

    def request_started(self) -> None:
        self._transition(MoodState.PENDING)

    def request_succeeded(self) -> None:
        self._transition(MoodState.SUCCESS)

    def request_failed(self) -> None:
        self._transition(MoodState.FAILURE)

    def trigger(self, state: MoodState) -> None:
        """Enter one of the externally driven states."""
        if state not in EXTERNAL_STATES:
            raise ValueError(f"{state.value!r} is driven by the request lifecycle.")
        self._transition(state)

    def reset(self) -> None:
        self._transition(MoodState.IDLE)

    def _transition(self, state: MoodState) -> None:
        previous = self._state
        self._tasks.cancel(COOLDOWN_TASK)
        self._state = state
        if state not in GAZE_STATES:
            self._gaze = (0.0, 0.0)
        self._sync_blink()
        if state is MoodState.SUCCESS and self._loop_running():
            self._tasks.schedule(COOLDOWN_TASK, self._cooldown())
        LOGGER.debug(
            "mood.transition",
            extra={
                "event": "mood.transition",
                "from_state": previous.value,
                "to_state": state.value,
            },
        )
        self._notify()

    async def _cooldown(self) -> None:
        await asyncio.sleep(self.timing.success_cooldown_seconds)
        self._tasks.discard(COOLDOWN_TASK)
        if self._state is MoodState.SUCCESS:
            self._transition(MoodState.IDLE)

    # Passive animations

    def start(self) -> None:
        """Begin passive animations; requires a running event loop."""
        self._started = True
        self._sync_blink()

    def _sync_blink(self) -> None:
        if self._started and self.eyes_open:
            if not self._tasks.is_active(BLINK_TASK):
                self._tasks.schedule(BLINK_TASK, self._blink_loop())
            return
        self._tasks.cancel(BLINK_TASK)
        self._blinking = False

    async def _blink_loop(self) -> None:
        while True:
            timing = self.timing
            await asyncio.sleep(
                self._rng.uniform(timing.blink_min_seconds, timing.blink_max_seconds)
            )
            self._blinking = True
            self._notify()
            try:
                await asyncio.sleep(self.timing.blink_duration_seconds)
            finally:
                self._blinking = False
            self._notify()

    def track_pointer(
        self,
        pointer: tuple[float, float],
        center: tuple[float, float],
        viewport: tuple[float, float],
    ) -> tuple[float, float]:
        """Update the gaze offset from a pointer position.

        The offset is the pointer distance from ``center`` normalised by half
        the viewport and scaled to ``gaze_max_offset``, clamped on both axes.
        Outside ``idle``/``success`` the gaze stays centred.
        """
        if self._state not in GAZE_STATES:
            return self._gaze
        limit = self.timing.gaze_max_offset
        half_width = viewport[0] / 2 or 1.0
        half_height = viewport[1] / 2 or 1.0
        dx = (pointer[0] - center[0]) / half_width
        dy = (pointer[1] - center[1]) / half_height
        self._gaze = (_clamp(dx * limit, limit), _clamp(dy * limit, limit))
        return self._gaze

    @staticmethod
    def _loop_running() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def close(self) -> None:
        """Stop every timer; the controller stays usable but inert."""
        self._started = False
        self._tasks.cancel_all()
        self._blinking = False
        self._gaze = (0.0, 0.0)

    async def aclose(self) -> None:
        self._started = False
        await self._tasks.aclose()
        self._blinking = False
        self._gaze = (0.0, 0.0)
