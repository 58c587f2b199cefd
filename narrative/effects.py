"""
Effect runner - timed text reveal strategies.

Each reveal writes into a TextDisplay (what a renderer draws) and
reports completion exactly once through its callback. Timing comes from
the engine Scheduler, so nothing here blocks.

Strategies:
- typewriter: one character per tick
- fade: full text, opacity 0 -> 1
- slide: full text, offset and opacity to neutral
- bounce: full text, scale and opacity to neutral with overshoot
- anything else: immediate display, synchronous completion
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from vnengine.core.config import PlaybackConfig
from vnengine.core.scheduler import Scheduler, Timer
from narrative.errors import RevealInProgressError
from narrative.models import EffectKind

logger = logging.getLogger(__name__)

Easing = Callable[[float], float]


def linear(t: float) -> float:
    return t


def cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> Easing:
    """
    Build a CSS-style cubic-bezier easing function.

    Solves x(s) = t for the curve parameter s with Newton steps, falling
    back to bisection when the slope flattens out, then returns y(s).
    """
    def sample(a: float, b: float, s: float) -> float:
        return 3 * a * (1 - s) ** 2 * s + 3 * b * (1 - s) * s ** 2 + s ** 3

    def slope(a: float, b: float, s: float) -> float:
        return 3 * a * (1 - s) ** 2 + 6 * (b - a) * (1 - s) * s + 3 * (1 - b) * s ** 2

    def solve_x(t: float) -> float:
        s = t
        for _ in range(8):
            err = sample(x1, x2, s) - t
            if abs(err) < 1e-6:
                return s
            d = slope(x1, x2, s)
            if abs(d) < 1e-6:
                break
            s -= err / d

        lo, hi = 0.0, 1.0
        s = t
        for _ in range(30):
            x = sample(x1, x2, s)
            if abs(x - t) < 1e-6:
                break
            if x < t:
                lo = s
            else:
                hi = s
            s = (lo + hi) / 2
        return s

    def ease(t: float) -> float:
        if t <= 0.0:
            return 0.0
        if t >= 1.0:
            return 1.0
        return sample(y1, y2, solve_x(t))

    return ease


ease_in = cubic_bezier(0.42, 0.0, 1.0, 1.0)
ease_out = cubic_bezier(0.0, 0.0, 0.58, 1.0)
ease_out_back = cubic_bezier(0.68, -0.55, 0.265, 1.55)


@dataclass(frozen=True)
class TextStyle:
    """Animated presentation properties of the dialogue text."""
    opacity: float = 1.0
    offset_y: float = 0.0
    scale: float = 1.0

    def lerp(self, other: TextStyle, t: float) -> TextStyle:
        return TextStyle(
            opacity=self.opacity + (other.opacity - self.opacity) * t,
            offset_y=self.offset_y + (other.offset_y - self.offset_y) * t,
            scale=self.scale + (other.scale - self.scale) * t,
        )


NEUTRAL = TextStyle()


@dataclass
class Transition:
    """A style transition in progress."""
    start: TextStyle
    end: TextStyle
    started_at: float
    duration: float
    easing: Easing = linear

    def sample(self, now: float) -> TextStyle:
        if self.duration <= 0:
            return self.end
        t = max(0.0, min(1.0, (now - self.started_at) / self.duration))
        return self.start.lerp(self.end, self.easing(t))


@dataclass
class TextDisplay:
    """
    What the dialogue box currently shows.

    Renderers read visible_text and style_at(now) each frame.
    """
    speaker: str = ""
    text: str = ""
    visible_text: str = ""
    style: TextStyle = field(default_factory=TextStyle)
    transition: Optional[Transition] = None

    def style_at(self, now: float) -> TextStyle:
        if self.transition is not None:
            return self.transition.sample(now)
        return self.style

    def show(self, text: str, style: TextStyle = NEUTRAL) -> None:
        self.text = text
        self.visible_text = text
        self.style = style
        self.transition = None

    def clear(self) -> None:
        self.speaker = ""
        self.show("")


class PendingReveal:
    """
    Token for the reveal currently in flight.

    finish() routes through the runner's generation check, so calling it
    after the reveal was cancelled or replaced does nothing.
    """

    def __init__(self, runner: EffectRunner, token: int, text: str, kind: EffectKind):
        self._runner = runner
        self.token = token
        self.text = text
        self.kind = kind

    @property
    def active(self) -> bool:
        return self._runner._is_current(self.token)

    def finish(self) -> None:
        self._runner._complete(self.token)


class EffectRunner:
    """
    Runs one text reveal at a time.

    Usage:
        runner = EffectRunner(scheduler, display, config)
        runner.reveal("Hello.", EffectKind.FADE, on_done)
        scheduler.update(dt)   # on_done fires when the fade ends
    """

    def __init__(
        self,
        scheduler: Scheduler,
        display: Optional[TextDisplay] = None,
        config: Optional[PlaybackConfig] = None,
    ):
        self.scheduler = scheduler
        self.display = display or TextDisplay()
        self.config = config or PlaybackConfig()

        self._generation = 0
        self._pending: Optional[PendingReveal] = None
        self._on_complete: Optional[Callable[[], None]] = None
        self._timers: list[Timer] = []

        self._handlers: dict[EffectKind, Callable[[str, int], None]] = {
            EffectKind.TYPEWRITER: self._typewriter,
            EffectKind.FADE: self._fade,
            EffectKind.SLIDE: self._slide,
            EffectKind.BOUNCE: self._bounce,
        }

    @property
    def is_busy(self) -> bool:
        return self._pending is not None

    @property
    def pending(self) -> Optional[PendingReveal]:
        return self._pending

    def reveal(
        self,
        text: str,
        kind: EffectKind | str,
        on_complete: Callable[[], None],
    ) -> PendingReveal:
        """
        Start revealing text.

        Raises:
            RevealInProgressError: if a previous reveal has not completed
        """
        if self._pending is not None:
            raise RevealInProgressError(
                f"Reveal {self._pending.token} still pending; cancel it first"
            )

        kind = EffectKind.parse(kind)
        self._generation += 1
        pending = PendingReveal(self, self._generation, text, kind)
        self._pending = pending
        self._on_complete = on_complete

        handler = self._handlers.get(kind, self._instant)
        handler(text, pending.token)
        return pending

    def cancel(self) -> None:
        """Abandon the current reveal; its completion callback will never run."""
        if self._pending is not None:
            logger.debug(f"Cancelled reveal {self._pending.token}")
        self._generation += 1
        self._pending = None
        self._on_complete = None
        self._cancel_timers()

    def skip(self) -> None:
        """Finish the current reveal immediately."""
        if self._pending is not None:
            self._complete(self._pending.token)

    # Completion

    def _is_current(self, token: int) -> bool:
        return self._pending is not None and self._pending.token == token

    def _complete(self, token: int) -> None:
        if not self._is_current(token):
            logger.debug(f"Ignoring stale completion for reveal {token}")
            return

        self._cancel_timers()
        self.display.show(self._pending.text)

        callback = self._on_complete
        self._pending = None
        self._on_complete = None
        if callback is not None:
            callback()

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    # Strategies

    def _instant(self, text: str, token: int) -> None:
        self.display.show(text)
        self._complete(token)

    def _typewriter(self, text: str, token: int) -> None:
        interval = self.config.typewriter_interval
        self.display.show(text)
        self.display.visible_text = ""

        if not text:
            self._timers.append(
                self.scheduler.call_later(interval, lambda: self._complete(token))
            )
            return

        shown = 0

        def tick() -> None:
            nonlocal shown
            if not self._is_current(token):
                return
            shown += 1
            self.display.visible_text = text[:shown]
            if shown >= len(text):
                self._complete(token)

        self._timers.append(self.scheduler.call_every(interval, tick))

    def _fade(self, text: str, token: int) -> None:
        self._transition(
            text, token,
            TextStyle(opacity=0.0),
            self.config.fade_duration,
            ease_in,
        )

    def _slide(self, text: str, token: int) -> None:
        self._transition(
            text, token,
            TextStyle(opacity=0.0, offset_y=self.config.slide_offset),
            self.config.slide_duration,
            ease_out,
        )

    def _bounce(self, text: str, token: int) -> None:
        self._transition(
            text, token,
            TextStyle(opacity=0.0, scale=self.config.bounce_scale),
            self.config.bounce_duration,
            ease_out_back,
        )

    def _transition(
        self,
        text: str,
        token: int,
        start: TextStyle,
        duration: float,
        easing: Easing,
    ) -> None:
        self.display.show(text, start)

        def begin() -> None:
            if not self._is_current(token):
                return
            self.display.transition = Transition(
                start=start,
                end=NEUTRAL,
                started_at=self.scheduler.now,
                duration=duration,
                easing=easing,
            )
            self._timers.append(
                self.scheduler.call_later(duration, lambda: self._complete(token))
            )

        delay = self.config.transition_delay
        if delay > 0:
            self._timers.append(self.scheduler.call_later(delay, begin))
        else:
            begin()

