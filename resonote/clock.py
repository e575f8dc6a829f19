"""Deferred-action timelines.

Everything time-driven in the engine (timed voice release, the recording
ceiling, playback events, highlight flashes) is expressed as a deferred action
on a single cooperative timeline::

	timeline.call_later(delay_ms, action, guard)

``guard`` is an optional liveness check evaluated when the action comes due.
If it returns ``False`` the action is skipped.  Nothing is ever cancelled
directly - a component invalidates its own state and lets stale actions
observe that when they fire.

Two implementations share this contract:

- :class:`LoopTimeline` - wall-clock time on the running asyncio event loop.
- :class:`VirtualTimeline` - simulated time that only moves when
  :meth:`VirtualTimeline.advance` is called.  Used for tests and for
  deterministic replay.
"""

import asyncio
import dataclasses
import heapq
import itertools
import logging
import time
import typing


logger = logging.getLogger(__name__)

Action = typing.Callable[[], typing.Any]
Guard = typing.Callable[[], bool]


@typing.runtime_checkable
class Timeline (typing.Protocol):

	"""
	Protocol for anything that can run deferred actions.
	"""

	def now_ms (self) -> float:

		"""Current time in milliseconds on this timeline."""

		...

	def call_later (self, delay_ms: float, action: Action, guard: typing.Optional[Guard] = None) -> None:

		"""Run ``action`` after ``delay_ms`` unless ``guard`` returns False at fire time."""

		...


@dataclasses.dataclass (order=True)
class DeferredAction:

	"""
	An action due at a specific time.  Ties fire in scheduling order.
	"""

	due_ms: float
	sequence: int
	action: Action = dataclasses.field(compare=False)
	guard: typing.Optional[Guard] = dataclasses.field(compare=False, default=None)


def _run_action (deferred: DeferredAction) -> None:

	"""Evaluate the guard and run the action if it is still live."""

	if deferred.guard is not None and not deferred.guard():
		return

	try:
		deferred.action()

	except Exception:
		logger.exception("Deferred action failed")


def _check_delay (delay_ms: float) -> float:

	"""Reject negative or non-finite delays."""

	if not delay_ms >= 0:
		raise ValueError(f"Delay must be a non-negative number of milliseconds, got {delay_ms!r}")

	return float(delay_ms)


class LoopTimeline:

	"""
	Timeline backed by the asyncio event loop.

	All actions run on the loop thread, so the components that use this
	timeline never need locks: each action runs to completion before the next
	one starts.
	"""

	def __init__ (self, loop: typing.Optional[asyncio.AbstractEventLoop] = None) -> None:

		"""
		Bind to ``loop``, or to the running loop when omitted.
		"""

		self._loop = loop if loop is not None else asyncio.get_running_loop()
		self._origin = time.perf_counter()
		self._counter = itertools.count()

	def now_ms (self) -> float:

		"""Milliseconds elapsed since the timeline was created."""

		return (time.perf_counter() - self._origin) * 1000.0

	def call_later (self, delay_ms: float, action: Action, guard: typing.Optional[Guard] = None) -> None:

		"""Schedule ``action`` on the event loop."""

		delay_ms = _check_delay(delay_ms)

		deferred = DeferredAction(
			due_ms = self.now_ms() + delay_ms,
			sequence = next(self._counter),
			action = action,
			guard = guard
		)

		self._loop.call_later(delay_ms / 1000.0, _run_action, deferred)


class VirtualTimeline:

	"""
	Timeline with simulated time.

	Time starts at ``start_ms`` and moves only through :meth:`advance` or
	:meth:`advance_to`.  Due actions fire in ``(due_ms, sequence)`` order, and
	actions scheduled while firing are picked up in the same advance when they
	fall inside the window.

	Example::

		timeline = VirtualTimeline()
		timeline.call_later(100, lambda: print("tick"))
		timeline.advance(100)   # prints "tick"
	"""

	def __init__ (self, start_ms: float = 0.0) -> None:

		"""Create a timeline whose clock reads ``start_ms``."""

		self._now: float = float(start_ms)
		self._queue: typing.List[DeferredAction] = []
		self._counter = itertools.count()

	@property
	def pending (self) -> int:

		"""Number of actions waiting to fire."""

		return len(self._queue)

	def now_ms (self) -> float:

		"""Current simulated time."""

		return self._now

	def call_later (self, delay_ms: float, action: Action, guard: typing.Optional[Guard] = None) -> None:

		"""Queue ``action`` at ``now + delay_ms``."""

		delay_ms = _check_delay(delay_ms)

		heapq.heappush(self._queue, DeferredAction(
			due_ms = self._now + delay_ms,
			sequence = next(self._counter),
			action = action,
			guard = guard
		))

	def advance (self, delta_ms: float) -> None:

		"""Move time forward by ``delta_ms`` and fire everything that comes due."""

		self.advance_to(self._now + _check_delay(delta_ms))

	def advance_to (self, target_ms: float) -> None:

		"""Move time forward to ``target_ms`` and fire everything that comes due."""

		if target_ms < self._now:
			raise ValueError(f"Cannot move a timeline backwards ({target_ms} < {self._now})")

		while self._queue and self._queue[0].due_ms <= target_ms:
			deferred = heapq.heappop(self._queue)
			self._now = deferred.due_ms
			_run_action(deferred)

		self._now = float(target_ms)

	def run_until_idle (self, limit_ms: float = 3_600_000.0) -> None:

		"""Fire queued actions until none remain, or until ``limit_ms`` of simulated time passes."""

		deadline = self._now + limit_ms

		while self._queue and self._queue[0].due_ms <= deadline:
			self.advance_to(self._queue[0].due_ms)
