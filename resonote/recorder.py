"""Performance recording.

The recorder turns voice-registry transitions into a timestamped event log.
Offsets count *live* time only::

	offset = (now - started_at) - accumulated_pause

so a performance replays identically however long the player paused.

State machine::

	IDLE --start--> ARMED <--pause/resume--> PAUSED
	  ^                |                        |
	  +------stop------+------------------------+

A session is capped at ``RECORDING_CEILING_MS`` of live time.  The ceiling
timer freezes while paused and, when it runs out, finalizes the session
exactly like :meth:`PerformanceRecorder.stop`.
"""

import enum
import logging
import typing

import resonote.archive
import resonote.clock
import resonote.constants
import resonote.event_emitter
import resonote.performance


logger = logging.getLogger(__name__)


class RecorderState (enum.Enum):

	"""Recorder states."""

	IDLE = "idle"
	ARMED = "armed"
	PAUSED = "paused"


class PerformanceRecorder:

	"""
	Records note transitions while armed and archives the result on stop.

	Emits ``"state"`` with the new :class:`RecorderState` on every state change
	and ``"saved"`` with the archived :class:`~resonote.performance.Performance`.
	"""

	def __init__ (
		self,
		timeline: resonote.clock.Timeline,
		archive: resonote.archive.ArchiveStore,
		ceiling_ms: float = resonote.constants.RECORDING_CEILING_MS
	) -> None:

		"""Create an idle recorder.

		Parameters:
			timeline: Source of time and of the ceiling timer.
			archive: Where finalized performances are saved.
			ceiling_ms: Maximum live duration of one session.
		"""

		if ceiling_ms <= 0:
			raise ValueError("Recording ceiling must be positive")

		self._timeline = timeline
		self._archive = archive
		self.ceiling_ms = ceiling_ms

		self.state = RecorderState.IDLE
		self.events = resonote.event_emitter.EventEmitter()

		self._started_at: float = 0.0
		self._paused_at: typing.Optional[float] = None
		self._accumulated_pause_ms: float = 0.0
		self._buffer: typing.List[resonote.performance.PerformanceEvent] = []

		# Identity of the currently armed ceiling timer; replaced to invalidate it.
		self._ceiling_token: typing.Optional[object] = None

	@property
	def armed (self) -> bool:

		"""True while a session is open (armed or paused)."""

		return self.state is not RecorderState.IDLE

	@property
	def accumulated_pause_ms (self) -> float:

		"""Total paused time of the current session so far (excluding an open pause)."""

		return self._accumulated_pause_ms

	@property
	def buffered_events (self) -> typing.List[resonote.performance.PerformanceEvent]:

		"""Copy of the events captured so far in this session."""

		return list(self._buffer)

	def live_elapsed_ms (self) -> float:

		"""Live (non-paused) time since the session started; 0 when idle."""

		if self.state is RecorderState.IDLE:
			return 0.0

		now = self._paused_at if self._paused_at is not None else self._timeline.now_ms()

		return now - self._started_at - self._accumulated_pause_ms

	def remaining_ms (self) -> float:

		"""Live time left before the ceiling finalizes the session."""

		if self.state is RecorderState.IDLE:
			return 0.0

		return max(0.0, self.ceiling_ms - self.live_elapsed_ms())

	def _set_state (self, state: RecorderState) -> None:

		self.state = state
		self.events.emit("state", state)

	def _arm_ceiling (self) -> None:

		"""(Re)start the ceiling timer for the remaining live time."""

		token = object()
		self._ceiling_token = token

		self._timeline.call_later(
			self.remaining_ms(),
			self._on_ceiling,
			guard = lambda: self._ceiling_token is token
		)

	def _on_ceiling (self) -> None:

		logger.info(f"Recording reached the {self.ceiling_ms / 1000:.0f}s limit")
		self.stop()

	def start (self) -> bool:

		"""Open a new session.  Returns False unless the recorder was idle."""

		if self.state is not RecorderState.IDLE:
			logger.debug(f"start() ignored while {self.state.value}")
			return False

		self._started_at = self._timeline.now_ms()
		self._paused_at = None
		self._accumulated_pause_ms = 0.0
		self._buffer = []

		self._set_state(RecorderState.ARMED)
		self._arm_ceiling()

		logger.info("Recording started")
		return True

	def pause (self) -> bool:

		"""ARMED → PAUSED.  Freezes both the offsets and the ceiling countdown."""

		if self.state is not RecorderState.ARMED:
			logger.debug(f"pause() ignored while {self.state.value}")
			return False

		self._paused_at = self._timeline.now_ms()
		self._ceiling_token = None
		self._set_state(RecorderState.PAUSED)

		return True

	def resume (self) -> bool:

		"""PAUSED → ARMED.  The paused interval is added to the accumulated pause."""

		if self.state is not RecorderState.PAUSED or self._paused_at is None:
			logger.debug(f"resume() ignored while {self.state.value}")
			return False

		self._accumulated_pause_ms += self._timeline.now_ms() - self._paused_at
		self._paused_at = None
		self._set_state(RecorderState.ARMED)
		self._arm_ceiling()

		return True

	def toggle_pause (self) -> bool:

		"""Pause when armed, resume when paused."""

		if self.state is RecorderState.PAUSED:
			return self.resume()

		return self.pause()

	def on_voice_transition (self, pitch_id: int, kind: resonote.performance.EventKind) -> None:

		"""Append a transition to the log when armed.  Ignored when idle or paused."""

		if self.state is not RecorderState.ARMED:
			return

		elapsed = self.live_elapsed_ms()

		if elapsed >= self.ceiling_ms:
			# The ceiling timer is due but has not fired yet; nothing past the limit is kept.
			self.stop()
			return

		self._buffer.append(resonote.performance.PerformanceEvent(
			offset_ms = max(0, int(round(elapsed))),
			pitch_id = pitch_id,
			kind = kind
		))

	def stop (self) -> typing.Optional[resonote.performance.Performance]:

		"""Close the session and archive its performance.

		Returns:
			The archived performance, or ``None`` when nothing was recorded
			(or nothing survived normalization).
		"""

		if self.state is RecorderState.IDLE:
			logger.debug("stop() ignored while idle")
			return None

		self._ceiling_token = None
		self._paused_at = None
		buffered = self._buffer
		self._buffer = []
		self._set_state(RecorderState.IDLE)

		events = resonote.performance.normalize_events(buffered)

		if not events:
			logger.info("Recording stopped - nothing to save")
			return None

		performance = resonote.performance.Performance(
			id = resonote.archive.new_performance_id(),
			display_name = resonote.archive.default_name(self._archive),
			events = events
		)

		try:
			self._archive.save(performance)

		except Exception:
			logger.exception(f"Failed to archive {performance.display_name!r}")
			return None

		logger.info(f"Recording saved as {performance.display_name!r} ({len(events)} events)")
		self.events.emit("saved", performance)

		return performance
