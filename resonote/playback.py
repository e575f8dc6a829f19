"""Event-log playback.

A :class:`PlaybackScheduler` is one playback slot.  At most one asset plays
in a slot at a time:

- ``play(A)`` while idle starts A.
- ``play(A)`` while A is active stops it (toggle) and starts nothing.
- ``play(B)`` while A is active stops A, then starts B.

Every event offset is scheduled up front against a single "now" anchor.
Cancellation never touches the timers: stopping clears the slot's active
playback, and each timer checks at fire time that its playback is still the
active one before doing anything.
"""

import dataclasses
import enum
import itertools
import logging
import typing

import resonote.clock
import resonote.constants
import resonote.event_emitter
import resonote.performance
import resonote.synth


logger = logging.getLogger(__name__)

HighlightCallback = typing.Callable[[int, bool], typing.Any]


class PlaybackResult (enum.Enum):

	"""Outcome of :meth:`PlaybackScheduler.play`."""

	STARTED = "started"
	TOGGLED_OFF = "toggled_off"


def motif_events (
	offsets: typing.Sequence[int],
	base_pitch: int = resonote.constants.MOTIF_BASE_PITCH,
	spacing_ms: int = resonote.constants.MOTIF_SPACING_MS
) -> typing.List[resonote.performance.PerformanceEvent]:

	"""Convert a motif (pitch offsets at fixed spacing) into an ``ON``-only event log.

	Example: ``[0, 5, 12]`` → ON 55 at 0 ms, ON 60 at 200 ms, ON 67 at 400 ms.
	"""

	return [
		resonote.performance.PerformanceEvent(
			offset_ms = index * spacing_ms,
			pitch_id = base_pitch + offset,
			kind = resonote.performance.EventKind.ON
		)
		for index, offset in enumerate(offsets)
	]


@dataclasses.dataclass (eq=False)
class _Playback:

	"""State owned by one run of one asset."""

	asset_id: str
	voices: typing.List[resonote.synth.VoiceHandle] = dataclasses.field(default_factory=list)
	sounding: typing.Dict[int, resonote.synth.VoiceHandle] = dataclasses.field(default_factory=dict)
	lit: typing.Set[int] = dataclasses.field(default_factory=set)


class PlaybackScheduler:

	"""
	Replays event logs through a synthesizer with single-flight semantics.

	Emits ``"state"`` with the active asset id (or ``None``) whenever a
	playback starts, finishes or is stopped.
	"""

	def __init__ (
		self,
		synth: resonote.synth.ToneSynthesizer,
		timeline: resonote.clock.Timeline,
		on_highlight: typing.Optional[HighlightCallback] = None,
		name: str = "playback"
	) -> None:

		"""Create an idle playback slot.

		Parameters:
			synth: Synthesizer used for every replayed voice.
			timeline: Timeline the events are scheduled on.
			on_highlight: Called as ``(pitch_id, on)`` when a replayed note
				should be lit or unlit on the input surface.
			name: Slot name used in log messages.
		"""

		self._synth = synth
		self._timeline = timeline
		self._on_highlight = on_highlight
		self.name = name

		self._active: typing.Optional[_Playback] = None
		self.events = resonote.event_emitter.EventEmitter()

	@property
	def active_asset_id (self) -> typing.Optional[str]:

		"""Asset currently playing in this slot, if any."""

		return self._active.asset_id if self._active is not None else None

	def is_playing (self, asset_id: typing.Optional[str] = None) -> bool:

		"""True when anything (or ``asset_id`` specifically) is playing."""

		if self._active is None:
			return False

		return asset_id is None or self._active.asset_id == asset_id

	def _highlight (self, pitch_id: int, on: bool) -> None:

		if self._on_highlight is not None:
			self._on_highlight(pitch_id, on)

	def play (
		self,
		asset_id: str,
		events: typing.Sequence[resonote.performance.PerformanceEvent],
		note_duration_ms: float = resonote.constants.PERFORMANCE_NOTE_MS
	) -> PlaybackResult:

		"""Start ``events`` as ``asset_id``, or toggle it off if it is already active.

		Parameters:
			asset_id: Identity used for single-flight and toggle detection.
			events: Event log ordered by non-decreasing offset.
			note_duration_ms: Nominal auto-release length of each replayed voice.
				A paired ``OFF`` in the log stops the voice earlier.
		"""

		if not asset_id:
			raise ValueError("asset_id must be a non-empty string")

		if self._active is not None:

			toggled = self._active.asset_id == asset_id
			self.stop()

			if toggled:
				return PlaybackResult.TOGGLED_OFF

		playback = _Playback(asset_id=asset_id)
		self._active = playback

		def is_live () -> bool:
			return self._active is playback

		ordered = list(events)
		paired = resonote.performance.paired_on_indices(ordered)

		# One timer per distinct offset keeps same-offset events in log order.
		for offset, group in itertools.groupby(enumerate(ordered), key=lambda item: item[1].offset_ms):

			batch = list(group)

			self._timeline.call_later(
				offset,
				lambda batch=batch: self._fire(playback, batch, paired, note_duration_ms),
				guard = is_live
			)

		last_offset = ordered[-1].offset_ms if ordered else 0

		self._timeline.call_later(
			last_offset + resonote.constants.PLAYBACK_TRAILING_MARGIN_MS,
			lambda: self._finish(playback),
			guard = is_live
		)

		logger.info(f"[{self.name}] playing {asset_id!r} ({len(ordered)} events)")
		self.events.emit("state", asset_id)

		return PlaybackResult.STARTED

	def _fire (
		self,
		playback: _Playback,
		batch: typing.List[typing.Tuple[int, resonote.performance.PerformanceEvent]],
		paired: typing.Set[int],
		note_duration_ms: float
	) -> None:

		"""Sound every event of one offset, in log order."""

		for index, event in batch:

			if event.kind is resonote.performance.EventKind.ON:

				# Every ON is a timed voice, paired or not.  A recorded hold longer
				# than note_duration_ms falls silent early while its key stays lit
				# until the paired OFF.
				handle = self._synth.play(event.pitch_id, resonote.synth.PlayMode.TIMED, note_duration_ms)
				playback.voices.append(handle)
				self._highlight(event.pitch_id, True)

				if index in paired:
					playback.sounding[event.pitch_id] = handle
					playback.lit.add(event.pitch_id)

				else:
					pitch_id = event.pitch_id
					self._timeline.call_later(
						resonote.constants.HIGHLIGHT_FLASH_MS,
						lambda: self._highlight(pitch_id, False)
					)

			else:

				handle = playback.sounding.pop(event.pitch_id, None)

				if handle is not None:
					self._synth.stop(handle)

				playback.lit.discard(event.pitch_id)
				self._highlight(event.pitch_id, False)

	def _finish (self, playback: _Playback) -> None:

		"""Return the slot to idle after the last event plus the trailing margin."""

		self._active = None
		self._clear_highlights(playback)

		logger.info(f"[{self.name}] finished {playback.asset_id!r}")
		self.events.emit("state", None)

	def _clear_highlights (self, playback: _Playback) -> None:

		for pitch_id in sorted(playback.lit):
			self._highlight(pitch_id, False)

		playback.lit.clear()

	def stop (self, asset_id: typing.Optional[str] = None) -> bool:

		"""Stop the active playback and every voice it has created.

		Parameters:
			asset_id: When given, only stop if that asset is the active one.

		Returns:
			True if a playback was stopped.
		"""

		playback = self._active

		if playback is None or (asset_id is not None and playback.asset_id != asset_id):
			return False

		self._active = None

		for handle in playback.voices:
			self._synth.stop(handle)

		playback.voices.clear()
		playback.sounding.clear()
		self._clear_highlights(playback)

		logger.info(f"[{self.name}] stopped {playback.asset_id!r}")
		self.events.emit("state", None)

		return True
