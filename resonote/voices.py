import logging
import typing

import resonote.event_emitter
import resonote.performance
import resonote.synth


logger = logging.getLogger(__name__)


class VoiceRegistry:

	"""
	Tracks manually held notes: at most one sustained voice per pitch.

	A held key produces exactly one ``ON`` transition and one continuously
	sounding voice until it is released.  Observers subscribe to the
	``"transition"`` event and receive ``(pitch_id, EventKind)`` synchronously,
	inside the same call that changed the state.
	"""

	def __init__ (self, synth: resonote.synth.ToneSynthesizer) -> None:

		"""
		Create an empty registry playing through ``synth``.
		"""

		self._synth = synth
		self._held: typing.Dict[int, resonote.synth.VoiceHandle] = {}
		self.events = resonote.event_emitter.EventEmitter()

	@property
	def held_pitches (self) -> typing.List[int]:

		"""Pitches currently held, in trigger order."""

		return list(self._held)

	def is_held (self, pitch_id: int) -> bool:

		"""True while ``pitch_id`` has a live manual voice."""

		return pitch_id in self._held

	def on_transition (self, callback: typing.Callable[[int, resonote.performance.EventKind], typing.Any]) -> None:

		"""
		Register an observer for ``ON``/``OFF`` transitions.
		"""

		self.events.on("transition", callback)

	def trigger (self, pitch_id: int) -> bool:

		"""Start a sustained voice for ``pitch_id``.

		Returns False (and does nothing) when the pitch is already held.
		"""

		if pitch_id in self._held:
			logger.debug(f"Pitch {pitch_id} already held - trigger ignored")
			return False

		self._held[pitch_id] = self._synth.play(pitch_id, resonote.synth.PlayMode.SUSTAINED)
		self.events.emit("transition", pitch_id, resonote.performance.EventKind.ON)

		return True

	def release (self, pitch_id: int) -> bool:

		"""Stop the voice held for ``pitch_id``.

		Returns False (and does nothing) when the pitch is not held.
		"""

		handle = self._held.pop(pitch_id, None)

		if handle is None:
			logger.debug(f"Pitch {pitch_id} not held - release ignored")
			return False

		self._synth.stop(handle)
		self.events.emit("transition", pitch_id, resonote.performance.EventKind.OFF)

		return True

	def release_all (self) -> None:

		"""
		Release every held pitch.
		"""

		for pitch_id in list(self._held):
			self.release(pitch_id)
