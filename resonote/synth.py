"""Tone synthesis.

Each note is one :class:`Voice`: a triangle oscillator shaped by a linear
attack ramp and, once released, an exponential decay.  Voices are mixed into
a mono ``sounddevice`` output stream on PortAudio's callback thread.

The public contract is :class:`ToneSynthesizer`::

	handle = synth.play(60)                       # sustained until stopped
	synth.stop(handle)                            # release, then hard stop 200 ms later

	synth.play(67, PlayMode.TIMED, duration_ms=500)   # releases itself

When the audio device cannot be started, ``play`` returns an *inert* handle:
nothing sounds and ``stop`` does nothing.  Silence is the only consequence.
"""

import dataclasses
import enum
import logging
import threading
import typing

import numpy as np

import resonote.clock
import resonote.constants


logger = logging.getLogger(__name__)


#: ``True`` when the PortAudio library backing :mod:`sounddevice` could be loaded.
AUDIO_SUPPORTED: bool = False

#: Why audio is unavailable, or ``None`` when :data:`AUDIO_SUPPORTED` is ``True``.
AUDIO_UNAVAILABLE_REASON: typing.Optional[str] = None

try:
	import sounddevice

	AUDIO_SUPPORTED = True

except OSError as _e:
	# sounddevice raises OSError at import time when libportaudio is missing.
	AUDIO_UNAVAILABLE_REASON = f"PortAudio library could not be loaded: {_e}"


class PlayMode (enum.Enum):

	"""How a voice ends."""

	SUSTAINED = "sustained"
	TIMED = "timed"


def frequency_for (pitch_id: int) -> float:

	"""Equal-tempered frequency of a pitch number (69 → 440 Hz)."""

	return resonote.constants.REFERENCE_FREQUENCY * 2.0 ** ((pitch_id - resonote.constants.REFERENCE_PITCH) / 12.0)


class Voice:

	"""
	One sounding oscillator with its envelope state.

	The envelope is a function of the sample position: a linear ramp from 0 to
	``PEAK_AMPLITUDE`` over the attack window, held until :meth:`release`, then
	``level * exp(-t / tau)`` from the level reached at release time.
	"""

	def __init__ (self, pitch_id: int, sample_rate: int) -> None:

		self.pitch_id = pitch_id
		self.frequency = frequency_for(pitch_id)
		self.sample_rate = sample_rate

		self._phase: float = 0.0
		self._position: int = 0
		self._release_position: typing.Optional[int] = None
		self._release_level: float = 0.0

		self._attack_samples = max(1, int(resonote.constants.ATTACK_MS * sample_rate / 1000))
		self._release_tau = resonote.constants.RELEASE_TIME_CONSTANT_MS * sample_rate / 1000

	@property
	def releasing (self) -> bool:

		"""True once :meth:`release` has been called."""

		return self._release_position is not None

	def envelope (self, positions: np.ndarray) -> np.ndarray:

		"""Gain at each sample position."""

		gain = np.minimum(positions / self._attack_samples, 1.0) * resonote.constants.PEAK_AMPLITUDE

		if self._release_position is not None:
			tail = positions >= self._release_position
			elapsed = positions[tail] - self._release_position
			gain[tail] = self._release_level * np.exp(-elapsed / self._release_tau)

		return gain

	def release (self) -> None:

		"""Start the exponential decay from the current level.  Repeated calls are ignored."""

		if self._release_position is not None:
			return

		self._release_level = float(self.envelope(np.array([float(self._position)]))[0])
		self._release_position = self._position

	def render (self, frames: int) -> np.ndarray:

		"""Render the next ``frames`` samples as float32."""

		positions = np.arange(self._position, self._position + frames, dtype=np.float64)
		cycles = self._phase + np.arange(frames, dtype=np.float64) * (self.frequency / self.sample_rate)

		# Triangle wave starting at zero and rising.
		wave = 4.0 * np.abs((cycles - 0.25) % 1.0 - 0.5) - 1.0

		self._phase = (self._phase + frames * self.frequency / self.sample_rate) % 1.0
		self._position += frames

		return (wave * self.envelope(positions)).astype(np.float32)


@dataclasses.dataclass (eq=False)
class VoiceHandle:

	"""
	Caller-side token for one ``play`` call.

	``voice`` is ``None`` for an inert handle (audio was unavailable).
	"""

	pitch_id: int
	mode: PlayMode
	started_at: float
	voice: typing.Optional[Voice] = None
	stopped: bool = False

	@property
	def inert (self) -> bool:

		"""True when no audio was allocated for this handle."""

		return self.voice is None


class AudioOutput:

	"""
	Mono output stream that mixes all live voices.

	Voices are added and released from the event loop thread and rendered on
	PortAudio's callback thread, so the voice list is guarded by a lock.
	"""

	def __init__ (self, sample_rate: int = resonote.constants.SAMPLE_RATE, block_size: int = resonote.constants.BLOCK_SIZE) -> None:

		self.sample_rate = sample_rate
		self.block_size = block_size

		self._voices: typing.List[Voice] = []
		self._lock = threading.Lock()
		self._stream: typing.Any = None
		self._warned: bool = False

	@property
	def running (self) -> bool:

		"""True while the output stream is started."""

		return self._stream is not None and bool(self._stream.active)

	@property
	def voice_count (self) -> int:

		"""Number of voices currently in the mix (including releasing ones)."""

		with self._lock:
			return len(self._voices)

	def resume (self) -> bool:

		"""Make sure the output stream is running.  Returns False if it cannot be started."""

		if self.running:
			return True

		if not AUDIO_SUPPORTED:
			self._warn_unavailable(AUDIO_UNAVAILABLE_REASON or "audio backend missing")
			return False

		try:
			if self._stream is None:
				self._stream = sounddevice.OutputStream(
					samplerate = self.sample_rate,
					blocksize = self.block_size,
					channels = 1,
					dtype = 'float32',
					callback = self._audio_callback,
				)

			self._stream.start()

		except Exception as e:
			self._stream = None
			self._warn_unavailable(str(e))
			return False

		logger.info(f"Audio output started (sr={self.sample_rate}, block={self.block_size})")
		self._warned = False
		return True

	def _warn_unavailable (self, reason: str) -> None:

		"""Log the first failure loudly and repeats quietly."""

		if self._warned:
			logger.debug(f"Audio output still unavailable: {reason}")
			return

		logger.warning(f"Audio output unavailable, notes will be silent: {reason}")
		self._warned = True

	def add (self, voice: Voice) -> None:

		"""Start mixing ``voice``."""

		with self._lock:
			self._voices.append(voice)

	def release (self, voice: Voice) -> None:

		"""Begin the release stage of ``voice``."""

		with self._lock:
			voice.release()

	def remove (self, voice: Voice) -> None:

		"""Stop mixing ``voice``.  Unknown voices are ignored."""

		with self._lock:
			if voice in self._voices:
				self._voices.remove(voice)

	def render (self, frames: int) -> np.ndarray:

		"""Mix the next ``frames`` samples of every live voice."""

		mix = np.zeros(frames, dtype=np.float32)

		with self._lock:
			for voice in self._voices:
				mix += voice.render(frames)

		return np.clip(mix, -1.0, 1.0)

	def _audio_callback (self, outdata: np.ndarray, frames: int, time_info: typing.Any, status: typing.Any) -> None:

		"""PortAudio callback - runs on the audio thread."""

		outdata[:, 0] = self.render(frames)

	def close (self) -> None:

		"""Stop and close the stream and drop every voice."""

		with self._lock:
			self._voices.clear()

		if self._stream is not None:
			try:
				self._stream.stop()
				self._stream.close()
			except Exception:
				logger.exception("Failed to close audio output")
			self._stream = None
			logger.info("Audio output closed")


class ToneSynthesizer:

	"""
	Creates and ends voices against one :class:`AudioOutput`.

	Every handle returned by :meth:`play` must eventually reach :meth:`stop`
	(directly, or through the timed auto-release).  Stopping twice is harmless.
	"""

	def __init__ (self, output: AudioOutput, timeline: resonote.clock.Timeline) -> None:

		self._output = output
		self._timeline = timeline
		self._live: typing.List[VoiceHandle] = []

	@property
	def live_handles (self) -> typing.List[VoiceHandle]:

		"""Handles that have been played and not yet stopped."""

		return list(self._live)

	def play (self, pitch_id: int, mode: PlayMode = PlayMode.SUSTAINED, duration_ms: typing.Optional[float] = None) -> VoiceHandle:

		"""Start a voice for ``pitch_id``.

		Parameters:
			pitch_id: Chromatic pitch number.
			mode: ``SUSTAINED`` plays until :meth:`stop`; ``TIMED`` stops itself
				after ``duration_ms``.
			duration_ms: Required for ``TIMED`` voices.

		Returns:
			A handle for early termination.  Inert when the output is unavailable.
		"""

		if mode is PlayMode.TIMED and (duration_ms is None or duration_ms < 0):
			raise ValueError("TIMED voices need a non-negative duration_ms")

		handle = VoiceHandle(pitch_id=pitch_id, mode=mode, started_at=self._timeline.now_ms())

		if not self._output.resume():
			return handle

		handle.voice = Voice(pitch_id, self._output.sample_rate)
		self._output.add(handle.voice)
		self._live.append(handle)

		if mode is PlayMode.TIMED:
			assert duration_ms is not None
			self._timeline.call_later(duration_ms, lambda: self.stop(handle))

		return handle

	def stop (self, handle: VoiceHandle) -> None:

		"""Release ``handle``'s voice and remove it from the mix after ``HARD_STOP_DELAY_MS``."""

		if handle.voice is None or handle.stopped:
			return

		handle.stopped = True
		voice = handle.voice

		if handle in self._live:
			self._live.remove(handle)

		self._output.release(voice)
		self._timeline.call_later(resonote.constants.HARD_STOP_DELAY_MS, lambda: self._output.remove(voice))

	def stop_all (self) -> None:

		"""Stop every live voice."""

		for handle in list(self._live):
			self.stop(handle)
