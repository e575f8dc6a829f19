import typing

import mido
import pytest

import resonote.clock
import resonote.studio
import resonote.synth


class FakeOutput:

	"""Audio output stub that records voices instead of opening a device."""

	def __init__ (self, available: bool = True, sample_rate: int = 8000) -> None:

		self.available = available
		self.sample_rate = sample_rate
		self.block_size = 64
		self.voices: typing.List[resonote.synth.Voice] = []
		self.released: typing.List[resonote.synth.Voice] = []
		self.resume_calls = 0
		self.closed = False

	def resume (self) -> bool:

		"""Report whether the device could be started."""

		self.resume_calls += 1
		return self.available

	def add (self, voice: resonote.synth.Voice) -> None:

		self.voices.append(voice)

	def release (self, voice: resonote.synth.Voice) -> None:

		voice.release()
		self.released.append(voice)

	def remove (self, voice: resonote.synth.Voice) -> None:

		if voice in self.voices:
			self.voices.remove(voice)

	def close (self) -> None:

		self.voices.clear()
		self.closed = True


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, callback: typing.Optional[typing.Callable] = None) -> None:

		"""Store the callback for injecting test messages."""

		self.callback = callback
		self.closed = False

	def close (self) -> None:

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


# Module-level reference so tests can access the most recently created FakeMidiIn.
_current_fake_input: typing.Optional[FakeMidiIn] = None


def _fake_get_input_names () -> typing.List[str]:

	"""Return a fixed list of MIDI input names for tests."""

	return ["Dummy MIDI"]


def _fake_open_input (name: str, callback: typing.Optional[typing.Callable] = None) -> FakeMidiIn:

	"""Return a fake MIDI input regardless of the name."""

	global _current_fake_input
	fake = FakeMidiIn(callback=callback)
	_current_fake_input = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI input."""

	monkeypatch.setattr(mido, "get_input_names", _fake_get_input_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


@pytest.fixture
def timeline () -> resonote.clock.VirtualTimeline:

	"""Simulated timeline starting at 0 ms."""

	return resonote.clock.VirtualTimeline()


@pytest.fixture
def output () -> FakeOutput:

	return FakeOutput()


@pytest.fixture
def synth (output: FakeOutput, timeline: resonote.clock.VirtualTimeline) -> resonote.synth.ToneSynthesizer:

	return resonote.synth.ToneSynthesizer(output, timeline)  # type: ignore[arg-type]


@pytest.fixture
def studio (output: FakeOutput, timeline: resonote.clock.VirtualTimeline) -> resonote.studio.Studio:

	"""Studio on a simulated timeline with a fake output and in-memory archive."""

	return resonote.studio.Studio(timeline, output=output)  # type: ignore[arg-type]
