import pytest

import conftest
import resonote.clock
import resonote.constants
import resonote.performance
import resonote.playback
import resonote.synth


ON = resonote.performance.EventKind.ON
OFF = resonote.performance.EventKind.OFF
Event = resonote.performance.PerformanceEvent


class Recorder:

	"""Collects highlight and state callbacks."""

	def __init__ (self) -> None:

		self.highlights: list[tuple[float, int, bool]] = []
		self.states: list[object] = []


@pytest.fixture
def log () -> Recorder:

	return Recorder()


@pytest.fixture
def scheduler (synth: resonote.synth.ToneSynthesizer, timeline: resonote.clock.VirtualTimeline, log: Recorder) -> resonote.playback.PlaybackScheduler:

	scheduler = resonote.playback.PlaybackScheduler(
		synth,
		timeline,
		on_highlight = lambda pitch, on: log.highlights.append((timeline.now_ms(), pitch, on))
	)
	scheduler.events.on("state", log.states.append)

	return scheduler


PERFORMANCE = [Event(0, 60, ON), Event(500, 60, OFF)]


def test_plays_events_and_finishes_after_margin (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, output: conftest.FakeOutput, log: Recorder) -> None:

	assert scheduler.play("A", PERFORMANCE) is resonote.playback.PlaybackResult.STARTED
	assert scheduler.is_playing("A")

	timeline.advance(0)
	assert len(output.voices) == 1

	timeline.advance(500)
	assert output.released == output.voices

	timeline.advance(499)
	assert scheduler.is_playing("A")

	timeline.advance(1)
	assert not scheduler.is_playing()

	assert log.highlights == [(0, 60, True), (500, 60, False)]
	assert log.states == ["A", None]


def test_second_play_of_same_asset_toggles_off (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, output: conftest.FakeOutput, log: Recorder) -> None:

	scheduler.play("A", PERFORMANCE)
	assert scheduler.play("A", PERFORMANCE) is resonote.playback.PlaybackResult.TOGGLED_OFF

	assert scheduler.active_asset_id is None

	timeline.run_until_idle()

	assert output.voices == []
	assert log.highlights == []
	assert log.states == ["A", None]


def test_switching_assets_cancels_the_first (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, log: Recorder) -> None:

	scheduler.play("A", [Event(0, 60, ON), Event(300, 60, OFF), Event(400, 62, ON), Event(800, 62, OFF)])
	timeline.advance(100)

	assert scheduler.play("B", [Event(0, 70, ON), Event(100, 70, OFF)]) is resonote.playback.PlaybackResult.STARTED
	timeline.run_until_idle()

	pitches = [pitch for _, pitch, _ in log.highlights]

	assert 62 not in pitches
	assert (100, 60, False) in log.highlights
	assert (100, 70, True) in log.highlights
	assert log.states == ["A", None, "B", None]


def test_stop_releases_voices_and_clears_highlights (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, synth: resonote.synth.ToneSynthesizer, log: Recorder) -> None:

	scheduler.play("A", [Event(0, 60, ON), Event(0, 64, ON), Event(900, 60, OFF), Event(900, 64, OFF)])
	timeline.advance(10)

	assert scheduler.stop() is True
	assert synth.live_handles == []
	assert log.highlights[-2:] == [(10, 60, False), (10, 64, False)]

	assert scheduler.stop() is False


def test_stop_for_other_asset_is_ignored (scheduler: resonote.playback.PlaybackScheduler) -> None:

	scheduler.play("A", PERFORMANCE)

	assert scheduler.stop("B") is False
	assert scheduler.is_playing("A")


def test_motif_events () -> None:

	events = resonote.playback.motif_events([0, 5, 12])

	assert events == [Event(0, 55, ON), Event(200, 60, ON), Event(400, 67, ON)]


def test_motif_notes_flash (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, synth: resonote.synth.ToneSynthesizer, log: Recorder) -> None:

	"""Unpaired ONs sound for the note duration and flash their highlight briefly."""

	scheduler.play("motif", resonote.playback.motif_events([0, 12]), note_duration_ms=resonote.constants.MOTIF_NOTE_MS)

	timeline.advance(0)
	assert len(synth.live_handles) == 1

	timeline.run_until_idle()

	assert log.highlights == [(0, 55, True), (150, 55, False), (200, 67, True), (350, 67, False)]
	assert synth.live_handles == []
	assert log.states == ["motif", None]


def test_long_recorded_hold_is_capped_at_note_duration (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, output: conftest.FakeOutput, log: Recorder) -> None:

	"""The voice stops after the note duration; the highlight waits for the recorded OFF."""

	scheduler.play("long", [Event(0, 60, ON), Event(3000, 60, OFF)])

	timeline.advance(0)
	assert len(output.voices) == 1

	timeline.advance(resonote.constants.PERFORMANCE_NOTE_MS)
	assert len(output.released) == 1
	assert log.highlights == [(0, 60, True)]

	timeline.advance(3000 - resonote.constants.PERFORMANCE_NOTE_MS)
	assert len(output.released) == 1
	assert log.highlights == [(0, 60, True), (3000, 60, False)]


def test_same_offset_events_keep_log_order (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, log: Recorder) -> None:

	scheduler.play("chord", [Event(0, 67, ON), Event(0, 60, ON), Event(0, 64, ON), Event(200, 60, OFF), Event(200, 64, OFF), Event(200, 67, OFF)])
	timeline.advance(0)

	assert [pitch for _, pitch, _ in log.highlights] == [67, 60, 64]


def test_empty_log_finishes_after_margin (scheduler: resonote.playback.PlaybackScheduler, timeline: resonote.clock.VirtualTimeline, log: Recorder) -> None:

	scheduler.play("empty", [])
	timeline.advance(resonote.constants.PLAYBACK_TRAILING_MARGIN_MS)

	assert log.states == ["empty", None]


def test_asset_id_required (scheduler: resonote.playback.PlaybackScheduler) -> None:

	with pytest.raises(ValueError):
		scheduler.play("", PERFORMANCE)
