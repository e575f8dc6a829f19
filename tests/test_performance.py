import mido
import pytest

import resonote.performance


ON = resonote.performance.EventKind.ON
OFF = resonote.performance.EventKind.OFF
Event = resonote.performance.PerformanceEvent


def test_negative_offset_rejected () -> None:

	with pytest.raises(ValueError):
		Event(-1, 60, ON)


def test_event_serialization_keys () -> None:

	event = Event(250, 61, OFF)

	assert event.to_dict() == {"time": 250, "midi": 61, "type": "off"}
	assert Event.from_dict({"time": 250, "midi": 61, "type": "off"}) == event


def test_normalize_keeps_complete_pairs () -> None:

	events = [Event(0, 60, ON), Event(100, 64, ON), Event(200, 60, OFF), Event(300, 64, OFF)]

	assert resonote.performance.normalize_events(events) == events


def test_normalize_drops_orphan_off () -> None:

	events = [Event(0, 62, OFF), Event(10, 60, ON), Event(20, 60, OFF)]

	assert resonote.performance.normalize_events(events) == [Event(10, 60, ON), Event(20, 60, OFF)]


def test_normalize_drops_duplicate_on () -> None:

	events = [Event(0, 60, ON), Event(10, 60, ON), Event(20, 60, OFF)]

	assert resonote.performance.normalize_events(events) == [Event(0, 60, ON), Event(20, 60, OFF)]


def test_normalize_drops_unclosed_on () -> None:

	events = [Event(0, 60, ON), Event(50, 67, ON), Event(100, 60, OFF)]

	assert resonote.performance.normalize_events(events) == [Event(0, 60, ON), Event(100, 60, OFF)]
	assert resonote.performance.normalize_events([Event(0, 60, ON)]) == []


def test_paired_on_indices () -> None:

	events = [Event(0, 60, ON), Event(0, 67, ON), Event(100, 60, OFF)]

	assert resonote.performance.paired_on_indices(events) == {0}


def test_pitches_in_first_played_order () -> None:

	performance = resonote.performance.Performance(
		id = "p1",
		display_name = "Take",
		events = [Event(0, 64, ON), Event(10, 64, OFF), Event(20, 60, ON), Event(30, 60, OFF), Event(40, 64, ON), Event(50, 64, OFF)]
	)

	assert performance.pitches() == [64, 60]
	assert performance.duration_ms == 50


def test_record_round_trip_with_annotation () -> None:

	performance = resonote.performance.Performance(
		id = "p1",
		display_name = "Neon Drift",
		events = [Event(0, 60, ON), Event(500, 60, OFF)],
		annotation = resonote.performance.Annotation("Neon Drift", "late-night synth haze")
	)

	record = performance.to_dict()

	assert record["version"] == resonote.performance.RECORD_VERSION
	assert record["data"] == [{"time": 0, "midi": 60, "type": "on"}, {"time": 500, "midi": 60, "type": "off"}]
	assert resonote.performance.Performance.from_dict(record) == performance


def test_record_without_annotation_loads () -> None:

	"""Records written before annotations existed still load."""

	performance = resonote.performance.Performance.from_dict({
		"id": "old",
		"name": "User Mix 1",
		"data": [{"time": 0, "midi": 60, "type": "on"}, {"time": 10, "midi": 60, "type": "off"}],
	})

	assert performance.annotation is None
	assert performance.display_name == "User Mix 1"


def test_export_midi (tmp_path) -> None:

	performance = resonote.performance.Performance(
		id = "p1",
		display_name = "Take",
		events = [Event(0, 60, ON), Event(500, 60, OFF), Event(500, 64, ON), Event(1000, 64, OFF)]
	)

	filename = str(tmp_path / "take.mid")
	resonote.performance.export_midi(performance, filename)

	mid = mido.MidiFile(filename)
	notes = [m for m in mid.tracks[0] if m.type in ("note_on", "note_off")]

	assert mid.ticks_per_beat == 480
	assert [(m.type, m.note, m.time) for m in notes] == [
		("note_on", 60, 0),
		("note_off", 60, 480),
		("note_on", 64, 0),
		("note_off", 64, 480),
	]
