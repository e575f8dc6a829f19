"""Recorded performances and their event logs.

A :class:`Performance` is an ordered list of :class:`PerformanceEvent` -
``(offset_ms, pitch_id, kind)`` triples where the offset counts live
(non-paused) milliseconds since recording began.

Stored performances always satisfy one rule: every ``OFF`` closes an earlier
``ON`` of the same pitch, and every ``ON`` is eventually closed.
:func:`normalize_events` enforces it and is applied on every archive write.
"""

import dataclasses
import enum
import logging
import typing

import mido


logger = logging.getLogger(__name__)

#: Version written into serialized performance records.
RECORD_VERSION = 1


class EventKind (enum.Enum):

	"""Direction of a note transition."""

	ON = "on"
	OFF = "off"


@dataclasses.dataclass (frozen=True)
class PerformanceEvent:

	"""
	A single note transition at an offset from the start of a recording.
	"""

	offset_ms: int
	pitch_id: int
	kind: EventKind

	def __post_init__ (self) -> None:

		"""Reject negative offsets."""

		if self.offset_ms < 0:
			raise ValueError(f"Event offset must be non-negative, got {self.offset_ms}")

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Serialize as ``{"time", "midi", "type"}``."""

		return {"time": self.offset_ms, "midi": self.pitch_id, "type": self.kind.value}

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "PerformanceEvent":

		"""Inverse of :meth:`to_dict`."""

		return cls(offset_ms=int(data["time"]), pitch_id=int(data["midi"]), kind=EventKind(data["type"]))


@dataclasses.dataclass (frozen=True)
class Annotation:

	"""Advisor-supplied title and mood for a performance."""

	title: str
	mood: str


@dataclasses.dataclass
class Performance:

	"""
	A finalized recording as held by the archive.
	"""

	id: str
	display_name: str
	events: typing.List[PerformanceEvent]
	annotation: typing.Optional[Annotation] = None

	@property
	def duration_ms (self) -> int:

		"""Offset of the last event (0 for an empty log)."""

		return self.events[-1].offset_ms if self.events else 0

	def pitches (self) -> typing.List[int]:

		"""Distinct pitches played, in order of first ``ON``."""

		seen: typing.List[int] = []

		for event in self.events:
			if event.kind is EventKind.ON and event.pitch_id not in seen:
				seen.append(event.pitch_id)

		return seen

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Serialize to a versioned, JSON-compatible record."""

		return {
			"version": RECORD_VERSION,
			"id": self.id,
			"name": self.display_name,
			"data": [event.to_dict() for event in self.events],
			"annotation": dataclasses.asdict(self.annotation) if self.annotation else None,
		}

	@classmethod
	def from_dict (cls, data: typing.Dict[str, typing.Any]) -> "Performance":

		"""Load a record written by :meth:`to_dict`.

		Records without ``annotation`` or ``version`` (older archives) load with
		no annotation.
		"""

		annotation_data = data.get("annotation")

		return cls(
			id = str(data["id"]),
			display_name = str(data.get("name", "")),
			events = [PerformanceEvent.from_dict(e) for e in data.get("data", [])],
			annotation = Annotation(**annotation_data) if annotation_data else None,
		)


def normalize_events (events: typing.Iterable[PerformanceEvent]) -> typing.List[PerformanceEvent]:

	"""Drop transitions that do not form complete ON/OFF pairs.

	- An ``OFF`` with no open ``ON`` for its pitch is dropped.
	- A second ``ON`` for a pitch that is already open is dropped.
	- An ``ON`` never closed before the log ends is dropped.

	Order of the surviving events is preserved.
	"""

	kept: typing.List[typing.Optional[PerformanceEvent]] = []
	open_at: typing.Dict[int, int] = {}

	for event in events:

		if event.kind is EventKind.ON:
			if event.pitch_id in open_at:
				continue
			open_at[event.pitch_id] = len(kept)
			kept.append(event)

		else:
			if event.pitch_id not in open_at:
				continue
			del open_at[event.pitch_id]
			kept.append(event)

	for index in open_at.values():
		kept[index] = None

	result = [event for event in kept if event is not None]

	dropped = len(open_at)
	if dropped:
		logger.debug(f"Dropped {dropped} unmatched note-on event(s)")

	return result


def paired_on_indices (events: typing.Sequence[PerformanceEvent]) -> typing.Set[int]:

	"""Indices of ``ON`` events that a later ``OFF`` of the same pitch closes."""

	paired: typing.Set[int] = set()
	open_at: typing.Dict[int, int] = {}

	for index, event in enumerate(events):

		if event.kind is EventKind.ON:
			open_at[event.pitch_id] = index

		elif event.pitch_id in open_at:
			paired.add(open_at.pop(event.pitch_id))

	return paired


def export_midi (performance: Performance, filename: str, bpm: float = 120.0, velocity: int = 100) -> None:

	"""Write ``performance`` to a standard MIDI file.

	The file is Type 1 at 480 ticks per beat with a single tempo event, so
	offsets in milliseconds map to ticks through ``bpm``.
	"""

	mid = mido.MidiFile(type=1)
	mid.ticks_per_beat = 480
	track = mido.MidiTrack()
	mid.tracks.append(track)

	tempo = mido.bpm2tempo(bpm)
	track.append(mido.MetaMessage('set_tempo', tempo=tempo, time=0))
	track.append(mido.MetaMessage('track_name', name=performance.display_name, time=0))

	last_tick = 0

	for event in normalize_events(performance.events):

		tick = int(round(mido.second2tick(event.offset_ms / 1000.0, mid.ticks_per_beat, tempo)))
		message_type = 'note_on' if event.kind is EventKind.ON else 'note_off'

		track.append(mido.Message(
			message_type,
			note = event.pitch_id,
			velocity = velocity if event.kind is EventKind.ON else 0,
			time = max(0, tick - last_tick)
		))

		last_tick = tick

	mid.save(filename)
	logger.info(f"Exported {performance.display_name!r} to {filename}")
