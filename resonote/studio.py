"""The engine context.

:class:`Studio` owns every piece of engine state: the timeline, the audio
output, the voice registry, the recorder, two playback slots, the archive,
the motif catalog and the advisor.  Nothing in the engine is global.
Input surfaces (terminal, MIDI, OSC) call into a ``Studio`` and listen to
its events:

- ``"highlight"`` ``(pitch_id, on)`` - light or unlight a key.
- ``"note"`` ``(pitch_id)`` - a key was pressed manually.
- ``"status"`` ``(message)`` - a short user-facing message.
- ``"recording"`` ``(RecorderState)`` - recorder state changed.
- ``"saved"`` ``(Performance)`` - a recording was archived.
- ``"playback"`` ``(slot_name, asset_id or None)`` - a slot started or went idle.

Example::

	studio = Studio(resonote.clock.LoopTimeline())
	studio.press(60)
	studio.release(60)
	studio.play_motif("SuperMarioJump")
"""

import logging
import typing

import resonote.advisor
import resonote.archive
import resonote.catalog
import resonote.clock
import resonote.config
import resonote.constants
import resonote.event_emitter
import resonote.performance
import resonote.playback
import resonote.recorder
import resonote.synth
import resonote.voices


logger = logging.getLogger(__name__)

LIBRARY_SLOT = "library"
ARCHIVE_SLOT = "archive"

#: Asset id used for advisor-composed motifs in the library slot.
COMPOSED_ASSET_ID = "ai_gen"


class Studio:

	"""
	Top-level controller wiring the engine components together.
	"""

	def __init__ (
		self,
		timeline: resonote.clock.Timeline,
		output: typing.Optional[resonote.synth.AudioOutput] = None,
		archive: typing.Optional[resonote.archive.ArchiveStore] = None,
		catalog: typing.Optional[resonote.catalog.Catalog] = None,
		advisor: typing.Optional[resonote.advisor.AdvisorBridge] = None
	) -> None:

		"""Build a studio.  Omitted collaborators get in-process defaults.

		Parameters:
			timeline: The single timeline every component schedules on.
			output: Audio output; a default :class:`~resonote.synth.AudioOutput` when omitted.
			archive: Performance store; a :class:`~resonote.archive.MemoryArchive` when omitted.
			catalog: Motif library; the built-in library when omitted.
			advisor: Advisor bridge; an unconfigured one (always unavailable) when omitted.
		"""

		self.timeline = timeline
		self.output = output if output is not None else resonote.synth.AudioOutput()
		self.archive: resonote.archive.ArchiveStore = archive if archive is not None else resonote.archive.MemoryArchive()
		self.catalog = catalog if catalog is not None else resonote.catalog.Catalog()
		self.advisor = advisor if advisor is not None else resonote.advisor.AdvisorBridge()

		self.events = resonote.event_emitter.EventEmitter()

		self.synth = resonote.synth.ToneSynthesizer(self.output, self.timeline)
		self.registry = resonote.voices.VoiceRegistry(self.synth)
		self.recorder = resonote.recorder.PerformanceRecorder(self.timeline, self.archive)

		self.slots: typing.Dict[str, resonote.playback.PlaybackScheduler] = {
			name: resonote.playback.PlaybackScheduler(self.synth, self.timeline, on_highlight=self._highlight, name=name)
			for name in (LIBRARY_SLOT, ARCHIVE_SLOT)
		}

		# The recorder observes first so the captured offset is taken before any UI work.
		self.registry.on_transition(self.recorder.on_voice_transition)
		self.registry.on_transition(self._on_manual_transition)

		self.recorder.events.on("state", lambda state: self.events.emit("recording", state))
		self.recorder.events.on("saved", lambda performance: self.events.emit("saved", performance))

		for name, slot in self.slots.items():
			slot.events.on("state", lambda asset_id, name=name: self.events.emit("playback", name, asset_id))

		self.last_status: str = ""

	@classmethod
	def from_config (cls, config: resonote.config.StudioConfig, timeline: resonote.clock.Timeline) -> "Studio":

		"""Build a studio from a resolved :class:`~resonote.config.StudioConfig`."""

		archive: resonote.archive.ArchiveStore

		if config.archive_path:
			archive = resonote.archive.JsonArchive(config.archive_path)
		else:
			archive = resonote.archive.MemoryArchive()

		return cls(
			timeline = timeline,
			output = resonote.synth.AudioOutput(sample_rate=config.sample_rate, block_size=config.block_size),
			archive = archive,
			advisor = resonote.advisor.AdvisorBridge(
				api_key = config.advisor_api_key,
				model = config.advisor_model,
				timeout = config.advisor_timeout
			)
		)

	@property
	def library (self) -> resonote.playback.PlaybackScheduler:

		"""Playback slot for catalog and composed motifs."""

		return self.slots[LIBRARY_SLOT]

	@property
	def player (self) -> resonote.playback.PlaybackScheduler:

		"""Playback slot for archived performances."""

		return self.slots[ARCHIVE_SLOT]

	# ------------------------------------------------------------------
	# Internal wiring
	# ------------------------------------------------------------------

	def _highlight (self, pitch_id: int, on: bool) -> None:

		self.events.emit("highlight", pitch_id, on)

	def _on_manual_transition (self, pitch_id: int, kind: resonote.performance.EventKind) -> None:

		on = kind is resonote.performance.EventKind.ON
		self._highlight(pitch_id, on)

		if on:
			self.events.emit("note", pitch_id)

	def status (self, message: str) -> None:

		"""Publish a user-facing status message."""

		self.last_status = message
		logger.info(message)
		self.events.emit("status", message)

	# ------------------------------------------------------------------
	# Manual playing
	# ------------------------------------------------------------------

	def press (self, pitch_id: int) -> bool:

		"""Key down.  Returns False when the pitch was already held."""

		return self.registry.trigger(pitch_id)

	def release (self, pitch_id: int) -> bool:

		"""Key up.  Returns False when the pitch was not held."""

		return self.registry.release(pitch_id)

	def release_all (self) -> None:

		"""Release every held key."""

		self.registry.release_all()

	# ------------------------------------------------------------------
	# Recording
	# ------------------------------------------------------------------

	def start_recording (self) -> bool:

		"""Open a recording session."""

		return self.recorder.start()

	def stop_recording (self) -> typing.Optional[resonote.performance.Performance]:

		"""Close the session and archive it (when anything was captured)."""

		performance = self.recorder.stop()

		if performance is not None:
			self.status(f"Saved {performance.display_name}")

		return performance

	def toggle_recording (self) -> resonote.recorder.RecorderState:

		"""REC / SAVE button: start when idle, otherwise stop and save."""

		if self.recorder.armed:
			self.stop_recording()
		else:
			self.start_recording()

		return self.recorder.state

	def toggle_pause (self) -> resonote.recorder.RecorderState:

		"""PAUSE / RESUME button."""

		self.recorder.toggle_pause()
		return self.recorder.state

	# ------------------------------------------------------------------
	# Playback
	# ------------------------------------------------------------------

	def play_performance (self, performance_id: str) -> typing.Optional[resonote.playback.PlaybackResult]:

		"""Play (or toggle off) an archived performance in the archive slot."""

		performance = self.archive.get(performance_id)

		if performance is None:
			self.status(f"No archived performance {performance_id!r}")
			return None

		return self.player.play(performance.id, performance.events, resonote.constants.PERFORMANCE_NOTE_MS)

	def play_motif (self, motif_id: str) -> resonote.playback.PlaybackResult:

		"""Play (or toggle off) a catalog motif in the library slot."""

		motif = self.catalog.get(motif_id)
		return self.play_offsets(motif.motif_id, motif.offsets)

	def play_offsets (self, asset_id: str, offsets: typing.Sequence[int]) -> resonote.playback.PlaybackResult:

		"""Play (or toggle off) a bare motif in the library slot."""

		return self.library.play(asset_id, resonote.playback.motif_events(offsets), resonote.constants.MOTIF_NOTE_MS)

	def stop_playback (self) -> None:

		"""Stop both playback slots."""

		for slot in self.slots.values():
			slot.stop()

	# ------------------------------------------------------------------
	# Advisor flows
	# ------------------------------------------------------------------

	async def compose_and_play (self, prompt: str) -> typing.Optional[typing.List[int]]:

		"""Ask the advisor for a motif matching ``prompt`` and play it.

		Returns the offsets, or ``None`` when the prompt is blank or the advisor
		is unavailable (a status message is published and nothing plays).
		"""

		if not prompt.strip():
			return None

		self.status("Composing...")

		try:
			offsets = await self.advisor.compose(prompt)

		except resonote.advisor.AdvisorUnavailable as e:
			logger.warning(f"Compose failed: {e}")
			self.status("AI error. Try another vibe!")
			return None

		# A new composition always starts, even if the previous one is still playing.
		self.library.stop(COMPOSED_ASSET_ID)
		self.play_offsets(COMPOSED_ASSET_ID, offsets)

		return offsets

	async def annotate (self, performance_id: str) -> typing.Optional[resonote.performance.Annotation]:

		"""Ask the advisor to name an archived performance.

		On success the annotation is stored and the title becomes the display
		name.  On failure the stored performance is left exactly as it was.
		"""

		performance = self.archive.get(performance_id)

		if performance is None:
			self.status(f"No archived performance {performance_id!r}")
			return None

		self.status("AI vibe-checking...")

		try:
			annotation = await self.advisor.describe(performance.pitches())

		except resonote.advisor.AdvisorUnavailable as e:
			logger.warning(f"Describe failed for {performance.display_name!r}: {e}")
			self.status("AI unavailable - performance left unchanged")
			return None

		self.archive.update(performance_id, display_name=annotation.title, annotation=annotation)
		self.status(f"{annotation.title}: {annotation.mood}")

		return annotation

	# ------------------------------------------------------------------
	# Archive management
	# ------------------------------------------------------------------

	def performances (self) -> typing.List[resonote.performance.Performance]:

		"""Archived performances in insertion order."""

		return self.archive.list()

	def delete_performance (self, performance_id: str) -> None:

		"""Delete an archived performance, stopping it first if it is playing."""

		self.player.stop(performance_id)
		self.archive.delete(performance_id)

	def rename_performance (self, performance_id: str, display_name: str) -> None:

		"""Change the display name of an archived performance."""

		self.archive.update(performance_id, display_name=display_name)

	def export_performance (self, performance_id: str, filename: str) -> bool:

		"""Write an archived performance to a MIDI file.  Returns False if it does not exist."""

		performance = self.archive.get(performance_id)

		if performance is None:
			return False

		resonote.performance.export_midi(performance, filename)
		return True

	# ------------------------------------------------------------------
	# Shutdown
	# ------------------------------------------------------------------

	def close (self) -> None:

		"""Stop everything and release the audio device."""

		if self.recorder.armed:
			self.stop_recording()

		self.stop_playback()
		self.release_all()
		self.synth.stop_all()
		self.output.close()
