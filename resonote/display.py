"""Live terminal status line.

Shows the recorder state and live elapsed time, what each playback slot is
playing, the last manually played note and the most recent status message.
Log messages scroll above the status line without disruption.

The status line looks like::

	REC 00:07  Library: SuperMarioJump  Archive: -  Note: C4  Saved User Mix 2
"""

import logging
import sys
import typing

import resonote.constants
import resonote.recorder

if typing.TYPE_CHECKING:
	from resonote.studio import Studio


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the status line around log output.

	Installed by ``Display.start()`` and removed by ``Display.stop()``.
	"""

	def __init__ (self, display: "Display") -> None:

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		"""Clear the status line, write the log message, then redraw."""

		try:
			self._display.clear_line()

			msg = self.format(record)
			sys.stderr.write(msg + "\n")
			sys.stderr.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


def format_elapsed (elapsed_ms: float) -> str:

	"""Format milliseconds as ``MM:SS``, e.g. 7300 → ``"00:07"``."""

	seconds = int(max(0.0, elapsed_ms) // 1000)
	return f"{seconds // 60:02d}:{seconds % 60:02d}"


class Display:

	"""Persistent one-line dashboard on stderr reflecting ``Studio`` state.

	Example:
		```python
		display = Display(studio)
		display.start()
		...
		display.stop()
		```
	"""

	def __init__ (self, studio: "Studio") -> None:

		"""Subscribe to the studio's events.

		Parameters:
			studio: The ``Studio`` instance to read state from.
		"""

		self._studio = studio
		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line: str = ""
		self._last_note: typing.Optional[int] = None

		studio.events.on("note", self._on_note)
		studio.events.on("status", self._on_change)
		studio.events.on("recording", self._on_change)
		studio.events.on("playback", self._on_change)

	def _on_note (self, pitch_id: int) -> None:

		self._last_note = pitch_id
		self.update()

	def _on_change (self, *_: typing.Any) -> None:

		self.update()

	def start (self) -> None:

		"""Install the log handler and activate the display.

		Existing root logger handlers are saved and restored by ``stop()``.
		"""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)
		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

		self.update()

	def stop (self) -> None:

		"""Clear the status line and restore original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def update (self) -> None:

		"""Rebuild and redraw the status line.

		Called on studio events and periodically while recording so the
		elapsed time keeps ticking.
		"""

		if not self._active:
			return

		self._last_line = self._format_status()
		self.draw()

	def draw (self) -> None:

		"""Write the current status line to the terminal."""

		if not self._active or not self._last_line:
			return

		sys.stderr.write(f"\r\033[K{self._last_line}")
		sys.stderr.flush()

	def clear_line (self) -> None:

		"""Erase the status line."""

		if not self._active:
			return

		sys.stderr.write("\r\033[K")
		sys.stderr.flush()

	def _format_status (self) -> str:

		"""Build the status string from current studio state."""

		parts: typing.List[str] = []
		studio = self._studio
		recorder = studio.recorder

		if recorder.state is resonote.recorder.RecorderState.ARMED:
			parts.append(f"REC {format_elapsed(recorder.live_elapsed_ms())}")
		elif recorder.state is resonote.recorder.RecorderState.PAUSED:
			parts.append(f"PAUSED {format_elapsed(recorder.live_elapsed_ms())}")
		else:
			parts.append("IDLE")

		for name, slot in studio.slots.items():
			parts.append(f"{name.title()}: {slot.active_asset_id or '-'}")

		if self._last_note is not None:
			parts.append(f"Note: {resonote.constants.note_name(self._last_note)}")

		if studio.last_status:
			parts.append(studio.last_status)

		return "  ".join(parts)
