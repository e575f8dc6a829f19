"""Single-keystroke input from the terminal.

:class:`KeystrokeListener` reads individual keystrokes from stdin on a
background thread without requiring Enter.  It works alongside
:class:`resonote.display.Display` without conflicts: the display writes to
**stderr** while this module reads from **stdin**.

:class:`KeyboardSurface` turns those keystrokes into studio actions.  The
home row is a one-octave piano (``a w s e d f t g y h u j k`` → C4..C5).
A terminal reports no key-up, so each tap holds its note for
``KEY_TAP_HOLD_MS``; tapping again while held extends the hold.

**Platform support:** Linux and macOS.  Requires :mod:`tty` and :mod:`termios`.
On unsupported platforms, or when stdin is not a real TTY, the listener starts
in a degraded mode and logs a warning instead of raising.
"""

import asyncio
import logging
import queue
import select
import sys
import threading
import typing

import resonote.constants

if typing.TYPE_CHECKING:
	from resonote.studio import Studio


logger = logging.getLogger(__name__)


#: ``True`` when the current platform supports single-keystroke input.
KEYS_SUPPORTED: bool = False

#: Short human-readable explanation of why keystrokes are not supported, or
#: ``None`` when :data:`KEYS_SUPPORTED` is ``True``.
KEYS_UNAVAILABLE_REASON: typing.Optional[str] = None

try:
	import termios
	import tty

	if not sys.stdin.isatty():
		raise OSError("stdin is not a TTY (running in a pipe or non-interactive context)")

	_fd = sys.stdin.fileno()
	_saved = termios.tcgetattr(_fd)
	termios.tcsetattr(_fd, termios.TCSADRAIN, _saved)

	KEYS_SUPPORTED = True

except ImportError:
	KEYS_UNAVAILABLE_REASON = (
		"The 'tty' and 'termios' modules are not available on this platform. "
		"Keyboard input requires a POSIX operating system (Linux or macOS)."
	)
except OSError as _e:
	KEYS_UNAVAILABLE_REASON = f"Keyboard input requires an interactive terminal (TTY) on stdin. Reason: {_e}"
except Exception as _e:
	KEYS_UNAVAILABLE_REASON = f"Keyboard input unavailable: {_e}"


#: Computer-keyboard piano layout, lower row white keys and upper row black keys.
PIANO_KEYS: typing.Dict[str, int] = {
	"a": 60, "w": 61, "s": 62, "e": 63, "d": 64, "f": 65, "t": 66,
	"g": 67, "y": 68, "h": 69, "u": 70, "j": 71, "k": 72,
}

HELP_KEY = "?"

_HELP_LINES = [
	"Keys:",
	"  a w s e d f t g y h u j k  play C4..C5",
	"  r                          start / stop-and-save recording",
	"  p                          pause / resume recording",
	"  1-9                        play (or stop) the Nth archived performance",
	"  n                          name the newest performance with the advisor",
	"  l                          list archived performances",
	"  ?                          this help",
]


class KeystrokeListener:

	"""Background daemon thread that reads single keystrokes from stdin.

	Keystrokes are placed in a thread-safe queue and retrieved with
	:meth:`drain`.  Terminal settings are always restored on shutdown.

	If :data:`KEYS_SUPPORTED` is ``False``, :meth:`start` logs a warning and
	returns without starting the thread.  All other methods remain safe no-ops.
	"""

	def __init__ (self) -> None:

		self._queue: queue.Queue[str] = queue.Queue()
		self._thread: typing.Optional[threading.Thread] = None
		self._running: bool = False

		#: ``True`` after a successful :meth:`start` on a supported platform.
		self.active: bool = False

	def start (self) -> None:

		"""Put stdin into cbreak mode and start reading.  A second call is a no-op."""

		if self._running:
			return

		if not KEYS_SUPPORTED:
			logger.warning(f"Keyboard input is not available and will be disabled. {KEYS_UNAVAILABLE_REASON}")
			return

		self._running = True
		self.active = True
		self._thread = threading.Thread(
			target = self._listen,
			name   = "resonote-keystroke-listener",
			daemon = True,
		)
		self._thread.start()

	def stop (self) -> None:

		"""Signal the listener to stop.  The thread exits within one poll interval."""

		self._running = False
		self.active = False

	def drain (self) -> typing.List[str]:

		"""Return all keystrokes that have arrived since the last drain.  Non-blocking."""

		keys: typing.List[str] = []

		while True:
			try:
				keys.append(self._queue.get_nowait())
			except queue.Empty:
				break

		return keys

	def _listen (self) -> None:

		"""Thread target.  Runs until ``_running`` is cleared."""

		fd = sys.stdin.fileno()
		old_settings = termios.tcgetattr(fd)

		try:
			# cbreak rather than raw so Ctrl+C still raises SIGINT.
			tty.setcbreak(fd)

			while self._running:
				ready, _, _ = select.select([sys.stdin], [], [], 0.1)
				if ready:
					char = sys.stdin.read(1)
					if char:
						self._queue.put(char)

		except Exception:
			logger.exception("Keystroke listener failed")

		finally:
			termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
			self.active = False


class KeyboardSurface:

	"""
	Maps terminal keystrokes onto a ``Studio``.
	"""

	def __init__ (self, studio: "Studio", hold_ms: float = resonote.constants.KEY_TAP_HOLD_MS) -> None:

		"""Parameters:
			studio: The studio to drive.
			hold_ms: How long a tapped piano key stays down.
		"""

		self._studio = studio
		self._hold_ms = hold_ms

		# Latest hold token per pitch; an older release timer finding a newer token does nothing.
		self._hold_tokens: typing.Dict[int, object] = {}
		self._tasks: typing.Set[asyncio.Task] = set()

	def handle (self, key: str) -> None:

		"""Perform the action bound to ``key``.  Unbound keys are ignored."""

		key = key.lower()

		if key in PIANO_KEYS:
			self.tap(PIANO_KEYS[key])

		elif key == "r":
			self._studio.toggle_recording()

		elif key == "p":
			self._studio.toggle_pause()

		elif key.isdigit() and key != "0":
			self._play_nth(int(key))

		elif key == "n":
			self._annotate_newest()

		elif key == "l":
			self.list_performances()

		elif key == HELP_KEY:
			for line in _HELP_LINES:
				logger.info(line)

	def tap (self, pitch_id: int) -> None:

		"""Press ``pitch_id`` and release it after the hold time."""

		self._studio.press(pitch_id)

		token = object()
		self._hold_tokens[pitch_id] = token

		def release () -> None:
			del self._hold_tokens[pitch_id]
			self._studio.release(pitch_id)

		self._studio.timeline.call_later(
			self._hold_ms,
			release,
			guard = lambda: self._hold_tokens.get(pitch_id) is token
		)

	def _play_nth (self, n: int) -> None:

		performances = self._studio.performances()

		if n > len(performances):
			self._studio.status(f"No performance #{n}")
			return

		self._studio.play_performance(performances[n - 1].id)

	def _annotate_newest (self) -> None:

		performances = self._studio.performances()

		if not performances:
			self._studio.status("Nothing recorded yet")
			return

		task = asyncio.ensure_future(self._studio.annotate(performances[-1].id))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)

	def list_performances (self) -> None:

		"""Log the archive, numbered as the digit keys address it."""

		performances = self._studio.performances()

		if not performances:
			logger.info("Archive is empty")
			return

		for n, performance in enumerate(performances, 1):
			mood = f" - {performance.annotation.mood}" if performance.annotation else ""
			logger.info(f"{n}. {performance.display_name} ({performance.duration_ms / 1000:.1f}s){mood}")
