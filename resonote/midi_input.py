"""Hardware MIDI keyboard input.

Note messages arrive on mido's callback thread and are forwarded to the
asyncio event loop with ``call_soon_threadsafe``, so every studio call happens
on the loop thread.  A ``note_on`` with velocity 0 is treated as a release.
"""

import asyncio
import logging
import typing

import mido

if typing.TYPE_CHECKING:
	from resonote.studio import Studio


logger = logging.getLogger(__name__)


def select_input_device (device_name: typing.Optional[str] = None, callback: typing.Optional[typing.Callable] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""Open a MIDI input port.

	Returns ``(None, None)`` when ``device_name`` is None (input is optional).
	If the exact name is not found, falls back to the first available input
	and logs a warning.

	Returns:
		A tuple of (device_name, midi_in_object) or (None, None) on failure.
	"""

	if device_name is None:
		return None, None

	try:
		inputs = mido.get_input_names()
		logger.info(f"Available MIDI inputs: {inputs}")

		target = device_name

		if target not in inputs:
			logger.warning(f"MIDI input device '{target}' not found.")
			if inputs:
				target = inputs[0]
				logger.warning(f"Fallback to: {target}")
			else:
				return None, None

		midi_in = mido.open_input(target, callback=callback)
		logger.info(f"Opened MIDI input: {target}")
		return target, midi_in

	except Exception as e:
		logger.error(f"Failed to open MIDI input: {e}")
		return None, None


class MidiInputSurface:

	"""
	Plays the studio from an external MIDI keyboard.
	"""

	def __init__ (self, studio: "Studio", device_name: typing.Optional[str] = None) -> None:

		self._studio = studio
		self.device_name = device_name
		self._port: typing.Optional[typing.Any] = None
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None

	@property
	def open (self) -> bool:

		"""True while a port is open."""

		return self._port is not None

	def start (self) -> bool:

		"""Open the port.  Must be called from the running event loop."""

		self._loop = asyncio.get_running_loop()

		name, port = select_input_device(self.device_name, self._on_midi_input)

		if name is None:
			return False

		self.device_name = name
		self._port = port
		return True

	def stop (self) -> None:

		"""Close the port if open."""

		if self._port is not None:
			self._port.close()
			self._port = None
			logger.info(f"Closed MIDI input: {self.device_name}")

	def _on_midi_input (self, message: typing.Any) -> None:

		"""Runs on mido's callback thread."""

		if self._loop is None:
			return

		self._loop.call_soon_threadsafe(self.handle_message, message)

	def handle_message (self, message: typing.Any) -> None:

		"""Apply one MIDI message on the loop thread."""

		if message.type == "note_on" and message.velocity > 0:
			self._studio.press(message.note)

		elif message.type == "note_off" or (message.type == "note_on" and message.velocity == 0):
			self._studio.release(message.note)
