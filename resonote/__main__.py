"""Command-line entry point: ``python -m resonote`` or ``resonote``.

Plays the studio from the terminal keyboard (and optionally a MIDI keyboard
or OSC) until Ctrl+C.
"""

import argparse
import asyncio
import logging
import signal
import typing

import resonote.clock
import resonote.config
import resonote.display
import resonote.keystroke
import resonote.midi_input
import resonote.osc
import resonote.recorder
import resonote.studio


logger = logging.getLogger(__name__)

#: Seconds between keystroke drains and status-line refreshes.
POLL_INTERVAL = 0.05


async def run_until_stopped (studio: resonote.studio.Studio, config: resonote.config.StudioConfig) -> None:

	"""
	Run the studio's input surfaces until a stop signal is received.
	"""

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	display: typing.Optional[resonote.display.Display] = None

	if config.display_enabled:
		display = resonote.display.Display(studio)
		display.start()

	midi_in = resonote.midi_input.MidiInputSurface(studio, config.midi_input_device)
	midi_in.start()

	osc: typing.Optional[resonote.osc.OscBridge] = None

	if config.osc_enabled:
		osc = resonote.osc.OscBridge(studio, config.osc_receive_port, config.osc_send_port, config.osc_send_host)
		await osc.start()

	listener = resonote.keystroke.KeystrokeListener()
	keyboard = resonote.keystroke.KeyboardSurface(studio)
	listener.start()

	if listener.active:
		keyboard.handle(resonote.keystroke.HELP_KEY)

	logger.info("Resonote running. Press Ctrl+C to stop.")

	try:
		while not stop_event.is_set():

			for key in listener.drain():
				keyboard.handle(key)

			if display is not None and studio.recorder.state is resonote.recorder.RecorderState.ARMED:
				display.update()

			try:
				await asyncio.wait_for(stop_event.wait(), timeout=POLL_INTERVAL)
			except asyncio.TimeoutError:
				pass

	finally:
		listener.stop()
		midi_in.stop()

		if osc is not None:
			await osc.stop()

		studio.close()

		if display is not None:
			display.stop()


def main () -> None:

	"""
	Main entry point for the resonote application.
	"""

	parser = argparse.ArgumentParser(description="Resonote - play, record and replay short note performances")
	parser.add_argument("--config",     type=str, default=None, help="YAML config file")
	parser.add_argument("--midi-input", type=str, default=None, help="MIDI input device name (overrides config)")
	parser.add_argument("--no-display", action="store_true",    help="Disable the terminal status line")
	parser.add_argument("--verbose",    action="store_true",    help="Log at DEBUG level")
	args = parser.parse_args()

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

	config = resonote.config.load_config(args.config)

	if args.midi_input is not None:
		config.midi_input_device = args.midi_input

	if args.no_display:
		config.display_enabled = False

	async def _run () -> None:
		studio = resonote.studio.Studio.from_config(config, resonote.clock.LoopTimeline())
		await run_until_stopped(studio, config)

	asyncio.run(_run())


if __name__ == "__main__":
	main()
