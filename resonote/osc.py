"""OSC control surface.

The bridge listens on a UDP port (default 9000) for control messages and sends
state updates to a target host/port (default 127.0.0.1:9001).

Receive Handlers
────────────────
- ``/note/on <int>``: Press a key
- ``/note/off <int>``: Release a key
- ``/record/toggle``: Start, or stop and save, a recording
- ``/record/pause``: Pause or resume the recording
- ``/play/archive <str>``: Play (or stop) an archived performance by id
- ``/play/library <str>``: Play (or stop) a library motif by id
- ``/compose <str>``: Ask the advisor for a motif and play it

Send Events
───────────
- ``/highlight <int> <0|1>``: A key lit or unlit
- ``/recording <str>``: Recorder state (``idle``, ``armed``, ``paused``)
- ``/playback <str> <str>``: Slot name and playing asset id (``""`` when idle)
- ``/status <str>``: Status message
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import resonote.recorder

if typing.TYPE_CHECKING:
	from resonote.studio import Studio


logger = logging.getLogger(__name__)


class OscBridge:

	"""Async OSC server/client for bi-directional control of a ``Studio``."""

	def __init__ (
		self,
		studio: "Studio",
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._studio = studio
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._server: typing.Optional[typing.Any] = None
		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()
		self._tasks: typing.Set[asyncio.Task] = set()

		self._dispatcher.map("/note/on", self._handle_note_on)
		self._dispatcher.map("/note/off", self._handle_note_off)
		self._dispatcher.map("/record/toggle", self._handle_record_toggle)
		self._dispatcher.map("/record/pause", self._handle_record_pause)
		self._dispatcher.map("/play/archive", self._handle_play_archive)
		self._dispatcher.map("/play/library", self._handle_play_library)
		self._dispatcher.map("/compose", self._handle_compose)

		studio.events.on("highlight", self._send_highlight)
		studio.events.on("recording", self._send_recording)
		studio.events.on("playback", self._send_playback)
		studio.events.on("status", self._send_status)

	async def start (self) -> None:

		"""Start the OSC server and client."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		self._server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await self._server.create_serve_endpoint()
		self._transport = transport

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")

	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")

	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message.  A no-op until started."""

		if self._client:
			try:
				self._client.send_message(address, list(args))
			except Exception as e:
				logger.warning(f"OSC send error: {e}")

	# Outgoing

	def _send_highlight (self, pitch_id: int, on: bool) -> None:
		self.send("/highlight", pitch_id, 1 if on else 0)

	def _send_recording (self, state: resonote.recorder.RecorderState) -> None:
		self.send("/recording", state.value)

	def _send_playback (self, slot: str, asset_id: typing.Optional[str]) -> None:
		self.send("/playback", slot, asset_id or "")

	def _send_status (self, message: str) -> None:
		self.send("/status", message)

	# Incoming

	@staticmethod
	def _pitch (address: str, args: typing.Tuple[typing.Any, ...]) -> typing.Optional[int]:

		if not args:
			logger.warning(f"OSC {address} needs a pitch argument")
			return None

		try:
			return int(args[0])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC pitch argument for {address}: {args[0]}")
			return None

	def _handle_note_on (self, address: str, *args: typing.Any) -> None:
		pitch_id = self._pitch(address, args)
		if pitch_id is not None:
			self._studio.press(pitch_id)

	def _handle_note_off (self, address: str, *args: typing.Any) -> None:
		pitch_id = self._pitch(address, args)
		if pitch_id is not None:
			self._studio.release(pitch_id)

	def _handle_record_toggle (self, address: str, *args: typing.Any) -> None:
		self._studio.toggle_recording()

	def _handle_record_pause (self, address: str, *args: typing.Any) -> None:
		self._studio.toggle_pause()

	def _handle_play_archive (self, address: str, *args: typing.Any) -> None:
		if args:
			self._studio.play_performance(str(args[0]))

	def _handle_play_library (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			self._studio.play_motif(str(args[0]))
		except KeyError as e:
			logger.warning(f"OSC {address}: {e}")

	def _handle_compose (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		task = asyncio.ensure_future(self._studio.compose_and_play(" ".join(str(a) for a in args)))
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
