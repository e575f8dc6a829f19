import asyncio
import typing

import pytest

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import resonote.osc
import resonote.recorder
import resonote.studio


async def _start_bridge (studio: resonote.studio.Studio, send_port: int = 0) -> typing.Tuple[resonote.osc.OscBridge, pythonosc.udp_client.SimpleUDPClient]:

	"""Start a bridge on an ephemeral port and return it with a client aimed at it."""

	bridge = resonote.osc.OscBridge(studio, receive_port=0, send_port=send_port)
	await bridge.start()

	port = bridge._transport.get_extra_info("sockname")[1]  # type: ignore[union-attr]
	client = pythonosc.udp_client.SimpleUDPClient("127.0.0.1", port)

	return bridge, client


@pytest.mark.asyncio
async def test_osc_note_handlers (studio: resonote.studio.Studio) -> None:

	"""/note/on and /note/off should press and release keys."""

	bridge, client = await _start_bridge(studio)

	client.send_message("/note/on", 60)
	await asyncio.sleep(0.1)
	assert studio.registry.is_held(60)

	client.send_message("/note/off", 60)
	await asyncio.sleep(0.1)
	assert not studio.registry.is_held(60)

	await bridge.stop()


@pytest.mark.asyncio
async def test_osc_record_handlers (studio: resonote.studio.Studio) -> None:

	bridge, client = await _start_bridge(studio)

	client.send_message("/record/toggle", [])
	await asyncio.sleep(0.1)
	assert studio.recorder.state is resonote.recorder.RecorderState.ARMED

	client.send_message("/record/pause", [])
	await asyncio.sleep(0.1)
	assert studio.recorder.state is resonote.recorder.RecorderState.PAUSED

	await bridge.stop()


@pytest.mark.asyncio
async def test_osc_play_library (studio: resonote.studio.Studio) -> None:

	bridge, client = await _start_bridge(studio)

	client.send_message("/play/library", "SonicRing")
	await asyncio.sleep(0.1)
	assert studio.library.active_asset_id == "SonicRing"

	client.send_message("/play/library", "NoSuchMotif")
	await asyncio.sleep(0.1)
	assert studio.library.active_asset_id == "SonicRing"

	await bridge.stop()


@pytest.mark.asyncio
async def test_osc_invalid_pitch_is_ignored (studio: resonote.studio.Studio, caplog: pytest.LogCaptureFixture) -> None:

	bridge, client = await _start_bridge(studio)

	client.send_message("/note/on", "high")
	await asyncio.sleep(0.1)

	assert studio.registry.held_pitches == []
	assert "Invalid OSC pitch" in caplog.text

	await bridge.stop()


@pytest.mark.asyncio
async def test_osc_state_broadcasting (studio: resonote.studio.Studio) -> None:

	"""Highlights and recorder state are sent to the configured target."""

	received: typing.List[typing.Tuple[str, typing.Tuple[typing.Any, ...]]] = []

	def handle (address: str, *args: typing.Any) -> None:
		received.append((address, args))

	dispatcher = pythonosc.dispatcher.Dispatcher()
	dispatcher.map("/highlight", handle)
	dispatcher.map("/recording", handle)

	loop = asyncio.get_running_loop()
	recv_server = pythonosc.osc_server.AsyncIOOSCUDPServer(("127.0.0.1", 0), dispatcher, loop)
	transport, _ = await recv_server.create_serve_endpoint()
	recv_port = transport.get_extra_info("sockname")[1]

	bridge, _ = await _start_bridge(studio, send_port=recv_port)

	studio.toggle_recording()
	studio.press(64)
	await asyncio.sleep(0.1)

	assert ("/recording", ("armed",)) in received
	assert ("/highlight", (64, 1)) in received

	await bridge.stop()
	transport.close()
