import pytest

import resonote.event_emitter


def test_on_and_emit () -> None:

	"""Registered callbacks are called synchronously on emit."""

	emitter = resonote.event_emitter.EventEmitter()
	received: list[int] = []

	emitter.on("tick", lambda v: received.append(v))
	emitter.emit("tick", 42)

	assert received == [42]


def test_callbacks_run_in_registration_order () -> None:

	emitter = resonote.event_emitter.EventEmitter()
	order: list[str] = []

	emitter.on("tick", lambda: order.append("first"))
	emitter.on("tick", lambda: order.append("second"))
	emitter.emit("tick")

	assert order == ["first", "second"]


def test_off_removes_callback () -> None:

	"""off() prevents a previously registered callback from being called."""

	emitter = resonote.event_emitter.EventEmitter()
	received: list[int] = []

	def cb (v: int) -> None:
		received.append(v)

	emitter.on("tick", cb)
	emitter.off("tick", cb)
	emitter.emit("tick", 1)

	assert received == []
	assert emitter.listener_count("tick") == 0


def test_off_raises_for_unregistered_callback () -> None:

	emitter = resonote.event_emitter.EventEmitter()

	with pytest.raises(ValueError):
		emitter.off("tick", lambda: None)


def test_coroutine_listener_rejected () -> None:

	emitter = resonote.event_emitter.EventEmitter()

	async def cb () -> None:
		pass

	with pytest.raises(ValueError):
		emitter.on("tick", cb)


def test_failing_listener_does_not_stop_others (caplog: pytest.LogCaptureFixture) -> None:

	"""An exception in one listener is logged and the rest still run."""

	emitter = resonote.event_emitter.EventEmitter()
	received: list[int] = []

	def broken (v: int) -> None:
		raise RuntimeError("boom")

	emitter.on("tick", broken)
	emitter.on("tick", lambda v: received.append(v))
	emitter.emit("tick", 3)

	assert received == [3]
	assert "boom" in caplog.text


def test_listener_may_unregister_itself () -> None:

	emitter = resonote.event_emitter.EventEmitter()
	calls: list[int] = []

	def once (v: int) -> None:
		calls.append(v)
		emitter.off("tick", once)

	emitter.on("tick", once)
	emitter.emit("tick", 1)
	emitter.emit("tick", 2)

	assert calls == [1]
