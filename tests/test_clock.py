import asyncio
import math

import pytest

import resonote.clock


def test_actions_fire_in_due_order () -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[str] = []

	timeline.call_later(300, lambda: fired.append("c"))
	timeline.call_later(100, lambda: fired.append("a"))
	timeline.call_later(200, lambda: fired.append("b"))

	timeline.advance(250)

	assert fired == ["a", "b"]
	assert timeline.now_ms() == 250

	timeline.advance(50)

	assert fired == ["a", "b", "c"]


def test_equal_deadlines_fire_in_schedule_order () -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[int] = []

	for i in range(5):
		timeline.call_later(100, lambda i=i: fired.append(i))

	timeline.advance(100)

	assert fired == [0, 1, 2, 3, 4]


def test_now_reads_due_time_inside_action () -> None:

	"""While an action runs, now_ms() is its due time, not the advance target."""

	timeline = resonote.clock.VirtualTimeline()
	seen: list[float] = []

	timeline.call_later(40, lambda: seen.append(timeline.now_ms()))
	timeline.advance(1000)

	assert seen == [40]


def test_guard_false_skips_action () -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[str] = []
	live = {"value": True}

	timeline.call_later(10, lambda: fired.append("x"), guard=lambda: live["value"])
	live["value"] = False
	timeline.advance(10)

	assert fired == []
	assert timeline.pending == 0


def test_actions_scheduled_while_firing_are_picked_up () -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[float] = []

	def first () -> None:
		fired.append(timeline.now_ms())
		timeline.call_later(20, lambda: fired.append(timeline.now_ms()))

	timeline.call_later(10, first)
	timeline.advance(50)

	assert fired == [10, 30]


def test_failing_action_is_logged_and_others_run (caplog: pytest.LogCaptureFixture) -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[str] = []

	def broken () -> None:
		raise RuntimeError("kaput")

	timeline.call_later(5, broken)
	timeline.call_later(5, lambda: fired.append("ok"))
	timeline.advance(5)

	assert fired == ["ok"]
	assert "kaput" in caplog.text


def test_negative_delay_rejected () -> None:

	timeline = resonote.clock.VirtualTimeline()

	with pytest.raises(ValueError):
		timeline.call_later(-1, lambda: None)

	with pytest.raises(ValueError):
		timeline.call_later(math.nan, lambda: None)


def test_cannot_move_backwards () -> None:

	timeline = resonote.clock.VirtualTimeline(start_ms=100)

	with pytest.raises(ValueError):
		timeline.advance_to(50)


def test_run_until_idle () -> None:

	timeline = resonote.clock.VirtualTimeline()
	fired: list[int] = []

	timeline.call_later(1000, lambda: fired.append(1))
	timeline.call_later(5000, lambda: fired.append(2))
	timeline.run_until_idle()

	assert fired == [1, 2]
	assert timeline.now_ms() == 5000
	assert timeline.pending == 0


@pytest.mark.asyncio
async def test_loop_timeline_runs_on_event_loop () -> None:

	timeline = resonote.clock.LoopTimeline()
	done = asyncio.Event()
	skipped: list[str] = []

	timeline.call_later(10, done.set)
	timeline.call_later(10, lambda: skipped.append("x"), guard=lambda: False)

	await asyncio.wait_for(done.wait(), timeout=1.0)
	await asyncio.sleep(0.02)

	assert skipped == []
	assert timeline.now_ms() >= 10
