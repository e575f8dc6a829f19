import asyncio
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named-event observer registry shared by the engine components.

	Listeners run synchronously, in registration order, inside the transition
	that emitted them.  A failing listener is logged and skipped so that one
	broken observer (a display, an OSC client) never blocks a note transition.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty listener registry.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		if asyncio.iscoroutinefunction(callback):
			raise ValueError(f"Listener for {event_name!r} must be a plain function, not a coroutine")

		self._listeners.setdefault(event_name, []).append(callback)


	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if event_name not in self._listeners or callback not in self._listeners[event_name]:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def listener_count (self, event_name: str) -> int:

		"""Number of callbacks currently registered for ``event_name``."""

		return len(self._listeners.get(event_name, []))


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener for ``event_name`` with the given arguments.
		"""

		# Copy so a listener may unregister itself while being called.
		for callback in list(self._listeners.get(event_name, [])):

			try:
				callback(*args, **kwargs)

			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")
