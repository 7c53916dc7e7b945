import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named-event fan-out from the transport and the live state to their consumers.

	Listeners run synchronously on the event loop thread. A failing listener is
	logged and skipped so a broken display or network consumer can never stall
	the scheduler that emitted the event.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> CallbackType:

		"""
		Register a callback for an event name and return it, so the caller can keep it for a later ``off()``.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

		return callback

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def listener_count (self, event_name: str) -> int:

		return len(self._listeners.get(event_name, []))


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener for an event, logging (not raising) listener failures.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			try:
				callback(*args, **kwargs)
			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")
