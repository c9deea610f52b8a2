from typing import Any, Callable, TypeVar

from mypy_extensions import VarArg, mypyc_attr

THandler = Callable[[VarArg(Any)], Any]
EmitterT = TypeVar("EmitterT", bound="Emitter")


@mypyc_attr(allow_interpreted_subclasses=True)
class Emitter:
	"""Dispatches named events to the handlers bound with `on`. Handlers
	are called synchronously, in the order they were bound, and exceptions
	they raise are propagated to the emitter."""

	def __init__(self) -> None:
		self.handlers: dict[str, list[THandler]] = {}

	def on(self: EmitterT, event: str, handler: THandler) -> EmitterT:
		"""Binds the handler to the event. A handler can only be bound once."""
		handlers = self.handlers.setdefault(event, [])
		assert handler not in handlers, f"Handler bound twice to '{event}': {handler}"
		handlers.append(handler)
		return self

	def once(self: EmitterT, event: str, handler: THandler) -> EmitterT:
		def wrapper(*args: Any) -> Any:
			self.off(event, wrapper)
			return handler(*args)

		return self.on(event, wrapper)

	def off(self: EmitterT, event: str, handler: THandler) -> EmitterT:
		handlers = self.handlers.get(event)
		if handlers and handler in handlers:
			handlers.remove(handler)
		return self

	def emit(self, event: str, *args: Any) -> int:
		"""Calls the handlers bound to the event, returning how many were
		called."""
		handlers = self.handlers.get(event)
		if not handlers:
			return 0
		# Handlers may unbind themselves while being called
		called = tuple(handlers)
		for h in called:
			h(*args)
		return len(called)

	def removeAll(self: EmitterT) -> EmitterT:
		self.handlers.clear()
		return self


# EOF
