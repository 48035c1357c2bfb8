"""Minimal observer utility shared by runs and async handles."""

from collections import defaultdict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, kw_only=True)
class Notification:
    """A fired event, passed to every subscribed handler."""

    name: str
    source: object
    data: Mapping[str, object] = field(default_factory=dict)


type Handler = Callable[[Notification], object]


class Emitter:
    """Dispatches named notifications about ``source`` to subscribers."""

    def __init__(self, source: object) -> None:
        self._source = source
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)

    def on(self, name: str, handler: Handler) -> None:
        """Subscribe ``handler`` to notifications called ``name``."""
        self._handlers[name].append(handler)

    def fire(self, name: str, **data: object) -> None:
        """Call every handler subscribed to ``name``, in subscription order."""
        notification = Notification(name=name, source=self._source, data=data)
        for handler in list(self._handlers.get(name, ())):
            handler(notification)
