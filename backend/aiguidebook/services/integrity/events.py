"""
Declaration Event Channel

Typed, per-declaration message passing between the declaration services and
their subscribers. Every event carries the DeclarationState as it stood right
after the change, so handlers never read storage.

Dispatch is synchronous and FIFO. An event published from inside a handler is
queued and delivered after the current one finishes, so subscribers always see
events in the order they were raised. Handler exceptions propagate to the
publisher.
"""
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Type

from ...models.db_models import EntryOrigin
from ...models.domain import DeclarationState


@dataclass(frozen=True)
class DeclarationEvent:
    declaration_id: str
    state: DeclarationState


@dataclass(frozen=True)
class EntryAdded(DeclarationEvent):
    entry_id: str
    origin: EntryOrigin


@dataclass(frozen=True)
class EntryModified(DeclarationEvent):
    entry_id: str
    previous_content: str
    new_content: str
    previous_origin: EntryOrigin
    new_origin: EntryOrigin
    diff_delta: int


@dataclass(frozen=True)
class EntryDeleted(DeclarationEvent):
    entry_id: str
    origin: EntryOrigin
    content: str


@dataclass(frozen=True)
class ManualEntryAdded(DeclarationEvent):
    manual_entry_id: str
    tool_name: str


@dataclass(frozen=True)
class ManualEntryRemoved(DeclarationEvent):
    manual_entry_id: str


EVENT_TYPES = (EntryAdded, EntryModified, EntryDeleted, ManualEntryAdded, ManualEntryRemoved)

Handler = Callable[[DeclarationEvent], None]


class ChannelClosedError(RuntimeError):
    """Publishing to or subscribing on a channel after teardown."""
    pass


@dataclass(frozen=True)
class Subscription:
    event_type: Type[DeclarationEvent]
    handler: Handler


class EventChannel:
    """Closed-set event channel owned by one declaration session."""

    def __init__(self, declaration_id: str):
        self.declaration_id = declaration_id
        self._handlers: Dict[Type[DeclarationEvent], List[Handler]] = defaultdict(list)
        self._queue: Deque[DeclarationEvent] = deque()
        self._dispatching = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, event_type: Type[DeclarationEvent], handler: Handler) -> Subscription:
        if self._closed:
            raise ChannelClosedError(f"Channel for declaration {self.declaration_id} is closed")
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type!r}")
        self._handlers[event_type].append(handler)
        return Subscription(event_type=event_type, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        handlers = self._handlers.get(subscription.event_type, [])
        if subscription.handler in handlers:
            handlers.remove(subscription.handler)

    def publish(self, event: DeclarationEvent) -> None:
        if self._closed:
            raise ChannelClosedError(f"Channel for declaration {self.declaration_id} is closed")
        if type(event) not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {type(event)!r}")
        if event.declaration_id != self.declaration_id:
            raise ValueError(
                f"Event for declaration {event.declaration_id} published on channel {self.declaration_id}"
            )

        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                for handler in list(self._handlers.get(type(current), [])):
                    handler(current)
        except Exception:
            self._queue.clear()
            raise
        finally:
            self._dispatching = False

    def close(self) -> None:
        self._handlers.clear()
        self._queue.clear()
        self._closed = True

    def handler_count(self, event_type: Optional[Type[DeclarationEvent]] = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(h) for h in self._handlers.values())
