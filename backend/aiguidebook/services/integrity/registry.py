"""
Integrity Registry

Owns the live DeclarationSession for each active declaration. A session bundles
the declaration's event channel with the monitor subscribed to it; closing the
session tears both down. The registry is created by the application's
composition root and handed to services explicitly.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from ...models.domain import DeclarationState, IntegrityWarning
from .events import DeclarationEvent, EventChannel
from .monitor import IntegrityMonitor

logger = logging.getLogger(__name__)


class DeclarationSession:
    """Event channel + integrity monitor for one declaration's active lifetime."""

    def __init__(self, declaration_id: str, monitor: Optional[IntegrityMonitor] = None):
        self.declaration_id = declaration_id
        self.channel = EventChannel(declaration_id)
        self.monitor = monitor or IntegrityMonitor(declaration_id)
        self.monitor.attach(self.channel)

    def publish(self, event: DeclarationEvent) -> None:
        self.channel.publish(event)

    def refresh(self, state: DeclarationState) -> bool:
        return self.monitor.refresh(state)

    def active_warnings(self) -> List[IntegrityWarning]:
        return self.monitor.active_warnings()

    def close(self) -> None:
        self.monitor.detach()
        self.channel.close()


class IntegrityRegistry:
    """
    declaration_id -> DeclarationSession, opened lazily.

    A draft's session stays open until the declaration is submitted or the
    process stops, so the registry holds at most one session per draft
    touched since startup. Sessions are not evicted while idle: entry_deleted
    warnings exist only in the live monitor and cannot be rebuilt from storage.
    """

    def __init__(self, monitor_factory: Callable[[str], IntegrityMonitor] = IntegrityMonitor):
        self._monitor_factory = monitor_factory
        self._sessions: Dict[str, DeclarationSession] = {}
        self._lock = threading.Lock()

    def get(self, declaration_id: str) -> Optional[DeclarationSession]:
        return self._sessions.get(declaration_id)

    def ensure(self, declaration_id: str, load_state: Callable[[], DeclarationState]) -> DeclarationSession:
        """Return the open session, activating a new one from load_state() if needed."""
        with self._lock:
            session = self._sessions.get(declaration_id)
            if session is not None:
                return session
            session = DeclarationSession(declaration_id, self._monitor_factory(declaration_id))
            session.monitor.activate(load_state())
            self._sessions[declaration_id] = session
            logger.info(f"Opened integrity session for declaration {declaration_id}")
            return session

    def close(self, declaration_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(declaration_id, None)
        if session is not None:
            session.close()
            logger.info(f"Closed integrity session for declaration {declaration_id}")

    def close_all(self) -> None:
        for declaration_id in list(self._sessions):
            self.close(declaration_id)

    def __contains__(self, declaration_id: str) -> bool:
        return declaration_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
