"""
In-process event dispatcher.

Listeners are registered per event kind (``"job:accepted"`` ...) and called
synchronously, in registration order, by ``emit``.  A listener that raises
is logged and skipped; the remaining listeners still run.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

Listener = Callable[[Mapping[str, Any]], Any]


class EventDispatcher:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, kind: str, listener: Listener) -> None:
        """Register *listener* for *kind*.  Registering twice is a no-op."""
        listeners = self._listeners.setdefault(kind, [])
        if listener not in listeners:
            listeners.append(listener)

    def off(self, kind: str, listener: Listener) -> None:
        listeners = self._listeners.get(kind)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[kind]

    def emit(self, kind: str, payload: Mapping[str, Any]) -> int:
        """Deliver *payload* to every listener of *kind*.  Returns how many ran."""
        delivered = 0
        # Copy: a listener may deregister itself (or others) while we iterate.
        for listener in list(self._listeners.get(kind, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s failed (payload=%s)", kind, payload)
                continue
            delivered += 1
        if not delivered:
            logger.debug("No listener handled %s", kind)
        return delivered

    def listener_count(self, kind: str | None = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, ()))
        return sum(len(v) for v in self._listeners.values())

    def kinds(self) -> list[str]:
        return list(self._listeners)

    def clear(self) -> None:
        self._listeners.clear()
