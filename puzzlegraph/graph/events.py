"""
Completion events for the notification collaborator.

Handlers run after the completion transaction has committed. Delivery is
not the engine's responsibility: a failing handler is logged and never
undoes or fails the completion.
"""
from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from .models import CompletionEvent

CompletionHandler = Callable[[CompletionEvent], None]


class CompletionEventBus:
    """In-process fan-out of CompletionEvent to subscribed handlers."""

    def __init__(self):
        self._handlers: list[CompletionHandler] = []

    def subscribe(self, handler: CompletionHandler) -> CompletionHandler:
        """Register a handler; returns it so this can be used as a decorator."""
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: CompletionHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: CompletionEvent) -> None:
        logger.debug(
            f"Publishing completion user={event.user_id} puzzle={event.puzzle_id} "
            f"newly_available={event.newly_available_puzzle_ids}"
        )
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:  # Intentionally broad - handlers must not fail a committed completion
                logger.exception(f"Completion handler {handler!r} failed")
