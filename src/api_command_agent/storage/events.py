"""Collection update notifications."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CollectionEvents:
    """Tells interested views that the saved collections changed."""

    def __init__(self):
        self._listeners: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def notify_collections_updated(self) -> None:
        logger.debug("Notifying %d collection listeners", len(self._listeners))
        for callback in list(self._listeners):
            callback()
