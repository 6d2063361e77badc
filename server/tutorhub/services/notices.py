"""
tutorhub/services/notices.py
Request-scoped publish/subscribe channel for user-facing notices

Each request (or UI session) owns its own ``NoticeChannel``; nothing is
registered at module level, so subscribers never leak between requests.
"""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

RECORD_CREATED = "record_created"
RECORD_UPDATED = "record_updated"
RECORD_DELETED = "record_deleted"
INSTALLMENT_ADDED = "installment_added"
INSTALLMENT_REMOVED = "installment_removed"


@dataclass
class Notice:
    kind: str
    message: str
    level: str = "success"  # success, info, warning, error
    payload: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Notice], Union[None, Awaitable[None]]]


class NoticeChannel:
    """Fan-out of notices to the subscribers of one session."""

    def __init__(self):
        self._subscribers: List[tuple] = []
        self.notices: List[Notice] = []

    def subscribe(self, callback: Subscriber, kinds: Optional[List[str]] = None) -> Callable[[], None]:
        """
        Register ``callback`` for every notice, or only for ``kinds``.

        Returns a function that removes the subscription.
        """
        entry = (callback, frozenset(kinds) if kinds else None)
        self._subscribers.append(entry)

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    async def publish(self, notice: Notice) -> None:
        """
        Deliver ``notice`` to the matching subscribers.

        A failing subscriber is logged and skipped; the notice still reaches
        the others.
        """
        self.notices.append(notice)
        for callback, kinds in list(self._subscribers):
            if kinds is not None and notice.kind not in kinds:
                continue
            try:
                result = callback(notice)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Notice subscriber failed for {notice.kind}: {e}")

    def __len__(self):
        return len(self._subscribers)
