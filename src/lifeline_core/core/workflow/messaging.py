"""Best-effort side channel: message log entries plus notifications.

Runs only after a transition has committed. The message log entry is written
inline; the notification runs as a background task so no operation waits on
the notification service. Failures are logged and dropped; they never undo or
block the transition that triggered them.
"""

import asyncio
import logging
from typing import Optional, Set

from lifeline_core.interfaces import IInvestigationStore, INotifier
from lifeline_core.models import CaseMessage, MessageAudience

logger = logging.getLogger(__name__)


class CaseMessenger:
    """Appends system messages and fires notifications, at most once each"""

    def __init__(
        self,
        store: IInvestigationStore,
        notifier: Optional[INotifier] = None,
        notification_timeout: float = 5.0,
    ):
        self.store = store
        self.notifier = notifier
        self.notification_timeout = notification_timeout
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_notifications(self) -> int:
        return len(self._pending)

    async def emit(self, investigation_id: str, audience: MessageAudience, content: str) -> Optional[CaseMessage]:
        """Record a system message and schedule its notification.

        Returns:
            The recorded message, or None if the message log refused it
        """
        recorded: Optional[CaseMessage] = None
        try:
            recorded = await self.store.append_message(CaseMessage(
                investigation_id=investigation_id,
                role="system",
                audience=audience,
                content=content,
            ))
        except Exception as e:
            logger.warning(f"Message for {audience.value} on {investigation_id} not recorded: {e}")

        if self.notifier is not None:
            task = asyncio.create_task(self._notify(investigation_id, audience, content))
            task.set_name(f"notify:{investigation_id}:{audience.value}")
            self._pending.add(task)
            task.add_done_callback(self._notification_done)

        return recorded

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish or time out"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _notify(self, investigation_id: str, audience: MessageAudience, content: str) -> None:
        await asyncio.wait_for(
            self.notifier.notify(investigation_id, audience, content),
            timeout=self.notification_timeout,
        )

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning(f"Notification {task.get_name()} cancelled before delivery")
            return

        error = task.exception()
        if isinstance(error, asyncio.TimeoutError):
            logger.warning(f"Notification {task.get_name()} dropped after {self.notification_timeout}s")
        elif error is not None:
            logger.warning(f"Notification {task.get_name()} dropped: {error}")
