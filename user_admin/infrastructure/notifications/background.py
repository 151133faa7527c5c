import logging

from fastapi import BackgroundTasks

from ...application.ports.notifier import Notifier, UserCreated

logger = logging.getLogger(__name__)


class BackgroundNotifier(Notifier):
    """Defers delivery to FastAPI background tasks so responses never wait on mail."""

    def __init__(self, background_tasks: BackgroundTasks, delegate: Notifier) -> None:
        self.background_tasks = background_tasks
        self.delegate = delegate

    def notify(self, event: UserCreated) -> None:
        self.background_tasks.add_task(self._deliver, event)

    def _deliver(self, event: UserCreated) -> None:
        try:
            self.delegate.notify(event)
        except Exception as e:
            logger.warning(f"Welcome notification for user {event.user.id} failed: {e}")
