import logging

from ...application.ports.notifier import Notifier, UserCreated

logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    """Stand-in used when no SMTP server is configured."""

    def notify(self, event: UserCreated) -> None:
        logger.info(f"SMTP not configured; welcome email for user {event.user.id} <{event.user.email}> not sent")
