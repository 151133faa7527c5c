import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from ...application.ports.notifier import Notifier, UserCreated

logger = logging.getLogger(__name__)

WELCOME_BODY = """Hello {name},

An account has been created for you on {app_name}.

Email: {email}
Temporary password: {password}

Please sign in and change your password as soon as possible.

Thanks,
{app_name}
"""


def build_welcome_message(event: UserCreated, app_name: str, sender: str) -> MIMEMultipart:
    user = event.user
    msg = MIMEMultipart()
    msg["From"] = sender
    msg["To"] = user.email
    msg["Subject"] = f"Welcome to {app_name}"
    body = WELCOME_BODY.format(
        name=user.full_name,
        app_name=app_name,
        email=user.email,
        password=event.plain_password,
    )
    msg.attach(MIMEText(body, "plain"))
    return msg


class SmtpWelcomeMailer(Notifier):
    """Sends the welcome email with the generated password over SMTP."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = "no-reply@example.com",
        app_name: str = "User Admin API",
        timeout: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.app_name = app_name
        self.timeout = timeout

    def notify(self, event: UserCreated) -> None:
        msg = build_welcome_message(event, self.app_name, self.sender)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            server.send_message(msg, to_addrs=[event.user.email])
        logger.info(f"Welcome email sent to user {event.user.id}")
