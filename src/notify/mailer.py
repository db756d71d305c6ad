# src/notify/mailer.py

"""SMTP email delivery and fire-and-forget dispatch.

``SmtpMailer`` is synchronous and raises on any delivery problem.
``NotificationDispatcher`` runs it in a worker thread as a detached
``asyncio`` task: the caller never awaits it, and a failure only reaches
the log through the task's done-callback.
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage

from src.config.settings import Settings
from src.notify.email_content import EmailContent

logger = logging.getLogger("price_tracker.mailer")


class MailerConfigError(RuntimeError):
    """SMTP settings are incomplete."""


class SmtpMailer:
    """Sends an email to a list of recipients over SMTP.

    Supports STARTTLS (587) or implicit SSL (465).  Recipients go in
    ``Bcc`` so subscribers never see each other's addresses.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool | None = None,
    ) -> None:
        self.host = host or Settings.EMAIL_SMTP_HOST
        self.port = int(port or Settings.EMAIL_SMTP_PORT)
        self.username = (
            username if username is not None else Settings.EMAIL_USERNAME
        )
        self.password = (
            password if password is not None else Settings.EMAIL_PASSWORD
        )
        self.sender = (
            sender if sender is not None
            else (Settings.EMAIL_FROM or Settings.EMAIL_USERNAME)
        )
        self.use_tls = (
            use_tls if use_tls is not None else Settings.EMAIL_USE_TLS
        )

    @property
    def configured(self) -> bool:
        """True when credentials and a sender address are set."""
        return bool(self.username and self.password and self.sender)

    def build_message(
        self, content: EmailContent, recipients: list[str],
    ) -> EmailMessage:
        """Assemble the MIME message for *content*."""
        msg = EmailMessage()
        msg["Subject"] = content.subject
        msg["From"] = self.sender
        msg["To"] = self.sender
        msg["Bcc"] = ", ".join(recipients)
        msg.set_content(content.body)
        msg.add_alternative(content.html, subtype="html")
        return msg

    def send(self, content: EmailContent, recipients: list[str]) -> None:
        """Deliver *content* to *recipients*; raises on failure."""
        if not self.configured:
            raise MailerConfigError(
                "Email config incomplete; set EMAIL_USERNAME, "
                "EMAIL_PASSWORD and EMAIL_FROM"
            )
        if not recipients:
            return

        msg = self.build_message(content, recipients)
        context = ssl.create_default_context()
        timeout = Settings.EMAIL_TIMEOUT
        if self.use_tls and self.port != 465:
            with smtplib.SMTP(self.host, self.port, timeout=timeout) as s:
                s.ehlo()
                s.starttls(context=context)
                s.login(self.username, self.password)
                s.send_message(msg)
        else:
            with smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=timeout,
            ) as s:
                s.login(self.username, self.password)
                s.send_message(msg)
        logger.info(
            "Email sent to %d recipient(s) (subject=%s)",
            len(recipients),
            content.subject,
        )


class NotificationDispatcher:
    """Launches email sends as detached tasks.

    Launched tasks are held until they finish so they are not garbage
    collected mid-flight; ``drain`` lets a short-lived process give them
    a bounded grace period before the event loop closes.
    """

    def __init__(self, mailer: SmtpMailer | None = None) -> None:
        self.mailer = mailer or SmtpMailer()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of sends still in flight."""
        return len(self._pending)

    def dispatch(
        self, content: EmailContent, recipients: list[str],
    ) -> asyncio.Task[None] | None:
        """Start sending *content* without waiting for the outcome.

        Must be called from a running event loop.  Returns the task, or
        ``None`` when there is nobody to send to.
        """
        if not recipients:
            return None
        task = asyncio.create_task(
            asyncio.to_thread(self.mailer.send, content, recipients),
            name=f"email:{content.subject}",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Email task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Failed to send %s: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )

    async def drain(self, timeout: float) -> int:
        """Wait up to *timeout* seconds for in-flight sends.

        Returns the number still pending afterwards.  Outcomes are
        reported by the done-callback, never raised here.
        """
        if not self._pending:
            return 0
        _done, still_pending = await asyncio.wait(
            set(self._pending), timeout=timeout,
        )
        if still_pending:
            logger.warning(
                "%d email(s) still sending after %.1fs grace period",
                len(still_pending),
                timeout,
            )
        return len(still_pending)
