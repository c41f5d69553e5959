"""
Email transport.

The debugger only needs `send(to, sender, subject, body)`. SmtpTransport
delivers through smtplib; MemoryTransport keeps messages in a list for
tests and dry runs.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol


class EmailTransport(Protocol):
    def send(self, to: str, sender: str, subject: str, body: str) -> None: ...


@dataclass(frozen=True)
class SentEmail:
    to: str
    sender: str
    subject: str
    body: str


def build_message(to: str, sender: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["To"] = to
    msg["From"] = sender
    msg["Subject"] = subject
    msg.set_content(body)
    return msg


class SmtpTransport:
    """Plain-text delivery over SMTP, optionally upgraded with STARTTLS."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 25,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = False,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, smtp) -> "SmtpTransport":
        """Build from an SmtpConfig section."""
        return cls(
            host=smtp.host,
            port=smtp.port,
            username=smtp.username,
            password=smtp.password,
            use_tls=smtp.use_tls,
            timeout=smtp.timeout,
        )

    def send(self, to: str, sender: str, subject: str, body: str) -> None:
        msg = build_message(to, sender, subject, body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)


class MemoryTransport:
    """Records every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []

    def send(self, to: str, sender: str, subject: str, body: str) -> None:
        self.sent.append(SentEmail(to=to, sender=sender, subject=subject, body=body))

    @property
    def count(self) -> int:
        return len(self.sent)

    def clear(self) -> None:
        self.sent.clear()
