# protoshop/core/email_client.py
"""
Email client utilities for the ProtoShop backend.

Responsibilities:
  - Take SMTP configuration from Settings.
  - Provide a single send_email(...) method for services to use.
  - Support both TLS (STARTTLS) and SSL connections.

Typical .env configuration (Gmail example with App Password):

    SMTP_HOST=smtp.gmail.com
    SMTP_PORT=465
    SMTP_USERNAME=orders@example.com
    SMTP_PASSWORD=<app password>
    SMTP_FROM_EMAIL=orders@example.com
    SMTP_FROM_NAME=ProtoShop
    SMTP_USE_TLS=false
    SMTP_USE_SSL=true
"""
from __future__ import annotations

import smtplib
from email.message import EmailMessage

from protoshop.core.config import Settings


class EmailClient:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _create_smtp_client(self) -> smtplib.SMTP:
        """
        Create and return an SMTP client configured for TLS or SSL.

        Priority:
          - If SMTP_USE_SSL is True → use smtplib.SMTP_SSL (e.g., Gmail on 465).
          - Else → use smtplib.SMTP + optional STARTTLS if SMTP_USE_TLS is True.
        """
        s = self.settings
        if not s.SMTP_HOST:
            raise RuntimeError("SMTP_HOST is not configured. Please set it in .env.")

        if s.SMTP_USE_SSL:
            server: smtplib.SMTP = smtplib.SMTP_SSL(s.SMTP_HOST, s.SMTP_PORT, timeout=30)
        else:
            server = smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=30)
            if s.SMTP_USE_TLS:
                server.starttls()

        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
        attachments: list[tuple[str, bytes]] | None = None,
    ) -> None:
        """
        Send an email to a single recipient.

        Parameters
        ----------
        to_email:
            Recipient email address.
        subject:
            Email subject line.
        text_body:
            Plain-text body (required, used as the fallback for clients that
            do not support HTML).
        html_body:
            Optional HTML body; if provided, is sent as an alternative part.
        attachments:
            Optional list of (filename, content) pairs.

        Raises
        ------
        RuntimeError:
            If required SMTP configuration is missing.
        smtplib.SMTPException:
            If the underlying SMTP connection or send fails.
        """
        s = self.settings
        if not (s.SMTP_HOST and s.SMTP_USERNAME and s.SMTP_PASSWORD):
            raise RuntimeError(
                "SMTP is not configured correctly. "
                "Please set SMTP_HOST, SMTP_USERNAME, and SMTP_PASSWORD in .env."
            )

        msg = EmailMessage()
        from_email = s.SMTP_FROM_EMAIL or s.SMTP_USERNAME
        msg["From"] = f"{s.SMTP_FROM_NAME} <{from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject

        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        for filename, content in attachments or []:
            msg.add_attachment(
                content,
                maintype="application",
                subtype="octet-stream",
                filename=filename,
            )

        server = self._create_smtp_client()
        try:
            server.login(s.SMTP_USERNAME, s.SMTP_PASSWORD)
            server.send_message(msg)
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                # Connection is being torn down anyway.
                pass
