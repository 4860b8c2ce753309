"""
Calendar invitation mailer.

Sends one intake meeting invitation per call: a multipart email whose
calendar part (text/calendar; method=REQUEST) lets mail clients add the
meeting directly.

When MAIL_SERVER is not configured the invitation is logged but not sent
(dev/test mode).

Configuration (env vars):
    MAIL_SERVER          SMTP host (default: None -> log-only mode)
    MAIL_PORT            SMTP port (default: 587)
    MAIL_USE_TLS         Use STARTTLS (default: true)
    MAIL_USERNAME        SMTP username
    MAIL_PASSWORD        SMTP password
    MAIL_DEFAULT_SENDER  From address
"""

import logging
import smtplib
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Dict, Optional

from pydantic import BaseModel

from config.settings import settings
from utils.clock import utc_now
from utils.exceptions import AuthScopeError, DeliveryError

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60

# 530 auth required, 534 mechanism too weak / app password needed, 535 bad credentials
AUTH_REPLY_CODES = {530, 534, 535}


class DeliveryResult(BaseModel):
    """What the mail backend reports for one delivered invitation"""
    email: str
    provider_message_id: Optional[str] = None
    delivered: bool = True
    log_only: bool = False


def _ics_timestamp(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def build_ics(
    uid: str,
    organizer: str,
    attendee: str,
    start: datetime,
    summary: str,
    description: str,
    meeting_link: Optional[str] = None,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> str:
    """Build an iCalendar REQUEST for a single attendee. `start` is naive UTC."""
    end = start + timedelta(minutes=duration_minutes)
    lines = [
        "BEGIN:VCALENDAR",
        "PRODID:-//Intake Meetings//EN",
        "VERSION:2.0",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_ics_timestamp(utc_now())}",
        f"DTSTART:{_ics_timestamp(start)}",
        f"DTEND:{_ics_timestamp(end)}",
        f"SUMMARY:{_ics_escape(summary)}",
        f"DESCRIPTION:{_ics_escape(description)}",
        f"ORGANIZER:mailto:{organizer}",
        f"ATTENDEE;ROLE=REQ-PARTICIPANT;RSVP=TRUE:mailto:{attendee}",
    ]
    if meeting_link:
        lines.append(f"LOCATION:{_ics_escape(meeting_link)}")
        lines.append(f"URL:{meeting_link}")
    lines += ["STATUS:CONFIRMED", "END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


class SMTPInviteMailer:
    """
    SMTP implementation of the invitation backend.

    Failures are classified, never retried: credential or permission
    problems raise AuthScopeError (the sender must reauthorize), everything
    else raises DeliveryError.
    """

    def __init__(
        self,
        server: Optional[str] = None,
        port: Optional[int] = None,
        use_tls: Optional[bool] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.server = server if server is not None else settings.MAIL_SERVER
        self.port = port or settings.MAIL_PORT
        self.use_tls = settings.MAIL_USE_TLS if use_tls is None else use_tls
        self.username = username if username is not None else settings.MAIL_USERNAME
        self.password = password if password is not None else settings.MAIL_PASSWORD
        self.sender = sender or settings.MAIL_DEFAULT_SENDER
        self.timeout = timeout or settings.MAIL_TIMEOUT_SECONDS

    def is_configured(self) -> bool:
        return bool(self.server)

    def build_message(
        self,
        to_email: str,
        session_metadata: Dict[str, Any],
        meeting_link: Optional[str] = None,
    ) -> MIMEMultipart:
        scheduled_at: datetime = session_metadata["scheduled_at"]
        client_id = session_metadata.get("client_id", "client")
        conducted_by = session_metadata.get("conducted_by", "")
        subject = f"Intake meeting: {client_id} ({scheduled_at:%Y-%m-%d %H:%M} UTC)"

        body_lines = [
            f"You are invited to an intake meeting with {client_id}.",
            f"When: {scheduled_at:%A, %d %B %Y %H:%M} UTC",
        ]
        if conducted_by:
            body_lines.append(f"Conducted by: {conducted_by}")
        if meeting_link:
            body_lines.append(f"Join: {meeting_link}")
        body = "\n".join(body_lines)

        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1])

        alternative = MIMEMultipart("alternative")
        alternative.attach(MIMEText(body, "plain", "utf-8"))
        calendar = MIMEText(
            build_ics(
                uid=f"intake-{session_metadata.get('session_id')}@{self.sender.split('@')[-1]}",
                organizer=self.sender,
                attendee=to_email,
                start=scheduled_at,
                summary=subject,
                description=body,
                meeting_link=meeting_link,
                duration_minutes=session_metadata.get("duration_minutes") or DEFAULT_DURATION_MINUTES,
            ),
            "calendar",
            "utf-8",
        )
        calendar.set_param("method", "REQUEST")
        alternative.attach(calendar)
        msg.attach(alternative)
        return msg

    def send_invite(
        self,
        to_email: str,
        session_metadata: Dict[str, Any],
        meeting_link: Optional[str] = None,
    ) -> DeliveryResult:
        """
        Send one invitation.

        Raises:
            AuthScopeError: The SMTP server rejected our credentials
            DeliveryError: Any other SMTP or network failure
        """
        msg = self.build_message(to_email, session_metadata, meeting_link)

        if not self.is_configured():
            # Dev/test mode: log only
            logger.info("Invitation (dev mode): to=%s subject='%s'", to_email, msg["Subject"])
            return DeliveryResult(email=to_email, provider_message_id=msg["Message-ID"], log_only=True)

        try:
            with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.sendmail(self.sender, [to_email], msg.as_string())
        except smtplib.SMTPAuthenticationError as exc:
            raise AuthScopeError(
                "Mail provider rejected the sender credentials; reauthorize the mail account",
                email=to_email,
                details={"smtp_code": exc.smtp_code},
            ) from exc
        except smtplib.SMTPResponseException as exc:
            if exc.smtp_code in AUTH_REPLY_CODES:
                raise AuthScopeError(
                    "Mail provider requires reauthorization",
                    email=to_email,
                    details={"smtp_code": exc.smtp_code},
                ) from exc
            raise DeliveryError(
                f"Mail provider refused the invitation ({exc.smtp_code})",
                email=to_email,
                details={"smtp_code": exc.smtp_code},
            ) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"Invitation could not be delivered: {exc}", email=to_email) from exc

        logger.info("Invitation sent: to=%s", to_email)
        return DeliveryResult(email=to_email, provider_message_id=msg["Message-ID"])
