"""
Email service - notification sink for one-time passwords.
Uses Flask-Mail for SMTP integration; delivery is best-effort.
"""
import logging
import smtplib
import threading

from flask import current_app
from flask_mail import Mail, Message

from petverse.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def _deliver(msg: Message) -> None:
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise UpstreamUnavailableError(f"SMTP delivery failed: {e}") from e


def _deliver_in_background(app, msg: Message) -> None:
    with app.app_context():
        try:
            _deliver(msg)
            logger.info(f"[EMAIL] ✓ Email sent to {msg.recipients}")
        except UpstreamUnavailableError as e:
            logger.warning(f"[EMAIL] ✗ {e.message}")


def send_otp_email(to_email: str, otp: str, ttl_minutes: int = 5) -> bool:
    """
    Send a one-time password.

    Never raises: a mail outage must not fail the payment flow that asked
    for the code. Returns False when the message could not be handed off.
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] OTP email skipped for {to_email}")
            return True

        msg = Message(
            subject="Your OTP for Payment",
            recipients=[to_email],
            body=f"Your OTP is {otp}. It will expire in {ttl_minutes} minutes.",
        )

        if current_app.config.get('MAIL_ASYNC', True):
            app = current_app._get_current_object()
            threading.Thread(target=_deliver_in_background, args=(app, msg), daemon=True).start()
            logger.info(f"[EMAIL] OTP email queued for {to_email}")
            return True

        _deliver(msg)
        logger.info(f"[EMAIL] ✓ OTP email sent to {to_email}")
        return True

    except UpstreamUnavailableError as e:
        logger.warning(f"[EMAIL] ✗ OTP email to {to_email} not delivered: {e.message}")
        return False
    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Error sending OTP email to {to_email}: {e}")
        return False
