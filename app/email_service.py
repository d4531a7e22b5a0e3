import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from app import config

logger = logging.getLogger(__name__)


def send_verification_code(to_email: str, code: str):
    subject = "Campus Wall - Verification Code"
    html = f"""
    <h2>Campus Wall Verification</h2>
    <p>Your verification code is: <strong>{code}</strong></p>
    <p>This code will expire in {config.VERIFICATION_CODE_TTL_MINUTES} minutes.</p>
    <p>If you did not request this, please ignore this email.</p>
    """

    msg = MIMEMultipart()
    msg["From"] = config.FROM_EMAIL
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT) as server:
            server.starttls()
            server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
            server.sendmail(config.FROM_EMAIL, to_email, msg.as_string())
    except Exception:
        logger.exception("SMTP send failed for %s", to_email)
        raise
    logger.info("Verification email sent to %s", to_email)
