import html
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from urllib.parse import urlencode
from core.config import settings
from utils.logger import get_logger

logger = get_logger(__name__)


def send_email(to_email: str, subject: str, body: str):
    # Skip email sending in test environment
    if settings.ENV == "testing":
        logger.info(
            "[TEST MODE] Email skipped",
            extra={"recipient": to_email, "subject": subject}
        )
        return

    logger.debug(
        "Attempting to send email",
        extra={"recipient": to_email, "subject": subject}
    )

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email
    message.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
            server.starttls()
            server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

        logger.info(
            "Email sent successfully",
            extra={"recipient": to_email, "subject": subject}
        )

    except smtplib.SMTPException as e:
        logger.error(
            f"Failed to send email: {str(e)}",
            extra={
                "recipient": to_email,
                "subject": subject,
                "error_type": type(e).__name__
            },
            exc_info=True
        )
        raise


def build_verification_link(token: str) -> str:
    return f"{settings.VERIFY_EMAIL_URL}?{urlencode({'token': token})}"


def render_verification_email(name: str, token: str) -> str:
    """HTML body of the verification email. ``name`` is user input and is escaped."""
    link = html.escape(build_verification_link(token))
    hours = settings.VERIFICATION_TOKEN_EXPIRE_HOURS
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <h2>Welcome, {html.escape(name)}!</h2>
        <p>Please confirm your email address to activate your account.</p>
        <p><a href="{link}">Verify email</a></p>
        <p>This link expires in {hours} hours.</p>
        <p>If you didn't create an account, please ignore this email.</p>
    </body>
    </html>
    """


def send_verification_email(to_email: str, name: str, token: str):
    body = render_verification_email(name, token)
    send_email(to_email=to_email, subject="Verify Your Email", body=body)
