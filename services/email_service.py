import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from urllib.parse import urlencode
from core.config import settings
from utils.logger import get_logger

# Setup logger
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
            server.starttls()  # Upgrade to secure connection
            if settings.MAIL_USERNAME:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

        logger.info(
            "Email sent successfully",
            extra={"recipient": to_email, "subject": subject}
        )

    except (smtplib.SMTPException, OSError) as e:
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


def _link(path: str, token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}?{urlencode({'token': token})}"


def send_verification_email(to_email: str, token: str):
    verify_url = _link("/verify-email", token)
    hours = settings.VERIFICATION_TOKEN_EXPIRE_HOURS

    subject = f"Verify Your Email - {settings.APP_NAME}"
    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Welcome to {settings.APP_NAME}!</h2>
            <p>Please confirm your email address to finish setting up your account.</p>

            <div style="margin: 30px 0;">
                <a href="{verify_url}"
                style="display: inline-block; padding: 14px 28px; background-color: #4CAF50;
                        color: white; text-decoration: none; border-radius: 4px;
                        font-weight: bold;">
                    Verify Email
                </a>
            </div>

            <p style="color: #666; font-size: 14px;">This link expires in {hours} hours.</p>
            <p style="color: #666; font-size: 14px;">If you didn't create an account, please ignore this email.</p>

            <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">

            <p style="color: #999; font-size: 12px;">
                If you're having trouble clicking the button, copy and paste this URL into your browser:
                <br><br>
                {verify_url}
            </p>
        </div>
    </body>
    </html>
    """
    send_email(to_email=to_email, subject=subject, body=body)


def send_password_reset_email(to_email: str, token: str):
    reset_url = _link("/reset-password", token)
    minutes = settings.RESET_TOKEN_EXPIRE_MINUTES

    subject = "Reset Your Password"
    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Password Reset Request</h2>
            <p>We received a request to reset your password.</p>

            <div style="margin: 30px 0;">
                <a href="{reset_url}"
                style="display: inline-block; padding: 14px 28px; background-color: #3498db;
                        color: white; text-decoration: none; border-radius: 4px;
                        font-weight: bold;">
                    Reset Password
                </a>
            </div>

            <p style="color: #666; font-size: 14px;">This link expires in {minutes} minutes.</p>

            <div style="background-color: #fff3cd; border-left: 4px solid #ffc107; padding: 12px; margin: 20px 0;">
                <p style="margin: 0; color: #856404;">
                    <strong>Security Notice:</strong> If you didn't request this password reset, please ignore this email. Your password will remain unchanged.
                </p>
            </div>

            <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">

            <p style="color: #999; font-size: 12px;">
                If you're having trouble clicking the button, copy and paste this URL into your browser:
                <br><br>
                {reset_url}
            </p>
        </div>
    </body>
    </html>
    """
    send_email(to_email=to_email, subject=subject, body=body)
