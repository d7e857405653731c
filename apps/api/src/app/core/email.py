"""
Email Service using Resend

Delivers the mentor application emails. Delivery is best effort:
send_email() reports failure with a False return and never raises.
"""

import asyncio
import logging
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_STYLE = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #6d28d9; margin-bottom: 24px; }
    .banner { background-color: #ede9fe; border: 1px solid #8b5cf6; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .button { display: inline-block; background-color: #6d28d9; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_STYLE}</style></head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>Questions? Reply to this email and the team will get back to you.</p>
                <p>Wizzmo - advice from students who've been there</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if the email was accepted by Resend (or logged in development)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_application_received(to_email: str, applicant_name: str) -> bool:
    """Confirm that a mentor application was received."""
    safe_name = escape(applicant_name)
    body = f"""
            <p>Hi {safe_name},</p>
            <p>Thanks for applying to mentor on Wizzmo! We've received your application
            and our team will review it shortly.</p>
            <p>You'll hear from us by email as soon as a decision is made.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="We received your Wizzmo mentor application",
        html_content=_layout("Application Received", body),
    )


async def send_application_approved(to_email: str, applicant_name: str) -> bool:
    """Tell an applicant they were approved as a mentor."""
    safe_name = escape(applicant_name)
    app_url = f"{settings.frontend_url}/download"
    body = f"""
            <div class="banner"><strong>Congratulations, {safe_name}!</strong>
            You've been approved as a Wizzmo mentor.</div>
            <p>Sign in to the app with this email address and choose <strong>Mentor</strong>
            (or <strong>Both</strong>) when asked how you'd like to use Wizzmo.</p>
            <a href="{app_url}" class="button">Open Wizzmo</a>
    """
    return await send_email(
        to_email=to_email,
        subject="You're approved to mentor on Wizzmo",
        html_content=_layout("Welcome, Mentor!", body),
    )


async def send_application_rejected(to_email: str, applicant_name: str) -> bool:
    """Tell an applicant their application was not accepted."""
    safe_name = escape(applicant_name)
    body = f"""
            <p>Hi {safe_name},</p>
            <p>Thank you for your interest in mentoring on Wizzmo. After review, we're not
            able to accept your application right now.</p>
            <p>You're welcome to apply again in the future.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="An update on your Wizzmo mentor application",
        html_content=_layout("Application Update", body),
    )
