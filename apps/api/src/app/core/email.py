"""
Email Service using Resend

Sends operational alerts for background jobs (e.g. a failed installment
status run) to the operations mailbox.
"""

import asyncio
import logging
import os
from html import escape

import resend

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = os.getenv("RESEND_API_KEY")

# Configurations
EMAIL_FROM = os.getenv("EMAIL_FROM", "Agency Payments <noreply@agency-payments.dev>")
ALERT_EMAIL_TO = os.getenv("ALERT_EMAIL_TO")


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
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
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


async def send_job_failure_alert(
    job_name: str,
    started_at: str,
    error_message: str | None,
    failed_agencies: list[dict],
    to_email: str | None = None,
) -> bool:
    """
    Alert operations that a job run finished in the failed state.

    Args:
        job_name: Name recorded in jobs_log
        started_at: ISO timestamp of the run
        error_message: Summary stored on the jobs_log entry
        failed_agencies: Per-agency failure entries (agency_id, error, error_type)
        to_email: Recipient, defaults to ALERT_EMAIL_TO

    Returns:
        True if the alert was sent (or logged), False if sending failed or
        no recipient is configured
    """
    recipient = to_email or ALERT_EMAIL_TO
    if not recipient:
        logger.warning(f"ALERT_EMAIL_TO not set - not alerting for failed job {job_name}")
        return False

    rows = "".join(
        f"<tr><td>{escape(str(item.get('agency_id')))}</td>"
        f"<td>{escape(str(item.get('error_type', 'unknown')))}</td>"
        f"<td>{escape(str(item.get('error', '')))}</td></tr>"
        for item in failed_agencies
    )

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <body style="font-family: system-ui, -apple-system, sans-serif; color: #1f2937;">
        <h2>Job failed: {escape(job_name)}</h2>
        <p>Started at: {escape(started_at)}</p>
        <p>{escape(error_message or "No error message recorded.")}</p>
        <table border="1" cellpadding="6" cellspacing="0">
            <tr><th>Agency</th><th>Error type</th><th>Error</th></tr>
            {rows}
        </table>
        <p>Check the jobs_log table for the full per-agency breakdown.</p>
    </body>
    </html>
    """

    return await send_email(
        to_email=recipient,
        subject=f"ALERT: {job_name} failed",
        html_content=html_content,
    )
