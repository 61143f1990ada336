"""
Email Service for Agile Flow
============================
Task assignment notifications over SMTP (aiosmtplib, STARTTLS).

Delivery is best effort: every public method reports failure through its
return value or a log line and never raises into the request that
triggered it.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from html import escape
from typing import Optional

from agileflow.core.config import settings
from agileflow.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    async def send_task_assignment_email(
        self,
        recipient_email: str,
        recipient_name: str,
        task_title: str,
        assigner_name: str,
        deadline: Optional[datetime] = None,
    ) -> bool:
        """Notify an assignee about a new task"""
        deadline_text = deadline.strftime("%d %b %Y, %H:%M") if deadline else "No deadline set"
        subject = "New Task Assigned - Agile Flow"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 20px; border-radius: 8px 8px 0 0; }}
                .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 8px 8px; }}
                .task-box {{ background: white; padding: 20px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #667eea; }}
                .button {{ display: inline-block; background: #667eea; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; }}
                .footer {{ text-align: center; margin-top: 20px; color: #6b7280; font-size: 14px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1 style="margin: 0;">Agile Flow</h1>
                    <p style="margin: 5px 0 0 0;">Task Management System</p>
                </div>
                <div class="content">
                    <h2>Hello {escape(recipient_name)},</h2>
                    <p>You have been assigned a new task by <strong>{escape(assigner_name)}</strong>.</p>
                    <div class="task-box">
                        <h3 style="margin-top: 0; color: #667eea;">Task Details</h3>
                        <p><strong>Title:</strong> {escape(task_title)}</p>
                        <p><strong>Deadline:</strong> {deadline_text}</p>
                    </div>
                    <p>Please log in to your dashboard to view complete task details and update the status.</p>
                    <a href="{self.frontend_url}" class="button">View Task</a>
                    <div class="footer">
                        <p>This is an automated email from Agile Flow. Please do not reply.</p>
                    </div>
                </div>
            </div>
        </body>
        </html>
        """

        text_content = f"""
Hello {recipient_name},

You have been assigned a new task by {assigner_name}.

Title: {task_title}
Deadline: {deadline_text}

Open {self.frontend_url} to view the task and update its status.

- Agile Flow
        """

        return await self.send_email(recipient_email, subject, html_content, text_content)


async def dispatch_task_assignment_email(
    service: EmailService,
    recipient_email: str,
    recipient_name: str,
    task_title: str,
    assigner_name: str,
    deadline: Optional[datetime] = None,
) -> None:
    """Fire-and-forget wrapper scheduled through BackgroundTasks"""
    try:
        sent = await service.send_task_assignment_email(
            recipient_email, recipient_name, task_title, assigner_name, deadline
        )
        if not sent:
            logger.info(f"[Email] Assignment notice to {recipient_email} not delivered")
    except Exception as e:
        logger.log_error_with_context(e, context="dispatch_task_assignment_email", recipient=recipient_email)


email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
