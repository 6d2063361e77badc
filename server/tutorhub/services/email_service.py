"""
tutorhub/services/email_service.py
Email service using SendGrid
"""
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from tutorhub.core.config import settings
from tutorhub.services import notices
from tutorhub.services.notices import Notice, NoticeChannel
from tutorhub.services.student_directory import StudentDirectory, full_name
import logging

logger = logging.getLogger(__name__)

class EmailService:
    """Email service for sending transactional emails"""

    def __init__(self):
        if settings.SENDGRID_API_KEY:
            self.sg = SendGridAPIClient(settings.SENDGRID_API_KEY)
        else:
            self.sg = None
            logger.warning("SendGrid API key not configured. Emails will be logged only.")

        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME

    async def send_email(self, to_email: str, subject: str, html_content: str):
        """
        Send email via SendGrid

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of email

        Returns:
            bool: True if sent successfully, False otherwise
        """
        if not self.sg:
            logger.info(f"[EMAIL] To: {to_email} | Subject: {subject}")
            logger.debug(f"[EMAIL] Content: {html_content}")
            return True

        try:
            message = Mail(
                from_email=(self.from_email, self.from_name),
                to_emails=to_email,
                subject=subject,
                html_content=html_content
            )

            response = self.sg.send(message)
            logger.info(f"Email sent to {to_email}: {response.status_code}")
            return True

        except Exception as e:
            logger.error(f"Email send failed to {to_email}: {e}")
            return False

    async def send_payment_receipt(self, to_email: str, student_name: str, period: str,
                                   receipt_number: str, amount: float, balance: float,
                                   currency: str):
        """Send a receipt for one recorded installment"""
        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #333;">Payment Receipt</h2>
            <p>Dear Parent/Guardian,</p>
            <p>We have received a payment for {student_name} ({period}).</p>
            <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
                <p><strong>Receipt:</strong> {receipt_number}</p>
                <p><strong>Amount:</strong> {amount:,.0f} {currency}</p>
                <p><strong>Remaining balance:</strong> {balance:,.0f} {currency}</p>
            </div>
            <hr style="border: none; border-top: 1px solid #ddd; margin: 20px 0;">
            <p style="color: #666; font-size: 12px;">
                This is an automated email from {settings.PROJECT_NAME}. Please do not reply.
            </p>
        </div>
        """
        return await self.send_email(to_email, f"Payment receipt {receipt_number}", html_content)


class ReceiptMailer:
    """Emails the payer whenever an installment is recorded on the channel."""

    def __init__(self, email_service: EmailService, directory: StudentDirectory):
        self.email_service = email_service
        self.directory = directory

    def attach(self, channel: NoticeChannel):
        return channel.subscribe(self.on_installment_added, kinds=[notices.INSTALLMENT_ADDED])

    async def on_installment_added(self, notice: Notice):
        payload = notice.payload
        student = await self.directory.get(payload["student_id"])
        if not student or not student.get("parent_email"):
            logger.info(f"No payer email for student {payload['student_id']}, receipt not sent")
            return

        await self.email_service.send_payment_receipt(
            to_email=student["parent_email"],
            student_name=full_name(student) or "your child",
            period=payload["period"],
            receipt_number=payload["receipt_number"],
            amount=payload["amount"],
            balance=payload["balance"],
            currency=payload["currency"],
        )
