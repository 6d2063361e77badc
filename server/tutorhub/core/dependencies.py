from fastapi import Depends
from tutorhub.db.supabase import SupabaseQueries, get_supabase_client
from tutorhub.services.email_service import EmailService, ReceiptMailer
from tutorhub.services.notices import NoticeChannel
from tutorhub.services.payment_service import PaymentService
from tutorhub.services.student_directory import StudentDirectory


def get_db() -> SupabaseQueries:
    """
    Dependency providing the query helper bound to the shared Supabase client.
    """
    return SupabaseQueries(get_supabase_client())


def get_email_service() -> EmailService:
    return EmailService()


def get_notice_channel(
    db: SupabaseQueries = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> NoticeChannel:
    """
    A fresh notice channel per request, with the receipt mailer subscribed.
    """
    channel = NoticeChannel()
    ReceiptMailer(email_service, StudentDirectory(db)).attach(channel)
    return channel


def get_payment_service(
    db: SupabaseQueries = Depends(get_db),
    channel: NoticeChannel = Depends(get_notice_channel),
) -> PaymentService:
    return PaymentService(db, channel)
