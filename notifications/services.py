import logging
import threading
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import connection, transaction
from django.utils import timezone

from .models import Broadcast, Message

logger = logging.getLogger(__name__)


class NotificationService:
    """Outgoing customer email. Delivery is best effort: failures are logged, never raised."""

    @staticmethod
    def _run(target, *args) -> None:
        if getattr(settings, "NOTIFICATIONS_ASYNC", True):
            threading.Thread(target=target, args=args, daemon=True).start()
        else:
            target(*args)

    @staticmethod
    def _deliver(to: str, subject: str, message: str) -> bool:
        try:
            send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, [to], fail_silently=False)
            return True
        except Exception:
            logger.exception("Email send failed to=%s subject=%s", to, subject)
            return False

    @classmethod
    def send_email(cls, *, to: str, subject: str, message: str) -> None:
        if not to:
            return
        cls._run(cls._deliver, to, subject, message)

    @classmethod
    def _customer_for(cls, package):
        if getattr(package, "customer_id", None):
            return package.customer
        return get_user_model().objects.get_customer_by_code(package.user_code)

    @classmethod
    def notify_status_update(cls, package, note: str = "") -> bool:
        customer = cls._customer_for(package)
        if not customer or not customer.email:
            logger.info("No customer email for package=%s user_code=%s", package.tracking_number, package.user_code)
            return False
        subject, message = NotificationTemplates.status_update(package, customer, note)
        cls.send_email(to=customer.email, subject=subject, message=message)
        return True

    @classmethod
    def notify_new_package(cls, package) -> bool:
        customer = cls._customer_for(package)
        if not customer or not customer.email:
            return False
        subject, message = NotificationTemplates.new_package(package, customer)
        cls.send_email(to=customer.email, subject=subject, message=message)
        return True


class NotificationTemplates:
    @staticmethod
    def status_update(package, customer, note: str = "") -> Tuple[str, str]:
        lines = [
            f"Hi {customer.first_name or 'Customer'},",
            "",
            f"Your package {package.tracking_number} is now: {package.status}.",
        ]
        if note:
            lines.append(f"Note: {note}")
        lines += ["", "You can view live updates in your portal."]
        return f"Package Update - {package.tracking_number}", "\n".join(lines)

    @staticmethod
    def new_package(package, customer) -> Tuple[str, str]:
        weight = package.weight if package.weight is not None else "-"
        message = "\n".join(
            [
                f"Hi {customer.first_name or 'Customer'},",
                "",
                "We have received a new package for you.",
                "",
                f"Shipper: {package.shipper or 'UNKNOWN'}",
                f"Tracking Number: {package.tracking_number}",
                f"Weight: {weight}",
                f"Status: {package.status}",
                "",
                "You can view live updates in your portal.",
            ]
        )
        return f"New Package Received - {package.tracking_number}", message

    @staticmethod
    def broadcast(broadcast: Broadcast) -> Tuple[str, str]:
        return broadcast.title, broadcast.body


class BroadcastService:
    @staticmethod
    def recipients():
        User = get_user_model()
        return User.objects.customers().filter(is_active=True).exclude(user_code__isnull=True).exclude(user_code="")

    @classmethod
    @transaction.atomic
    def create_and_send(
        cls,
        *,
        title: str,
        body: str,
        channels: Optional[Iterable[str]] = None,
        scheduled_at=None,
        created_by=None,
    ) -> Broadcast:
        channels = list(dict.fromkeys(channels or [Broadcast.Channel.PORTAL]))
        customers = list(cls.recipients().only("id", "email", "user_code"))
        broadcast = Broadcast.objects.create(
            title=title,
            body=body,
            channels=channels,
            scheduled_at=scheduled_at,
            created_by=created_by,
            total_recipients=len(customers),
        )

        if Broadcast.Channel.PORTAL in channels and customers:
            created = Message.objects.bulk_create(
                [
                    Message(
                        customer=customer,
                        user_code=customer.user_code,
                        subject=title,
                        body=body,
                        sender=Message.Sender.SUPPORT,
                        broadcast=broadcast,
                    )
                    for customer in customers
                ]
            )
            broadcast.portal_delivered = len(created)

        broadcast.sent_at = timezone.now()
        broadcast.save(update_fields=["portal_delivered", "sent_at"])

        if Broadcast.Channel.EMAIL in channels:
            emails = [c.email for c in customers if c.email]
            transaction.on_commit(lambda: NotificationService._run(cls._send_emails, broadcast.id, emails))
        return broadcast

    @staticmethod
    def _send_emails(broadcast_id, emails: List[str]) -> None:
        try:
            broadcast = Broadcast.objects.get(pk=broadcast_id)
            subject, message = NotificationTemplates.broadcast(broadcast)
            delivered = failed = 0
            for email in emails:
                if NotificationService._deliver(email, subject, message):
                    delivered += 1
                else:
                    failed += 1
            Broadcast.objects.filter(pk=broadcast_id).update(email_delivered=delivered, email_failed=failed)
        except Exception:
            logger.exception("Broadcast email delivery failed broadcast=%s", broadcast_id)
        finally:
            if getattr(settings, "NOTIFICATIONS_ASYNC", True):
                connection.close()
