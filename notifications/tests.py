from types import SimpleNamespace
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from account.models import User
from .models import Broadcast, Message
from .services import BroadcastService, NotificationService


@override_settings(
    NOTIFICATIONS_ASYNC=False,
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
)
class NotificationServiceTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(
            email="cust@example.com", password="Pass123!", first_name="Ann", user_code="TAS999"
        )

    def _package(self, **kwargs):
        values = {
            "tracking_number": "1Z999",
            "user_code": "TAS999",
            "customer_id": None,
            "status": "In Transit",
            "weight": 2.5,
            "shipper": "Amazon",
        }
        values.update(kwargs)
        return SimpleNamespace(**values)

    def test_status_update_email_is_sent_to_owner(self):
        sent = NotificationService.notify_status_update(self._package(), note="Left Miami")

        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["cust@example.com"])
        self.assertIn("1Z999", mail.outbox[0].subject)
        self.assertIn("In Transit", mail.outbox[0].body)
        self.assertIn("Left Miami", mail.outbox[0].body)

    def test_unknown_owner_sends_nothing(self):
        sent = NotificationService.notify_status_update(self._package(user_code="NOPE"))

        self.assertFalse(sent)
        self.assertEqual(len(mail.outbox), 0)

    def test_send_failure_is_logged_not_raised(self):
        with patch("notifications.services.send_mail", side_effect=OSError("smtp down")):
            with self.assertLogs("notifications.services", level="ERROR"):
                NotificationService.notify_new_package(self._package())

    def test_new_package_email_mentions_shipper(self):
        NotificationService.notify_new_package(self._package())

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("Amazon", mail.outbox[0].body)
        self.assertTrue(mail.outbox[0].subject.startswith("New Package Received"))


@override_settings(
    NOTIFICATIONS_ASYNC=False,
    EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend",
)
class BroadcastServiceTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="admin@example.com", password="Pass123!", role=User.Role.ADMIN)
        self.c1 = User.objects.create_user(email="c1@example.com", password="Pass123!")
        self.c2 = User.objects.create_user(email="c2@example.com", password="Pass123!")

    def test_portal_broadcast_creates_one_message_per_customer(self):
        broadcast = BroadcastService.create_and_send(title="Closed", body="Holiday", created_by=self.admin)

        self.assertEqual(broadcast.total_recipients, 2)
        self.assertEqual(broadcast.portal_delivered, 2)
        self.assertIsNotNone(broadcast.sent_at)
        self.assertEqual(Message.objects.filter(broadcast=broadcast, sender="support").count(), 2)
        self.assertEqual(len(mail.outbox), 0)

    def test_email_broadcast_counts_delivered_and_failed(self):
        real_send = mail.send_mail

        def flaky(subject, message, from_email, recipient_list, **kwargs):
            if recipient_list == ["c2@example.com"]:
                raise OSError("rejected")
            return real_send(subject, message, from_email, recipient_list, **kwargs)

        with patch("notifications.services.send_mail", side_effect=flaky):
            with self.captureOnCommitCallbacks(execute=True):
                broadcast = BroadcastService.create_and_send(title="News", body="Hello", channels=["email"])

        broadcast.refresh_from_db()
        self.assertEqual(broadcast.portal_delivered, 0)
        self.assertEqual(broadcast.email_delivered, 1)
        self.assertEqual(broadcast.email_failed, 1)
        self.assertEqual(Message.objects.count(), 0)


class MessagesApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = User.objects.create_user(email="c@example.com", password="Pass123!", user_code="TAS1")
        self.other = User.objects.create_user(email="o@example.com", password="Pass123!", user_code="TAS2")
        self.admin = User.objects.create_user(email="a@example.com", password="Pass123!", role=User.Role.ADMIN)

    def test_customer_posts_and_lists_own_thread(self):
        self.client.force_authenticate(self.customer)
        resp = self.client.post("/api/customer/messages/", {"subject": "Where?", "body": "My box"}, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["sender"], "customer")
        self.assertEqual(resp.data["user_code"], "TAS1")

        Message.objects.create(user_code="TAS2", customer=self.other, body="not yours")
        listing = self.client.get("/api/customer/messages/")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["count"], 1)

    def test_listing_marks_support_replies_read(self):
        reply = Message.objects.create(
            user_code="TAS1", customer=self.customer, body="On its way", sender=Message.Sender.SUPPORT
        )
        self.client.force_authenticate(self.customer)
        self.client.get("/api/customer/messages/")

        reply.refresh_from_db()
        self.assertTrue(reply.is_read)

    def test_admin_reply_requires_known_customer(self):
        self.client.force_authenticate(self.admin)
        missing = self.client.post("/api/admin/messages/", {"user_code": "NOPE", "body": "hi"}, format="json")
        self.assertEqual(missing.status_code, 404)

        ok = self.client.post("/api/admin/messages/", {"user_code": "tas1", "body": "hi"}, format="json")
        self.assertEqual(ok.status_code, 201, ok.data)
        self.assertEqual(ok.data["sender"], "support")
        self.assertEqual(ok.data["user_code"], "TAS1")

    def test_admin_marks_message_read(self):
        message = Message.objects.create(user_code="TAS1", customer=self.customer, body="help")
        self.client.force_authenticate(self.admin)
        resp = self.client.patch(f"/api/admin/messages/{message.id}/read/", {}, format="json")

        self.assertEqual(resp.status_code, 200)
        message.refresh_from_db()
        self.assertTrue(message.is_read)

    def test_customer_cannot_reach_admin_messages(self):
        self.client.force_authenticate(self.customer)
        self.assertEqual(self.client.get("/api/admin/messages/").status_code, 403)

    def test_broadcast_endpoint(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post(
            "/api/admin/broadcasts/", {"title": "Hi", "body": "All", "channels": ["portal"]}, format="json"
        )

        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["total_recipients"], 2)
        self.assertEqual(resp.data["portal_delivered"], 2)
        self.assertEqual(Broadcast.objects.count(), 1)

        listing = self.client.get("/api/admin/broadcasts/")
        self.assertEqual(len(listing.data), 1)

    def test_broadcast_rejects_unknown_channel(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.post(
            "/api/admin/broadcasts/", {"title": "Hi", "body": "All", "channels": ["sms"]}, format="json"
        )
        self.assertEqual(resp.status_code, 400)
