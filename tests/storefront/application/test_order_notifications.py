"""Application tests for order emails sent through the email channel."""

import pytest

from storefront.cart.cart import CartOwner
from storefront.notifications import get_notifier, publish_events, reset_notifier
from storefront.notifications.channel import reset_email_channel, set_email_channel
from storefront.notifications.channel.fake_email import FakeEmailAdapter
from storefront.notifications.order_email import EmailNotifier
from storefront.services import build_services, reset_services, set_services

USER = CartOwner.user("u-1")


@pytest.fixture()
def channel():
    adapter = FakeEmailAdapter()
    set_email_channel(adapter)
    yield adapter
    reset_email_channel()


@pytest.fixture()
def email_services(settings, catalog, processor, channel):
    services = build_services(
        catalog=catalog, processor=processor, notifier=EmailNotifier(channel), settings=settings
    )
    set_services(services)
    services.ledger.adjust("sku-a", 10)
    yield services
    reset_services()


def _checkout(services, shipping_address, email="ada@example.com"):
    services.carts.add_line(USER, "sku-a", 1)
    return services.checkout.checkout(USER, shipping_address=shipping_address, email=email)


class TestOrderEmails:
    def test_order_received_email(self, email_services, channel, shipping_address):
        placed = _checkout(email_services, shipping_address)

        assert len(channel.sent_emails) == 1
        email = channel.sent_emails[0]
        assert email["to"] == "ada@example.com"
        assert email["subject"] == f"Order {placed.order.order_number} received"
        assert "10.00 USD" in email["body"]

    def test_confirmation_email_after_payment(self, email_services, channel, shipping_address):
        placed = _checkout(email_services, shipping_address)
        email_services.payments.confirm(placed.intent.id)

        subjects = [email["subject"] for email in channel.sent_emails]
        assert subjects[-1] == f"Order {placed.order.order_number} confirmed"

    def test_cancellation_email(self, email_services, channel, shipping_address):
        placed = _checkout(email_services, shipping_address)
        email_services.order_service.cancel(placed.order.id, reason="Changed my mind")

        assert "Changed my mind" in channel.sent_emails[-1]["body"]

    def test_orders_without_email_send_nothing(self, email_services, channel, shipping_address):
        _checkout(email_services, shipping_address, email=None)
        assert channel.sent_emails == []

    def test_failed_send_does_not_fail_checkout(self, email_services, channel, shipping_address):
        channel.configure(should_succeed=False)

        placed = _checkout(email_services, shipping_address)

        assert email_services.orders.get(placed.order.id) is not None
        assert channel.sent_emails == []


class TestNotifierFactory:
    def test_default_notifier_sends_email(self):
        reset_notifier()
        try:
            assert isinstance(get_notifier(), EmailNotifier)
        finally:
            reset_notifier()

    def test_publish_swallows_delivery_errors(self, notifier):
        notifier.configure(should_succeed=False)
        publish_events(notifier, [object()])
        assert notifier.events == []
