"""Email channel factory. Defaults to the fake adapter; tests may swap it."""

from storefront.notifications.channel.email_port import EmailPort
from storefront.notifications.channel.fake_email import FakeEmailAdapter

_current_email: EmailPort | None = None


def get_email_channel() -> EmailPort:
    global _current_email
    if _current_email is None:
        _current_email = FakeEmailAdapter()
    return _current_email


def set_email_channel(channel: EmailPort) -> None:
    global _current_email
    _current_email = channel


def reset_email_channel() -> None:
    global _current_email
    _current_email = None
