"""Tests for keyed locks and environment-driven settings."""

import threading

import pytest

from storefront.config import Settings, get_settings, reset_settings
from storefront.errors import LockTimeout
from storefront.utils.locks import KeyedLocks


class TestKeyedLocks:
    def test_reentrant_for_the_same_thread(self):
        locks = KeyedLocks("test", timeout=0.1)
        with locks.hold("a"):
            with locks.hold("a", "b"):
                pass

    def test_other_thread_times_out(self):
        locks = KeyedLocks("test", timeout=0.05)
        held = threading.Event()
        done = threading.Event()

        def holder():
            with locks.hold("a"):
                held.set()
                done.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(2)
        try:
            with pytest.raises(LockTimeout) as exc:
                with locks.hold("b", "a"):
                    pass
            assert exc.value.key == "test:a"
        finally:
            done.set()
            thread.join()

        # "b" was released when "a" timed out
        with locks.hold("b", timeout=0):
            pass

    def test_distinct_keys_do_not_contend(self):
        locks = KeyedLocks("test", timeout=0.05)
        held = threading.Event()
        done = threading.Event()

        def holder():
            with locks.hold("a"):
                held.set()
                done.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(2)
        try:
            with locks.hold("b"):
                pass
        finally:
            done.set()
            thread.join()


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.max_payment_attempts == 3
        assert settings.currency == "USD"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_MAX_PAYMENT_ATTEMPTS", "5")
        monkeypatch.setenv("STOREFRONT_CURRENCY", "eur")
        reset_settings()
        try:
            settings = get_settings()
            assert settings.max_payment_attempts == 5
            assert settings.currency == "EUR"
        finally:
            reset_settings()
