"""Unit tests for the ChangeNotifier."""

import logging

import pytest

from client_tracker.application.services import ChangeNotifier


def test_publish_reaches_subscribers_in_registration_order():
    notifier = ChangeNotifier()
    calls: list[tuple[str, object]] = []
    notifier.subscribe(lambda state: calls.append(("first", state)))
    notifier.subscribe(lambda state: calls.append(("second", state)))

    notifier.publish([1, 2])

    assert calls == [("first", [1, 2]), ("second", [1, 2])]


def test_failing_subscriber_does_not_block_the_others(caplog):
    """A subscriber that raises is logged; the next one still gets the event."""
    notifier = ChangeNotifier()
    received = []

    def broken(state):
        raise RuntimeError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)

    with caplog.at_level(logging.ERROR):
        notifier.publish("snapshot")

    assert received == ["snapshot"]
    assert "failed while handling a change notification" in caplog.text
    assert "[NOTIFY]" in caplog.text
    assert "RuntimeError: boom" in caplog.text


def test_duplicate_subscription_is_ignored():
    notifier = ChangeNotifier()
    received = []
    notifier.subscribe(received.append)
    notifier.subscribe(received.append)

    notifier.publish("x")

    assert received == ["x"]
    assert notifier.subscriber_count == 1


def test_unsubscribe_stops_delivery():
    notifier = ChangeNotifier()
    received = []
    notifier.subscribe(received.append)
    notifier.unsubscribe(received.append)
    notifier.unsubscribe(received.append)  # unknown subscriber is a no-op

    notifier.publish("x")

    assert received == []


def test_subscriber_may_unsubscribe_itself_during_publish():
    notifier = ChangeNotifier()
    received = []

    def once(state):
        received.append(("once", state))
        notifier.unsubscribe(once)

    notifier.subscribe(once)
    notifier.subscribe(lambda state: received.append(("always", state)))

    notifier.publish(1)
    notifier.publish(2)

    assert received == [("once", 1), ("always", 1), ("always", 2)]


def test_subscribe_rejects_non_callables():
    with pytest.raises(TypeError):
        ChangeNotifier().subscribe("not callable")
