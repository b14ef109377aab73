"""Tests for user-facing notifications."""
from weekshop.domain.errors import DuplicateItemError, RemoteError
from weekshop.notifications import NotificationLevel, Notifier


def test_transient_errors_use_the_operation_message():
    notifier = Notifier()

    notifier.report(RemoteError(), "Failed to update quantity")

    assert notifier.last.message == "Failed to update quantity"
    assert notifier.last.level is NotificationLevel.ERROR
    assert notifier.last.kind == "remote"


def test_constraint_errors_keep_their_message():
    notifier = Notifier()

    notifier.report(DuplicateItemError(suggestions=["Change the quantity instead"]), "Error adding product to list")

    assert notifier.last.message == "Product already in list"
    assert notifier.last.suggestions == ["Change the quantity instead"]


def test_listener_and_history_limit():
    seen = []
    notifier = Notifier(listener=seen.append, keep=2)

    for message in ("one", "two", "three"):
        notifier.success(message)
    notifier.error("four")

    assert [n.message for n in seen] == ["one", "two", "three", "four"]
    assert [n.message for n in notifier.history] == ["three", "four"]
    assert [n.message for n in notifier.errors()] == ["four"]
