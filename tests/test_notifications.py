import asyncio

import pytest

from formcall.client.notifications import ERROR_MESSAGES, ErrorNotifier, error_message
from formcall.errors import CallError, CallConnectionError, ErrorCode, MicAccessError, error_from_code


def test_error_message_by_code():
    assert error_message(ErrorCode.MIC).startswith("Microphone access denied")
    assert error_message(ErrorCode.UNKNOWN, "Something odd") == "Something odd"
    assert error_message(ErrorCode.UNKNOWN) == "An unexpected error occurred."


def test_every_known_code_has_a_message():
    for code in ErrorCode:
        if code is not ErrorCode.UNKNOWN:
            assert code in ERROR_MESSAGES


def test_error_from_code():
    error = error_from_code("MissingParams", "late")
    assert error.code == ErrorCode.MISSING_PARAMS
    assert error.message == "late"
    assert error_from_code("Bogus").code == ErrorCode.UNKNOWN


@pytest.mark.asyncio
class TestErrorNotifier:

    async def test_notify_and_auto_dismiss(self):
        notifier = ErrorNotifier(display_seconds=0.05)
        shown = []
        dismissed = []
        notifier.on_show(shown.append)
        notifier.on_dismiss(lambda: dismissed.append(True))

        notification = notifier.notify(MicAccessError())

        assert notification.title == "Mic Error"
        assert notifier.current == notification
        assert shown == [notification]

        await asyncio.sleep(0.1)

        assert notifier.current is None
        assert dismissed == [True]

    async def test_new_error_replaces_current(self):
        notifier = ErrorNotifier(display_seconds=10)

        notifier.notify(MicAccessError())
        notification = notifier.notify(CallConnectionError("lost"))

        assert notifier.current == notification
        assert notification.code == ErrorCode.CONNECTION
        notifier.dismiss()

    async def test_manual_dismiss_is_idempotent(self):
        notifier = ErrorNotifier(display_seconds=10)
        dismissed = []
        notifier.on_dismiss(lambda: dismissed.append(True))

        notifier.notify(CallError("odd"))
        notifier.dismiss()
        notifier.dismiss()

        assert dismissed == [True]
