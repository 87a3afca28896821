"""Tests for the request lifecycle controller."""

from __future__ import annotations

import asyncio
from typing import Any
import unittest

from companion_chat.attachments import AttachmentCodec, AttachmentTray
from companion_chat.exceptions import (
    ConcurrentRequestError,
    EmptyInputError,
    ProviderConnectionError,
)
from companion_chat.lifecycle import SEND_FAILED_MESSAGE, RequestLifecycleController
from companion_chat.message_store import ConversationStore
from companion_chat.models import MoodState, Role
from companion_chat.mood import MoodController, MoodTiming
from companion_chat.protocol import ProtocolAdapter

FAST_TIMING = MoodTiming(
    success_cooldown_seconds=0.05,
    blink_min_seconds=10.0,
    blink_max_seconds=10.0,
    blink_duration_seconds=0.01,
)


class FakeTransport:
    """Return canned payloads and record request bodies."""

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = list(responses or [{"text": "Hi"}])
        self.payloads: list[dict[str, Any]] = []
        self.release: asyncio.Event | None = None

    async def generate_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.payloads.append(payload)
        if self.release is not None:
            await self.release.wait()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _controller(
    transport: FakeTransport,
) -> tuple[RequestLifecycleController, ConversationStore, MoodController]:
    store = ConversationStore(welcome_message="Welcome")
    mood = MoodController(FAST_TIMING)
    controller = RequestLifecycleController(
        store, ProtocolAdapter(), transport, mood, AttachmentTray()
    )
    return controller, store, mood


class RequestLifecycleTests(unittest.IsolatedAsyncioTestCase):
    """Validate the send flow end to end against a fake provider."""

    async def test_successful_send_appends_reply_and_cools_down(self) -> None:
        transport = FakeTransport([{"text": "Hi"}])
        controller, store, mood = _controller(transport)

        reply = await controller.send("Hello")

        assert reply is not None
        self.assertEqual(reply.text, "Hi")
        self.assertEqual(
            [(m.role, m.text) for m in store.messages],
            [(Role.ASSISTANT, "Welcome"), (Role.USER, "Hello"), (Role.ASSISTANT, "Hi")],
        )
        self.assertFalse(store.pending)
        self.assertIsNone(store.last_error)
        self.assertEqual(mood.state, MoodState.SUCCESS)

        await asyncio.sleep(0.15)
        self.assertEqual(mood.state, MoodState.IDLE)
        await mood.aclose()

    async def test_history_includes_welcome_and_excludes_new_message(self) -> None:
        transport = FakeTransport([{"text": "Hi"}])
        controller, _store, mood = _controller(transport)

        await controller.send("Hello")

        contents = transport.payloads[0]["contents"]
        self.assertEqual(len(contents), 2)
        self.assertEqual(contents[0], {"role": "model", "parts": [{"text": "Welcome"}]})
        self.assertEqual(contents[1], {"role": "user", "parts": [{"text": "Hello"}]})
        await mood.aclose()

    async def test_failure_keeps_optimistic_message(self) -> None:
        transport = FakeTransport([ProviderConnectionError("offline")])
        controller, store, mood = _controller(transport)

        with self.assertLogs("companion_chat.lifecycle", level="WARNING") as logs:
            reply = await controller.send("Hello")

        self.assertIsNone(reply)
        self.assertEqual(store.messages[-1].text, "Hello")
        self.assertEqual(store.messages[-1].role, Role.USER)
        self.assertFalse(store.pending)
        self.assertEqual(store.last_error, SEND_FAILED_MESSAGE)
        self.assertEqual(mood.state, MoodState.FAILURE)
        self.assertTrue(any("send.failed" in line for line in logs.output))

    async def test_next_send_clears_previous_error(self) -> None:
        transport = FakeTransport([ProviderConnectionError("offline"), {"text": "ok"}])
        controller, store, mood = _controller(transport)

        await controller.send("first")
        await controller.send("second")

        self.assertIsNone(store.last_error)
        self.assertEqual(store.messages[-1].text, "ok")
        await mood.aclose()

    async def test_unexpected_error_is_recorded_and_propagated(self) -> None:
        transport = FakeTransport([RuntimeError("bug")])
        controller, store, mood = _controller(transport)

        with self.assertRaises(RuntimeError):
            await controller.send("Hello")
        self.assertFalse(store.pending)
        self.assertEqual(mood.state, MoodState.FAILURE)

    async def test_empty_send_is_a_no_op(self) -> None:
        transport = FakeTransport()
        controller, store, mood = _controller(transport)

        with self.assertRaises(EmptyInputError):
            controller.validate("   ")
        self.assertIsNone(await controller.send("   "))
        self.assertEqual(len(store.messages), 1)
        self.assertEqual(transport.payloads, [])
        self.assertEqual(mood.state, MoodState.IDLE)

    async def test_attachments_only_send_is_allowed(self) -> None:
        transport = FakeTransport([{"text": "Nice picture"}])
        controller, store, mood = _controller(transport)
        controller.tray.add(AttachmentCodec().encode(b"img", "image/png", "a.png"))

        reply = await controller.send("")

        self.assertIsNotNone(reply)
        self.assertEqual(len(store.messages[1].attachments), 1)
        self.assertEqual(len(controller.tray), 0)
        parts = transport.payloads[0]["contents"][-1]["parts"]
        self.assertIn("inlineData", parts[0])
        await mood.aclose()

    async def test_concurrent_send_is_rejected(self) -> None:
        transport = FakeTransport([{"text": "first"}, {"text": "second"}])
        transport.release = asyncio.Event()
        controller, store, mood = _controller(transport)

        first = asyncio.create_task(controller.send("one"))
        await asyncio.sleep(0)
        self.assertTrue(store.pending)
        self.assertEqual(mood.state, MoodState.PENDING)

        with self.assertRaises(ConcurrentRequestError):
            controller.validate("two")
        self.assertIsNone(await controller.send("two"))

        transport.release.set()
        reply = await first
        assert reply is not None
        self.assertEqual(reply.text, "first")
        self.assertEqual(len(transport.payloads), 1)
        self.assertEqual([m.text for m in store.messages], ["Welcome", "one", "first"])
        await mood.aclose()

    async def test_reply_after_reset_is_discarded(self) -> None:
        transport = FakeTransport([{"text": "late"}])
        transport.release = asyncio.Event()
        controller, store, mood = _controller(transport)

        pending = asyncio.create_task(controller.send("one"))
        await asyncio.sleep(0)
        store.reset()
        mood.reset()
        transport.release.set()

        self.assertIsNone(await pending)
        self.assertEqual([m.text for m in store.messages], ["Welcome"])
        self.assertFalse(store.pending)
        self.assertEqual(mood.state, MoodState.IDLE)

    async def test_failure_after_reset_leaves_new_conversation_alone(self) -> None:
        transport = FakeTransport([ProviderConnectionError("offline")])
        transport.release = asyncio.Event()
        controller, store, mood = _controller(transport)

        pending = asyncio.create_task(controller.send("one"))
        await asyncio.sleep(0)
        store.reset()
        mood.reset()
        transport.release.set()

        self.assertIsNone(await pending)
        self.assertIsNone(store.last_error)
        self.assertEqual(mood.state, MoodState.IDLE)

    async def test_cancelled_send_clears_pending(self) -> None:
        transport = FakeTransport([{"text": "never"}, {"text": "again"}])
        transport.release = asyncio.Event()
        controller, store, mood = _controller(transport)

        pending = asyncio.create_task(controller.send("one"))
        await asyncio.sleep(0)
        self.assertTrue(store.pending)
        pending.cancel()
        with self.assertLogs("companion_chat.lifecycle", level="WARNING") as logs:
            with self.assertRaises(asyncio.CancelledError):
                await pending

        self.assertFalse(store.pending)
        self.assertEqual(store.last_error, SEND_FAILED_MESSAGE)
        self.assertEqual(mood.state, MoodState.FAILURE)
        self.assertTrue(any("send.failed" in line for line in logs.output))

        transport.responses.pop(0)
        transport.release.set()
        reply = await controller.send("two")
        assert reply is not None
        self.assertEqual(reply.text, "again")
        self.assertEqual([m.text for m in store.messages], ["Welcome", "one", "two", "again"])
        await mood.aclose()

    async def test_sent_text_is_stripped(self) -> None:
        transport = FakeTransport([{"text": "Hi"}])
        controller, store, mood = _controller(transport)

        await controller.send("  hello there \n")

        self.assertEqual(store.messages[1].text, "hello there")
        parts = transport.payloads[0]["contents"][-1]["parts"]
        self.assertEqual(parts[-1], {"text": "hello there"})
        await mood.aclose()


class StoreBeforeMoodTests(unittest.IsolatedAsyncioTestCase):
    """Mood listeners always observe a store that already reflects the outcome."""

    def _observe(
        self, store: ConversationStore, mood: MoodController
    ) -> list[tuple[MoodState, bool, int, str | None]]:
        seen: list[tuple[MoodState, bool, int, str | None]] = []
        mood.on_change(
            lambda controller: seen.append(
                (controller.state, store.pending, len(store.messages), store.last_error)
            )
        )
        return seen

    async def test_success_is_visible_in_store_before_mood(self) -> None:
        transport = FakeTransport([{"text": "Hi"}])
        controller, store, mood = _controller(transport)
        seen = self._observe(store, mood)

        await controller.send("Hello")

        self.assertEqual(
            seen[:2],
            [
                (MoodState.PENDING, True, 2, None),
                (MoodState.SUCCESS, False, 3, None),
            ],
        )
        await mood.aclose()

    async def test_failure_is_visible_in_store_before_mood(self) -> None:
        transport = FakeTransport([ProviderConnectionError("offline")])
        controller, store, mood = _controller(transport)
        seen = self._observe(store, mood)

        with self.assertLogs("companion_chat.lifecycle", level="WARNING"):
            await controller.send("Hello")

        self.assertEqual(
            seen,
            [
                (MoodState.PENDING, True, 2, None),
                (MoodState.FAILURE, False, 2, SEND_FAILED_MESSAGE),
            ],
        )


if __name__ == "__main__":
    unittest.main()
