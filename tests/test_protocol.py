"""Tests for the wire-format adapter."""

from __future__ import annotations

import unittest

from companion_chat.exceptions import TransportError
from companion_chat.models import Attachment, Message, Role
from companion_chat.protocol import FALLBACK_REPLY, ProtocolAdapter


def _attachment(name: str = "a.png", media_type: str = "image/png") -> Attachment:
    return Attachment(id=name, media_type=media_type, file_name=name, payload="AAAA")


def _grounded_response(chunks: list[dict], widget: str | None = None) -> dict:
    metadata: dict = {"groundingChunks": chunks}
    if widget is not None:
        metadata["searchEntryPoint"] = {"renderedContent": widget}
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": "Answer"}]},
                "groundingMetadata": metadata,
            }
        ]
    }


class ToRequestTests(unittest.TestCase):
    """Validate history mapping and part ordering."""

    def test_roles_and_part_ordering(self) -> None:
        adapter = ProtocolAdapter(system_instruction="Be kind", temperature=0.5)
        history = [
            Message.create(Role.ASSISTANT, "Welcome"),
            Message.create(Role.USER, "look", attachments=[_attachment("old.png")]),
        ]
        request = adapter.to_request(history, "and this", [_attachment("new.pdf")])
        contents = request.contents

        self.assertEqual([turn["role"] for turn in contents], ["model", "user", "user"])
        # History turns carry text first, the outgoing turn attachments first.
        self.assertEqual(contents[1]["parts"][0], {"text": "look"})
        self.assertIn("inlineData", contents[1]["parts"][1])
        self.assertIn("inlineData", contents[2]["parts"][0])
        self.assertEqual(contents[2]["parts"][-1], {"text": "and this"})
        self.assertEqual(
            contents[2]["parts"][0]["inlineData"],
            {"mimeType": "image/png", "data": "AAAA"},
        )

    def test_payload_includes_generation_settings(self) -> None:
        adapter = ProtocolAdapter(
            system_instruction="Be kind", temperature=0.7, enable_search=True
        )
        payload = adapter.to_request([], "hi").to_payload()

        self.assertEqual(payload["systemInstruction"], {"parts": [{"text": "Be kind"}]})
        self.assertEqual(payload["generationConfig"], {"temperature": 0.7})
        self.assertEqual(payload["tools"], [{"googleSearch": {}}])

    def test_payload_omits_unset_settings(self) -> None:
        payload = ProtocolAdapter().to_request([], "hi").to_payload()
        self.assertEqual(set(payload), {"contents"})


class FromResponseTests(unittest.TestCase):
    """Validate reply text, fallback and citation extraction."""

    def test_flattened_text_field(self) -> None:
        reply = ProtocolAdapter().from_response({"text": "Hi"})
        self.assertEqual(reply.role, Role.ASSISTANT)
        self.assertEqual(reply.text, "Hi")
        self.assertIsNone(reply.citations)

    def test_candidate_parts_skip_thoughts(self) -> None:
        payload = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "thinking...", "thought": True},
                            {"text": "Hello "},
                            {"text": "world"},
                        ]
                    }
                }
            ]
        }
        self.assertEqual(ProtocolAdapter().from_response(payload).text, "Hello world")

    def test_empty_text_uses_fallback(self) -> None:
        with self.assertLogs("companion_chat.protocol", level="WARNING") as logs:
            reply = ProtocolAdapter().from_response({"candidates": []})
        self.assertEqual(reply.text, FALLBACK_REPLY)
        self.assertTrue(any("protocol.response.empty" in line for line in logs.output))

    def test_citations_are_deduplicated_in_first_seen_order(self) -> None:
        payload = _grounded_response(
            [
                {"web": {"uri": "https://a.example/x", "title": "A"}},
                {"web": {"uri": "https://www.b.example/y"}},
                {"web": {"uri": "https://a.example/x", "title": "A again"}},
                {"retrievedContext": {}},
            ]
        )
        citations = ProtocolAdapter().from_response(payload).citations
        assert citations is not None

        self.assertEqual(
            [source.url for source in citations.sources],
            ["https://a.example/x", "https://www.b.example/y"],
        )
        self.assertEqual(citations.sources[0].title, "A")
        self.assertEqual(citations.sources[1].title, "Web Result")
        self.assertEqual(citations.sources[1].domain, "b.example")
        self.assertIsNone(citations.rendered_search_widget)

    def test_widget_without_sources_is_kept(self) -> None:
        citations = ProtocolAdapter().from_response(
            _grounded_response([], widget="<div>search</div>")
        ).citations
        assert citations is not None
        self.assertEqual(citations.sources, ())
        self.assertEqual(citations.rendered_search_widget, "<div>search</div>")

    def test_empty_grounding_yields_no_citations(self) -> None:
        reply = ProtocolAdapter().from_response(_grounded_response([]))
        self.assertIsNone(reply.citations)

    def test_invalid_payload_raises_transport_error(self) -> None:
        with self.assertRaises(TransportError):
            ProtocolAdapter().from_response({"candidates": "not-a-list"})


if __name__ == "__main__":
    unittest.main()
