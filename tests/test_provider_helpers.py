from __future__ import annotations

import pytest

from pageplus.core.token_counter import HeuristicTokenCounter
from pageplus.models.messages import ConversationMessage, MessageSource
from pageplus.models.providers import FormInputElement
from pageplus.providers.base import (
    decode_data_url,
    estimate_quota,
    extract_json_object,
    fallback_form_mapping,
    language_instruction,
    render_history,
    restrict_to_selectors,
    split_data_url,
)


class TestDataUrls:
    def test_split(self) -> None:
        assert split_data_url("data:image/jpeg;base64,QUJD") == ("image/jpeg", "QUJD")

    def test_decode(self) -> None:
        assert decode_data_url("data:image/png;base64,QUJD") == (b"ABC", "image/png")

    def test_not_a_data_url(self) -> None:
        with pytest.raises(ValueError):
            split_data_url("https://example.com/a.png")


class TestPromptHelpers:
    def test_language_instruction(self) -> None:
        assert "Please respond in Japanese (日本語)" in language_instruction("ja")
        assert "Please respond in English" in language_instruction("xx")

    def test_render_history(self) -> None:
        history = [
            ConversationMessage(source=MessageSource.user, content="hi"),
            ConversationMessage(source=MessageSource.ai, content="hello"),
        ]
        assert render_history(history) == "Previous conversation:\nUser: hi\nAssistant: hello\n\n"
        assert render_history([]) == ""

    def test_extract_json_object_tolerates_fences(self) -> None:
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}
        with pytest.raises(ValueError):
            extract_json_object("[1, 2]")


class TestFallbackFormMapping:
    def test_known_field_types(self) -> None:
        elements = [
            FormInputElement(selector='input[type="email"]', html="<input type='email'>"),
            FormInputElement(selector='input[name="name"]', html='<input name="name">'),
            FormInputElement(selector='input[type="tel"]', html='<input type="tel">'),
            FormInputElement(selector="#msg", html='<textarea id="msg"></textarea>'),
            FormInputElement(selector='input[type="checkbox"]', html='<input type="checkbox">'),
        ]
        mapping = fallback_form_mapping(elements)
        assert mapping['input[type="email"]'] == "sarah.johnson@techcorp.com"
        assert mapping['input[name="name"]'] == "Sarah Johnson"
        assert mapping['input[type="tel"]'] == "+1 (555) 123-4567"
        assert mapping["#msg"].startswith("I am interested")
        assert mapping['input[type="checkbox"]'] is None

    def test_restrict_drops_invented_selectors(self) -> None:
        elements = [FormInputElement(selector="#a", html="<input id='a'>")]
        assert restrict_to_selectors({"#a": 1, "#invented": "x"}, elements) == {"#a": "1"}


def test_estimate_quota_is_clamped() -> None:
    usage = estimate_quota(["a" * 4000], 100, HeuristicTokenCounter())
    assert usage.current == 1000
    assert usage.percentage == 100
