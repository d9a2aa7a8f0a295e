"""Tests for the Bedrock model boundary."""

import json
from unittest.mock import patch

import pytest

from concierge.services import ai_service
from concierge.services.json_recovery import Empty, Recovered
from concierge.utils.exceptions import InsufficientCreditsError

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="


def _sent_body(mock_bedrock) -> dict:
    return json.loads(mock_bedrock.invoke_model.call_args.kwargs["body"])


class TestInvokeModel:
    """Tests for invoke_model."""

    def test_plain_text(self, mock_bedrock, bedrock_response):
        """Test text blocks are joined into the response."""
        mock_bedrock.invoke_model.return_value = bedrock_response(
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "there"},
        )

        response = ai_service.invoke_model("Say hello", system="Be brief")

        assert response.text == "Hello there"
        assert response.grounding == []
        body = _sent_body(mock_bedrock)
        assert body["system"] == "Be brief"
        assert body["messages"][0]["content"] == [{"type": "text", "text": "Say hello"}]
        assert "tools" not in body

    def test_object_schema_forced_tool(self, mock_bedrock, bedrock_response):
        """Test an object schema is sent as a forced tool and its input returned as JSON text."""
        schema = {"type": "object", "properties": {"tone": {"type": "string"}}}
        mock_bedrock.invoke_model.return_value = bedrock_response(
            {"type": "tool_use", "name": "structured_output", "input": {"tone": "Luxury"}},
        )

        response = ai_service.invoke_model("Analyze", response_schema=schema)

        assert json.loads(response.text) == {"tone": "Luxury"}
        body = _sent_body(mock_bedrock)
        assert body["tools"][0]["input_schema"] == schema
        assert body["tool_choice"] == {"type": "tool", "name": "structured_output"}

    def test_array_schema_is_wrapped(self, mock_bedrock, bedrock_response):
        """Test a non-object schema is wrapped under result and unwrapped on return."""
        schema = {"type": "array", "items": {"type": "string"}}
        mock_bedrock.invoke_model.return_value = bedrock_response(
            {"type": "tool_use", "name": "structured_output", "input": {"result": ["a", "b"]}},
        )

        response = ai_service.invoke_model("List", response_schema=schema)

        assert json.loads(response.text) == ["a", "b"]
        sent_schema = _sent_body(mock_bedrock)["tools"][0]["input_schema"]
        assert sent_schema["properties"]["result"] == schema

    def test_images_precede_text(self, mock_bedrock, bedrock_response):
        """Test image blocks are sent ahead of the prompt."""
        mock_bedrock.invoke_model.return_value = bedrock_response({"type": "text", "text": "ok"})

        ai_service.invoke_model("Describe", images=[PNG_DATA_URL])

        content = _sent_body(mock_bedrock)["messages"][0]["content"]
        assert content[0] == {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/png", "data": "iVBORw0KGgo="},
        }
        assert content[1]["type"] == "text"

    def test_web_search_grounding(self, mock_bedrock, bedrock_response):
        """Test search results are embedded and their sources reported."""
        mock_bedrock.invoke_model.return_value = bedrock_response({"type": "text", "text": "[]"})
        results = "Title: Bloom\nURL Source: https://bloom.example\n\nTitle: Petal\nURL Source: https://petal.example"

        with patch.object(ai_service, "search_web", return_value=results) as mock_search:
            response = ai_service.invoke_model("Find florists", web_search="florist near Brighton")

        mock_search.assert_called_once_with("florist near Brighton")
        assert response.grounding == [
            {"uri": "https://bloom.example", "source": "web_search"},
            {"uri": "https://petal.example", "source": "web_search"},
        ]
        assert "=== WEB SEARCH RESULTS ===" in _sent_body(mock_bedrock)["messages"][0]["content"][0]["text"]

    def test_failed_fetch_adds_no_grounding(self, mock_bedrock, bedrock_response):
        """Test an unreachable page is left out of the context."""
        mock_bedrock.invoke_model.return_value = bedrock_response({"type": "text", "text": "{}"})

        with patch.object(ai_service, "fetch_url", return_value=""):
            response = ai_service.invoke_model("Analyze", url_context=["https://down.example"])

        assert response.grounding == []

    def test_transport_failure_propagates(self, mock_bedrock):
        """Test a Bedrock failure is raised to the caller."""
        mock_bedrock.invoke_model.side_effect = RuntimeError("ThrottlingException")

        with pytest.raises(RuntimeError):
            ai_service.invoke_model("Hello")


class TestImageBlock:
    """Tests for image_block."""

    def test_rejects_plain_urls(self):
        """Test only base64 data URLs are accepted."""
        with pytest.raises(ValueError):
            ai_service.image_block("https://bloom.example/concept.png")


class TestGenerate:
    """Tests for generate and generate_json."""

    def test_unbilled_call(self):
        """Test a call without a ledger is not charged."""
        with patch.object(ai_service, "invoke_model", return_value=ai_service.ModelResponse("hi")):
            generation = ai_service.generate("Hello")

        assert generation.ledger is None
        assert generation.response.text == "hi"

    def test_billed_call_debits(self, ledger):
        """Test a billed call returns the debited ledger."""
        with patch.object(ai_service, "invoke_model", return_value=ai_service.ModelResponse("hi")):
            generation = ai_service.generate("Hello", ledger=ledger, operation="email_pitch")

        assert generation.ledger.balance == ledger.balance - 3

    def test_billed_call_needs_operation(self, ledger):
        """Test a ledger without an operation name is rejected."""
        with pytest.raises(ValueError):
            ai_service.generate("Hello", ledger=ledger)

    def test_insufficient_credits_before_call(self, ledger):
        """Test the model is not called when credits run out."""
        broke = ledger.debit("site_build", ledger.balance)

        with patch.object(ai_service, "invoke_model") as mock_invoke:
            with pytest.raises(InsufficientCreditsError):
                ai_service.generate("Hello", ledger=broke, operation="brand_analysis")

        mock_invoke.assert_not_called()

    def test_failed_call_carries_ledger(self, ledger):
        """Test a failed billed call keeps its debit on the exception."""
        with patch.object(ai_service, "invoke_model", side_effect=TimeoutError("read timeout")):
            with pytest.raises(TimeoutError) as exc_info:
                ai_service.generate("Hello", ledger=ledger, operation="site_build")

        assert exc_info.value.ledger.balance == ledger.balance - 125

    def test_generate_json_recovers(self):
        """Test JSON output is always run through recovery."""
        text = 'Sure!\n```json\n{"subject": "Hi"}\n```'
        with patch.object(ai_service, "invoke_model", return_value=ai_service.ModelResponse(text)) as mock_invoke:
            generation = ai_service.generate_json("Write", max_tokens=100)

        assert generation.data == Recovered({"subject": "Hi"})
        assert mock_invoke.call_args.kwargs["temperature"] == 0.5

    def test_generate_json_empty(self):
        """Test unreadable output is reported as Empty."""
        with patch.object(ai_service, "invoke_model", return_value=ai_service.ModelResponse("I can't help")):
            generation = ai_service.generate_json("Write")

        assert isinstance(generation.data, Empty)


class TestGenerateImage:
    """Tests for generate_image."""

    def test_returns_decoded_bytes(self, mock_bedrock):
        """Test the Titan response is decoded."""
        import base64
        import io

        mock_bedrock.invoke_model.return_value = {
            "body": io.BytesIO(json.dumps({"images": [base64.b64encode(b"png").decode()]}).encode())
        }

        assert ai_service.generate_image("A florist website", 1280, 768) == b"png"
        body = _sent_body(mock_bedrock)
        assert body["imageGenerationConfig"]["width"] == 1280
        assert body["imageGenerationConfig"]["height"] == 768

    def test_access_denied(self, mock_bedrock):
        """Test missing model access is reported as not implemented."""
        mock_bedrock.invoke_model.side_effect = Exception("AccessDeniedException: not authorized")

        with pytest.raises(NotImplementedError):
            ai_service.generate_image("A florist website")
