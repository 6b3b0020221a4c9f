"""Tests for OpenAiCharacterGenerationClient and its helpers."""
from typing import Any, Optional
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from darkchar.models.character import CharacterInput, DarknessSelection
from darkchar.services.errors import ProviderIntegrationError
from darkchar.services.openai_client import (
    MISSING_API_KEY_MESSAGE,
    MISSING_MODEL_MESSAGE,
    NO_TEXT_MESSAGE,
    REQUEST_FAILED_MESSAGE,
    OpenAiCharacterGenerationClient,
    OpenAiClientFactory,
    error_detail,
    extract_response_text,
    is_temperature_unsupported,
)
from darkchar.services.prompt import PromptTemplateRenderer

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def _status_error(status: int, error: Optional[dict[str, Any]]) -> openai.APIStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return openai.APIStatusError("error", response=response, body=error)


def _text_response(*texts: str) -> dict[str, Any]:
    return {
        "id": "resp_1",
        "model": "gpt-4o",
        "output": [
            {
                "type": "message",
                "content": [{"type": "output_text", "text": text} for text in texts],
            }
        ],
        "usage": {"input_tokens": 10, "output_tokens": 20, "total_tokens": 30},
    }


class _DumpableResponse:
    """Stands in for an SDK response model."""

    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload

    def model_dump(self) -> dict[str, Any]:
        return self._payload


@pytest.fixture
def sdk_client() -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    return client


@pytest.fixture
def factory(sdk_client: MagicMock) -> MagicMock:
    factory = MagicMock(spec=OpenAiClientFactory)
    factory.create_client.return_value = sdk_client
    return factory


@pytest.fixture
def client(factory: MagicMock) -> OpenAiCharacterGenerationClient:
    return OpenAiCharacterGenerationClient(
        factory,
        renderer=PromptTemplateRenderer(template="genre={{worldGenre}}"),
    )


def _generate(
    client: OpenAiCharacterGenerationClient,
    character_input: CharacterInput,
    selection: DarknessSelection,
    model: Optional[str] = "gpt-4o",
):
    return client.generate_narrative("sk-abc", model, character_input, selection)


# ---------------------------------------------------------------------------
# Successful generation
# ---------------------------------------------------------------------------


class TestGenerateNarrative:
    def test_returns_trimmed_text_and_prompt(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = _text_response("  闇に堕ちた騎士の物語  ")

        result = _generate(client, character_input, darkness_selection)

        assert result.narrative == "闇に堕ちた騎士の物語"
        assert result.prompt == "genre=ダークファンタジー"

    def test_concatenates_multiple_fragments(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = _text_response("前半。", "後半。")
        assert _generate(client, character_input, darkness_selection).narrative == "前半。後半。"

    def test_first_request_shape(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = _text_response("物語")

        _generate(client, character_input, darkness_selection)

        kwargs = sdk_client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.8
        assert kwargs["max_output_tokens"] == 600
        assert kwargs["input"] == [
            {
                "role": "user",
                "content": [{"type": "input_text", "text": "genre=ダークファンタジー"}],
            }
        ]

    def test_accepts_sdk_model_response(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = _DumpableResponse(_text_response("物語"))
        assert _generate(client, character_input, darkness_selection).narrative == "物語"

    def test_blank_model_raises_without_calling_api(
        self,
        client: OpenAiCharacterGenerationClient,
        factory: MagicMock,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        with pytest.raises(ProviderIntegrationError, match=MISSING_MODEL_MESSAGE):
            _generate(client, character_input, darkness_selection, model="  ")
        factory.create_client.assert_not_called()
        sdk_client.responses.create.assert_not_called()


# ---------------------------------------------------------------------------
# Retry and error handling
# ---------------------------------------------------------------------------


class TestTemperatureRetry:
    def test_retries_once_without_temperature(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = [
            _status_error(
                400,
                {
                    "type": "invalid_request_error",
                    "code": None,
                    "message": "Unsupported parameter: 'temperature' is not supported with this model.",
                    "param": "temperature",
                },
            ),
            _text_response("再試行成功"),
        ]

        result = _generate(client, character_input, darkness_selection)

        assert result.narrative == "再試行成功"
        calls = sdk_client.responses.create.call_args_list
        assert len(calls) == 2
        assert "temperature" in calls[0].kwargs
        assert "temperature" not in calls[1].kwargs

    def test_retries_on_error_code(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = [
            _status_error(400, {"error": {"code": "temperature_not_supported"}}),
            _text_response("ok"),
        ]
        assert _generate(client, character_input, darkness_selection).narrative == "ok"
        assert sdk_client.responses.create.call_count == 2

    def test_second_temperature_error_is_not_retried(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        error = _status_error(400, {"code": "temperature_not_supported", "message": "no temperature"})
        sdk_client.responses.create.side_effect = [error, error]

        with pytest.raises(ProviderIntegrationError):
            _generate(client, character_input, darkness_selection)
        assert sdk_client.responses.create.call_count == 2

    def test_blank_first_response_retries_without_temperature(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = [_text_response("   "), _text_response("二回目")]

        assert _generate(client, character_input, darkness_selection).narrative == "二回目"
        assert "temperature" not in sdk_client.responses.create.call_args_list[1].kwargs

    def test_no_text_after_two_attempts(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = {"output": []}

        with pytest.raises(ProviderIntegrationError, match=NO_TEXT_MESSAGE):
            _generate(client, character_input, darkness_selection)
        assert sdk_client.responses.create.call_count == 2


class TestErrorClassification:
    def test_unrelated_status_error_fails_after_one_call(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = _status_error(
            400,
            {"type": "invalid_request_error", "code": "bad_request", "message": "Invalid input", "param": None},
        )

        with pytest.raises(ProviderIntegrationError) as exc_info:
            _generate(client, character_input, darkness_selection)

        error = exc_info.value
        assert sdk_client.responses.create.call_count == 1
        assert "HTTP 400" in error.message
        assert "errorCode=bad_request" in error.message
        assert "errorMessage=Invalid input" in error.message
        assert error.status_code == 400
        assert error.error_type == "invalid_request_error"
        assert error.error_code == "bad_request"
        assert isinstance(error.__cause__, openai.APIStatusError)

    def test_status_error_without_body_has_plain_message(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = _status_error(500, None)

        with pytest.raises(ProviderIntegrationError) as exc_info:
            _generate(client, character_input, darkness_selection)

        assert exc_info.value.message == "OpenAI API呼び出しに失敗しました: HTTP 500 Internal Server Error"

    def test_connection_error_is_wrapped(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = openai.APIConnectionError(request=_REQUEST)

        with pytest.raises(ProviderIntegrationError, match=REQUEST_FAILED_MESSAGE) as exc_info:
            _generate(client, character_input, darkness_selection)

        assert isinstance(exc_info.value.__cause__, openai.APIConnectionError)
        assert sdk_client.responses.create.call_count == 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestExtractResponseText:
    def test_nested_message_wrapper_and_value_objects(self) -> None:
        payload = {
            "output": [
                {
                    "type": "message",
                    "message": {
                        "content": [
                            {"type": "output_text", "text": {"value": "入れ子"}},
                            {"text": "の文章"},
                        ]
                    },
                }
            ]
        }
        assert extract_response_text(payload) == "入れ子の文章"

    def test_ignores_non_text_nodes(self) -> None:
        payload = {
            "output": [
                {"type": "reasoning", "text": "hidden"},
                {"type": "message", "content": [{"type": "output_text", "text": "visible"}]},
            ]
        }
        assert extract_response_text(payload) == "visible"

    def test_missing_output_returns_empty(self) -> None:
        assert extract_response_text({}) == ""
        assert extract_response_text(None) == ""


class TestTemperatureDetection:
    def test_error_detail_unwraps_error_object(self) -> None:
        detail = error_detail(_status_error(400, {"error": {"type": "t", "code": "c", "message": "m", "param": "p"}}))
        assert detail == {"type": "t", "code": "c", "message": "m", "param": "p"}

    def test_detects_by_code_case_insensitively(self) -> None:
        assert is_temperature_unsupported({"code": "Model_Capabilities.Temperature_Not_Supported"})

    def test_detects_by_normalised_message(self) -> None:
        assert is_temperature_unsupported(
            {"code": None, "message": "The   parameter `temperature` is NOT supported for this model"}
        )

    def test_unrelated_message(self) -> None:
        assert not is_temperature_unsupported({"code": "bad_request", "message": "Invalid input"})
        assert not is_temperature_unsupported({"code": None, "message": None})


class TestClientFactory:
    def test_blank_key_raises(self) -> None:
        with pytest.raises(ProviderIntegrationError, match=MISSING_API_KEY_MESSAGE):
            OpenAiClientFactory().create_client("  ")

    def test_creates_client_without_sdk_retries(self) -> None:
        client = OpenAiClientFactory(timeout_seconds=12.0).create_client(" sk-abc ")
        assert isinstance(client, openai.OpenAI)
        assert client.api_key == "sk-abc"
        assert client.max_retries == 0


class TestClientLifecycle:
    def test_client_closed_after_success(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.return_value = _text_response("物語")

        _generate(client, character_input, darkness_selection)

        sdk_client.__exit__.assert_called_once()

    def test_client_closed_after_error(
        self,
        client: OpenAiCharacterGenerationClient,
        sdk_client: MagicMock,
        character_input: CharacterInput,
        darkness_selection: DarknessSelection,
    ) -> None:
        sdk_client.responses.create.side_effect = openai.APIConnectionError(request=_REQUEST)

        with pytest.raises(ProviderIntegrationError):
            _generate(client, character_input, darkness_selection)

        sdk_client.__exit__.assert_called_once()

    def test_real_sdk_client_is_closed(
        self, character_input: CharacterInput, darkness_selection: DarknessSelection
    ) -> None:
        """The SDK client built by the factory is closed once the call returns."""
        sdk_client = OpenAiClientFactory().create_client("sk-abc")
        sdk_client.responses = MagicMock()
        sdk_client.responses.create.return_value = _text_response("物語")
        factory = MagicMock(spec=OpenAiClientFactory)
        factory.create_client.return_value = sdk_client
        generation_client = OpenAiCharacterGenerationClient(
            factory, renderer=PromptTemplateRenderer(template="x")
        )

        generation_client.generate_narrative("sk-abc", "gpt-4o", character_input, darkness_selection)

        assert sdk_client.is_closed()
