"""OpenAI Responses API client for narrative generation."""
import re
from typing import Any, Optional

import httpx
import openai
from openai import OpenAI

from darkchar.core.logging import setup_logging
from darkchar.models.character import CharacterInput, DarknessSelection
from darkchar.models.provider import ProviderGenerationResult
from darkchar.services.errors import ProviderIntegrationError
from darkchar.services.prompt import PromptTemplateRenderer

logger = setup_logging("darkchar.openai_client")

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_OUTPUT_TOKENS = 600

MISSING_API_KEY_MESSAGE = "OpenAI APIキーが設定されていません。"
MISSING_MODEL_MESSAGE = "OpenAIリクエストに使用するモデルが選択されていません。"
REQUEST_FAILED_MESSAGE = "OpenAI APIへのリクエスト中にエラーが発生しました。"
NO_TEXT_MESSAGE = "OpenAIレスポンスからテキストを取得できませんでした。"

TEMPERATURE_UNSUPPORTED_ERROR_CODES = frozenset(
    {
        "temperature_not_supported",
        "model_capabilities.temperature_not_supported",
    }
)


def normalize_message_indicator(message: Optional[str]) -> Optional[str]:
    """Lower-case and collapse whitespace so phrasings can be compared."""
    if message is None or not message.strip():
        return None
    return re.sub(r"\s+", " ", message.strip().lower())


TEMPERATURE_UNSUPPORTED_PHRASES = tuple(
    normalize_message_indicator(phrase)
    for phrase in (
        "'temperature' is not supported",
        "temperature is not supported",
        "does not support the parameter `temperature`",
        "the parameter `temperature` is not supported",
        "unsupported parameter: 'temperature'",
    )
)

# Content item types whose ``text`` is part of the answer.
_TEXT_NODE_TYPES = (None, "output_text", "text")
_CONTAINER_KEYS = ("output", "content", "message")


class OpenAiClientFactory:
    """Builds SDK clients scoped to a runtime-supplied API key."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 5.0,
    ) -> None:
        self.base_url = base_url
        self.timeout = httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds)

    def create_client(self, api_key: Optional[str]) -> OpenAI:
        if api_key is None or not api_key.strip():
            raise ProviderIntegrationError(MISSING_API_KEY_MESSAGE)
        # The generation client decides when to retry; the SDK must not.
        return OpenAI(
            api_key=api_key.strip(),
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        )


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def error_detail(exc: openai.APIStatusError) -> dict[str, Optional[str]]:
    """Pull type/code/message/param out of an error response body."""
    body = exc.body
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        body = body["error"]
    if not isinstance(body, dict):
        body = {}
    return {key: _as_str(body.get(key)) for key in ("type", "code", "message", "param")}


def is_temperature_unsupported(detail: dict[str, Optional[str]]) -> bool:
    """True when the error says the model rejects the temperature parameter."""
    code = detail.get("code")
    if code and code.strip().lower() in TEMPERATURE_UNSUPPORTED_ERROR_CODES:
        return True
    message = normalize_message_indicator(detail.get("message"))
    if message is None:
        return False
    return any(phrase in message for phrase in TEMPERATURE_UNSUPPORTED_PHRASES if phrase)


def _safe(value: Optional[str]) -> str:
    return value if value else "n/a"


def _collect_text(node: Any, fragments: list[str]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_text(item, fragments)
        return
    if not isinstance(node, dict):
        return
    if node.get("type") in _TEXT_NODE_TYPES:
        text = node.get("text")
        if isinstance(text, dict):
            text = text.get("value")
        if isinstance(text, str):
            fragments.append(text)
    for key in _CONTAINER_KEYS:
        if key in node:
            _collect_text(node[key], fragments)


def _as_payload(response: Any) -> Any:
    if hasattr(response, "model_dump"):
        return response.model_dump()
    return response


def extract_response_text(response: Any) -> str:
    """Concatenate every text fragment found under the response ``output`` tree.

    Tolerates several content items per output, a nested message wrapper and
    ``{"value": ...}`` text objects. Returns an empty string when nothing is found.
    """
    payload = _as_payload(response)
    if not isinstance(payload, dict):
        return ""
    fragments: list[str] = []
    _collect_text(payload.get("output"), fragments)
    return "".join(fragments)


class OpenAiCharacterGenerationClient:
    """Calls the Responses API and turns the answer into a narrative.

    The first attempt sends ``temperature``. Some models reject it; when the
    error says so the request is repeated once without it. Every other
    failure is raised immediately as :class:`ProviderIntegrationError`.
    """

    def __init__(
        self,
        client_factory: OpenAiClientFactory,
        renderer: Optional[PromptTemplateRenderer] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.client_factory = client_factory
        self.renderer = renderer or PromptTemplateRenderer()
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def generate_narrative(
        self,
        api_key: str,
        model_id: Optional[str],
        character_input: CharacterInput,
        selection: DarknessSelection,
    ) -> ProviderGenerationResult:
        """Generate a narrative with the given model.

        Args:
            api_key: OpenAI API key.
            model_id: Model to call. Blank values are rejected before any request.
            character_input: Validated character input.
            selection: Darkness selection.

        Returns:
            ProviderGenerationResult with the trimmed text and the prompt used.

        Raises:
            ProviderIntegrationError: On a missing model, an API error, a
                network error, or when no text could be extracted.
        """
        model = (model_id or "").strip()
        if not model:
            raise ProviderIntegrationError(MISSING_MODEL_MESSAGE)

        prompt = self.renderer.render(character_input, selection)
        with self.client_factory.create_client(api_key) as client:
            return self._run_attempts(client, model, prompt)

    def _run_attempts(self, client: OpenAI, model: str, prompt: str) -> ProviderGenerationResult:
        include_temperature = True
        for attempt in (1, 2):
            logger.info(
                "Calling OpenAI responses API: model=%s temperature=%s max_output_tokens=%d",
                model,
                self.temperature if include_temperature else "(omitted)",
                self.max_output_tokens,
                extra={"model": model, "attempt": attempt},
            )
            try:
                response = client.responses.create(
                    **self._build_request(model, prompt, include_temperature)
                )
            except openai.APIStatusError as exc:
                detail = error_detail(exc)
                logger.warning(
                    "OpenAI responses API call failed: status=%s model=%s errorType=%s errorCode=%s errorMessage=%s",
                    exc.status_code,
                    model,
                    _safe(detail["type"]),
                    _safe(detail["code"]),
                    _safe(detail["message"]),
                    extra={"model": model, "attempt": attempt, "error_type": type(exc).__name__},
                )
                if include_temperature and is_temperature_unsupported(detail):
                    logger.info(
                        "Model %s does not support temperature; retrying without it (param=%s)",
                        model,
                        _safe(detail["param"]),
                    )
                    include_temperature = False
                    continue
                raise self._status_error(exc, detail) from exc
            except (openai.OpenAIError, httpx.HTTPError) as exc:
                logger.warning(
                    "OpenAI responses API request error for model %s: %s",
                    model,
                    exc,
                    extra={"model": model, "attempt": attempt, "error_type": type(exc).__name__},
                )
                raise ProviderIntegrationError(REQUEST_FAILED_MESSAGE) from exc

            self._log_response_metadata(response)
            text = extract_response_text(response).strip()
            if text:
                return ProviderGenerationResult(narrative=text, prompt=prompt)
            logger.warning("OpenAI response contained no text (model=%s, attempt=%d)", model, attempt)
            include_temperature = False

        raise ProviderIntegrationError(NO_TEXT_MESSAGE)

    def _build_request(self, model: str, prompt: str, include_temperature: bool) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                }
            ],
            "max_output_tokens": self.max_output_tokens,
        }
        if include_temperature:
            request["temperature"] = self.temperature
        return request

    @staticmethod
    def _status_error(exc: openai.APIStatusError, detail: dict[str, Optional[str]]) -> ProviderIntegrationError:
        reason = exc.response.reason_phrase if exc.response is not None else ""
        message = f"OpenAI API呼び出しに失敗しました: HTTP {exc.status_code} {reason}".rstrip()
        if any(detail.get(key) for key in ("type", "code", "message")):
            message += (
                f" (errorType={_safe(detail['type'])}, errorCode={_safe(detail['code'])}, "
                f"errorMessage={_safe(detail['message'])})"
            )
        return ProviderIntegrationError(
            message,
            status_code=exc.status_code,
            error_type=detail["type"],
            error_code=detail["code"],
            error_message=detail["message"],
        )

    @staticmethod
    def _log_response_metadata(response: Any) -> None:
        payload = _as_payload(response)
        if not isinstance(payload, dict):
            return
        usage = payload.get("usage") or {}
        if not isinstance(usage, dict):
            usage = {}
        logger.info(
            "Received OpenAI response: id=%s model=%s usage=input:%s output:%s total:%s",
            payload.get("id", "n/a"),
            payload.get("model", "n/a"),
            usage.get("input_tokens", "?"),
            usage.get("output_tokens", "?"),
            usage.get("total_tokens", "?"),
        )
