"""In-memory per-provider settings store (API key, model selection)."""
import threading
from dataclasses import dataclass
from typing import Iterable, Optional

from darkchar.models.provider import AiProviderContext, ProviderType


@dataclass
class _ProviderState:
    api_key: Optional[str] = None
    selected_model: Optional[str] = None
    available_models: tuple[str, ...] = ()


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class AiProviderContextStore:
    """Holds API keys and model selections for the lifetime of the process.

    The UI thread and background generation tasks may read and write
    concurrently. A single lock guards every field so that a snapshot never
    sees, for example, a cleared key next to a stale model selection.
    A ``None`` provider type always means the default provider.
    """

    def __init__(self, active_provider_type: ProviderType = ProviderType.openai) -> None:
        self._lock = threading.Lock()
        self._states: dict[ProviderType, _ProviderState] = {}
        self._active_provider_type = active_provider_type

    def _state(self, provider_type: Optional[ProviderType]) -> _ProviderState:
        # Caller must hold self._lock.
        key = provider_type or ProviderType.default()
        state = self._states.get(key)
        if state is None:
            state = self._states[key] = _ProviderState()
        return state

    # --- active provider ---

    def set_active_provider_type(self, provider_type: Optional[ProviderType]) -> None:
        with self._lock:
            self._active_provider_type = provider_type or ProviderType.default()

    def get_active_provider_type(self) -> ProviderType:
        with self._lock:
            return self._active_provider_type

    # --- API key ---

    def set_api_key(self, provider_type: Optional[ProviderType], api_key: Optional[str]) -> None:
        """Store a trimmed key; a blank key also drops the model state."""
        normalized = _normalize(api_key)
        with self._lock:
            state = self._state(provider_type)
            state.api_key = normalized
            if normalized is None:
                state.selected_model = None
                state.available_models = ()

    def get_api_key(self, provider_type: Optional[ProviderType]) -> Optional[str]:
        with self._lock:
            return self._state(provider_type).api_key

    def has_api_key(self, provider_type: Optional[ProviderType]) -> bool:
        return self.get_api_key(provider_type) is not None

    # --- models ---

    def set_selected_model(self, provider_type: Optional[ProviderType], model_id: Optional[str]) -> None:
        normalized = _normalize(model_id)
        with self._lock:
            self._state(provider_type).selected_model = normalized

    def get_selected_model(self, provider_type: Optional[ProviderType]) -> Optional[str]:
        with self._lock:
            return self._state(provider_type).selected_model

    def set_available_models(
        self, provider_type: Optional[ProviderType], models: Optional[Iterable[str]]
    ) -> None:
        snapshot = tuple(models) if models else ()
        with self._lock:
            self._state(provider_type).available_models = snapshot

    def set_available_models_if_key(
        self,
        provider_type: Optional[ProviderType],
        expected_api_key: Optional[str],
        models: Optional[Iterable[str]],
    ) -> Optional[AiProviderContext]:
        """Store a fetched model list only while ``expected_api_key`` is still stored.

        A selected model missing from the new list is cleared in the same
        locked step.

        Returns:
            The updated snapshot, or None when the key changed in the meantime.
        """
        actual_type = provider_type or ProviderType.default()
        expected = _normalize(expected_api_key)
        snapshot = tuple(models) if models else ()
        with self._lock:
            state = self._state(actual_type)
            if expected is None or state.api_key != expected:
                return None
            state.available_models = snapshot
            if state.selected_model is not None and state.selected_model not in snapshot:
                state.selected_model = None
            return AiProviderContext(
                provider_type=actual_type,
                api_key=state.api_key,
                selected_model=state.selected_model,
                available_models=state.available_models,
            )

    def get_available_models(self, provider_type: Optional[ProviderType]) -> tuple[str, ...]:
        with self._lock:
            return self._state(provider_type).available_models

    # --- snapshot / reset ---

    def get_context(self, provider_type: Optional[ProviderType]) -> AiProviderContext:
        """Return an immutable snapshot of one provider's settings."""
        actual_type = provider_type or ProviderType.default()
        with self._lock:
            state = self._state(actual_type)
            return AiProviderContext(
                provider_type=actual_type,
                api_key=state.api_key,
                selected_model=state.selected_model,
                available_models=state.available_models,
            )

    def clear(self, provider_type: Optional[ProviderType]) -> None:
        with self._lock:
            state = self._state(provider_type)
            state.api_key = None
            state.selected_model = None
            state.available_models = ()
