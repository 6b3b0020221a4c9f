"""Character generation API router."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from darkchar.models.api import GenerateCharacterRequest, GenerateCharacterResponse
from darkchar.services.errors import InvalidGenerationInputError
from darkchar.services.generation import CharacterGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/characters", tags=["characters"])


def get_generation_service(request: Request) -> CharacterGenerationService:
    """FastAPI dependency: retrieve CharacterGenerationService from app.state.

    Returns HTTP 503 if the service was not initialized at startup.
    """
    svc: CharacterGenerationService | None = getattr(
        request.app.state, "generation_service", None
    )
    if svc is None:
        raise HTTPException(
            status_code=503,
            detail="Generation service unavailable. Service not initialized.",
        )
    return svc


@router.post("/generate", response_model=GenerateCharacterResponse)
def generate_character(
    body: GenerateCharacterRequest,
    service: CharacterGenerationService = Depends(get_generation_service),
) -> GenerateCharacterResponse:
    """Generate a dark-fallen character narrative.

    Runs in FastAPI's thread pool; the provider call blocks on network I/O.

    Raises:
        HTTPException 422: Incomplete input (message is shown to the user).
        HTTPException 500: Unexpected failure outside the provider fallback.
    """
    try:
        result = service.generate(
            body.character_input, body.darkness_selection, body.provider_type
        )
    except InvalidGenerationInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(
            "generate_character failed",
            exc_info=True,
            extra={"error_type": type(exc).__name__},
        )
        raise HTTPException(
            status_code=500,
            detail="生成中にエラーが発生しました。",
        ) from exc
    return GenerateCharacterResponse.from_result(result)
