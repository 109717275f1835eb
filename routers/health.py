from fastapi import APIRouter

from core.config import settings
import db.mongo as mongo
from schemas.health import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        environment=settings.environment,
        database_connected=mongo.is_connected(),
        llm_provider=settings.LLM_PROVIDER,
    )
