from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from sharehub.core.config import settings
from sharehub.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness probe: 503 if PostgreSQL or Redis is unavailable."""
    try:
        db.execute(text("SELECT 1"))
        redis.Redis.from_url(settings.redis_url, decode_responses=True).ping()
        return {"status": "ready"}
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}
