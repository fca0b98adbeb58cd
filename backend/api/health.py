"""GET /api/health — database connectivity check."""
import logging
from fastapi import APIRouter
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from core.db_connector import create_engine_from_url, database_dialect
from core.errors import SchemaLensError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    db_status = _check_database()
    return {
        "status": "ok" if db_status["status"] == "up" else "degraded",
        "services": {"database": db_status},
        "models_module": settings.MODELS_MODULE or None,
    }


def _check_database() -> dict:
    url = make_url(settings.DATABASE_URL).render_as_string(hide_password=True)
    try:
        engine = create_engine_from_url(validate=True)
    except (SchemaLensError, SQLAlchemyError) as e:
        return {"status": "down", "url": url, "error": str(e)}
    try:
        with engine.connect() as conn:
            return {"status": "up", "url": url, "dialect": database_dialect(conn)}
    except (SchemaLensError, SQLAlchemyError) as e:
        return {"status": "down", "url": url, "error": str(e)}
    finally:
        engine.dispose()
