"""Health check endpoint."""

from fastapi import APIRouter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from hostpanel import __version__
from hostpanel.api.deps import DbSession
from hostpanel.models import Node, Server
from hostpanel.schemas import HealthCheckResponse
from hostpanel.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=HealthCheckResponse)
async def health_check(db: DbSession) -> HealthCheckResponse:
    """Report version, database connectivity and inventory size. Public."""
    try:
        nodes = (await db.execute(select(func.count()).select_from(Node))).scalar_one()
        servers = (await db.execute(select(func.count()).select_from(Server))).scalar_one()
    except SQLAlchemyError as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        return HealthCheckResponse(
            status="degraded", version=__version__, database=f"error: {e}"
        )

    return HealthCheckResponse(
        status="healthy",
        version=__version__,
        database="connected",
        nodes=nodes,
        servers=servers,
    )
