"""Health check route for load balancers and uptime probes.

Reports database reachability and whether the symbol table has been seeded.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk import __version__
from stitchdesk.db.models import SymbolCategoryModel
from stitchdesk.web.dependencies import get_db

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(db: AsyncSession = Depends(get_db)):
    try:
        categories = await db.scalar(
            select(func.count())
            .select_from(SymbolCategoryModel)
            .where(SymbolCategoryModel.is_active.is_(True))
        )
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "database": "disconnected", "detail": str(e)},
        )
    return {
        "status": "ok" if categories else "degraded",
        "database": "connected",
        "symbol_categories": categories,
        "version": __version__,
    }
