from fastapi import APIRouter

from app.core.config import settings

router = APIRouter()

@router.get("/")
def root():
    return {
        "name": "Practicum Placements Backend",
        "status": "ok",
        "env": settings.APP_ENV,
        "docs": "/docs",
        "health": "/health",
        "workflows": ["/placements", "/timesheet", "/evaluations", "/notifications"],
    }
