import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.audit import router as audit_router
from app.api.evaluations import router as evaluations_router
from app.api.health import router as health_router
from app.api.me import router as me_router
from app.api.notifications import router as notifications_router
from app.api.placements import router as placements_router
from app.api.root import router as root_router
from app.api.timesheets import router as timesheets_router
from app.core.config import settings
from app.core.errors import DomainError
from app.core.log_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Practicum Placements")

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


app.include_router(root_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(placements_router)
app.include_router(timesheets_router)
app.include_router(evaluations_router)
app.include_router(notifications_router)
app.include_router(audit_router)
