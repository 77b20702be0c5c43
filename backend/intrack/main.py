from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from intrack.settings import CORS_ORIGINS, LOG_LEVEL
from intrack.db.database import Base, engine
from intrack.errors import InTrackError
from intrack.api.routes_production import router as production_router
from intrack.api.routes_admin import router as admin_router
from intrack.api.routes_labels import router as labels_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # tables; migrations are managed outside the service
    Base.metadata.create_all(engine)
    yield

app = FastAPI(title="InTrack QC API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(InTrackError)
async def intrack_error_handler(request: Request, exc: InTrackError):
    if exc.status_code < 500:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return JSONResponse(status_code=400, content={"success": False, "message": "Validation error", "errors": errors})

@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage failure on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})

@app.get("/health")
def health():
    return {"status": "ok"}

# routers
app.include_router(production_router)
app.include_router(admin_router)
app.include_router(labels_router)
