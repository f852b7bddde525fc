# gamebase/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from gamebase.config import LOG_LEVEL
from gamebase.database import SessionLocal, engine
from gamebase.errors import GameError, InternalError
from gamebase.game.housekeeping import purge_expired
from gamebase.game.templates import seed_templates
from gamebase.routes.bases import router as bases_router
from gamebase.routes.spawn import router as spawn_router
from gamebase.routes.upgrades import router as upgrades_router

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        inserted = seed_templates(db)
        if inserted:
            logger.info(f"Seeded {inserted} base templates")
        purge_expired(db)
    except SQLAlchemyError as exc:
        # Schema not migrated yet; requests will fail until `alembic upgrade head`
        db.rollback()
        logger.warning(f"Startup seeding skipped: {exc}")
    finally:
        db.close()
    yield


app = FastAPI(title="Player Base Service", version="0.1.0", lifespan=lifespan)

app.include_router(bases_router)
app.include_router(upgrades_router)
app.include_router(spawn_router)


@app.exception_handler(GameError)
def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(SQLAlchemyError)
def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Reads outside the core operations (listings, history) land here
    logger.error(f"{request.method} {request.url.path} database failure: {exc}")
    error = InternalError("Failed to persist changes", "PERSISTENCE_ERROR")
    return JSONResponse(status_code=error.status_code, content={"detail": error.to_dict()})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "error": "Invalid request",
                "code": "VALIDATION_ERROR",
                "kind": "validation_error",
                "errors": [
                    {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                    for e in exc.errors()
                ],
            }
        },
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/db-ping")
def db_ping() -> dict:
    with engine.connect() as conn:
        result = conn.execute(text("SELECT 1")).scalar_one()
    return {"db": "ok", "select_1": result}
