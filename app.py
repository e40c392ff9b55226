import logging
import uuid
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, SERVICE_NAME, get_cors_origins
from db import db_manager
from gps_points import router as gps_points_router
from mongodb_logging_handler import MongoDBHandler
from route_matching import router as route_matching_router
from route_matching.services.matcher import shutdown_match_executor

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Bring up Beanie and Mongo-backed logging; tear both down on exit."""
    try:
        await db_manager.init_beanie()
    except Exception:
        logger.critical("Startup aborted: could not initialize MongoDB", exc_info=True)
        raise

    log_handler = MongoDBHandler(db_manager.db)
    log_handler.setLevel(logging.INFO)
    logging.getLogger().addHandler(log_handler)
    logger.info("%s ready; server logs are mirrored to MongoDB", SERVICE_NAME)

    try:
        yield
    finally:
        logging.getLogger().removeHandler(log_handler)
        shutdown_match_executor()
        await db_manager.cleanup_connections()
        logger.info("%s stopped", SERVICE_NAME)


app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

cors_origins = get_cors_origins()
if not cors_origins:
    cors_origins = DEV_CORS_ORIGINS
    logger.warning("CORS_ALLOWED_ORIGINS is empty; allowing %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(gps_points_router)
app.include_router(route_matching_router)


@app.get("/")
async def health_check():
    """Liveness probe."""
    return {"status": "ok", "service": SERVICE_NAME}


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    logger.warning("Nothing at %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"success": False, "error": "Not found", "detail": exc.detail},
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    """Last-resort handler; the error id ties the response to the log line."""
    error_id = uuid.uuid4().hex
    logger.error(
        "Unhandled error %s on %s %s",
        error_id,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "error_id": error_id,
            "detail": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=PORT, log_level="info")
