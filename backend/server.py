import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from database import Base, engine
from routers.auth_users import router as auth_router
from routers.competitions import router as competitions_router
from routers.contents import router as contents_router
from routers.judges import router as judges_router
from routers.submissions import router as submissions_router
from winner_scheduler import start_winner_scheduler, stop_winner_scheduler

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="Skilins Competition API", version="1.0.0")
api_router = APIRouter(prefix="/api/v1")


def _error_body(status_code: int, message, path: str) -> dict:
    return {
        "statusCode": status_code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": path,
    }


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail, request.url.path),
        headers=getattr(exc, "headers", None),
    )


def _describe_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [_describe_validation_error(error) for error in exc.errors()]
    return JSONResponse(status_code=422, content=_error_body(422, messages, request.url.path))


# ==================== STARTUP ====================
@app.on_event("startup")
async def startup_event():
    Base.metadata.create_all(bind=engine)
    app.state.winner_scheduler = start_winner_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    await stop_winner_scheduler(getattr(app.state, "winner_scheduler", None))


@api_router.get("/health")
async def health():
    return {"status": "ok"}


api_router.include_router(auth_router)
api_router.include_router(competitions_router)
api_router.include_router(submissions_router)
api_router.include_router(judges_router)
api_router.include_router(contents_router)

# Include router and add middleware
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)
