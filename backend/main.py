"""FastAPI main application for the narrative director."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app.api import director as director_api
from backend.app.config import resolve_config_path, resolve_library_dir
from backend.app.core.error_handling import create_error_response, log_error_with_context
from backend.app.director.errors import ConfigError
from backend.app.director.settings import validate_config_file
from backend.app.world.storylet_loader import parse_storylets
from shared.runtime_settings import load_security_settings, load_server_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SECURITY = load_security_settings()
DEV_MODE = SECURITY.dev_mode
API_TOKEN = SECURITY.api_token
CORS_ALLOW_ORIGINS = SECURITY.cors_allow_origins


def _collect_data_diagnostics() -> dict:
    """Structured config/library diagnostics for /health/detail."""
    checks: dict[str, dict] = {}

    config_path = resolve_config_path()
    problems = validate_config_file(config_path)
    checks["director_config"] = {"ok": not problems, "path": str(config_path), "problems": problems}

    library_dir = resolve_library_dir()
    if library_dir.exists():
        storylets, lib_problems = parse_storylets(library_dir)
        checks["storylet_library"] = {
            "ok": bool(storylets) and not lib_problems,
            "path": str(library_dir),
            "storylets": len(storylets),
            "problems": lib_problems,
        }
    else:
        checks["storylet_library"] = {"ok": False, "path": str(library_dir), "problems": ["missing"]}

    overall_ok = all(v.get("ok", False) for v in checks.values())
    return {"ok": overall_ok, "checks": checks}


@asynccontextmanager
async def lifespan(app: FastAPI):
    problems = SECURITY.startup_problems()
    if problems:
        raise RuntimeError(" ".join(problems))
    try:
        director = director_api.get_director()
        logger.info("Director ready (%d storylets)", len(director.library))
    except ConfigError as e:
        # Director routes answer 503 CONFIG_INVALID until the data is fixed.
        logger.warning("Director data failed to load at startup: %s", e)
    logger.info(
        "API startup complete (dev_mode=%s, auth=%s)",
        DEV_MODE,
        "enabled" if SECURITY.auth_enabled else "disabled",
    )
    yield


app = FastAPI(title="Narrative Director API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _extract_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return request.headers.get("X-API-Key", "").strip()


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    if request.method.upper() == "OPTIONS":
        return await call_next(request)
    if not API_TOKEN:
        return await call_next(request)
    path = request.url.path or ""
    if path in ("/", "/health"):
        return await call_next(request)
    if DEV_MODE and (path.startswith("/docs") or path.startswith("/redoc") or path.startswith("/openapi")):
        return await call_next(request)

    provided = _extract_token(request)
    if provided != API_TOKEN:
        error_response = create_error_response(
            error_code="AUTH_HTTP_401",
            message="Unauthorized",
            node="api",
            details={"path": path},
        )
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=error_response)
    return await call_next(request)


def _node_for_path(path: str) -> str:
    if "/step" in path:
        return "step"
    if "/snapshot" in path:
        return "snapshot"
    if "/sessions" in path:
        return "session"
    return "api"


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTPExceptions with structured error responses."""
    node = _node_for_path(request.url.path)
    error_response = create_error_response(
        error_code=f"{node.upper()}_HTTP_{exc.status_code}",
        message=exc.detail,
        node=node,
        details={
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=error_response)


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    """Director data could not be loaded: report the problems instead of a bare 500."""
    error_response = create_error_response(
        error_code="CONFIG_INVALID",
        message=str(exc),
        node="config",
        details={"problems": exc.problems, "path": request.url.path},
    )
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=error_response)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler: return structured error responses with logging."""
    session_id = None
    if hasattr(request, "path_params") and "session_id" in request.path_params:
        session_id = request.path_params.get("session_id")
    node = _node_for_path(request.url.path)

    log_error_with_context(
        error=exc,
        node_name=node,
        session_id=session_id,
        agent_name=request.url.path,
        extra_context={
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
        },
    )

    message = f"An error occurred: {type(exc).__name__}"
    if str(exc):
        message = str(exc)

    error_response = create_error_response(
        error_code=f"{node.upper()}_ERROR",
        message=message,
        node=node,
        details={
            "exception_type": type(exc).__name__,
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_response)


app.include_router(director_api.router)


@app.get("/")
async def root():
    return {"message": "Narrative Director API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/health/detail")
async def health_detail():
    """Structured readiness diagnostics for deployment checks."""
    diag = _collect_data_diagnostics()
    return {"status": "healthy" if diag.get("ok") else "degraded", **diag}


if __name__ == "__main__":
    import uvicorn

    server = load_server_settings()
    uvicorn.run(app, host=server.host, port=server.port)
