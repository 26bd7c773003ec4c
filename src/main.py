from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic_settings import BaseSettings
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
import logging

from routers.api import router as api_router
from routers.ws import router as ws_router
from schemas import AppInfo, HealthOK
from core.config_loader import config_loader
from core.models.config_data import AssistantConfig
from core.services.assistant import AssistantService
from core.services.relay import RelayCore

logger = logging.getLogger(__name__)

_server = config_loader.get_server_config()
_simulator = config_loader.get_simulator_config()
_assistant = config_loader.get_assistant_config()


class Settings(BaseSettings):
    app_name: str = "Smart Headband Backend"
    debug: bool = False
    # Every field can be overridden by an environment variable of the same name
    host: str = _server.host
    port: int = _server.port
    cors_origin: str = _server.cors_origin
    simulator_interval: float = _simulator.interval
    ollama_url: str = _assistant.url
    ollama_model: str = _assistant.model
    ai_timeout: float = _assistant.timeout


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the relay and the assistant, and own their lifetime."""
    relay = RelayCore(simulator_config=replace(config_loader.get_simulator_config(), interval=settings.simulator_interval))
    assistant = AssistantService(AssistantConfig(
        url=settings.ollama_url,
        model=settings.ollama_model,
        timeout=settings.ai_timeout,
    ))
    app.state.relay = relay
    app.state.assistant = assistant

    logger.info("Starting relay in demo mode, waiting for ESP32 on /esp32")
    relay.start()
    try:
        yield
    finally:
        logger.info("Stopping background services")
        relay.stop()
        await assistant.aclose()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": error})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    # Validators raise ValueError with a user-facing message, pydantic keeps it in ctx
    cause = first.get("ctx", {}).get("error")
    if cause is not None:
        error = str(cause)
    else:
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        error = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content={"success": False, "error": error})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Internal server error"})


@app.get("/", tags=["meta"], response_model=AppInfo)
async def read_root() -> AppInfo:
    return AppInfo(message=settings.app_name)


@app.get("/health", tags=["meta"], response_model=HealthOK)
async def healthcheck(request: Request) -> HealthOK:
    return HealthOK(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        esp32Connected=request.app.state.relay.is_device_connected(),
    )


# mount API router under /api, WebSocket endpoints at the root
app.include_router(api_router, prefix="/api")
app.include_router(ws_router)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info(f"HTTP server: http://localhost:{settings.port}")
    logger.info(f"WebSocket (ESP32): ws://localhost:{settings.port}/esp32")
    logger.info(f"WebSocket (Frontend): ws://localhost:{settings.port}/frontend")
    uvicorn.run(app, host=settings.host, port=settings.port)
