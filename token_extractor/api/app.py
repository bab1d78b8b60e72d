"""HTTP surface of the token extractor (FastAPI)."""

import logging
import time
from functools import partial
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import SERVICE_NAME, __version__
from ..auth.authenticator import TokenAuthenticator, build_authenticator
from ..exceptions import TokenExtractorError, ValidationError
from ..models import LoginRequest
from ..utils.config import Config, get_config
from ..utils.logger import scrub_secrets


logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Models for Request/Response ---
class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class TokenResponse(BaseModel):
    success: bool
    token: str
    authorizationHeader: str
    expiresAt: str
    capturedAt: str
    tokenSource: str
    executionTime: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


# --- API Endpoints ---


@router.get("/", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="running", service=SERVICE_NAME, version=__version__)


@router.post(
    "/get-token",
    response_model=TokenResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Log in through the identity provider and return the bearer token",
)
async def get_token(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        login_request = LoginRequest.from_payload(payload)
    except ValidationError as e:
        logger.warning(f"Rejected token request: {e}")
        return _error_response(e.status_code, str(e))

    authenticator: TokenAuthenticator = request.app.state.authenticator
    scrub = partial(scrub_secrets, password=login_request.password, identifiers=[login_request.username])
    started = time.monotonic()

    try:
        result = await authenticator.run_login(login_request)
    except TokenExtractorError as e:
        message = scrub(str(e))
        logger.error(f"✗ Token request failed ({type(e).__name__}): {message}")
        return _error_response(e.status_code, message)
    except Exception as e:
        message = scrub(str(e)) or type(e).__name__
        logger.error(f"✗ Token request failed unexpectedly ({type(e).__name__}): {message}")
        logger.debug("Unexpected failure details", exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)

    logger.info(f"✓ Token issued in {time.monotonic() - started:.2f}s")
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_dict())


def create_app(
    config: Optional[Config] = None,
    authenticator: Optional[TokenAuthenticator] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application configuration (default: global config)
        authenticator: Login flow engine (default: built from config)

    Returns:
        FastAPI: Configured application
    """
    config = config or get_config()

    app = FastAPI(
        title="Token Extractor API",
        description="Logs in through an identity provider with a headless browser and returns the bearer token.",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.authenticator = authenticator or build_authenticator(config)
    app.include_router(router)
    return app
