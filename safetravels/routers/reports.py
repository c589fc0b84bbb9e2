"""
safetravels/routers/reports.py — Safety report endpoints
Endpoints: POST /api/reports, GET /api/reports/tags
Domain errors propagate to the handlers registered in main.py.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from loguru import logger

from safetravels.config import Settings
from safetravels.core.errors import ClientInputError, SafeTravelsError, StorageError
from safetravels.core.rate_limiter import RATE_LIMITS, limiter
from safetravels.models import TagsResponse
from safetravels.services.ingestion import IngestionService

router = APIRouter()

# Throttle bucket for requests whose origin cannot be determined
SHARED_IDENTITY = "unidentified-origin"


# ──────────────────────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────────────────────

def get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def resolve_identity(request: Request, settings: Settings) -> str:
    """
    Network identity used for throttling only; never stored or returned.
    Behind a trusted proxy the first address in the configured header wins,
    otherwise the socket peer address.
    """
    identity: Optional[str] = None
    if settings.trusted_proxy_header:
        forwarded = request.headers.get(settings.trusted_proxy_header, "")
        identity = forwarded.split(",")[0].strip() or None
    if identity is None and request.client is not None and request.client.host:
        identity = request.client.host

    if identity is not None:
        return identity
    if settings.missing_identity_policy == "shared":
        logger.debug("Request origin unavailable; using shared throttle bucket.")
        return SHARED_IDENTITY
    raise ClientInputError("origin", "Unable to determine request origin.")


# ──────────────────────────────────────────────────────────────────────────────
# POST /api/reports
# ──────────────────────────────────────────────────────────────────────────────

@router.post("", status_code=status.HTTP_201_CREATED)
def submit_report(
    request: Request,
    payload: Any = Body(default=None),
    ingestion: IngestionService = Depends(get_ingestion),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """
    Submit an anonymous safety report.
    Throttle is checked before the body is validated. The response holds
    only the stored report's public fields.
    """
    identity = resolve_identity(request, settings)
    try:
        report = ingestion.submit(identity, payload)
    except SafeTravelsError:
        raise
    except Exception as exc:
        # Same generic 500 envelope as a failed write; the handler logs it
        raise StorageError("Unexpected failure while saving report.") from exc
    return {"success": True, "report": report.to_public_dict()}


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/reports/tags
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/tags", response_model=TagsResponse)
@limiter.limit(RATE_LIMITS["catalog"])
def list_tags(
    request: Request,
    ingestion: IngestionService = Depends(get_ingestion),
) -> TagsResponse:
    """Full tag catalog, in catalog order."""
    return TagsResponse(tags=ingestion.allowed_tags())
