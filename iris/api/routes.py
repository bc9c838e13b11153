"""Iris FastAPI application — intake form, carrier catalog, quotes and submissions.

Endpoints
---------
GET     /                                     — intake form page
GET     /v1/health                            — service health check
GET     /v1/carriers                          — carriers grouped by insurance type
GET     /v1/plan-types                        — insurance types with carriers
GET     /v1/carriers/for-plan                 — carriers for one insurance type
GET     /v1/plans                             — plan search across carriers
GET     /v1/addons                            — American Financial add-ons
POST    /v1/quote                             — premium/commission breakdown
POST    /v1/applications                      — submit an application
GET     /v1/applications/sample               — demo application data
GET     /v1/schema                            — submissions table field metadata
*       /v1/submissions/..., /v1/autofill     — see :mod:`iris.submissions.routes`

Authentication is via the ``X-API-Key`` header when ``IRIS_API_KEY`` is set.
Airtable failures are returned as ``502 Bad Gateway``.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import requests
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from iris import __version__
from iris.airtable.client import AirtableClient, AirtableError
from iris.api.renderer import render_form_html
from iris.api.schemas import (
    AddonsResponse,
    ApplicationCreatedResponse,
    CarriersResponse,
    HealthResponse,
    PlanSearchResponse,
    SchemaResponse,
)
from iris.api.security import require_api_key
from iris.catalog.addons import AddonCatalog, group_addons_by_type, summarize_addons
from iris.catalog.carriers import CarrierCatalog, carriers_for_plan, plan_types
from iris.config import settings
from iris.intake.record_mapper import submit_application
from iris.intake.samples import generate_sample_application
from iris.intake.schemas import ApplicationForm, InsuranceDetails
from iris.pricing.commission import CommissionCalculator, QuoteBreakdown
from iris.submissions import routes as submission_routes
from iris.submissions.cache import SubmissionCache, SubmissionService
from iris.submissions.repository import SubmissionRepository

logger = logging.getLogger("iris.api")

# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

_client: AirtableClient | None = None
_carrier_catalog: CarrierCatalog | None = None
_addon_catalog: AddonCatalog | None = None
_calculator = CommissionCalculator()


def set_airtable_client(client: AirtableClient | None) -> None:
    """Bind the app (and the catalogs built on it) to *client*."""
    global _client, _carrier_catalog, _addon_catalog
    _client = client
    _carrier_catalog = CarrierCatalog(client) if client is not None else None
    _addon_catalog = AddonCatalog(client) if client is not None else None


def _get_client() -> AirtableClient:
    if _client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Airtable client not initialised.",
        )
    return _client


def _get_carrier_catalog() -> CarrierCatalog:
    if _carrier_catalog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Carrier catalog not initialised.",
        )
    return _carrier_catalog


def _get_addon_catalog() -> AddonCatalog:
    if _addon_catalog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Add-on catalog not initialised.",
        )
    return _addon_catalog


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle handler.

    On startup: builds the Airtable client, the catalogs and the submission
    service and injects them into the routers.  On shutdown: closes the
    HTTP session.
    """
    logger.info("Iris API starting up (version=%s)", __version__)

    client = AirtableClient(settings)
    set_airtable_client(client)
    repository = SubmissionRepository(client)
    submission_routes.set_repository(repository)
    submission_routes.set_submission_service(SubmissionService(repository, SubmissionCache()))
    logger.info("Airtable base %s ready", settings.airtable_base_id)

    yield  # ← application runs here

    logger.info("Iris API shutting down")
    submission_routes.set_submission_service(None)
    submission_routes.set_repository(None)
    set_airtable_client(None)
    client.close()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Iris Intake API",
    description=(
        "Insurance application intake, carrier and add-on catalog, commission "
        "quotes and enrollment autofill backed by Airtable."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS: the form page and agent tooling run on internal hosts
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(submission_routes.router)


# ---------------------------------------------------------------------------
# Middleware & error handlers
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every inbound request with timing."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s → %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.exception_handler(AirtableError)
async def airtable_error_handler(request: Request, exc: AirtableError) -> JSONResponse:
    logger.error("Airtable error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"Airtable error: {exc}", "airtable_status": exc.status_code},
    )


@app.exception_handler(requests.RequestException)
async def airtable_unreachable_handler(request: Request, exc: requests.RequestException) -> JSONResponse:
    logger.error("Airtable unreachable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"Airtable unreachable: {exc}"},
    )


# ---------------------------------------------------------------------------
# Form page
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def form_page() -> HTMLResponse:
    """The intake form; dropdowns render empty when Airtable is unreachable."""
    carriers = _get_carrier_catalog().carriers_by_type()
    return HTMLResponse(
        content=render_form_html(carriers, api_key_required=bool(settings.iris_api_key))
    )


# ---------------------------------------------------------------------------
# Catalog endpoints
# ---------------------------------------------------------------------------


@app.get("/v1/carriers", response_model=CarriersResponse, tags=["Catalog"])
def list_carriers(_key: str = Depends(require_api_key)) -> CarriersResponse:
    carriers = _get_carrier_catalog().carriers_by_type()
    return CarriersResponse(carriers_by_type=carriers, plan_types=plan_types(carriers))


@app.get("/v1/plan-types", response_model=list[str], tags=["Catalog"])
def list_plan_types(_key: str = Depends(require_api_key)) -> list[str]:
    return plan_types(_get_carrier_catalog().carriers_by_type())


@app.get("/v1/carriers/for-plan", response_model=list[str], tags=["Catalog"])
def list_carriers_for_plan(
    plan_type: str = Query(..., description="Insurance type, e.g. 'Short Term'"),
    _key: str = Depends(require_api_key),
) -> list[str]:
    """Carriers selling *plan_type*; unknown types return an empty list."""
    return carriers_for_plan(_get_carrier_catalog().carriers_by_type(), plan_type)


@app.get("/v1/plans", response_model=PlanSearchResponse, tags=["Catalog"])
def search_plans(
    name: str = Query(..., min_length=1, description="Case-insensitive plan name fragment"),
    carrier: str | None = Query(None, description="Carrier name fragment"),
    type: str | None = Query(None, description="Insurance type fragment"),
    _key: str = Depends(require_api_key),
) -> PlanSearchResponse:
    matches = _get_carrier_catalog().find_plans(name, carrier_name=carrier, insurance_type=type)
    return PlanSearchResponse(
        query=name,
        carrier=carrier,
        type=type,
        carriers=matches,
        total_plans=sum(len(c.plans) for c in matches),
    )


@app.get("/v1/addons", response_model=AddonsResponse, tags=["Catalog"])
def list_addons(_key: str = Depends(require_api_key)) -> AddonsResponse:
    addons = _get_addon_catalog().american_financial_addons()
    return AddonsResponse(by_type=group_addons_by_type(addons), summary=summarize_addons(addons))


# ---------------------------------------------------------------------------
# Quote & applications
# ---------------------------------------------------------------------------


@app.post("/v1/quote", response_model=QuoteBreakdown, tags=["Applications"])
def quote(body: InsuranceDetails, _key: str = Depends(require_api_key)) -> QuoteBreakdown:
    """Premium and commission totals for the insurance-details section."""
    return _calculator.calculate(body)


@app.post(
    "/v1/applications",
    response_model=ApplicationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Applications"],
)
def create_application(
    body: ApplicationForm, _key: str = Depends(require_api_key)
) -> ApplicationCreatedResponse:
    """Write an application to the submissions table.

    Blank totals are calculated; data issues fixed on the way are returned
    in ``issues``.
    """
    record, issues = submit_application(_get_client(), body)
    return ApplicationCreatedResponse(
        record_id=record.id, lead_id=body.basic_information.lead_id, issues=issues
    )


@app.get("/v1/applications/sample", response_model=ApplicationForm, tags=["Applications"])
def sample_application(_key: str = Depends(require_api_key)) -> ApplicationForm:
    return generate_sample_application()


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@app.get("/v1/schema", response_model=SchemaResponse, tags=["Metadata"])
def submissions_schema(_key: str = Depends(require_api_key)) -> SchemaResponse:
    schema = _get_client().get_table_schema(_get_client().config.airtable_submissions_table)
    return SchemaResponse(table_id=schema.id, table_name=schema.name, fields=schema.fields)


@app.get("/v1/health", response_model=HealthResponse, tags=["System"])
def health() -> HealthResponse:
    """Configuration and submission-cache status; never calls Airtable."""
    details: dict[str, object] = {
        "base_id": settings.airtable_base_id,
        "enrollment_url_configured": bool(settings.enrollment_url),
    }
    service = submission_routes._service
    cache_status: str | None = None
    if service is not None:
        try:
            cache_status = service.cache.get().status
        except SQLAlchemyError as exc:
            logger.exception("Health check cache error: %s", exc)
            cache_status = "error"
        details["submissions_source"] = service.source

    configured = bool(settings.airtable_api_key and settings.airtable_base_id)
    degraded = not configured or cache_status == "error"
    return HealthResponse(
        status="degraded" if degraded else "ok",
        version=__version__,
        airtable_configured=configured,
        cache=cache_status,
        details=details,
    )
