"""FastAPI routes for captured submissions and the enrollment autofill.

These replace the browser extension's message actions
(``getSubmissions``, ``getSubmissionCount``, ``searchSubmissions``,
``clearCache``, ``fillForm``).  All endpoints are prefixed with ``/v1``.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from playwright.async_api import Error as PlaywrightError

from iris.airtable.client import AirtableRecord
from iris.api.schemas import (
    AutofillRequest,
    CacheClearedResponse,
    EnrollmentResponse,
    SubmissionCountResponse,
    SubmissionListResponse,
)
from iris.api.security import require_api_key
from iris.autofill.filler import AutofillResult, run_autofill
from iris.autofill.mapper import EnrollmentData, map_submission
from iris.config import settings
from iris.submissions.cache import SubmissionService
from iris.submissions.repository import SubmissionRepository, formatted_name, newest_first

logger = logging.getLogger("iris.submissions.api")

router = APIRouter(prefix="/v1", tags=["Submissions"], dependencies=[Depends(require_api_key)])

# ---------------------------------------------------------------------------
# Module-level state, set by the main app lifespan handler
# ---------------------------------------------------------------------------

_service: SubmissionService | None = None
_repository: SubmissionRepository | None = None
_autofill_runner: Callable[..., AutofillResult] = run_autofill


def set_submission_service(service: SubmissionService | None) -> None:
    """Called by the main app to inject the submission service."""
    global _service
    _service = service


def set_repository(repository: SubmissionRepository | None) -> None:
    """Called by the main app to inject the Airtable-backed repository."""
    global _repository
    _repository = repository


def set_autofill_runner(runner: Callable[..., AutofillResult]) -> None:
    global _autofill_runner
    _autofill_runner = runner


def _get_service() -> SubmissionService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Submission service not initialised.",
        )
    return _service


def _get_repository() -> SubmissionRepository:
    if _repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Submission repository not initialised.",
        )
    return _repository


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _find_submission(record_id: str) -> AirtableRecord:
    record = _get_service().get(record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Submission {record_id} not found.",
        )
    return record


def _run_autofill(data: EnrollmentData, url: str, keep_open: bool) -> AutofillResult | None:
    try:
        return _autofill_runner(data, url=url, keep_open=keep_open)
    except PlaywrightError as exc:
        logger.error("Autofill of %s failed: %s", data.record_id, exc)
        return None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/submissions", response_model=SubmissionListResponse)
def list_submissions(
    refresh: bool = Query(False, description="Bypass the in-memory and persisted caches"),
) -> SubmissionListResponse:
    """All captured submissions, from Airtable, the cache or the samples."""
    service = _get_service()
    submissions = service.fetch(force_refresh=refresh)
    return SubmissionListResponse(
        submissions=submissions, count=len(submissions), source=service.source
    )


@router.get("/submissions/count", response_model=SubmissionCountResponse)
def count_submissions() -> SubmissionCountResponse:
    service = _get_service()
    return SubmissionCountResponse(count=service.count(), source=service.source)


@router.get("/submissions/search", response_model=SubmissionListResponse)
def search_submissions(
    q: str = Query("", description="First name, last name, 'Last, First' or 'First Last'"),
) -> SubmissionListResponse:
    """Case-insensitive name search; queries shorter than two characters match nothing."""
    service = _get_service()
    matches = service.search(q)
    return SubmissionListResponse(submissions=matches, count=len(matches), source=service.source)


@router.get("/submissions/latest", response_model=AirtableRecord)
def latest_submission() -> AirtableRecord:
    records = newest_first(_get_service().fetch())
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No submissions found.")
    return records[0]


@router.get("/submissions/lead/{lead_id}", response_model=AirtableRecord)
def submission_by_lead(lead_id: str) -> AirtableRecord:
    """Look a submission up directly in Airtable by its Lead ID."""
    record = _get_repository().find_by_lead_id(lead_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No submission with Lead ID {lead_id}.",
        )
    return record


@router.delete("/submissions/cache", response_model=CacheClearedResponse)
def clear_submission_cache() -> CacheClearedResponse:
    _get_service().clear_cache()
    return CacheClearedResponse()


@router.get("/submissions/{record_id}/enrollment", response_model=EnrollmentResponse)
def enrollment_data(record_id: str) -> EnrollmentResponse:
    """The enrollment-site values the autofill would enter for a submission."""
    record = _find_submission(record_id)
    data = map_submission(record)
    return EnrollmentResponse(
        record_id=record.id,
        name=formatted_name(record.fields),
        fields=data.fields,
        dependents=data.dependents,
    )


@router.post("/autofill", response_model=AutofillResult)
def autofill(
    body: AutofillRequest, background_tasks: BackgroundTasks, response: Response
) -> AutofillResult:
    """Fill the enrollment website with a submission.

    Headless runs complete before responding and return the fill report.
    A visible browser stays open for the agent to review and submit, so
    the run is started in the background and ``202`` is returned at once.
    """
    url = body.url or settings.enrollment_url
    if not url:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No enrollment URL given and ENROLLMENT_URL is not configured.",
        )
    data = map_submission(_find_submission(body.record_id))
    logger.info("Autofill requested for %s → %s", body.record_id, url)

    if settings.autofill_headless:
        result = _run_autofill(data, url, keep_open=False)
        if result is None:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Enrollment page could not be filled.",
            )
        return result

    background_tasks.add_task(_run_autofill, data, url, True)
    response.status_code = status.HTTP_202_ACCEPTED
    return AutofillResult(
        url=url, record_id=data.record_id, dependents_total=len(data.dependents)
    )
