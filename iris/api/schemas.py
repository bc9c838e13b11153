"""Pydantic schemas for the Iris API request/response envelopes.

Domain models (``ApplicationForm``, ``QuoteBreakdown``, ``Carrier`` ...) are
returned as-is where they already describe the payload; the envelopes here
add the counts and provenance the form page and the autofill tooling show.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from iris.airtable.client import AirtableRecord, FieldSchema
from iris.autofill.mapper import EnrollmentDependent
from iris.catalog.addons import Addon, AddonSummary
from iris.catalog.carriers import Carrier


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CarriersResponse(BaseModel):
    """Response for GET /v1/carriers.

    Attributes
    ----------
    carriers_by_type:
        Insurance type → sorted carrier names.  Empty when Airtable is down.
    plan_types:
        Sorted insurance types (the keys of ``carriers_by_type``).
    """

    carriers_by_type: dict[str, list[str]] = Field(default_factory=dict)
    plan_types: list[str] = Field(default_factory=list)


class PlanSearchResponse(BaseModel):
    """Response for GET /v1/plans."""

    query: str
    carrier: str | None = None
    type: str | None = None
    carriers: list[Carrier] = Field(default_factory=list)
    total_plans: int = 0


class AddonsResponse(BaseModel):
    """Response for GET /v1/addons."""

    by_type: dict[str, list[Addon]] = Field(default_factory=dict)
    summary: list[AddonSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


class ApplicationCreatedResponse(BaseModel):
    """Response for POST /v1/applications.

    Attributes
    ----------
    record_id:
        Id of the record created in the submissions table.
    lead_id:
        Lead ID echoed from the form.
    issues:
        Data problems the record mapper corrected before writing.
    """

    record_id: str
    lead_id: str
    issues: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Submissions & autofill
# ---------------------------------------------------------------------------


class SubmissionListResponse(BaseModel):
    """Response for GET /v1/submissions and /v1/submissions/search.

    ``source`` is one of ``memory``, ``airtable``, ``cache`` or ``samples``.
    """

    submissions: list[AirtableRecord] = Field(default_factory=list)
    count: int = 0
    source: str | None = None


class SubmissionCountResponse(BaseModel):
    count: int
    source: str | None = None


class CacheClearedResponse(BaseModel):
    success: bool = True
    message: str = "Cache cleared"


class EnrollmentResponse(BaseModel):
    """Enrollment-site values mapped from one submission."""

    record_id: str
    name: str
    fields: dict[str, str] = Field(default_factory=dict)
    dependents: list[EnrollmentDependent] = Field(default_factory=list)


class AutofillRequest(BaseModel):
    """Body of POST /v1/autofill.

    Attributes
    ----------
    record_id:
        Submission to load into the enrollment site.
    url:
        Enrollment page URL.  Defaults to ``settings.enrollment_url``.
    """

    record_id: str = Field(..., min_length=1, description="Submission record id")
    url: str | None = Field(None, description="Enrollment page URL override")


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class SchemaResponse(BaseModel):
    """Response for GET /v1/schema."""

    table_id: str
    table_name: str
    fields: list[FieldSchema] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /v1/health.

    Attributes
    ----------
    status:
        ``"ok"`` | ``"degraded"``.
    version:
        Iris version string.
    airtable_configured:
        Whether an Airtable API key is set.
    cache:
        Status of the submission cache (``success``, ``expired``, ``empty``
        or ``error``).
    details:
        Free-form diagnostics.
    """

    status: str
    version: str
    airtable_configured: bool = False
    cache: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
