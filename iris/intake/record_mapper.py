"""Map an :class:`ApplicationForm` onto the Airtable submissions table.

Airtable column names are human readable and inconsistent (``firstName`` next
to ``Lead ID`` next to ``Smoker?``); this module is the single place that
knows them.  :func:`sanitize_fields` then coerces every value to the column
type Airtable expects and reports what it had to fix.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from iris.airtable.client import AirtableClient, AirtableRecord
from iris.intake.schemas import MAX_DEPENDENTS, ApplicationForm, Dependent
from iris.pricing.commission import fill_totals

logger = logging.getLogger("iris.intake.mapper")

# Column groups by the type Airtable stores them as
NUMBER_FIELDS = ("Zip", "Billing Zip", "CVV")
CURRENCY_NUMBER_FIELDS = ("Projected Annual Income", "ACA Plan Premium")
CURRENCY_STRING_FIELDS = (
    "Carrier U65 Premium",
    "Enrollment Fee",
    "Carrier U65 Commission",
    "American Financial 1 Premium",
    "American Financial 1 Commission",
    "American Financial 2 Premium",
    "American Financial 2 Commission",
    "American Financial 3 Premium",
    "American Financial 3 Commission",
    "AMT 1 Commission",
    "AMT 2 Commission",
    "Essential Care Premium",
    "Essential Care Commission",
    "Total Premium",
    "Enrollment Fee Commission",
    "Total Commission",
)
BOOLEAN_FIELDS = ("Currently Insured", "Billing Info same as Applicant")

# Form-only values with no column in the submissions table
INVALID_FIELDS = (
    "ACA Plan Deductible",
    "Has Add-ons",
    "Selected Add-ons",
    "Add-ons Cost",
    "Commission Rate",
    "Add-ons Commission",
    "Enrollment Commission",
)

_DATE_FIELD = re.compile(r"^(?:DOB|Dependent(?: \d)? DOB)$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_FORMATS = ("%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%m/%d/%y", "%B %d, %Y", "%b %d, %Y")
_NON_NUMERIC = re.compile(r"[^\d.-]")
_NUMBER_PREFIX = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

_FALSE_STRINGS = frozenset({"", "false", "no", "n", "0", "off"})


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def ensure_number(value: Any) -> int | float | None:
    """``"$1,234.50"`` → ``1234.5``; ``"75001"`` → ``75001``; junk → ``None``."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    match = _NUMBER_PREFIX.match(_NON_NUMERIC.sub("", str(value)))
    if not match:
        return None
    number = float(match.group(0))
    return int(number) if number.is_integer() else number


def ensure_currency_string(value: Any) -> str | None:
    """Currency text without symbols, rounded to cents: ``"$45.10"`` → ``"45.1"``."""
    number = ensure_number(value)
    if number is None:
        return None
    rounded = round(float(number), 2)
    text = repr(rounded)
    return text[:-2] if text.endswith(".0") else text


def ensure_date(value: Any) -> str | None:
    """Normalise a date to ``YYYY-MM-DD``; ``None`` when it cannot be parsed."""
    if not value:
        return None
    text = str(value).strip()
    if _ISO_DATE.match(text):
        return text
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


def ensure_boolean(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


# ---------------------------------------------------------------------------
# Form → Airtable fields
# ---------------------------------------------------------------------------


def _put(fields: dict[str, Any], column: str, value: Any) -> None:
    if value:
        fields[column] = value


def dependent_prefix(index: int) -> str:
    """Column prefix for the dependent at zero-based *index*.

    The first dependent's columns carry no number (``Dependent Name``); the
    rest are numbered (``Dependent 2 Name``).
    """
    return "Dependent " if index == 0 else f"Dependent {index + 1} "


def map_dependents(dependents: list[Dependent]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for index, dependent in enumerate(dependents[:MAX_DEPENDENTS]):
        prefix = dependent_prefix(index)
        _put(fields, f"{prefix}Name", dependent.name)
        _put(fields, f"{prefix}Gender", dependent.gender)
        _put(fields, f"{prefix}Relationship", dependent.relationship)
        _put(fields, f"{prefix}DOB", ensure_date(dependent.dob))
        _put(fields, f"{prefix}SSN", dependent.ssn)
    if len(dependents) > MAX_DEPENDENTS:
        logger.warning(
            "Only %d of %d dependents are stored", MAX_DEPENDENTS, len(dependents)
        )
    return fields


def form_to_fields(form: ApplicationForm) -> dict[str, Any]:
    """Build the Airtable ``fields`` payload for *form*.

    Empty optional values are omitted.  Currency inputs are rendered without
    symbols; numbers and dates are coerced by :func:`sanitize_fields`.
    """
    basic = form.basic_information
    health = form.health_information
    ins = form.insurance_details
    personal = form.personal_details
    contact = form.contact_numbers
    address = form.address_information
    billing = form.billing_information
    agent = form.agent_information

    fields: dict[str, Any] = {
        "Lead ID": basic.lead_id,
        "firstName": basic.first_name,
        "lastName": basic.last_name,
    }
    _put(fields, "email", basic.email)
    _put(fields, "DOB", ensure_date(basic.date_of_birth))
    _put(fields, "Lead Source", basic.lead_source)

    if health.currently_insured is not None:
        fields["Currently Insured"] = health.currently_insured
    _put(fields, "Last Time Insured", health.last_time_insured)
    _put(fields, "Current Medications", health.current_medications)
    _put(fields, "Pre Existing Conditions", health.pre_existing_conditions)
    _put(fields, "Major Hospitalizations/Surgeries", health.major_hospitalizations)
    _put(fields, "Projected Annual Income", ensure_number(health.projected_annual_income))

    _put(fields, "Insurance State", ins.insurance_state or basic.insurance_state)
    _put(fields, "Type", ins.type_of_insurance or basic.type_of_insurance)
    _put(fields, "Carrier U65", ins.carrier_u65)
    _put(fields, "Plan", ins.plan)
    _put(fields, "Carrier U65 Premium", ensure_currency_string(ins.plan_cost))
    _put(fields, "Carrier ACA", ins.carrier_aca)
    _put(fields, "ACA Plan Premium", ensure_number(ins.aca_plan_premium))
    _put(fields, "Enrollment Fee", ensure_currency_string(ins.enrollment_fee))
    _put(fields, "Carrier U65 Commission", ensure_currency_string(ins.plan_commission))

    for n in (1, 2, 3):
        _put(
            fields,
            f"American Financial {n} Premium",
            ensure_currency_string(getattr(ins, f"american_financial_{n}_premium")),
        )
        _put(
            fields,
            f"American Financial {n} Commission",
            ensure_currency_string(getattr(ins, f"american_financial_{n}_commission")),
        )
        _put(fields, f"American Financial Plan {n}", getattr(ins, f"american_financial_{n}_plan"))

    for n in (1, 2):
        _put(fields, f"AMT {n}", getattr(ins, f"amt_{n}_plan") or getattr(ins, f"amt_{n}_premium"))
        _put(
            fields,
            f"AMT {n} Commission",
            ensure_currency_string(getattr(ins, f"amt_{n}_commission")),
        )

    _put(fields, "Leo Addons", ins.leo_addons_plans or ins.leo_addons_premium)
    _put(fields, "Leo Addons Commissions", ins.leo_addons_commission)
    _put(fields, "Essential Care Premium", ensure_currency_string(ins.essential_care_premium))
    _put(
        fields, "Essential Care Commission", ensure_currency_string(ins.essential_care_commission)
    )
    _put(fields, "Total Premium", ensure_currency_string(ins.total_premium))
    _put(
        fields, "Enrollment Fee Commission", ensure_currency_string(ins.enrollment_fee_commission)
    )
    _put(fields, "Total Commission", ensure_currency_string(ins.total_commission))

    _put(fields, "SSN", personal.ssn)
    _put(fields, "Gender", personal.gender)
    # Height and Weight are single-line text columns
    _put(fields, "Height", personal.height)
    _put(fields, "Weight", personal.weight)
    if personal.smoker_status is not None:
        fields["Smoker?"] = "Yes" if personal.smoker_status else "No"

    _put(fields, "Cell Phone", contact.cell_phone)
    _put(fields, "Work Phone", contact.work_phone)

    _put(fields, "Address Line 1", address.address_line1)
    _put(fields, "Address Line 2", address.address_line2)
    _put(fields, "City", address.city)
    _put(fields, "State", address.state)
    _put(fields, "Zip", ensure_number(address.zip_code))

    if billing.same_as_applicant is not None:
        fields["Billing Info same as Applicant"] = billing.same_as_applicant
    _put(fields, "Billing Address Line 1", billing.billing_address_line1)
    _put(fields, "Billing Address Line 2", billing.billing_address_line2)
    _put(fields, "Billing City", billing.billing_city)
    _put(fields, "Billing State", billing.billing_state)
    _put(fields, "Billing Zip", ensure_number(billing.billing_zip_code))
    _put(fields, "Card Type", billing.card_type)
    _put(fields, "Card Number", billing.card_number)
    _put(fields, "Exp. Month", billing.exp_month)
    _put(fields, "Exp. Year", billing.exp_year)
    _put(fields, "CVV", ensure_number(billing.cvv))

    _put(fields, "Agent", agent.agent_name)
    _put(fields, "Fronter Name", agent.fronter_name)
    _put(fields, "Notes", agent.notes)

    fields.update(map_dependents(form.dependents))
    return fields


# ---------------------------------------------------------------------------
# Sanitisation
# ---------------------------------------------------------------------------


def sanitize_fields(fields: dict[str, Any]) -> list[str]:
    """Coerce *fields* in place to Airtable column types.

    Returns
    -------
    list[str]
        One message per value that was dropped or could not be converted.
    """
    issues: list[str] = []

    for key in [k for k, v in fields.items() if v is None]:
        issues.append(f'Field "{key}" has an undefined value.')
        del fields[key]

    for group, label in ((NUMBER_FIELDS, "Number"), (CURRENCY_NUMBER_FIELDS, "Currency number")):
        for column in group:
            if column in fields and not isinstance(fields[column], (int, float)):
                original = fields[column]
                converted = ensure_number(original)
                if converted is None:
                    issues.append(
                        f'{label} field "{column}" could not be converted from "{original}".'
                    )
                    del fields[column]
                else:
                    fields[column] = converted

    for column in CURRENCY_STRING_FIELDS:
        if column in fields and not isinstance(fields[column], str):
            original = fields[column]
            converted = ensure_currency_string(original)
            if converted is None:
                issues.append(f'String field "{column}" could not be converted from "{original}".')
                del fields[column]
            else:
                fields[column] = converted

    for column in [k for k in fields if _DATE_FIELD.match(k)]:
        if isinstance(fields[column], str):
            original = fields[column]
            converted = ensure_date(original)
            if converted is None:
                issues.append(f'Date field "{column}" could not be converted from "{original}".')
                del fields[column]
            else:
                fields[column] = converted

    for column in BOOLEAN_FIELDS:
        if column in fields:
            fields[column] = ensure_boolean(fields[column])
    if "Smoker?" in fields:
        fields["Smoker?"] = "Yes" if fields["Smoker?"] in (True, "Yes") else "No"

    for column in INVALID_FIELDS:
        if fields.pop(column, None) is not None:
            logger.debug("Removed field with no Airtable column: %s", column)

    for key in [k for k, v in fields.items() if v == "" or v is None]:
        del fields[key]

    return issues


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def build_submission(form: ApplicationForm) -> tuple[dict[str, Any], list[str]]:
    """Return the sanitised Airtable payload for *form* and the issues found.

    Blank ``Total Premium`` / ``Total Commission`` inputs are filled from the
    quote calculator before mapping.
    """
    form = form.model_copy(update={"insurance_details": fill_totals(form.insurance_details)})
    fields = form_to_fields(form)
    issues = sanitize_fields(fields)
    if issues:
        logger.warning("Submission data issues (fixed): %s", issues)
    return fields, issues


def submit_application(
    client: AirtableClient, form: ApplicationForm, table: str | None = None
) -> tuple[AirtableRecord, list[str]]:
    """Write *form* to the submissions table.

    Raises
    ------
    AirtableError
        When Airtable rejects the record; the message carries the response body.
    """
    fields, issues = build_submission(form)
    logger.info(
        "Submitting application lead_id=%s (%d fields)",
        form.basic_information.lead_id,
        len(fields),
    )
    record = client.create_record(table or client.config.airtable_submissions_table, fields)
    return record, issues
