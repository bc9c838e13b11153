"""Translate a stored submission into the enrollment website's form fields.

The enrollment site names its controls tersely (``firstname``,
``phone1_1``, ``dep_DOBMonth``, ``pay_cccvv2`` ...) and splits phones and
dates across several inputs.  Submissions, for their part, were saved by
several tools under different column names, so every value is looked up
through a list of candidate columns.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any, Mapping

from pydantic import BaseModel, Field

from iris.airtable.client import AirtableRecord
from iris.intake.schemas import MAX_DEPENDENTS
from iris.submissions.repository import (
    FIRST_NAME_COLUMNS,
    LAST_NAME_COLUMNS,
    first_value,
)

logger = logging.getLogger("iris.autofill.mapper")

PAYMENT_PREFIXES = ("cc_", "pay_")

# Plan-specific date inputs on the enrollment page
BILLING_DATE_FIELD = "pd_20277168_dtBilling"
EFFECTIVE_DATE_FIELD = "pd_20277168_dtEffective"

DEPENDENT_FIELDS = (
    "dep_firstname",
    "dep_lastname",
    "dep_relationship",
    "dep_gender",
    "dep_DOBMonth",
    "dep_DOBDay",
    "dep_DOBYear",
    "dep_ssn",
    "dep_address",
    "dep_city",
    "dep_state",
    "dep_zipcode",
    "dep_phone1_1",
    "dep_phone1_2",
    "dep_phone1_3",
    "dep_email",
)

# Candidate submission columns per value
MIDDLE_NAME_COLUMNS = ("middleName", "middlename", "MiddleName", "Middle Name", "middle name", "middle_name")
ADDRESS1_COLUMNS = ("Address Line 1", "Address", "address", "address1", "addressLine1", "street")
ADDRESS2_COLUMNS = ("Address Line 2", "address2", "addressLine2", "apt", "suite", "unit")
CITY_COLUMNS = ("City", "city")
STATE_COLUMNS = ("State", "state")
ZIP_COLUMNS = ("Zip", "zip", "zipcode", "ZipCode", "Zipcode", "postal", "Postal")
CELL_PHONE_COLUMNS = ("Cell Phone", "cellPhone", "cell phone", "cell", "Cell", "mobile", "Mobile")
WORK_PHONE_COLUMNS = ("Work Phone", "workPhone", "work phone", "work", "Work", "office", "Office")
EMAIL_COLUMNS = ("email", "Email", "e-mail", "E-mail")
SSN_COLUMNS = ("SSN", "ssn", "Social Security", "socialSecurity", "social security")
DOB_COLUMNS = ("DOB", "dob", "Date of Birth", "dateOfBirth", "birthDate", "Birth Date")
GENDER_COLUMNS = ("Gender", "gender", "sex", "Sex")
CARD_NUMBER_COLUMNS = ("Card Number", "cardNumber", "card number", "CC Number", "cc number", "credit card")
EXP_MONTH_COLUMNS = ("Exp. Month", "expMonth", "exp month", "cc exp month")
EXP_YEAR_COLUMNS = ("Exp. Year", "expYear", "exp year", "cc exp year")
CVV_COLUMNS = ("CVV", "cvv", "security code", "Security Code", "cvc", "CVC")
BILLING_ADDRESS_COLUMNS = ("Billing Address Line 1", "Billing Address", "billingAddress", "billing address")
BILLING_CITY_COLUMNS = ("Billing City", "billingCity", "billing city")
BILLING_STATE_COLUMNS = ("Billing State", "billingState", "billing state")
BILLING_ZIP_COLUMNS = ("Billing Zip", "billingZip", "billing zip", "billing zipcode")

_GENDER_CODES = {"male": "M", "m": "M", "female": "F", "f": "F"}
_SPOUSE_WORDS = ("spouse", "wife", "husband")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


class DateParts(BaseModel):
    year: str = ""
    month: str = ""
    day: str = ""


class PhoneParts(BaseModel):
    area: str = ""
    prefix: str = ""
    line: str = ""

    @property
    def digits(self) -> str:
        return f"{self.area}{self.prefix}{self.line}"


def split_date(value: Any) -> DateParts:
    """Split ``YYYY-MM-DD`` (or an ISO timestamp) or ``MM/DD/YYYY``.

    Month and day lose their leading zeros to match the site's select
    option values.  Anything else yields empty parts.
    """
    if not value:
        return DateParts()
    text = str(value).strip()
    if "/" in text:
        parts = text.split("/")
        if len(parts) == 3 and len(parts[2]) == 4 and parts[0].isdigit() and parts[1].isdigit():
            return DateParts(year=parts[2], month=str(int(parts[0])), day=str(int(parts[1])))
    match = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", text)
    if match:
        year, month, day = match.groups()
        return DateParts(year=year, month=str(int(month)), day=str(int(day)))
    logger.warning("Unable to parse date: %r", value)
    return DateParts()


def split_phone(value: Any) -> PhoneParts:
    """Digits only, split 3/3/4."""
    if not value:
        return PhoneParts()
    digits = re.sub(r"\D", "", str(value))
    return PhoneParts(area=digits[:3], prefix=digits[3:6], line=digits[6:10])


def normalize_gender(value: Any, default: str = "") -> str:
    """``male``/``m`` → ``M``, ``female``/``f`` → ``F``; other text is kept."""
    if not value:
        return default
    text = str(value).strip().lower()
    if text in _GENDER_CODES:
        return _GENDER_CODES[text]
    if "female" in text:
        return "F"
    if "male" in text:
        return "M"
    return str(value)


def normalize_relationship(value: Any) -> str:
    """The dependent dropdown only offers ``Spouse`` and ``Child``."""
    text = str(value or "").lower()
    if any(word in text for word in _SPOUSE_WORDS):
        return "Spouse"
    return "Child"


def split_name(full_name: Any) -> tuple[str, str]:
    parts = str(full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _text(fields: Mapping[str, Any], columns: tuple[str, ...]) -> str:
    return first_value(fields, columns)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class EnrollmentDependent(BaseModel):
    """One household member as the enrollment site's dependent form wants it."""

    first_name: str = ""
    last_name: str = ""
    relationship: str = "Child"
    gender: str = ""
    ssn: str = ""
    dob: DateParts = Field(default_factory=DateParts)

    def form_fields(self) -> dict[str, str]:
        return {
            "dep_firstname": self.first_name,
            "dep_lastname": self.last_name,
            "dep_relationship": self.relationship,
            "dep_gender": self.gender,
            "dep_DOBMonth": self.dob.month,
            "dep_DOBDay": self.dob.day,
            "dep_DOBYear": self.dob.year,
            "dep_ssn": self.ssn,
        }


class EnrollmentData(BaseModel):
    """Everything needed to fill the enrollment page for one submission.

    Attributes
    ----------
    record_id:
        Airtable id of the source submission.
    fields:
        Enrollment control name → value.
    dependents:
        Queue of household members for the page's dependent form.
    """

    record_id: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)
    dependents: list[EnrollmentDependent] = Field(default_factory=list)

    def non_payment_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.fields.items() if not k.startswith(PAYMENT_PREFIXES)}

    def payment_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.fields.items() if k.startswith(PAYMENT_PREFIXES)}


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _dependent_column(index: int, suffix: str) -> str:
    return f"Dependent {suffix}" if index == 0 else f"Dependent {index + 1} {suffix}"


def extract_dependents(fields: Mapping[str, Any]) -> list[EnrollmentDependent]:
    """Up to six dependents; one exists when it has a name, relationship or DOB."""
    dependents: list[EnrollmentDependent] = []
    for index in range(MAX_DEPENDENTS):
        name = fields.get(_dependent_column(index, "Name"))
        relationship = fields.get(_dependent_column(index, "Relationship"))
        dob = fields.get(_dependent_column(index, "DOB"))
        if not (name or relationship or dob):
            continue
        first, last = split_name(name)
        dependents.append(
            EnrollmentDependent(
                first_name=first,
                last_name=last,
                relationship=normalize_relationship(relationship),
                gender=normalize_gender(fields.get(_dependent_column(index, "Gender"))),
                ssn=str(fields.get(_dependent_column(index, "SSN")) or ""),
                dob=split_date(dob),
            )
        )
    return dependents


def map_submission(record: AirtableRecord, today: date | None = None) -> EnrollmentData:
    """Build the enrollment-page values for *record*.

    Parameters
    ----------
    record:
        Submission record from Airtable, the cache or the built-in samples.
    today:
        Billing date; the effective date is the day after.  Defaults to today.
    """
    fields = record.fields
    today = today or date.today()

    first = _text(fields, FIRST_NAME_COLUMNS)
    last = _text(fields, LAST_NAME_COLUMNS)
    address1 = _text(fields, ADDRESS1_COLUMNS)
    city = _text(fields, CITY_COLUMNS)
    state = _text(fields, STATE_COLUMNS)
    zipcode = _text(fields, ZIP_COLUMNS).replace(",", "")
    email = _text(fields, EMAIL_COLUMNS)
    cell = split_phone(_text(fields, CELL_PHONE_COLUMNS))
    work = split_phone(_text(fields, WORK_PHONE_COLUMNS))
    dob = split_date(_text(fields, DOB_COLUMNS))

    dependents = extract_dependents(fields)
    first_dependent = dependents[0] if dependents else EnrollmentDependent()
    dep_phone = split_phone(_text(fields, ("Dependent Phone", "dependent phone")))
    if not dep_phone.digits:
        dep_phone = cell

    values: dict[str, str] = {
        "firstname": first,
        "middlename": _text(fields, MIDDLE_NAME_COLUMNS),
        "lastname": last,
        "address": address1,
        "address2": _text(fields, ADDRESS2_COLUMNS),
        "city": city,
        "state": state,
        "zipcode": zipcode,
        "phone1_1": cell.area,
        "phone1_2": cell.prefix,
        "phone1_3": cell.line,
        "phone2_1": work.area,
        "phone2_2": work.prefix,
        "phone2_3": work.line,
        "email": email,
        "email_confirm": email,
        "ssn": _text(fields, SSN_COLUMNS),
        "dobmonth": dob.month,
        "dobday": dob.day,
        "dobyear": dob.year,
        "gender": normalize_gender(_text(fields, GENDER_COLUMNS), default="M"),
        "source_detail": "",
        "notes": "",
        "ben_relationship": "Estate",
        "ben_name": "Estate",
        "ben_address": "",
        "ben_city": "",
        "ben_state": "",
        "ben_zipcode": "",
        "ben_phone1_1": "",
        "ben_phone1_2": "",
        "ben_phone1_3": "",
        "ben_DOBMonth": "",
        "ben_DOBDay": "",
        "ben_DOBYear": "",
        **first_dependent.form_fields(),
        "dep_address": _text(fields, ("Dependent Address", "dependent address")) or address1,
        "dep_city": _text(fields, ("Dependent City", "dependent city")) or city,
        "dep_state": _text(fields, ("Dependent State", "dependent state")) or state,
        "dep_zipcode": _text(fields, ("Dependent Zip", "dependent zip")) or zipcode,
        "dep_phone1_1": dep_phone.area,
        "dep_phone1_2": dep_phone.prefix,
        "dep_phone1_3": dep_phone.line,
        "dep_email": _text(fields, ("Dependent Email", "dependent email")) or email,
        "cc_number": _text(fields, CARD_NUMBER_COLUMNS),
        "pay_ccexpmonth": _text(fields, EXP_MONTH_COLUMNS),
        "pay_ccexpyear": _text(fields, EXP_YEAR_COLUMNS),
        "pay_cccvv2": _text(fields, CVV_COLUMNS),
        "pay_fname": first,
        "pay_lname": last,
        "pay_address": _text(fields, BILLING_ADDRESS_COLUMNS) or address1,
        "pay_city": _text(fields, BILLING_CITY_COLUMNS) or city,
        "pay_state": _text(fields, BILLING_STATE_COLUMNS) or state,
        "pay_zipcode": _text(fields, BILLING_ZIP_COLUMNS).replace(",", "") or zipcode,
        BILLING_DATE_FIELD: today.strftime("%m/%d/%Y"),
        EFFECTIVE_DATE_FIELD: (today + timedelta(days=1)).strftime("%m/%d/%Y"),
        "send_text": cell.digits,
        "send_email": "Y" if email else "N",
    }
    logger.debug(
        "Mapped submission %s (%d fields, %d dependents)", record.id, len(values), len(dependents)
    )
    return EnrollmentData(record_id=record.id, fields=values, dependents=dependents)
