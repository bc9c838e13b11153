"""Tests for the intake form → Airtable record mapping."""

import random

import pytest
from pydantic import ValidationError

from iris.intake.record_mapper import (
    build_submission,
    dependent_prefix,
    ensure_boolean,
    ensure_currency_string,
    ensure_date,
    ensure_number,
    form_to_fields,
    sanitize_fields,
    submit_application,
)
from iris.intake.samples import generate_sample_application
from iris.intake.schemas import ApplicationForm

from conftest import SUBMISSIONS_TABLE, FakeResponse, echo_created, table_path


def _form(**sections):
    data = {"basic_information": {"lead_id": "876", "first_name": "Ann", "last_name": "Lee"}}
    data.update(sections)
    return ApplicationForm.model_validate(data)


class TestCoercers:
    def test_number(self):
        assert ensure_number("75001") == 75001
        assert ensure_number("$1,234.50") == 1234.5
        assert ensure_number("abc") is None
        assert ensure_number("") is None
        assert ensure_number(12) == 12

    def test_currency_string(self):
        assert ensure_currency_string("$45.10") == "45.1"
        assert ensure_currency_string("250.00") == "250"
        assert ensure_currency_string("20%") == "20"
        assert ensure_currency_string("n/a") is None

    def test_date(self):
        assert ensure_date("1990-01-05") == "1990-01-05"
        assert ensure_date("01/05/1990") == "1990-01-05"
        assert ensure_date("January 5, 1990") == "1990-01-05"
        assert ensure_date("1990-01-05T10:00:00Z") == "1990-01-05"
        assert ensure_date("someday") is None

    def test_boolean(self):
        assert ensure_boolean("yes") is True
        assert ensure_boolean("No") is False
        assert ensure_boolean("") is False
        assert ensure_boolean(None) is None


class TestRequiredFields:
    @pytest.mark.parametrize("missing", ["lead_id", "first_name", "last_name"])
    def test_blank_required_rejected(self, missing):
        basic = {"lead_id": "1", "first_name": "A", "last_name": "B", missing: "  "}
        with pytest.raises(ValidationError):
            ApplicationForm.model_validate({"basic_information": basic})

    def test_blank_dependents_dropped(self):
        form = _form(dependents=[{"name": ""}, {"name": "Kid"}])
        assert [d.name for d in form.dependents] == ["Kid"]


class TestFormToFields:
    def test_identity_columns(self):
        fields = form_to_fields(_form())
        assert fields == {"Lead ID": "876", "firstName": "Ann", "lastName": "Lee"}

    def test_insurance_state_and_type_fall_back_to_basic_information(self):
        form = ApplicationForm.model_validate(
            {
                "basic_information": {
                    "lead_id": "1",
                    "first_name": "A",
                    "last_name": "B",
                    "insurance_state": "TX",
                    "type_of_insurance": "Short Term",
                },
                "insurance_details": {"type_of_insurance": "ACA"},
            }
        )
        fields = form_to_fields(form)
        assert fields["Insurance State"] == "TX"
        assert fields["Type"] == "ACA"

    def test_insurance_columns(self):
        fields = form_to_fields(
            _form(
                insurance_details={
                    "carrier_u65": "Everest",
                    "plan_cost": "$250.00",
                    "plan_commission": "20%",
                    "american_financial_2_plan": "Accident 2500 - $39.95",
                    "american_financial_2_commission": "50",
                    "amt_1_premium": "25",
                    "amt_2_plan": "AMT Dental",
                    "amt_2_premium": "30",
                    "leo_addons_premium": "$15",
                    "leo_addons_commission": "40%",
                    "enrollment_fee": "$99.00",
                    "enrollment_fee_commission": "$50.00",
                }
            )
        )
        assert fields["Carrier U65"] == "Everest"
        assert fields["Carrier U65 Premium"] == "250"
        assert fields["Carrier U65 Commission"] == "20"
        assert fields["American Financial Plan 2"] == "Accident 2500 - $39.95"
        assert fields["American Financial 2 Commission"] == "50"
        assert fields["AMT 1"] == "25"
        assert fields["AMT 2"] == "AMT Dental"
        assert fields["Leo Addons"] == "$15"
        assert fields["Leo Addons Commissions"] == "40%"
        assert fields["Enrollment Fee"] == "99"
        assert fields["Enrollment Fee Commission"] == "50"

    def test_smoker_and_booleans(self):
        fields = form_to_fields(
            _form(
                personal_details={"smoker_status": False},
                health_information={"currently_insured": True},
                billing_information={"same_as_applicant": False},
            )
        )
        assert fields["Smoker?"] == "No"
        assert fields["Currently Insured"] is True
        assert fields["Billing Info same as Applicant"] is False

    def test_numbers_and_dates(self):
        fields = form_to_fields(
            _form(
                basic_information={
                    "lead_id": "1",
                    "first_name": "A",
                    "last_name": "B",
                    "date_of_birth": "02/03/1980",
                },
                address_information={"zip_code": "75001"},
                billing_information={"cvv": "123", "billing_zip_code": "10001-1234"},
                health_information={"projected_annual_income": "$55,000"},
            )
        )
        assert fields["DOB"] == "1980-02-03"
        assert fields["Zip"] == 75001
        assert fields["CVV"] == 123
        assert fields["Billing Zip"] == 10001
        assert fields["Projected Annual Income"] == 55000

    def test_dependent_columns(self):
        fields = form_to_fields(
            _form(
                dependents=[
                    {"name": "Sam Lee", "relationship": "Spouse", "dob": "1985-04-01"},
                    {"name": "Kid Lee", "gender": "female", "dob": "06/07/2015"},
                ]
            )
        )
        assert fields["Dependent Name"] == "Sam Lee"
        assert fields["Dependent Relationship"] == "Spouse"
        assert fields["Dependent 2 Name"] == "Kid Lee"
        assert fields["Dependent 2 Gender"] == "female"
        assert fields["Dependent 2 DOB"] == "2015-06-07"

    def test_only_six_dependents_stored(self):
        form = _form(dependents=[{"name": f"D{i}"} for i in range(8)])
        fields = form_to_fields(form)
        assert fields["Dependent 6 Name"] == "D5"
        assert "Dependent 7 Name" not in fields

    def test_prefixes(self):
        assert dependent_prefix(0) == "Dependent "
        assert dependent_prefix(3) == "Dependent 4 "


class TestSanitize:
    def test_drops_undefined_and_invalid_columns(self):
        fields = {
            "Lead ID": "1",
            "Notes": None,
            "ACA Plan Deductible": "500",
            "Enrollment Commission": "10",
            "Agent": "",
        }
        issues = sanitize_fields(fields)
        assert fields == {"Lead ID": "1"}
        assert issues == ['Field "Notes" has an undefined value.']

    def test_unconvertible_number_removed_with_issue(self):
        fields = {"Zip": "unknown", "CVV": "12a"}
        issues = sanitize_fields(fields)
        assert "Zip" not in fields
        assert fields["CVV"] == 12
        assert any('"Zip"' in issue for issue in issues)

    def test_currency_strings_from_numbers(self):
        fields = {"Total Premium": 399.0, "Enrollment Fee": 99}
        sanitize_fields(fields)
        assert fields == {"Total Premium": "399", "Enrollment Fee": "99"}

    def test_dates_normalised(self):
        fields = {"DOB": "12/31/1970", "Dependent 3 DOB": "bad"}
        issues = sanitize_fields(fields)
        assert fields == {"DOB": "1970-12-31"}
        assert len(issues) == 1

    def test_smoker_and_boolean_columns(self):
        fields = {"Smoker?": True, "Currently Insured": "no"}
        sanitize_fields(fields)
        assert fields == {"Smoker?": "Yes", "Currently Insured": False}


class TestSubmission:
    def test_build_fills_blank_totals(self):
        form = _form(
            insurance_details={
                "plan_cost": "$100",
                "plan_commission": "10%",
                "enrollment_fee": "$50",
                "enrollment_fee_commission": "$20",
            }
        )
        fields, issues = build_submission(form)
        assert fields["Total Premium"] == "150"
        assert fields["Total Commission"] == "30"
        assert issues == []

    def test_submit_creates_record(self, client, fake_session):
        fake_session.add("POST", table_path(SUBMISSIONS_TABLE), echo_created("recSUB"))
        form = generate_sample_application(random.Random(7))
        record, issues = submit_application(client, form)
        assert record.id == "recSUB"
        posted = fake_session.calls[0]["json"]["fields"]
        assert posted["Lead ID"].startswith("TEST-")
        assert posted["firstName"] == "John"
        assert posted["Dependent Name"] == "Jane Doe"
        assert "Total Premium" in posted
        assert issues == []

    def test_submit_propagates_airtable_errors(self, client, fake_session):
        from iris.airtable.client import AirtableError

        fake_session.add(
            "POST", table_path(SUBMISSIONS_TABLE), FakeResponse(422, text='{"error":"INVALID"}')
        )
        with pytest.raises(AirtableError):
            submit_application(client, _form())
