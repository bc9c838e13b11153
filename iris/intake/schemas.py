"""Pydantic models for the insurance application intake form.

The form is split into the same nine sections the agents work through on
screen.  Every value except the three identifying fields is optional free
text: premiums and commissions arrive as ``"$45.00"`` or ``"20%"`` and are
normalised later by :mod:`iris.intake.record_mapper` and
:mod:`iris.pricing.commission`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_DEPENDENTS = 6


class _Section(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class BasicInformation(_Section):
    """Identifying fields.  ``lead_id``, ``first_name`` and ``last_name`` are required."""

    lead_id: str = Field(..., min_length=1, description="External lead identifier")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str | None = None
    date_of_birth: str | None = Field(None, description="YYYY-MM-DD or MM/DD/YYYY")
    lead_source: str | None = None
    insurance_state: str | None = None
    type_of_insurance: str | None = None


class HealthInformation(_Section):
    currently_insured: bool | None = None
    last_time_insured: str | None = None
    current_medications: str | None = None
    pre_existing_conditions: str | None = None
    major_hospitalizations: str | None = None
    projected_annual_income: str | None = None


class InsuranceDetails(_Section):
    """Plan selection plus every premium/commission input of the quote.

    Commission inputs beginning with ``$`` are flat dollar amounts; any other
    value is a percentage of the matching premium.
    """

    insurance_state: str | None = None
    type_of_insurance: str | None = None
    carrier_u65: str | None = None
    plan: str | None = None
    plan_cost: str | None = None
    plan_commission: str | None = None
    carrier_aca: str | None = None
    aca_plan_premium: str | None = None
    aca_plan_deductible: str | None = None

    enrollment_fee: str | None = None
    enrollment_fee_commission: str | None = None
    enrollment_commission: str | None = None

    american_financial_1_plan: str | None = None
    american_financial_1_premium: str | None = None
    american_financial_1_commission: str | None = None
    american_financial_2_plan: str | None = None
    american_financial_2_premium: str | None = None
    american_financial_2_commission: str | None = None
    american_financial_3_plan: str | None = None
    american_financial_3_premium: str | None = None
    american_financial_3_commission: str | None = None

    amt_1_plan: str | None = None
    amt_1_premium: str | None = None
    amt_1_commission: str | None = None
    amt_2_plan: str | None = None
    amt_2_premium: str | None = None
    amt_2_commission: str | None = None

    leo_addons_plans: str | None = Field(
        None, description="Comma, semicolon or newline separated plan labels"
    )
    leo_addons_premium: str | None = None
    leo_addons_commission: str | None = None

    essential_care_premium: str | None = None
    essential_care_commission: str | None = None

    total_premium: str | None = None
    total_commission: str | None = None


class PersonalDetails(_Section):
    ssn: str | None = None
    gender: str | None = None
    height: str | None = None
    weight: str | None = None
    smoker_status: bool | None = None


class ContactNumbers(_Section):
    cell_phone: str | None = None
    work_phone: str | None = None


class AddressInformation(_Section):
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class Dependent(_Section):
    name: str | None = None
    dob: str | None = None
    ssn: str | None = None
    gender: str | None = None
    relationship: str | None = None

    def is_empty(self) -> bool:
        return not any((self.name, self.dob, self.ssn, self.gender, self.relationship))


class BillingInformation(_Section):
    same_as_applicant: bool | None = None
    billing_address_line1: str | None = None
    billing_address_line2: str | None = None
    billing_city: str | None = None
    billing_state: str | None = None
    billing_zip_code: str | None = None
    card_type: str | None = None
    card_number: str | None = None
    exp_month: str | None = None
    exp_year: str | None = None
    cvv: str | None = None


class AgentInformation(_Section):
    agent_name: str | None = None
    fronter_name: str | None = None
    notes: str | None = None


class ApplicationForm(BaseModel):
    """A complete intake form submission.

    Attributes
    ----------
    basic_information:
        Lead id and applicant name (required) plus contact basics.
    dependents:
        Household members; only the first six are written to Airtable.
    """

    basic_information: BasicInformation
    health_information: HealthInformation = Field(default_factory=HealthInformation)
    insurance_details: InsuranceDetails = Field(default_factory=InsuranceDetails)
    personal_details: PersonalDetails = Field(default_factory=PersonalDetails)
    contact_numbers: ContactNumbers = Field(default_factory=ContactNumbers)
    address_information: AddressInformation = Field(default_factory=AddressInformation)
    dependents: list[Dependent] = Field(default_factory=list)
    billing_information: BillingInformation = Field(default_factory=BillingInformation)
    agent_information: AgentInformation = Field(default_factory=AgentInformation)

    @field_validator("dependents")
    @classmethod
    def _drop_blank_dependents(cls, value: list[Dependent]) -> list[Dependent]:
        return [d for d in value if not d.is_empty()]
