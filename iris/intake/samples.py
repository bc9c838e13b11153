"""Demo application used by the form's "Fill Test Data" action and the CLI."""

from __future__ import annotations

import random

from iris.intake.schemas import ApplicationForm


def generate_sample_application(rng: random.Random | None = None) -> ApplicationForm:
    """Return a fully populated demo form with a random ``TEST-nnnn`` lead id."""
    rng = rng or random.Random()
    return ApplicationForm.model_validate(
        {
            "basic_information": {
                "lead_id": f"TEST-{rng.randint(0, 9999)}",
                "first_name": "John",
                "last_name": "Doe",
                "email": "john.doe@example.com",
                "date_of_birth": "1990-01-01",
                "lead_source": "Website",
                "insurance_state": "California",
                "type_of_insurance": "Health",
            },
            "health_information": {
                "currently_insured": True,
                "last_time_insured": "2023-12-31",
                "current_medications": "None",
                "pre_existing_conditions": "None",
                "major_hospitalizations": "None",
                "projected_annual_income": "75000",
            },
            "insurance_details": {
                "carrier_u65": "Test Carrier",
                "plan": "Individual",
                "plan_cost": "$250.00",
                "plan_commission": "20%",
                "carrier_aca": "Access Health STM",
                "aca_plan_premium": "350",
                "aca_plan_deductible": "2500",
                "american_financial_1_plan": "Accident 2500 - $39.95",
                "american_financial_1_commission": "50%",
                "enrollment_fee": "$99.00",
                "enrollment_fee_commission": "$50.00",
            },
            "personal_details": {
                "ssn": "123-45-6789",
                "gender": "Male",
                "height": "5'10\"",
                "weight": "170",
                "smoker_status": False,
            },
            "contact_numbers": {
                "cell_phone": "555-123-4567",
                "work_phone": "555-987-6543",
            },
            "address_information": {
                "address_line1": "123 Test Street",
                "address_line2": "Apt 4B",
                "city": "Test City",
                "state": "CA",
                "zip_code": "12345",
            },
            "dependents": [
                {
                    "name": "Jane Doe",
                    "relationship": "Spouse",
                    "dob": "1992-05-15",
                    "gender": "Female",
                    "ssn": "987-65-4321",
                }
            ],
            "billing_information": {
                "same_as_applicant": True,
                "billing_address_line1": "123 Test Street",
                "billing_address_line2": "Apt 4B",
                "billing_city": "Test City",
                "billing_state": "CA",
                "billing_zip_code": "12345",
                "card_type": "Visa",
                "card_number": "**** **** **** 4242",
            },
            "agent_information": {
                "agent_name": "Test Agent",
                "fronter_name": "Test Fronter",
                "notes": "Test application for demonstration purposes",
            },
        }
    )
