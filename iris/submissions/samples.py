"""Built-in submissions served when neither Airtable nor the cache has data.

The first record exercises every column the enrollment mapper reads,
including six dependents; the rest cover the name-column variants that
older rows were saved with (``firstname``, ``First Name``).
"""

from __future__ import annotations

from iris.airtable.client import AirtableRecord

_FULL_SUBMISSION = {
    "id": "rec4rdOhvOGKETOAB",
    "createdTime": "2025-03-02T15:42:05.000Z",
    "fields": {
        "Lead ID": "1235",
        "firstName": "Test",
        "lastName": "User",
        "email": "test@example.com",
        "DOB": "1990-01-01",
        "Gender": "male",
        "SSN": "123-45-6789",
        "Height": "72",
        "Weight": "180",
        "Smoker?": "No",
        "Lead Source": "website",
        "Currently Insured": True,
        "Last Time Insured": "2023-01-01",
        "Current Medications": "Aspirin, Vitamin D, Lisinopril",
        "Pre Existing Conditions": "Hypertension, Asthma",
        "Major Hospitalizations/Surgeries": "Appendectomy 2018, Knee surgery 2020",
        "Projected Annual Income": 60000,
        "Insurance State": "CA",
        "Type": "Individual",
        "Carrier U65": "Advanced Wellness Plus",
        "Plan": "Advanced Wellness Plus 500 $412.12",
        "Carrier U65 Premium": "412.12",
        "Carrier U65 Commission": "123.64",
        "Carrier ACA": "Ambetter",
        "ACA Plan Premium": 450,
        "American Financial Plan 1": "AF AD&D 50K $79.00",
        "American Financial 1 Premium": "50",
        "American Financial 1 Commission": "15",
        "American Financial Plan 2": "AF AME 500 $29.95",
        "American Financial 2 Premium": "75",
        "American Financial 2 Commission": "20",
        "American Financial Plan 3": "AF Critical Illness 2,500 $64.00",
        "American Financial 3 Premium": "125",
        "American Financial 3 Commission": "30",
        "Essential Care Premium": "100",
        "Essential Care Commission": "25",
        "Enrollment Fee": "27.5",
        "Enrollment Fee Commission": "20",
        "Total Premium": "1150",
        "Total Commission": "123.64",
        "Cell Phone": "(555) 123-4567",
        "Work Phone": "(555) 987-6543",
        "Address Line 1": "123 Test Street",
        "Address Line 2": "Apt 4B",
        "City": "Testville",
        "State": "CA",
        "Zip": "12345",
        "Billing Address Line 1": "456 Billing Street",
        "Billing Address Line 2": "Suite 100",
        "Billing City": "Billtown",
        "Billing State": "NY",
        "Billing Zip": "54321",
        "Card Type": "visa",
        "Card Number": "4111111111111111",
        "Exp. Month": "12",
        "Exp. Year": "2025",
        "CVV": 123,
        "Agent": "Agent Smith",
        "Fronter Name": "Jane Fronter",
        "Notes": "Test submission with maximum data for comprehensive Airtable field testing",
        "Dependent Name": "Test Child 1",
        "Dependent Gender": "female",
        "Dependent Relationship": "child",
        "Dependent DOB": "2010-05-15",
        "Dependent SSN": "987-65-4321",
        "Dependent 2 Name": "Test Spouse",
        "Dependent 2 Gender": "female",
        "Dependent 2 Relationship": "spouse",
        "Dependent 2 DOB": "1992-03-20",
        "Dependent 2 SSN": "456-78-9123",
        "Dependent 3 Name": "Test Child 2",
        "Dependent 3 Gender": "male",
        "Dependent 3 Relationship": "child",
        "Dependent 3 DOB": "2012-07-19",
        "Dependent 3 SSN": "444-55-6666",
        "Dependent 4 Name": "Test Child 3",
        "Dependent 4 Gender": "female",
        "Dependent 4 Relationship": "child",
        "Dependent 4 DOB": "2014-09-23",
        "Dependent 4 SSN": "333-44-5555",
        "Dependent 5 Name": "Test Child 4",
        "Dependent 5 Gender": "male",
        "Dependent 5 Relationship": "child",
        "Dependent 5 DOB": "2016-11-12",
        "Dependent 5 SSN": "222-33-4444",
        "Dependent 6 Name": "Test Parent",
        "Dependent 6 Gender": "male",
        "Dependent 6 Relationship": "parent",
        "Dependent 6 DOB": "1965-02-28",
        "Dependent 6 SSN": "111-22-3333",
    },
}


def _short(record_id, created, first, last, dob, ssn, gender, street, city, state, zip_code,
           phone, email, card=None, name_columns=("firstName", "lastName")):
    fields = {
        name_columns[0]: first,
        name_columns[1]: last,
        "DOB": dob,
        "SSN": ssn,
        "Gender": gender,
        "Address Line 1": street,
        "City": city,
        "State": state,
        "Zip": zip_code,
        "Cell Phone": phone,
        "email": email,
    }
    if card:
        month, year, cvv = card
        fields.update(
            {"Card Number": "4111111111111111", "Exp. Month": month, "Exp. Year": year, "CVV": cvv}
        )
    return {"id": record_id, "createdTime": created, "fields": fields}


_SHORT_SUBMISSIONS = [
    _short("rec1TestSubmission", "2025-02-15T10:30:00.000Z", "John", "Smith", "1985-06-12",
           "234-56-7890", "male", "456 Oak Avenue", "Springfield", "IL", "62704",
           "(555) 234-5678", "john.smith@example.com", ("05", "2026", 456)),
    _short("rec2TestSubmission", "2025-02-20T14:15:00.000Z", "Sarah", "Johnson", "1992-08-23",
           "345-67-8901", "female", "789 Pine Street", "Portland", "OR", "97205",
           "(555) 345-6789", "sarah.johnson@example.com", ("08", "2027", 789)),
    _short("rec3TestSubmission", "2025-02-25T09:45:00.000Z", "Michael", "Williams", "1978-11-30",
           "456-78-9012", "male", "123 Maple Drive", "Denver", "CO", "80202",
           "(555) 456-7890", "michael.williams@example.com", ("11", "2026", 123)),
    _short("rec4TestSubmission", "2025-03-01T11:30:00.000Z", "Jennifer", "Brown", "1990-04-15",
           "567-89-0123", "female", "456 Birch Lane", "Seattle", "WA", "98101",
           "(555) 567-8901", "jennifer.brown@example.com", ("04", "2028", 456)),
    _short("rec5TestSubmission", "2025-03-05T16:20:00.000Z", "David", "Jones", "1982-09-08",
           "678-90-1234", "male", "789 Elm Court", "Chicago", "IL", "60601",
           "(555) 678-9012", "david.jones@example.com", ("07", "2027", 789)),
    _short("rec6TestSubmission", "2025-03-06T10:15:00.000Z", "Robert", "Brown", "1975-05-20",
           "789-01-2345", "male", "123 Cedar Street", "Boston", "MA", "02108",
           "(555) 789-0123", "robert.brown@example.com", name_columns=("firstname", "lastname")),
    _short("rec7TestSubmission", "2025-03-07T14:30:00.000Z", "Elizabeth", "Taylor", "1988-11-15",
           "890-12-3456", "female", "456 Walnut Avenue", "San Francisco", "CA", "94102",
           "(555) 890-1234", "elizabeth.taylor@example.com",
           name_columns=("First Name", "Last Name")),
]


def sample_submissions() -> list[AirtableRecord]:
    """Fresh copies of the built-in submissions, full record first."""
    return [
        AirtableRecord.model_validate(r) for r in [_FULL_SUBMISSION, *_SHORT_SUBMISSIONS]
    ]
