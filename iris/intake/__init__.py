"""Iris intake package — application form model and Airtable record mapping.

The mapper lives in :mod:`iris.intake.record_mapper`; it depends on
:mod:`iris.pricing`, which in turn imports the form schemas from here.
"""

from iris.intake.schemas import ApplicationForm, Dependent, InsuranceDetails
from iris.intake.samples import generate_sample_application

__all__ = [
    "ApplicationForm",
    "Dependent",
    "InsuranceDetails",
    "generate_sample_application",
]
