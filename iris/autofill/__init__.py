"""Iris autofill package — enrollment-site field mapping and Playwright filler.

The filler module imports Playwright; import it directly
(``iris.autofill.filler``) where a browser is needed.
"""

from iris.autofill.mapper import (
    EnrollmentData,
    EnrollmentDependent,
    extract_dependents,
    map_submission,
    split_date,
    split_phone,
)

__all__ = [
    "EnrollmentData",
    "EnrollmentDependent",
    "extract_dependents",
    "map_submission",
    "split_date",
    "split_phone",
]
