"""Iris — insurance application intake and enrollment autofill.

Iris renders the agent intake form, reads carrier, plan and commission
reference data from Airtable, writes completed applications back to the
submissions table, and replays captured submissions into the external
enrollment website through a Playwright-driven browser.
"""

__version__ = "0.1.0"
