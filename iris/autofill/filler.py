"""Playwright-driven filler for the external enrollment website.

The filler owns the browser lifecycle and drives one enrollment page:

    1. open the enrollment URL
    2. read the page HTML and classify every named control
    3. fill personal, contact, beneficiary and dependent inputs
    4. tick the agreement box and fire change events on linked controls
    5. select card payment, fill card fields with the site's card-number
       validation requests blocked, then re-apply any value the page cleared
    6. walk the dependent queue

The page is left open for the agent to review and submit; nothing is
submitted automatically.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from bs4 import BeautifulSoup
from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from iris.autofill.mapper import DEPENDENT_FIELDS, EnrollmentData, EnrollmentDependent
from iris.config import Settings, settings

logger = logging.getLogger("iris.autofill")

# Requests the site fires while a card number is typed
CARD_VALIDATION_MARKERS = ("isMod10", "forms.cfc")

AGREE_CHECKBOX = "chkAgree"
PAYMENT_TYPE_RADIO = "paymentType"
SAME_ADDRESS_CHECKBOX = "same_address"
SAVE_DEPENDENT_BUTTON = 'input[value="Save Dependent"]'

# Controls whose change handlers populate other parts of the page
CHANGE_TRIGGER_FIELDS = (
    "state",
    SAME_ADDRESS_CHECKBOX,
    AGREE_CHECKBOX,
    "phone1_1",
    "phone1_2",
    "phone1_3",
    "phone2_1",
    "phone2_2",
    "phone2_3",
    "ben_state",
)

CARD_FIELDS = (
    "cc_number",
    "pay_ccexpmonth",
    "pay_ccexpyear",
    "pay_cccvv2",
    "pay_fname",
    "pay_lname",
    "pay_address",
    "pay_city",
    "pay_state",
    "pay_zipcode",
)

_TYPEABLE_INPUTS = frozenset(
    {"text", "email", "tel", "number", "password", "search", "date", "url", "textarea"}
)

_SET_VALUE_JS = """(el, value) => {
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
}"""


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class AutofillResult(BaseModel):
    """Summary of one autofill run."""

    url: str
    record_id: str | None = None
    filled: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    reapplied: list[str] = Field(default_factory=list)
    dependents_total: int = 0
    dependents_filled: int = 0
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Page inspection
# ---------------------------------------------------------------------------


def classify_form_fields(html: str) -> dict[str, str]:
    """Map each named control in *html* to its kind.

    Kinds are ``select``, ``textarea`` or the input's ``type`` attribute
    (``text`` when absent).  The first control with a given name wins, as
    ``document.getElementsByName(name)[0]`` would.
    """
    soup = BeautifulSoup(html, "html.parser")
    kinds: dict[str, str] = {}
    for element in soup.find_all(["input", "select", "textarea"]):
        name = element.get("name")
        if not name or name in kinds:
            continue
        if element.name == "input":
            kinds[name] = (element.get("type") or "text").strip().lower()
        else:
            kinds[name] = element.name
    return kinds


def _selector(name: str) -> str:
    return f'[name="{name}"]'


# ---------------------------------------------------------------------------
# Filler
# ---------------------------------------------------------------------------


class EnrollmentFiller:
    """Fill the enrollment website from :class:`EnrollmentData`.

    Parameters
    ----------
    config:
        Iris ``Settings`` instance.  Defaults to the module-level singleton.
    """

    def __init__(self, config: Settings = settings) -> None:
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self.retry_wait = wait_exponential(multiplier=2, min=2, max=30)

    # ------------------------------------------------------------------
    # Browser lifecycle
    # ------------------------------------------------------------------

    async def init_browser(self) -> None:
        """Launch Chromium; headful unless ``autofill_headless`` is set."""
        logger.debug("Launching Playwright Chromium (headless=%s)", self.config.autofill_headless)
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.autofill_headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        )
        self._context = await self._browser.new_context(viewport={"width": 1280, "height": 900})
        self._context.set_default_timeout(self.config.autofill_timeout_seconds * 1000)
        logger.info("Browser ready")

    async def close(self) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._context = self._browser = self._playwright = None
        logger.info("Browser closed")

    async def run(
        self, data: EnrollmentData, url: str | None = None, keep_open: bool = False
    ) -> AutofillResult:
        """Open the enrollment page in a fresh browser and fill it.

        With *keep_open* the call returns only after the agent closes the
        page, so the filled form can be reviewed and submitted by hand.
        """
        target = url or self.config.enrollment_url
        if not target:
            raise ValueError("No enrollment URL given and ENROLLMENT_URL is not set")

        await self.init_browser()
        try:
            page = await self._context.new_page()
            await self._navigate(page, target)
            result = await self.fill(page, data, url=target)
            if keep_open:
                logger.info("Form filled; waiting for the page to be closed")
                await page.wait_for_event("close", timeout=0)
            return result
        finally:
            await self.close()

    async def _navigate(self, page: Any, url: str) -> None:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(PlaywrightError),
                stop=stop_after_attempt(3),
                wait=self.retry_wait,
                reraise=True,
            ):
                with attempt:
                    logger.debug(
                        "Navigating to %s (attempt %d)", url, attempt.retry_state.attempt_number
                    )
                    await page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as exc:
            logger.error("Navigation to %s failed after retries: %s", url, exc)
            raise

    # ------------------------------------------------------------------
    # Fill orchestration
    # ------------------------------------------------------------------

    async def fill(self, page: Any, data: EnrollmentData, url: str = "") -> AutofillResult:
        """Fill an already-open enrollment *page*.

        Parameters
        ----------
        page:
            Playwright ``Page`` showing the enrollment form.
        data:
            Output of :func:`iris.autofill.mapper.map_submission`.
        """
        result = AutofillResult(
            url=url or getattr(page, "url", ""),
            record_id=data.record_id,
            dependents_total=len(data.dependents),
        )
        kinds = classify_form_fields(await page.content())
        logger.info("Enrollment page has %d named controls", len(kinds))

        await self._fill_values(page, data.non_payment_fields(), kinds, result)
        await self._check(page, AGREE_CHECKBOX, kinds, result)
        await self._trigger_change(page, kinds)

        await self._fill_payment(page, data.payment_fields(), kinds, result)

        if data.dependents:
            await self._step_delay(page, 10)
            await self.fill_dependents(page, data.dependents, kinds, result)

        logger.info(
            "Autofill done: %d filled, %d skipped, %d errors",
            len(result.filled),
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def _fill_values(
        self, page: Any, values: dict[str, str], kinds: dict[str, str], result: AutofillResult
    ) -> None:
        for name, value in values.items():
            kind = kinds.get(name)
            if kind is None or value in (None, ""):
                result.skipped.append(name)
                continue
            if await self._set_field(page, name, value, kind, result):
                result.filled.append(name)
            else:
                result.skipped.append(name)

    async def _set_field(
        self, page: Any, name: str, value: str, kind: str, result: AutofillResult
    ) -> bool:
        selector = _selector(name)
        try:
            if kind == "select":
                try:
                    await page.select_option(selector, value=value)
                except PlaywrightError:
                    await page.select_option(selector, label=value)
            elif kind in _TYPEABLE_INPUTS:
                await page.fill(selector, value)
            elif kind == "hidden":
                await page.eval_on_selector(selector, _SET_VALUE_JS, value)
            else:
                return False
        except PlaywrightError as exc:
            logger.warning("Could not set %s: %s", name, exc)
            result.errors.append(f"{name}: {exc}")
            return False
        logger.debug("Filled %s", name)
        return True

    async def _check(
        self, page: Any, name: str, kinds: dict[str, str], result: AutofillResult, checked: bool = True
    ) -> None:
        if name not in kinds:
            return
        try:
            if checked:
                await page.check(_selector(name))
            else:
                await page.uncheck(_selector(name))
        except PlaywrightError as exc:
            logger.warning("Could not toggle %s: %s", name, exc)
            result.errors.append(f"{name}: {exc}")

    async def _trigger_change(self, page: Any, kinds: dict[str, str]) -> None:
        for name in CHANGE_TRIGGER_FIELDS:
            if name not in kinds:
                continue
            try:
                await page.dispatch_event(_selector(name), "change")
            except PlaywrightError as exc:
                logger.debug("change event on %s failed: %s", name, exc)

    async def _step_delay(self, page: Any, steps: int = 1) -> None:
        delay = self.config.autofill_step_delay_ms * steps
        if delay > 0:
            await page.wait_for_timeout(delay)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def _fill_payment(
        self, page: Any, values: dict[str, str], kinds: dict[str, str], result: AutofillResult
    ) -> None:
        await self._check(page, PAYMENT_TYPE_RADIO, kinds, result)
        await self._step_delay(page, 3)
        # Keep the billing block editable so every pay_* input is filled
        await self._check(page, SAME_ADDRESS_CHECKBOX, kinds, result, checked=False)

        async def block_card_validation(route: Any) -> None:
            if any(marker in route.request.url for marker in CARD_VALIDATION_MARKERS):
                logger.debug("Blocked card validation request %s", route.request.url)
                await route.abort()
            else:
                await route.continue_()

        await page.route("**/*", block_card_validation)
        try:
            for name in CARD_FIELDS:
                if name in values:
                    await self._fill_values(page, {name: values[name]}, kinds, result)
                    await self._step_delay(page)
            await self._step_delay(page, 10)
            await self.reapply_cleared(page, values, kinds, result)
        finally:
            await page.unroute("**/*", block_card_validation)

    async def reapply_cleared(
        self, page: Any, values: dict[str, str], kinds: dict[str, str], result: AutofillResult
    ) -> None:
        """Set again any card field whose value the page's scripts changed."""
        for name in CARD_FIELDS:
            expected = values.get(name)
            if not expected or kinds.get(name) not in _TYPEABLE_INPUTS | {"select", "hidden"}:
                continue
            try:
                current = await page.input_value(_selector(name))
            except PlaywrightError:
                continue
            if current != expected:
                logger.info("Re-applying %s (page changed it)", name)
                if await self._set_field(page, name, expected, kinds[name], result):
                    result.reapplied.append(name)

    # ------------------------------------------------------------------
    # Dependents
    # ------------------------------------------------------------------

    async def fill_dependents(
        self,
        page: Any,
        dependents: list[EnrollmentDependent],
        kinds: dict[str, str],
        result: AutofillResult,
    ) -> None:
        """Load the dependent queue into the page's dependent form.

        Without ``autofill_save_dependents`` only the first dependent is
        loaded and the agent saves it; otherwise each dependent is saved
        with the page's "Save Dependent" button before the next is loaded.
        """
        total = len(dependents)
        for index, dependent in enumerate(dependents):
            await self._clear_dependent_form(page, kinds)
            await self._fill_values(
                page, {k: v for k, v in dependent.form_fields().items() if v}, kinds, result
            )
            result.dependents_filled += 1
            logger.info(
                "Loaded dependent %d/%d (%s %s)",
                index + 1,
                total,
                dependent.first_name,
                dependent.last_name,
            )
            if not self.config.autofill_save_dependents:
                if total > 1:
                    logger.info("%d more dependent(s) to enter after saving this one", total - 1)
                break
            try:
                await page.click(SAVE_DEPENDENT_BUTTON)
            except PlaywrightError as exc:
                logger.warning("Save Dependent button unavailable: %s", exc)
                result.errors.append(f"save dependent {index + 1}: {exc}")
                break
            await self._step_delay(page, 10)

    async def _clear_dependent_form(self, page: Any, kinds: dict[str, str]) -> None:
        for name in DEPENDENT_FIELDS:
            kind = kinds.get(name)
            if kind is None:
                continue
            try:
                if kind == "select":
                    await page.select_option(_selector(name), index=0)
                elif kind in _TYPEABLE_INPUTS:
                    await page.fill(_selector(name), "")
            except PlaywrightError as exc:
                logger.debug("Could not clear %s: %s", name, exc)


def run_autofill(
    data: EnrollmentData,
    url: str | None = None,
    keep_open: bool = False,
    config: Settings = settings,
) -> AutofillResult:
    """Synchronous entry point for the CLI and the API's worker thread."""
    return asyncio.run(EnrollmentFiller(config).run(data, url=url, keep_open=keep_open))
