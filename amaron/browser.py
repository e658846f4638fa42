"""
Browser automation for the scraper: one Playwright page driving both the dropdown form and
the product pages. Images, stylesheets, fonts and media are aborted at the router; everything
else is fetched through it so bandwidth can be reported.
"""
import logging
from typing import Any, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Request, Route, async_playwright

from amaron.config import (
    BANDWIDTH_LOG_EVERY_N_PAGES,
    BLOCKED_RESOURCE_TYPES,
    LAUNCH_ARGS,
    PLACEHOLDER_OPTION_VALUES,
    USER_AGENT,
    VIEWPORT,
    RunSettings,
    get_proxy_settings,
)
from amaron.models import DropdownOption
from amaron.retry import is_element_error, is_transient_error, retry_async, split_selectors

logger = logging.getLogger("amaron.browser")


class BrowserInitError(RuntimeError):
    """The browser could not be launched; nothing useful can happen after this."""


class ElementNotFoundError(RuntimeError):
    """None of the alternatives in a selector preference list could be used."""


class BrowserSession(Protocol):
    """What discovery and extraction need from a browser. Tests provide an in-memory fake."""

    async def navigate(self, url: str) -> int | None: ...

    async def select(self, selector: str, value: str) -> None: ...

    async def get_options(self, selector: str) -> list[DropdownOption]: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...


_READ_OPTIONS_JS = """(el, placeholders) => Array.from(el.options || [])
    .map(opt => ({ value: opt.value, text: (opt.textContent || '').trim() }))
    .filter(opt => !placeholders.includes((opt.value || '').trim().toLowerCase()))
"""


def _create_bandwidth_tracker():
    data = {"bytes": 0, "pages": 0}

    async def on_route(route: Route, request: Request):
        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
            return
        try:
            response = await route.fetch()
            body = await response.body()
            data["bytes"] += len(body)
            await route.fulfill(response=response, body=body)
        except Exception:
            await route.continue_()

    def add_page():
        data["pages"] += 1
        if data["pages"] % BANDWIDTH_LOG_EVERY_N_PAGES == 0:
            kb = data["bytes"] / 1024
            logger.info(
                "Bandwidth (last %d pages): %.1f KB total (~%.1f KB/page)",
                data["pages"], kb, kb / data["pages"] if data["pages"] else 0,
            )

    return on_route, add_page, data


def build_launch_options(headless: bool) -> dict:
    """Playwright launch options (headless, args, optional proxy)."""
    opts = {"headless": headless, "args": list(LAUNCH_ARGS)}
    proxy = get_proxy_settings()
    if proxy:
        opts["proxy"] = proxy
    return opts


class PlaywrightSession:
    """
    Exclusive owner of the browser, context and single page for a run.
    Use as `async with PlaywrightSession(settings) as session: ...`.
    """

    def __init__(self, settings: RunSettings):
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self.page: Page | None = None
        self._on_route, self._add_page, self.bandwidth = _create_bandwidth_tracker()

    async def __aenter__(self) -> "PlaywrightSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        logger.info("Launching browser (headless=%s)...", self.settings.headless)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(**build_launch_options(self.settings.headless))
            self._context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
                locale="en-IN",
                timezone_id="Asia/Kolkata",
            )
            await self._context.route("**/*", self._on_route)
            self.page = await self._context.new_page()
            self.page.set_default_timeout(self.settings.element_timeout_ms)
            self.page.set_default_navigation_timeout(self.settings.navigation_timeout_ms)
        except Exception as e:
            await self.close()
            raise BrowserInitError(f"Failed to initialize browser: {e}") from e
        logger.info("Browser launched.")

    async def close(self) -> None:
        for name, closer in (
            ("page", self.page),
            ("context", self._context),
            ("browser", self._browser),
        ):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                logger.warning("Error closing %s: %s", name, e)
        self.page = self._context = self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("Error stopping Playwright: %s", e)
            self._playwright = None

    def _require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("Browser session is not started")
        return self.page

    async def navigate(self, url: str) -> int | None:
        """Load url, retrying transient failures with backoff. Returns the HTTP status (None if unknown)."""
        page = self._require_page()

        async def _goto():
            return await page.goto(
                url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout_ms
            )

        response = await retry_async(
            _goto,
            attempts=self.settings.max_retries,
            base_delay=self.settings.retry_delay,
            backoff=self.settings.backoff_multiplier,
            retry_if=is_transient_error,
            operation=f"navigate {url}",
        )
        self._add_page()
        return response.status if response is not None else None

    async def _with_alternatives(self, selector: str, action, operation: str):
        """Run action(alternative) for each alternative in the preference list until one succeeds."""
        last_error: Exception | None = None
        for alternative in split_selectors(selector):
            try:
                return await retry_async(
                    lambda: action(alternative),
                    attempts=self.settings.element_retries,
                    base_delay=self.settings.retry_delay,
                    backoff=self.settings.backoff_multiplier,
                    retry_if=is_element_error,
                    operation=f"{operation} {alternative}",
                )
            except Exception as e:
                if not (is_element_error(e) or is_transient_error(e)):
                    raise
                last_error = e
                logger.debug("%s: alternative %s failed: %s", operation, alternative, e)
        raise ElementNotFoundError(f"{operation}: no usable element for {selector!r} (last error: {last_error})")

    async def select(self, selector: str, value: str) -> None:
        page = self._require_page()

        async def _select(alternative: str):
            await page.wait_for_selector(alternative, state="attached", timeout=self.settings.element_timeout_ms)
            await page.select_option(alternative, value=value, timeout=self.settings.element_timeout_ms)

        await self._with_alternatives(selector, _select, f"select {value!r}")

    async def get_options(self, selector: str) -> list[DropdownOption]:
        page = self._require_page()

        async def _read(alternative: str):
            await page.wait_for_selector(alternative, state="attached", timeout=self.settings.element_timeout_ms)
            return await page.eval_on_selector(alternative, _READ_OPTIONS_JS, list(PLACEHOLDER_OPTION_VALUES))

        raw = await self._with_alternatives(selector, _read, "read options")
        return [
            DropdownOption(str(item.get("value") or ""), str(item.get("text") or ""))
            for item in raw or []
        ]

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        page = self._require_page()
        if arg is None:
            return await page.evaluate(script)
        return await page.evaluate(script, arg)
