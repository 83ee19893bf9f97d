"""
Page renderer backed by a headless Chromium browser.

The rest of the monitor only sees the ``PageSession`` protocol: navigate
to a URL and get a status code, wait for a selector or for the network to
settle, and read the rendered content. ``PlaywrightRenderer`` implements it
with ``playwright.async_api``; each cycle opens one fresh browser session
and closes it on exit.
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .audit_logger import AuditLogger
from .config import PacingConfig, ProxyConfig, RendererConfig
from .enums import LogLevel
from .exceptions import AccessDeniedError, RenderError
from .pacing import Pacer

LAUNCH_ARGS = (
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.navigator.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };
if (navigator.permissions) {
    const originalQuery = navigator.permissions.query.bind(navigator.permissions);
    navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({ state: Notification.permission })
            : originalQuery(parameters)
    );
}
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['ja', 'en-US', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
if ('getBattery' in navigator) { delete navigator.getBattery; }
delete window.__playwright;
delete window.__pw_manual;
"""

# Same-site links worth wandering into during warm-up.
WARM_UP_LINK_SELECTOR = (
    'a:not([href^="#"]):not([href=""]):not([href*="tel:"]):not([href*="javascript:"])'
)


@dataclass(frozen=True)
class RenderOptions:
    """Navigation options for ``PageSession.render``."""

    timeout_ms: int = 60000
    wait_until: str = "load"


@dataclass(frozen=True)
class RenderResult:
    """Outcome of a navigation: the main response status and the content at load."""

    url: str
    status_code: int
    content: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class PageSession(Protocol):
    """One open browser page, owned by a single cycle."""

    async def warm_up(self) -> None:
        """Browse like a visitor before loading the target page. Never raises for site errors."""
        ...

    async def render(self, url: str, options: Optional[RenderOptions] = None) -> RenderResult:
        """
        Navigate to ``url``.

        Raises ``AccessDeniedError`` when the site answers 403 and
        ``RenderError`` if navigation fails outright.
        """
        ...

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        """True once ``selector`` is present, False on timeout."""
        ...

    async def wait_for_network_idle(self, timeout_ms: int) -> bool:
        """True once the network is idle, False on timeout."""
        ...

    async def content(self) -> str:
        """Full rendered HTML of the current page."""
        ...


class Renderer(Protocol):
    """Factory for per-cycle page sessions."""

    def session(self) -> AsyncContextManager[PageSession]:
        ...

    def rotate_proxy(self) -> Optional[str]:
        ...


def resolve_headless(config: RendererConfig) -> bool:
    """Explicit setting wins; otherwise run headless when no display is available."""
    if config.headless is not None:
        return config.headless
    return not os.environ.get("DISPLAY")


def redact_proxy(server: str) -> str:
    """Strip user credentials from a proxy URL for logging."""
    parts = urlsplit(server)
    if not parts.username and not parts.password:
        return server
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


class PlaywrightPageSession:
    """``PageSession`` over a Playwright page."""

    COMPONENT = "Renderer"

    def __init__(
        self,
        page: Page,
        config: RendererConfig,
        pacing: PacingConfig,
        pacer: Pacer,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._page = page
        self._config = config
        self._pacing = pacing
        self._pacer = pacer
        self._logger = logger

    @property
    def page(self) -> Page:
        return self._page

    async def warm_up(self) -> None:
        """
        Establish a visitor-like session before the target page.

        Visits the site's top page, scrolls a third of the way down and,
        when there are more than five links, follows one of links 1 to 5.
        Each step is best-effort.
        """
        if not self._config.warm_up_url:
            return

        try:
            await self._page.goto(
                self._config.warm_up_url,
                timeout=self._config.warm_up_timeout_ms,
                wait_until="domcontentloaded",
            )
            await self._pacer.pause(self._pacing.warm_up)
        except PlaywrightError as e:
            self._log(LogLevel.WARN, "Warm-up top page failed, continuing", {"error": str(e)})

        try:
            await self._page.evaluate("() => window.scrollBy(0, document.body.scrollHeight / 3)")
            await self._pacer.pause(self._pacing.warm_up_scroll)
        except PlaywrightError as e:
            self._log(LogLevel.WARN, "Warm-up scroll failed, continuing", {"error": str(e)})

        try:
            links = await self._page.query_selector_all(WARM_UP_LINK_SELECTOR)
        except PlaywrightError as e:
            self._log(LogLevel.WARN, "Warm-up link lookup failed, continuing", {"error": str(e)})
            return

        if len(links) <= 5:
            self._log(LogLevel.DEBUG, "Too few links for warm-up click", {"link_count": len(links)})
            return

        index = self._pacer.choice_index(1, 5)
        try:
            await links[index].click(timeout=self._config.click_timeout_ms)
            await self._page.wait_for_load_state("domcontentloaded", timeout=30000)
            await self._pacer.pause(self._pacing.warm_up_click)
        except PlaywrightError as e:
            self._log(LogLevel.WARN, "Warm-up click failed, continuing", {"index": index, "error": str(e)})
            return

        self._log(LogLevel.DEBUG, "Warm-up completed", {"clicked_index": index})

    async def render(self, url: str, options: Optional[RenderOptions] = None) -> RenderResult:
        options = options or RenderOptions()
        try:
            response = await self._page.goto(
                url,
                timeout=options.timeout_ms,
                wait_until=options.wait_until,
            )
            content = await self._page.content()
        except PlaywrightError as e:
            raise RenderError(
                code="navigation_failed",
                message=f"Navigation to {url} failed: {e}",
                details={"url": url, "timeout_ms": options.timeout_ms},
            )

        # goto returns None for same-document navigations
        status_code = response.status if response else 200
        if status_code == 403:
            raise AccessDeniedError(url, status_code)
        self._log(LogLevel.DEBUG, f"Rendered {url}", {"url": url, "status_code": status_code})
        return RenderResult(url=url, status_code=status_code, content=content)

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def wait_for_network_idle(self, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def content(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as e:
            raise RenderError(
                code="content_failed",
                message=f"Failed to read page content: {e}",
                details={"url": self._page.url},
            )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)


class PlaywrightRenderer:
    """
    Opens stealth Chromium sessions, one per cycle.

    When proxy rotation is enabled, the current proxy is applied at launch
    and ``rotate_proxy`` moves to the next one for the following session.
    """

    COMPONENT = "Renderer"

    def __init__(
        self,
        config: Optional[RendererConfig] = None,
        pacing: Optional[PacingConfig] = None,
        proxy: Optional[ProxyConfig] = None,
        pacer: Optional[Pacer] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config or RendererConfig()
        self._pacing = pacing or PacingConfig()
        self._proxy = proxy or ProxyConfig()
        self._pacer = pacer or Pacer()
        self._logger = logger
        self._proxy_index = 0

    @property
    def current_proxy(self) -> Optional[str]:
        if not self._proxy.enabled or not self._proxy.servers:
            return None
        return self._proxy.servers[self._proxy_index % len(self._proxy.servers)]

    def rotate_proxy(self) -> Optional[str]:
        """Advance to the next configured proxy. Returns it, or None when rotation is off."""
        if not self._proxy.enabled or not self._proxy.servers:
            return None
        self._proxy_index = (self._proxy_index + 1) % len(self._proxy.servers)
        proxy = self.current_proxy
        self._log(LogLevel.INFO, "Proxy rotated", {"proxy_server": redact_proxy(proxy)})
        return proxy

    def launch_options(self) -> dict:
        """Keyword arguments for ``chromium.launch``."""
        options: dict = {
            "headless": resolve_headless(self._config),
            "args": [
                *LAUNCH_ARGS,
                f"--window-size={self._config.viewport_width},{self._config.viewport_height}",
            ],
        }
        proxy = self.current_proxy
        if proxy:
            options["proxy"] = {"server": proxy}
        return options

    def context_options(self) -> dict:
        """Keyword arguments for ``browser.new_context``."""
        options: dict = {
            "viewport": {
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            "user_agent": self._config.user_agent,
            "locale": self._config.locale,
            "timezone_id": self._config.timezone_id,
            "extra_http_headers": {
                "Accept-Language": self._config.accept_language,
                "Accept-Encoding": "gzip, deflate, br",
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                "Referer": "https://www.google.com/",
                "Sec-Fetch-Dest": "document",
                "Sec-Fetch-Mode": "navigate",
                "Sec-Fetch-Site": "none",
                "Sec-Fetch-User": "?1",
                "Upgrade-Insecure-Requests": "1",
            },
        }
        if self._config.geolocation is not None:
            latitude, longitude = self._config.geolocation
            options["geolocation"] = {"latitude": latitude, "longitude": longitude}
            options["permissions"] = ["geolocation"]
        return options

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PlaywrightPageSession]:
        """
        Launch a browser and yield a page session; the browser is closed on exit.

        Raises:
            RenderError: If the browser or its context cannot be started
        """
        launch_options = self.launch_options()
        proxy = self.current_proxy
        self._log(
            LogLevel.INFO,
            "Launching browser",
            {
                "headless": launch_options["headless"],
                "proxy_server": redact_proxy(proxy) if proxy else None,
            },
        )

        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(**launch_options)
            except PlaywrightError as e:
                raise RenderError(
                    code="launch_failed",
                    message=f"Failed to launch browser: {e}",
                )

            try:
                try:
                    context = await browser.new_context(**self.context_options())
                    await context.add_init_script(STEALTH_INIT_SCRIPT)
                    page = await context.new_page()
                except PlaywrightError as e:
                    raise RenderError(
                        code="context_failed",
                        message=f"Failed to open browser context: {e}",
                    )

                yield PlaywrightPageSession(
                    page=page,
                    config=self._config,
                    pacing=self._pacing,
                    pacer=self._pacer,
                    logger=self._logger,
                )
            finally:
                try:
                    await browser.close()
                except PlaywrightError as e:
                    self._log(LogLevel.WARN, "Browser close failed", {"error": str(e)})

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
