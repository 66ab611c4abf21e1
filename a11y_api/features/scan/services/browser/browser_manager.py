"""
Shared browser lifecycle for scan workers.

One WebDriver session per worker process is created lazily on first use and
handed out to every scan that process runs. Scans never quit the driver; they
open a BrowserContext (a fresh tab with its own headers and cleared cookies)
and close only that.
"""
import base64
import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from a11y_api.features.scan.schemas.scan_options import BasicAuth
from a11y_api.platform.exceptions import BrowserUnavailableError

logger = logging.getLogger(__name__)

_SESSION_LOST_MARKERS = ("disconnected", "session deleted", "no such session", "chrome not reachable")


def is_session_lost(exc: BaseException) -> bool:
    """True when the error means the shared driver itself is gone."""
    if isinstance(exc, (InvalidSessionIdException, NoSuchWindowException)):
        return True
    if isinstance(exc, WebDriverException):
        message = (exc.msg or "").lower()
        return any(marker in message for marker in _SESSION_LOST_MARKERS)
    return False


def build_chrome_options(headless: bool = True) -> Options:
    chrome_options = Options()
    if headless:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--hide-scrollbars")
    chrome_options.add_argument("--window-size=1366,900")
    # return from get() once the DOM is interactive
    chrome_options.page_load_strategy = "eager"
    return chrome_options


class BrowserContext:
    """
    An isolated browsing context on the shared driver.

    Selenium has no per-context cookie jar, so isolation is a new tab with
    cookies cleared on open and close and extra headers installed through the
    Chrome DevTools protocol when the driver exposes it.
    """

    def __init__(
        self,
        driver,
        basic_auth: Optional[BasicAuth] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.driver = driver
        self.basic_auth = basic_auth
        self.headers = dict(headers or {})
        self._parent_window: Optional[str] = None
        self._cdp_headers = False

    @property
    def supports_cdp(self) -> bool:
        return callable(getattr(self.driver, "execute_cdp_cmd", None))

    def open(self) -> "BrowserContext":
        self._parent_window = self.driver.current_window_handle
        self.driver.switch_to.new_window("tab")
        self._clear_cookies()

        extra_headers = dict(self.headers)
        if self.basic_auth:
            token = base64.b64encode(
                f"{self.basic_auth.username}:{self.basic_auth.password}".encode("utf-8")
            ).decode("ascii")
            extra_headers["Authorization"] = f"Basic {token}"

        if extra_headers:
            if self.supports_cdp:
                self.driver.execute_cdp_cmd("Network.enable", {})
                self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": extra_headers})
                self._cdp_headers = True
            elif self.headers:
                logger.warning("Driver has no DevTools access, custom headers are not applied")
        return self

    def close(self) -> None:
        try:
            if self._cdp_headers:
                self.driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": {}})
            self._clear_cookies()
            self.driver.close()
        finally:
            if self._parent_window is not None:
                self.driver.switch_to.window(self._parent_window)

    def _clear_cookies(self) -> None:
        if self.supports_cdp:
            self.driver.execute_cdp_cmd("Network.clearBrowserCookies", {})
        else:
            self.driver.delete_all_cookies()

    def _authenticated_url(self, url: str) -> str:
        # without DevTools the only way to send credentials is in the URL
        if not self.basic_auth or self._cdp_headers:
            return url
        parts = urlsplit(url)
        userinfo = f"{quote(self.basic_auth.username, safe='')}:{quote(self.basic_auth.password, safe='')}"
        return urlunsplit((parts.scheme, f"{userinfo}@{parts.netloc}", parts.path, parts.query, parts.fragment))

    def navigate(self, url: str, timeout: float) -> None:
        self.driver.set_page_load_timeout(timeout)
        self.driver.get(self._authenticated_url(url))

    def inject(self, source: str) -> None:
        self.driver.execute_script(source)

    def evaluate(self, script: str, *args, timeout: float):
        self.driver.set_script_timeout(timeout)
        return self.driver.execute_async_script(script, *args)

    def ready_state(self) -> str:
        return self.driver.execute_script("return document.readyState")

    def screenshot_element(self, selector: str, path: str, timeout: float) -> None:
        """
        Locate and capture one element within a single time budget.

        The capture command itself cannot be interrupted, so a capture that
        finishes after the deadline is discarded and nothing is written.
        """
        deadline = time.monotonic() + timeout
        element = WebDriverWait(self.driver, timeout).until(
            EC.visibility_of_element_located((By.CSS_SELECTOR, selector))
        )
        png = element.screenshot_as_png
        if time.monotonic() > deadline:
            raise TimeoutException(f"Screenshot of '{selector}' took longer than {timeout}s")
        Path(path).write_bytes(png)


class BrowserHandle:
    """Long-lived reference to the shared driver; scans borrow it through new_context()."""

    def __init__(self, driver, is_remote: bool):
        self.driver = driver
        self.is_remote = is_remote
        # one WebDriver session serves one command stream at a time
        self._lock = threading.Lock()

    @contextmanager
    def new_context(
        self,
        basic_auth: Optional[BasicAuth] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Iterator[BrowserContext]:
        with self._lock:
            context = BrowserContext(self.driver, basic_auth=basic_auth, headers=headers)
            try:
                context.open()
                yield context
            finally:
                try:
                    context.close()
                except WebDriverException as e:
                    logger.warning(f"Failed to close browser context cleanly: {e}")


class BrowserManager:
    """
    Owns the one browser this process uses.

    get_handle() launches a local headless Chrome, or opens a session on
    REMOTE_BROWSER_URL when configured. A failed launch leaves the manager
    uninitialized, so the next call tries again.
    """

    def __init__(
        self,
        remote_url: Optional[str] = None,
        chromedriver_path: Optional[str] = None,
        headless: bool = True,
    ):
        self.remote_url = remote_url
        self.chromedriver_path = chromedriver_path
        self.headless = headless
        self._handle: Optional[BrowserHandle] = None
        self._init_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "BrowserManager":
        return cls(
            remote_url=settings.REMOTE_BROWSER_URL,
            chromedriver_path=settings.CHROMEDRIVER_PATH,
            headless=settings.BROWSER_HEADLESS,
        )

    @property
    def is_initialized(self) -> bool:
        return self._handle is not None

    def get_handle(self) -> BrowserHandle:
        if self._handle is not None:
            return self._handle

        with self._init_lock:
            if self._handle is None:
                if self.remote_url:
                    self._handle = self._connect_remote(self.remote_url)
                else:
                    self._handle = self._launch_local()
        return self._handle

    def _connect_remote(self, remote_url: str) -> BrowserHandle:
        logger.info(f"Connecting to remote browser at {remote_url}")
        try:
            driver = webdriver.Remote(
                command_executor=remote_url,
                options=build_chrome_options(headless=self.headless),
            )
        except Exception as e:
            logger.error(f"Failed to connect to remote browser at {remote_url}: {e}")
            raise BrowserUnavailableError(f"Unable to connect to remote browser: {e}") from e
        logger.info("Connected to remote browser")
        return BrowserHandle(driver, is_remote=True)

    def _launch_local(self) -> BrowserHandle:
        logger.info("Launching local headless Chrome")
        try:
            if self.chromedriver_path:
                driver_service = Service(executable_path=self.chromedriver_path)
            else:
                driver_service = Service(ChromeDriverManager().install())
            driver = webdriver.Chrome(service=driver_service, options=build_chrome_options(self.headless))
        except Exception as e:
            logger.error(f"Failed to launch local Chrome: {e}")
            raise BrowserUnavailableError(f"Unable to launch local Chrome: {e}") from e
        logger.info("Local Chrome launched")
        return BrowserHandle(driver, is_remote=False)

    def discard(self) -> None:
        """Forget a handle whose session died; the next get_handle() starts over."""
        with self._init_lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return
        logger.warning("Discarding lost browser session")
        try:
            handle.driver.quit()
        except Exception as e:
            logger.debug(f"Ignoring error while quitting lost session: {e}")

    def shutdown(self) -> None:
        with self._init_lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return

        if handle.is_remote:
            # ends our session only; the remote browser service keeps running
            handle.driver.quit()
            logger.info("Disconnected from remote browser")
        else:
            handle.driver.quit()
            logger.info("Local browser closed")
