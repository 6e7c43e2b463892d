"""Process-wide singletons shared by all tools.

Tools never build their own browser or session; they ask ServerContext.
Tests swap in fakes with `ServerContext.configure(...)` and `ServerContext.reset()`.
"""

from __future__ import annotations

import logging
from typing import Optional

import anyio

from .browser_session import BrowserSession
from .config import Settings, get_settings
from .research import WebResearcher
from .session import ResearchResult, SessionStore

logger = logging.getLogger(__name__)


class ServerContext:
    _settings: Optional[Settings] = None
    _browser: Optional[BrowserSession] = None
    _store: Optional[SessionStore] = None
    _researcher: Optional[WebResearcher] = None
    _pending_resource_changes: int = 0
    _shutdown_done: bool = False

    @classmethod
    def configure(
        cls,
        *,
        settings: Optional[Settings] = None,
        browser_session: Optional[BrowserSession] = None,
        session_store: Optional[SessionStore] = None,
    ) -> None:
        cls.reset()
        cls._settings = settings
        cls._browser = browser_session
        if session_store is not None:
            cls._attach_store(session_store)

    @classmethod
    def reset(cls) -> None:
        cls._settings = None
        cls._browser = None
        cls._store = None
        cls._researcher = None
        cls._pending_resource_changes = 0
        cls._shutdown_done = False

    @classmethod
    def get_settings(cls) -> Settings:
        if cls._settings is None:
            cls._settings = get_settings()
        return cls._settings

    @classmethod
    def get_browser_session(cls) -> BrowserSession:
        if cls._browser is None:
            cls._browser = BrowserSession(cls.get_settings())
        return cls._browser

    @classmethod
    def _attach_store(cls, store: SessionStore) -> None:
        store.add_listener(cls._on_screenshot_added)
        cls._store = store

    @classmethod
    def get_session_store(cls) -> SessionStore:
        if cls._store is None:
            s = cls.get_settings()
            store = SessionStore(
                max_results=s.WEBRESEARCH_MAX_RESULTS,
                screenshot_dir=s.WEBRESEARCH_SCREENSHOT_DIR,
            )
            cls._attach_store(store)
            return store
        return cls._store

    @classmethod
    def get_researcher(cls) -> WebResearcher:
        if cls._researcher is None:
            cls._researcher = WebResearcher(
                cls.get_browser_session(),
                cls.get_session_store(),
                cls.get_settings(),
            )
        return cls._researcher

    # ------------------------------------------------------------------
    # resource change tracking
    # ------------------------------------------------------------------

    @classmethod
    def _on_screenshot_added(cls, result: ResearchResult) -> None:
        cls._pending_resource_changes += 1

    @classmethod
    def consume_resource_changes(cls) -> bool:
        """Return True (once) if screenshot resources were added since the last call."""
        pending, cls._pending_resource_changes = cls._pending_resource_changes, 0
        return pending > 0

    # ------------------------------------------------------------------
    # shutdown
    # ------------------------------------------------------------------

    @classmethod
    def clear_session(cls) -> None:
        if cls._store is not None:
            cls._store.clear()

    @classmethod
    def shutdown_completed(cls) -> bool:
        return cls._shutdown_done

    @classmethod
    async def shutdown(cls, timeout: Optional[float] = None) -> bool:
        """Close the browser and delete session screenshots within ``timeout`` seconds.

        Idempotent. Returns True if cleanup finished before the deadline.
        """
        if cls._shutdown_done:
            return True
        if timeout is None:
            timeout = cls.get_settings().WEBRESEARCH_SHUTDOWN_TIMEOUT

        logger.info("Shutting down (deadline %.1fs)", timeout)
        with anyio.move_on_after(timeout, shield=True) as scope:
            if cls._browser is not None:
                try:
                    await cls._browser.release_all()
                except Exception as e:
                    logger.error("Browser cleanup failed: %s", e)

        # Screenshot files are local; remove them even when the browser hung.
        cls.clear_session()

        if scope.cancelled_caught:
            logger.error("Cleanup did not finish within %.1fs", timeout)
            return False
        cls._shutdown_done = True
        return True
