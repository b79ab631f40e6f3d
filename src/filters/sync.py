"""
Re-detection triggers and server sync for a live page.

A DetectorSession owns the latest detected state for one page. Change
events schedule a debounced re-detection; every detection schedules a
debounced push of the state to the filter endpoint, so a burst of clicks
results in one detection and one push.
"""

import threading
from typing import Callable, List, Optional

import requests
from bs4 import Tag

from config.constants import (
    DETECT_DEBOUNCE_SECONDS,
    PUSH_TIMEOUT_SECONDS,
    SYNC_DEBOUNCE_SECONDS,
    TOKEN_HEADER,
)
from core.logging import LoggerMixin, get_logger
from filters.detector import FilterDetector, PageSnapshot
from filters.forms import enhance_search_forms
from filters.models import FilterState


logger = get_logger(__name__)

Listener = Callable[[FilterState], None]


class Debouncer:
    """
    Trailing-edge debounce: `callback` runs once, `delay` seconds after the
    last trigger().
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.callback()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> bool:
        """Run a pending call now. Returns False when nothing was pending."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        self.callback()
        return True


class FilterPusher:
    """
    Pushes a state to the filter endpoint (POST /api/filters).

    Fire-and-forget: failures are logged and never raised to the caller.
    """

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def push(self, state: FilterState) -> bool:
        payload = state.to_dict()
        headers = {}
        if self.token:
            payload["token"] = self.token
            headers[TOKEN_HEADER] = self.token

        try:
            resp = self.session.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning("Filter sync failed", endpoint=self.endpoint, error=str(e))
            return False

        if resp.status_code != 200:
            logger.warning(
                "Filter sync rejected",
                endpoint=self.endpoint,
                status_code=resp.status_code,
            )
            return False

        logger.debug("Filters synced", endpoint=self.endpoint)
        return True


class DetectorSession(LoggerMixin):
    """
    Detection lifecycle for one page.

    `current` always holds the latest state. Listeners added with
    subscribe() are called after every detection and every programmatic
    change.
    """

    def __init__(
        self,
        detector: FilterDetector,
        pusher: Optional[FilterPusher] = None,
        detect_delay: float = DETECT_DEBOUNCE_SECONDS,
        sync_delay: float = SYNC_DEBOUNCE_SECONDS,
    ):
        self.detector = detector
        self.pusher = pusher
        self.current = FilterState.empty()
        self._snapshot: Optional[PageSnapshot] = None
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.detect_debounce = Debouncer(detect_delay, self._run_detection)
        self.sync_debounce = Debouncer(sync_delay, self._push)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def load(self, snapshot: PageSnapshot) -> FilterState:
        """Initial page load: detect immediately."""
        with self._lock:
            self._snapshot = snapshot
        return self._run_detection()

    def on_change(self, snapshot: PageSnapshot, control: Optional[Tag] = None) -> bool:
        """
        A filter control changed. Returns whether re-detection was scheduled.

        When the changed `control` is known, only controls matching
        `PageSelectors.change_triggers` schedule a re-detection.
        """
        if control is not None and not self.is_change_trigger(control):
            return False
        self._schedule(snapshot)
        return True

    def is_change_trigger(self, control: Tag) -> bool:
        return bool(control.css.match(", ".join(self.detector.selectors.change_triggers)))

    def on_filters_updated(self, snapshot: PageSnapshot) -> None:
        """A filter plugin announced new state."""
        self._schedule(snapshot)

    def on_content_updated(self, snapshot: PageSnapshot) -> None:
        """Asynchronously loaded content finished rendering."""
        self._schedule(snapshot)

    def _schedule(self, snapshot: PageSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
        self.detect_debounce.trigger()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def set_filters(self, state: FilterState) -> FilterState:
        """Merge `state` into the current filters and sync."""
        self._update(self.current.merge(state))
        return self.current

    def clear_filters(self) -> None:
        self._update(FilterState.empty())

    def enhance(self, html: str) -> str:
        """Rewrite the search forms in `html` with the current filters."""
        return enhance_search_forms(html, self.current, self.detector.selectors)

    def close(self) -> None:
        self.detect_debounce.cancel()
        self.sync_debounce.cancel()

    def _run_detection(self) -> FilterState:
        with self._lock:
            snapshot = self._snapshot
        if snapshot is None:
            return self.current
        state = self.detector.detect(snapshot)
        self._update(state)
        return state

    def _update(self, state: FilterState) -> None:
        self.current = state
        if self.detector.config.debug:
            self.logger.debug("Filters detected", filters=state.to_dict())
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                self.logger.warning("Filter listener failed", error=str(e))
        if self.pusher is not None:
            self.sync_debounce.trigger()

    def _push(self) -> None:
        if self.pusher is not None:
            self.pusher.push(self.current)
