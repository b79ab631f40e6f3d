"""
Tests for debouncing, filter push and the detection session lifecycle.
"""

import threading
from unittest.mock import MagicMock

import pytest
import requests


class TestDebouncer:
    """Trailing-edge debounce."""

    def test_flush_runs_pending_call_once(self):
        from filters.sync import Debouncer

        callback = MagicMock()
        debouncer = Debouncer(60, callback)

        debouncer.trigger()
        debouncer.trigger()
        debouncer.trigger()

        assert debouncer.pending
        assert debouncer.flush() is True
        assert callback.call_count == 1
        assert not debouncer.pending
        assert debouncer.flush() is False

    def test_cancel(self):
        from filters.sync import Debouncer

        callback = MagicMock()
        debouncer = Debouncer(60, callback)

        debouncer.trigger()
        debouncer.cancel()

        assert not debouncer.pending
        assert debouncer.flush() is False
        callback.assert_not_called()

    def test_fires_after_delay(self):
        from filters.sync import Debouncer

        fired = threading.Event()
        debouncer = Debouncer(0.01, fired.set)

        debouncer.trigger()

        assert fired.wait(timeout=2)


class TestFilterPusher:
    """POSTs state to the filter endpoint."""

    def _session(self, status_code=200):
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=status_code)
        return session

    def test_push_sends_state_and_token(self):
        from filters.models import FilterState
        from filters.sync import FilterPusher

        session = self._session()
        pusher = FilterPusher("https://shop.example/api/filters", token="tok", session=session)

        assert pusher.push(FilterState.build(categories=["shoes"])) is True

        args, kwargs = session.post.call_args
        assert args[0] == "https://shop.example/api/filters"
        assert kwargs["json"]["categories"] == ["shoes"]
        assert kwargs["json"]["token"] == "tok"
        assert kwargs["headers"]["X-Scope-Token"] == "tok"
        assert kwargs["timeout"] == pusher.timeout

    def test_push_without_token(self):
        from filters.models import FilterState
        from filters.sync import FilterPusher

        session = self._session()
        FilterPusher("/api/filters", session=session).push(FilterState.empty())

        kwargs = session.post.call_args.kwargs
        assert "token" not in kwargs["json"]
        assert kwargs["headers"] == {}

    def test_network_error_is_swallowed(self):
        from filters.models import FilterState
        from filters.sync import FilterPusher

        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")

        assert FilterPusher("/api/filters", session=session).push(FilterState.empty()) is False

    def test_rejected_push(self):
        from filters.models import FilterState
        from filters.sync import FilterPusher

        pusher = FilterPusher("/api/filters", session=self._session(status_code=403))

        assert pusher.push(FilterState.empty()) is False


class TestDetectorSession:
    """Load, change events, listeners and sync."""

    @pytest.fixture
    def session(self, filter_config):
        from filters.detector import FilterDetector
        from filters.sync import DetectorSession

        pusher = MagicMock()
        session = DetectorSession(FilterDetector(filter_config), pusher=pusher, detect_delay=60, sync_delay=60)
        yield session
        session.close()

    def test_load_detects_immediately(self, session, shop_page_html):
        from filters.detector import PageSnapshot

        state = session.load(PageSnapshot(html=shop_page_html))

        assert "shoes" in state.categories
        assert session.current is state
        assert session.sync_debounce.pending

    def test_change_is_debounced(self, session):
        from filters.detector import PageSnapshot

        session.on_change(PageSnapshot(url="/?product_cat=shoes"))
        session.on_filters_updated(PageSnapshot(url="/?product_cat=boots"))
        session.on_content_updated(PageSnapshot(url="/?product_cat=sandals"))

        assert session.current.is_empty()
        assert session.detect_debounce.flush() is True
        assert session.current.categories == ("sandals",)

    def test_burst_pushes_once(self, session):
        from filters.detector import PageSnapshot

        session.on_change(PageSnapshot(url="/?product_cat=shoes"))
        session.detect_debounce.flush()
        session.set_filters(session.current)

        session.sync_debounce.flush()

        session.pusher.push.assert_called_once()
        assert session.pusher.push.call_args.args[0].categories == ("shoes",)

    def test_listeners_and_unsubscribe(self, session):
        from filters.models import FilterState

        seen = []
        unsubscribe = session.subscribe(seen.append)

        session.set_filters(FilterState.build(tags=["sale"]))
        unsubscribe()
        session.clear_filters()

        assert len(seen) == 1
        assert seen[0].tags == ("sale",)
        assert session.current.is_empty()

    def test_set_filters_merges(self, session):
        from filters.models import FilterState

        session.set_filters(FilterState.build(categories=["shoes"]))
        merged = session.set_filters(FilterState.build(tags=["sale"]))

        assert merged.categories == ("shoes",)
        assert merged.tags == ("sale",)

    def test_enhance_uses_current_state(self, session):
        from bs4 import BeautifulSoup
        from filters.models import FilterState

        session.set_filters(FilterState.build(categories=["shoes"]))
        html = session.enhance('<form role="search"><input name="s"></form>')

        field = BeautifulSoup(html, "lxml").find("input", attrs={"name": "product_cat"})
        assert field["value"] == "shoes"

    def test_without_pusher(self, filter_config):
        from filters.detector import FilterDetector
        from filters.models import FilterState
        from filters.sync import DetectorSession

        session = DetectorSession(FilterDetector(filter_config))
        session.set_filters(FilterState.build(categories=["shoes"]))

        assert not session.sync_debounce.pending
        session.close()


@pytest.fixture
def detector_session(filter_config):
    from filters.detector import FilterDetector
    from filters.sync import DetectorSession

    session = DetectorSession(FilterDetector(filter_config), pusher=MagicMock(), detect_delay=60, sync_delay=60)
    yield session
    session.close()


class TestChangeTriggers:
    """Only recognized filter controls schedule a re-detection."""

    def test_filter_checkbox_triggers(self, detector_session):
        from bs4 import BeautifulSoup

        from filters.detector import PageSnapshot

        soup = BeautifulSoup('<input class="jet-checkboxes-list__input" type="checkbox" name="jsf_pa_color">', "lxml")

        assert detector_session.on_change(PageSnapshot(url="/?product_cat=shoes"), soup.input) is True
        assert detector_session.detect_debounce.pending

    def test_unrelated_control_ignored(self, detector_session):
        from bs4 import BeautifulSoup

        from filters.detector import PageSnapshot

        soup = BeautifulSoup('<input type="text" name="newsletter_email">', "lxml")

        assert detector_session.on_change(PageSnapshot(url="/?product_cat=shoes"), soup.input) is False
        assert not detector_session.detect_debounce.pending

    def test_taxonomy_named_input_triggers(self, detector_session):
        from bs4 import BeautifulSoup

        soup = BeautifulSoup('<select name="filter_product_cat"><option>shoes</option></select>', "lxml")

        assert detector_session.is_change_trigger(soup.select_one("select"))


class TestFailingListener:
    """A listener that raises does not stop other listeners or the push."""

    def test_sync_still_scheduled(self, detector_session):
        from filters.models import FilterState

        seen = []

        def broken(state):
            raise ValueError("listener bug")

        detector_session.subscribe(broken)
        detector_session.subscribe(seen.append)

        detector_session.set_filters(FilterState.build(categories=["shoes"]))

        assert seen[0].categories == ("shoes",)
        assert detector_session.sync_debounce.pending
        assert detector_session.sync_debounce.flush() is True
        detector_session.pusher.push.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
