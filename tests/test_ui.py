"""Tests for the Streamlit chat widget."""

from pathlib import Path

import pytest
import requests
from streamlit.testing.v1 import AppTest

CHAT_SCRIPT = str(Path(__file__).parent.parent / "ui" / "chat.py")


@pytest.fixture(autouse=True)
def offline_backend(monkeypatch):
    def unreachable(*args, **kwargs):
        raise requests.exceptions.ConnectionError("backend offline")

    monkeypatch.setattr(requests, "get", unreachable)
    monkeypatch.setattr(requests, "post", unreachable)


class TestSessionPersistence:
    def test_session_id_restored_from_url(self):
        at = AppTest.from_file(CHAT_SCRIPT)
        at.query_params["session"] = "abc-123"
        at.run()

        assert not at.exception
        assert at.session_state["session_id"] == "abc-123"

    def test_no_session_without_url_param(self):
        at = AppTest.from_file(CHAT_SCRIPT)
        at.run()

        assert not at.exception
        assert at.session_state["session_id"] is None
