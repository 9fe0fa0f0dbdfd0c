"""Unit tests for the application entry point."""

import pytest

from chatrelay import main as entry
from chatrelay.ui import chat_page


class TestMain:
    """Tests for run-mode selection."""

    @pytest.fixture
    def calls(self, monkeypatch: pytest.MonkeyPatch) -> list[str]:
        recorded: list[str] = []
        monkeypatch.setattr(entry, "run_server", lambda: recorded.append("server"))
        monkeypatch.setattr(entry, "run_api_only", lambda: recorded.append("api"))
        return recorded

    def test_integrated_by_default(self, monkeypatch: pytest.MonkeyPatch, calls: list[str]) -> None:
        monkeypatch.delenv("RUN_MODE", raising=False)

        entry.main()

        assert calls == ["server"]

    def test_api_mode(self, monkeypatch: pytest.MonkeyPatch, calls: list[str]) -> None:
        monkeypatch.setenv("RUN_MODE", "API")

        entry.main()

        assert calls == ["api"]

    def test_chat_page_has_no_launcher(self) -> None:
        """The page module only registers the page; the server starts from main."""
        assert not hasattr(chat_page, "main")
