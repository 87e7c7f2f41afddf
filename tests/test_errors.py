"""Tests for the error code registry."""
from __future__ import annotations

import pytest

from wflens import errors
from wflens.errors import ErrorCode, handle_exception, make_error


@pytest.fixture(autouse=True)
def _quiet(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(errors, "_verbose_mode", False)


class TestMakeError:
    def test_details_fill_template(self) -> None:
        err = make_error(ErrorCode.E105, "default/order-1001")
        assert err.message == "History fetch timed out: default/order-1001"
        assert err.details is None
        assert str(err).startswith("WFL-E105: History fetch timed out")
        assert "Next step: Increase WFLENS_FETCH_TIMEOUT_SECONDS" in str(err)

    def test_template_without_placeholder(self) -> None:
        err = make_error(ErrorCode.E106, "order-1001")
        assert err.message == "History fetch was cancelled: order-1001"
        assert "Details: order-1001" in str(err)

    def test_no_details(self) -> None:
        assert make_error(ErrorCode.E301).message == "History file not found"
        assert make_error(ErrorCode.E106).message == "History fetch was cancelled"


class TestHandleException:
    def test_prints_formatted_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        handle_exception(OSError("disk full"), ErrorCode.E303, "out.html")
        err = capsys.readouterr().err
        assert "WFL-E303: Cannot write file: out.html" in err
        assert "Traceback" not in err

    def test_verbose_prints_traceback(self, capsys: pytest.CaptureFixture[str]) -> None:
        errors.set_verbose(True)
        try:
            raise ValueError("bad width")
        except ValueError as e:
            handle_exception(e, ErrorCode.E002)
        err = capsys.readouterr().err
        assert "WFL-E002: Invalid configuration value: bad width" in err
        assert "--- Full Traceback ---" in err
        assert "ValueError: bad width" in err
