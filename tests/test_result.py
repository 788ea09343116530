"""Tests for the Ok/Err result envelope."""

import pytest

from taskguard.errors import ScheduleError
from taskguard.result import Err, Ok


class TestOk:
    def test_accessors(self):
        result = Ok(5)
        assert result.is_ok() and not result.is_err()
        assert result.unwrap() == 5
        assert result.unwrap_or(0) == 5

    def test_map_and_then(self):
        assert Ok(2).map(lambda v: v * 3) == Ok(6)
        assert Ok(2).and_then(lambda v: Err(ValueError(v))).is_err()

    def test_inspect(self):
        seen = []
        Ok(1).inspect(seen.append).inspect_err(seen.append)
        assert seen == [1]

    def test_to_dict(self):
        assert Ok("x").to_dict() == {"ok": True, "value": "x"}


class TestErr:
    def test_unwrap_raises(self):
        error = ValueError("boom")
        with pytest.raises(ValueError, match="boom"):
            Err(error).unwrap()

    def test_defaults_and_recovery(self):
        result = Err(ValueError("boom"))
        assert result.unwrap_or(7) == 7
        assert result.unwrap_or_else(lambda e: str(e)) == "boom"
        assert result.or_else(lambda e: Ok(1)) == Ok(1)

    def test_short_circuit(self):
        """map and and_then leave the error untouched."""
        error = ValueError("boom")
        assert Err(error).map(lambda v: v + 1).error is error
        assert Err(error).and_then(lambda v: Ok(v)).error is error

    def test_map_err(self):
        mapped = Err(ValueError("boom")).map_err(lambda e: RuntimeError(str(e)))
        assert isinstance(mapped.error, RuntimeError)

    def test_to_dict_taskguard_error(self):
        """TaskGuardError values serialize through their own to_dict."""
        data = Err(ScheduleError("Failed to start job.")).to_dict()
        assert data["ok"] is False
        assert data["error"]["error_type"] == "ScheduleError"
        assert data["error"]["category"] == "ORCHESTRATION"

    def test_to_dict_plain_error(self):
        assert Err(KeyError("k")).to_dict()["error"]["error_type"] == "KeyError"
