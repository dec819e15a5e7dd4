"""
Unit tests for the Result value.
"""

import pytest

from sst_sync.core.errors import ResolutionFailure
from sst_sync.core.result import Err, Ok


def test_ok():
    result = Ok("ROTA-1")
    assert result.ok
    assert result.unwrap() == "ROTA-1"
    assert result.unwrap_or("x") == "ROTA-1"


def test_ok_without_value():
    assert Ok().ok
    assert Ok().value is None


def test_err():
    error = ResolutionFailure("table", "No 'Aderência' table")
    result = Err(error)

    assert not result.ok
    assert result.unwrap_or([]) == []
    with pytest.raises(ResolutionFailure) as exc_info:
        result.unwrap()
    assert exc_info.value is error
    assert str(error) == "[table] No 'Aderência' table"
    assert error.to_dict()["stage"] == "table"
