"""Tests for cdev.core.result module."""

from __future__ import annotations

import pytest

from cdev.core.result import Err, Ok, Result


def _half(n: int) -> Result[int, str]:
    if n % 2:
        return Err(f"{n} is odd")
    return Ok(n // 2)


def test_ok_and_err_compare_by_content() -> None:
    assert Ok(1) == Ok(1)
    assert Ok(1) != Ok(2)
    assert Err("x") == Err("x")
    assert Ok("x") != Err("x")


def test_narrowing_with_isinstance() -> None:
    result = _half(4)
    assert isinstance(result, Ok)
    assert result.value == 2

    result = _half(3)
    assert isinstance(result, Err)
    assert result.error == "3 is odd"


def test_pattern_matching() -> None:
    match _half(10):
        case Ok(value):
            assert value == 5
        case Err(_):
            pytest.fail("expected Ok")


def test_repr() -> None:
    assert repr(Ok("a")) == "Ok('a')"
    assert repr(Err(404)) == "Err(404)"


def test_frozen() -> None:
    with pytest.raises(AttributeError):
        Ok(1).value = 2  # type: ignore[misc]
