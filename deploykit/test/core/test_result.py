"""Tests for deploykit.core.result module."""

import pytest

from deploykit.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    """Tests for Ok type."""

    def test_create_ok(self) -> None:
        result = Ok("sha256:abc")
        assert result.value == "sha256:abc"

    def test_ok_is_ok(self) -> None:
        result = Ok(42)
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_ok_unwrap(self) -> None:
        assert Ok(42).unwrap() == 42

    def test_ok_unwrap_or(self) -> None:
        """Ok.unwrap_or() returns the value, ignoring default."""
        assert Ok(42).unwrap_or(0) == 42

    def test_ok_map(self) -> None:
        assert Ok(21).map(lambda x: x * 2) == Ok(42)

    def test_ok_map_err(self) -> None:
        """Ok.map_err() returns self unchanged."""
        result = Ok(42)
        assert result.map_err(lambda e: f"error: {e}") == Ok(42)

    def test_repr(self) -> None:
        assert repr(Ok("v1.0.0")) == "Ok('v1.0.0')"

    def test_frozen(self) -> None:
        result = Ok(1)
        with pytest.raises(AttributeError):
            result.value = 2  # type: ignore[misc]


class TestErr:
    """Tests for Err type."""

    def test_create_err(self) -> None:
        result = Err("pull failed")
        assert result.error == "pull failed"

    def test_err_is_err(self) -> None:
        result = Err("x")
        assert result.is_err() is True
        assert result.is_ok() is False

    def test_err_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap on Err: denied"):
            Err("denied").unwrap()

    def test_err_unwrap_or(self) -> None:
        assert Err("x").unwrap_or(7) == 7

    def test_err_map_is_noop(self) -> None:
        result = Err("x")
        assert result.map(lambda v: v) == Err("x")

    def test_err_map_err(self) -> None:
        """Err.map_err() converts the error at a layer boundary."""
        result = Err(1)
        assert result.map_err(lambda code: f"exit {code}") == Err("exit 1")

    def test_repr(self) -> None:
        assert repr(Err("x")) == "Err('x')"


class TestTypeGuards:
    def test_is_ok(self) -> None:
        result: Result[int, str] = Ok(1)
        assert is_ok(result)
        assert not is_err(result)

    def test_is_err(self) -> None:
        result: Result[int, str] = Err("x")
        assert is_err(result)
        assert not is_ok(result)


class TestPatternMatching:
    """Result values are consumed with match statements throughout the CLI."""

    def test_match_ok(self) -> None:
        result: Result[str, str] = Ok("uri")
        match result:
            case Ok(value):
                assert value == "uri"
            case Err(_):
                pytest.fail("expected Ok")

    def test_match_err(self) -> None:
        result: Result[str, str] = Err("stale")
        match result:
            case Ok(_):
                pytest.fail("expected Err")
            case Err(error):
                assert error == "stale"
