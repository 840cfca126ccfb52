"""Tests for the collaborator timeout boundary."""

from __future__ import annotations

import asyncio

import pytest

from cqrs_ddd_mfa.exceptions import UpstreamUnavailableError
from cqrs_ddd_mfa.upstream import bounded


async def _value() -> int:
    return 42


async def _slow() -> None:
    await asyncio.sleep(1)


async def _refused() -> None:
    raise ConnectionRefusedError("connection refused")


async def _bug() -> None:
    raise KeyError("missing")


class TestBounded:
    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        assert await bounded(_value(), timeout=1.0, operation="store.get") == 42

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        with pytest.raises(UpstreamUnavailableError, match="store.get timed out"):
            await bounded(_slow(), timeout=0.01, operation="store.get")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        with pytest.raises(UpstreamUnavailableError):
            await bounded(_refused(), timeout=1.0, operation="store.get")

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self) -> None:
        with pytest.raises(KeyError):
            await bounded(_bug(), timeout=1.0, operation="store.get")
