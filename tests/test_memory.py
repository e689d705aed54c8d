"""Tests for memory reporting."""

from unittest.mock import AsyncMock

import pytest

from qudemo_jobs.system.memory import memory_usage, upstream_memory_status


def test_memory_usage_reports_megabytes():
    usage = memory_usage()
    assert usage["rss_mb"] > 0
    assert 0 <= usage["system_percent"] <= 100


@pytest.mark.asyncio
async def test_upstream_memory_status_passthrough():
    client = AsyncMock()
    client.memory_status.return_value = {"memory_mb": 812, "status": "ok"}

    assert await upstream_memory_status(client) == {"memory_mb": 812, "status": "ok"}


@pytest.mark.asyncio
async def test_upstream_memory_status_falls_back_to_local():
    client = AsyncMock()
    client.memory_status.side_effect = ConnectionError("down")

    status = await upstream_memory_status(client)

    assert status["source"] == "local"
    assert status["memory_mb"] > 0
