"""Tests for the service-level endpoints."""

import pytest

from cropbroker._version import VERSION


@pytest.mark.asyncio
async def test_health_check(test_client):
    response = await test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_version(test_client):
    response = await test_client.get("/api/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION, "api_version": "v1"}
