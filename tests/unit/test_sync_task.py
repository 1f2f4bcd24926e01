"""Unit tests for the Celery marketplace sync task."""

import pytest

from sync_worker.tasks import sync_orders


def test_task_returns_sync_summary(monkeypatch: pytest.MonkeyPatch) -> None:
    async def run(channel_id=None):
        return {"success": True, "message": f"Synced 2 orders from channel {channel_id}", "channels": {}}

    monkeypatch.setattr(sync_orders, "run_marketplace_sync", run)

    result = sync_orders.sync_marketplace_orders.apply(kwargs={"channel_id": 7})

    assert result.successful()
    assert result.get()["message"] == "Synced 2 orders from channel 7"


def test_task_retries_on_infrastructure_error(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    async def run(channel_id=None):
        calls.append(channel_id)
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(sync_orders, "run_marketplace_sync", run)

    result = sync_orders.sync_marketplace_orders.apply(kwargs={"channel_id": 7})

    assert result.failed()
    assert isinstance(result.result, ConnectionError)
    assert len(calls) == sync_orders.sync_marketplace_orders.max_retries + 1
