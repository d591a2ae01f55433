from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from upkeep.config import Settings
from upkeep import health

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def container_attrs(
    name: str,
    status: str = "running",
    health_status: Optional[str] = None,
    started_seconds_ago: Optional[int] = 60,
    now: datetime = FIXED_NOW,
) -> dict:
    state: dict = {"Status": status, "Running": status == "running"}
    if health_status is not None:
        state["Health"] = {"Status": health_status}
    if started_seconds_ago is not None:
        started = now - timedelta(seconds=started_seconds_ago)
        state["StartedAt"] = started.strftime("%Y-%m-%dT%H:%M:%S.000000000Z")
    return {"Name": f"/{name}", "State": state}


class DummyAPI:
    def __init__(self, containers: Optional[dict] = None):
        self.containers = containers or {}
        self.inspect_calls: list[str] = []
        self.inspect_errors: dict[str, Exception] = {}
        self.prune_images_result: Optional[dict] = None
        self.prune_images_error: Optional[Exception] = None
        self.prune_calls: list[dict] = []

    def inspect_container(self, container_id):
        self.inspect_calls.append(container_id)
        if container_id in self.inspect_errors:
            raise self.inspect_errors[container_id]
        attrs = self.containers[container_id]
        if callable(attrs):
            return attrs()
        return attrs

    def prune_images(self, **kwargs):
        self.prune_calls.append(kwargs)
        if self.prune_images_error:
            raise self.prune_images_error
        return self.prune_images_result or {}


class DummyClient:
    def __init__(self, containers: Optional[dict] = None):
        self.api = DummyAPI(containers)
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        docker_host="unix://test",
        home_dir=str(tmp_path),
        compose_list=str(tmp_path / "compose-list.txt"),
        log_dir=str(tmp_path / "log"),
        log_level="INFO",
        health_timeout_seconds=300,
        min_uptime_seconds=15,
        health_interval_seconds=5,
        self_update=False,
        prune_images=True,
        apt=True,
        reboot=True,
        reboot_delay_seconds=10,
        reboot_marker=str(tmp_path / "reboot-required"),
        allow_non_root=False,
        pushover_token=None,
        pushover_user=None,
        pushover_api="https://example",
        webhook_url=None,
    )


@pytest.fixture
def dummy_client() -> Callable[..., DummyClient]:
    def _make(containers: Optional[dict] = None):
        return DummyClient(containers)
    return _make


@pytest.fixture
def fixed_clock(monkeypatch):
    """Freeze health's clock; advances by the slept amount."""
    clock = {"now": FIXED_NOW, "sleeps": []}

    def fake_sleep(seconds):
        clock["sleeps"].append(seconds)
        clock["now"] = clock["now"] + timedelta(seconds=seconds)

    monkeypatch.setattr(health, "now_utc", lambda: clock["now"])
    monkeypatch.setattr(health, "sleep", fake_sleep)
    return clock
