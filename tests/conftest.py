"""Shared fixtures and fakes for the credential monitor tests."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from credential_monitor.core.types import UsageSnapshot
from credential_monitor.probes.executor import ProbeExecutor
from credential_monitor.registry.json_registry import JsonCredentialRegistry
from credential_monitor.usage.snapshot import build_usage_snapshot
from credential_monitor.utils.timestamps import to_iso

BASE_TIME = 1_760_000_000.0


class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, now: float = BASE_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUsage:
    """Usage telemetry that serves a canned payload and persists through the registry."""

    def __init__(
        self,
        registry: JsonCredentialRegistry,
        clock: FakeClock,
        events: List[str],
        payload: Optional[Dict[str, Any]] = None,
    ):
        self._registry = registry
        self._clock = clock
        self._events = events
        self.payload = payload
        self.fetch_calls: List[str] = []

    async def fetch_remote_usage(self, credential_id: str) -> Optional[Dict[str, Any]]:
        self.fetch_calls.append(credential_id)
        self._events.append("usage")
        return self.payload

    def build_snapshot(self, record: Dict[str, Any]) -> UsageSnapshot:
        return build_usage_snapshot(record, now=self._clock())

    async def persist_snapshot(self, credential_id: str, raw: Dict[str, Any]) -> None:
        await self._registry.update_fields(
            credential_id,
            {"usage_snapshot": raw, "usage_updated_at": to_iso(self._clock())},
        )


class FakeHealth:
    def __init__(self, fail: bool = False):
        self.rate_limited: List[tuple] = []
        self.overloaded: List[str] = []
        self.fail = fail

    async def mark_rate_limited(self, credential_id, scope=None, reset_epoch=None):
        if self.fail:
            raise RuntimeError("registry write failed")
        self.rate_limited.append((credential_id, scope, reset_epoch))

    async def mark_overloaded(self, credential_id):
        if self.fail:
            raise RuntimeError("registry write failed")
        self.overloaded.append(credential_id)


class StaticHeaders:
    def get_headers(self, credential_id: str) -> Dict[str, str]:
        return {"user-agent": "claude-cli/test", "x-app": "cli"}


def write_registry(path: Path, records: List[Dict[str, Any]]) -> None:
    path.write_text(json.dumps({"credentials": records}), encoding="utf-8")


def read_registry(path: Path) -> Dict[str, Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return {record["id"]: record for record in data["credentials"]}


def mock_executor(handler: Callable[[httpx.Request], httpx.Response]) -> ProbeExecutor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProbeExecutor(client=client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    return tmp_path / "credentials.json"


@pytest.fixture
def registry(registry_path: Path) -> JsonCredentialRegistry:
    return JsonCredentialRegistry(registry_path)
