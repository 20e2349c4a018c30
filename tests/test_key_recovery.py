import json

import httpx
import pytest

from credential_monitor.core.config import RecoveryConfig
from credential_monitor.monitors.key_recovery import KeyRecoveryMonitor, RecoveryOutcome
from credential_monitor.monitors.recovery_state import RecoveryStateStore
from credential_monitor.utils.timestamps import to_iso

from .conftest import mock_executor, read_registry, write_registry

CONFIG = RecoveryConfig(
    enabled=True,
    probe_interval=120,
    recovery_window=86400,
    max_probes=3,
    api_base="https://relay.test/api/llm",
)


def failing_key(key_id="k1", **overrides):
    entry = {
        "id": key_id,
        "key": f"fk-{key_id}-abcdef123456",
        "status": "error",
        "error_message": "HTTP 401",
        "recovery_attempts": 0,
    }
    entry.update(overrides)
    return entry


def static_key_record(api_keys, **overrides):
    record = {
        "id": "droid-1",
        "name": "Droid team",
        "platform": "droid",
        "auth_mode": "api_key",
        "endpoint_type": "anthropic",
        "is_active": True,
        "schedulable": False,
        "status": "error",
        "api_keys": api_keys,
    }
    record.update(overrides)
    return record


def build_monitor(registry, clock, handler, config=CONFIG):
    requests = []

    def recording_handler(request):
        requests.append(request)
        return handler(request)

    monitor = KeyRecoveryMonitor(
        registry, config, executor=mock_executor(recording_handler), clock=clock
    )
    return monitor, requests


def hello_handler(request):
    return httpx.Response(200, json={"content": [{"type": "text", "text": "hello"}]})


def refused_handler(request):
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.mark.asyncio
async def test_successful_probe_recovers_key_and_credential(registry, registry_path, clock):
    error_since = clock.now - 3600
    key = failing_key(error_since=to_iso(error_since), recovery_attempts=2)
    write_registry(registry_path, [static_key_record([key])])
    monitor, requests = build_monitor(registry, clock, hello_handler)

    await monitor.run_once()

    assert len(requests) == 1
    assert str(requests[0].url) == "https://relay.test/api/llm/a/v1/messages"
    assert requests[0].headers["authorization"] == "Bearer fk-k1-abcdef123456"

    record = read_registry(registry_path)["droid-1"]
    entry = record["api_keys"][0]
    assert entry["status"] == "active"
    assert entry["recovery_attempts"] == 0
    assert entry["error_since"] == ""
    assert entry["next_recovery_at"] == ""
    assert entry["last_recovery_result"] == f"Recovered at {to_iso(clock.now)}"
    assert record["schedulable"] is True
    assert record["status"] == "active"


@pytest.mark.asyncio
async def test_network_failure_schedules_retry(registry, registry_path, clock):
    error_since = clock.now - 3600
    write_registry(
        registry_path,
        [static_key_record([failing_key(error_since=to_iso(error_since))])],
    )
    monitor, requests = build_monitor(registry, clock, refused_handler)

    await monitor.run_once()

    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["status"] == "error"
    assert entry["recovery_attempts"] == 1
    assert entry["next_recovery_at"] == to_iso(clock.now + 120)
    assert entry["recovery_expires_at"] == to_iso(error_since + 86400)
    assert entry["last_recovery_result"] == "Failed: ConnectError (Connection refused)"
    deadline = entry["recovery_expires_at"]

    # Not due yet
    clock.advance(60)
    await monitor.run_once()
    assert len(requests) == 1

    clock.advance(60)
    await monitor.run_once()
    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert len(requests) == 2
    assert entry["recovery_attempts"] == 2
    assert entry["next_recovery_at"] == to_iso(clock.now + 120)
    assert entry["recovery_expires_at"] == deadline


@pytest.mark.asyncio
async def test_persisted_deadline_is_kept(registry, registry_path, clock):
    write_registry(
        registry_path,
        [
            static_key_record(
                [
                    failing_key(
                        error_since=to_iso(clock.now - 600),
                        recovery_expires_at="2025-10-10T00:00:00Z",
                    )
                ]
            )
        ],
    )
    monitor, _ = build_monitor(registry, clock, refused_handler)

    await monitor.run_once()

    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["recovery_expires_at"] == "2025-10-10T00:00:00Z"
    assert entry["recovery_attempts"] == 1


@pytest.mark.asyncio
async def test_rejected_probe_records_reason(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key(error_since=to_iso(clock.now - 60))])],
    )

    def handler(request):
        return httpx.Response(401, json={"error": {"message": "invalid key"}})

    monitor, _ = build_monitor(registry, clock, handler)
    targets = await monitor.state.select_due(clock.now, 1, 86400)
    outcome = await monitor.attempt_recovery(targets[0])

    assert outcome == RecoveryOutcome.FAILED
    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["last_recovery_result"] == "Failed: HTTP 401: invalid key"
    assert entry["status"] == "error"


@pytest.mark.asyncio
async def test_empty_response_is_inconclusive(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key(error_since=to_iso(clock.now - 60))])],
    )
    monitor, _ = build_monitor(
        registry, clock, lambda request: httpx.Response(200, json={"content": []})
    )

    targets = await monitor.state.select_due(clock.now, 1, 86400)
    outcome = await monitor.attempt_recovery(targets[0])

    assert outcome == RecoveryOutcome.INCONCLUSIVE
    record = read_registry(registry_path)["droid-1"]
    entry = record["api_keys"][0]
    assert entry["status"] == "error"
    assert entry["recovery_attempts"] == 1
    assert entry["last_recovery_result"] == f"Empty response at {to_iso(clock.now)}"
    assert record["schedulable"] is False


@pytest.mark.asyncio
async def test_non_json_success_is_inconclusive(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key(error_since=to_iso(clock.now - 60))])],
    )
    monitor, _ = build_monitor(
        registry, clock, lambda request: httpx.Response(200, text="<html>ok</html>")
    )

    targets = await monitor.state.select_due(clock.now, 1, 86400)
    assert await monitor.attempt_recovery(targets[0]) == RecoveryOutcome.INCONCLUSIVE


@pytest.mark.asyncio
async def test_cycle_probes_at_most_max_entries(registry, registry_path, clock):
    keys = [
        failing_key(f"k{i}", error_since=to_iso(clock.now - 1000 + i)) for i in range(5)
    ]
    write_registry(registry_path, [static_key_record(keys)])
    monitor, requests = build_monitor(registry, clock, refused_handler)

    await monitor.run_once()

    assert len(requests) == 3
    entries = {e["id"]: e for e in read_registry(registry_path)["droid-1"]["api_keys"]}
    # Longest-waiting entries go first
    assert [entries[f"k{i}"]["recovery_attempts"] for i in range(5)] == [1, 1, 1, 0, 0]


@pytest.mark.asyncio
async def test_entries_outside_window_are_not_probed(registry, registry_path, clock):
    write_registry(
        registry_path,
        [
            static_key_record(
                [
                    failing_key("old", error_since=to_iso(clock.now - 90000)),
                    failing_key("later", next_recovery_at=to_iso(clock.now + 30)),
                    {"id": "healthy", "key": "fk-ok", "status": "active"},
                ]
            )
        ],
    )
    monitor, requests = build_monitor(registry, clock, hello_handler)

    await monitor.run_once()

    assert requests == []
    expired = await monitor.expired_entries()
    assert [t.entry.id for t in expired] == ["old"]


@pytest.mark.asyncio
async def test_oauth_credentials_are_ignored(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key()], auth_mode="oauth")],
    )
    monitor, requests = build_monitor(registry, clock, hello_handler)

    await monitor.run_once()

    assert requests == []


@pytest.mark.asyncio
async def test_openai_endpoint_shape(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key()], endpoint_type="openai")],
    )

    def handler(request):
        return httpx.Response(
            200,
            json={"output": [{"content": [{"type": "output_text", "text": "hello"}]}]},
        )

    monitor, requests = build_monitor(registry, clock, handler)
    await monitor.run_once()

    request = requests[0]
    assert str(request.url) == "https://relay.test/api/llm/o/v1/responses"
    assert request.headers["x-api-provider"] == "azure_openai"
    body = json.loads(request.content)
    assert body["model"] == CONFIG.openai_model
    assert body["instructions"] == CONFIG.prompt
    assert body["max_output_tokens"] == CONFIG.max_output_tokens
    assert "input" in body

    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["status"] == "active"


@pytest.mark.asyncio
async def test_missing_api_base_fails_without_probing(registry, registry_path, clock):
    write_registry(registry_path, [static_key_record([failing_key()])])
    config = RecoveryConfig(api_base=None)
    monitor, requests = build_monitor(registry, clock, hello_handler, config=config)

    await monitor.run_once()

    assert requests == []
    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["recovery_attempts"] == 1
    assert entry["last_recovery_result"].startswith("Failed: Key recovery API base")


@pytest.mark.asyncio
async def test_operator_disabled_credential_stays_disabled(registry, registry_path, clock):
    write_registry(
        registry_path,
        [static_key_record([failing_key()], is_active=False, status="disabled")],
    )
    monitor, _ = build_monitor(registry, clock, hello_handler)

    await monitor.run_once()

    record = read_registry(registry_path)["droid-1"]
    assert record["api_keys"][0]["status"] == "active"
    assert record["is_active"] is False
    assert record["status"] == "disabled"
    assert record["schedulable"] is False


@pytest.mark.asyncio
async def test_mark_key_failed_starts_new_episode(registry, registry_path, clock):
    write_registry(
        registry_path,
        [
            static_key_record(
                [
                    {
                        "id": "k1",
                        "key": "fk-abcdef123456",
                        "status": "active",
                        "recovery_attempts": 4,
                        "recovery_expires_at": "2025-01-01T00:00:00Z",
                    }
                ]
            )
        ],
    )
    store = RecoveryStateStore(registry)

    await store.mark_key_failed("droid-1", "k1", "HTTP 403", clock.now)

    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["status"] == "error"
    assert entry["error_message"] == "HTTP 403"
    assert entry["error_since"] == to_iso(clock.now)
    assert entry["recovery_attempts"] == 0
    assert entry["recovery_expires_at"] == ""
    assert entry["key"] == "fk-abcdef123456"


@pytest.mark.asyncio
async def test_mark_key_failed_keeps_running_episode(registry, registry_path, clock):
    error_since = clock.now - 3600
    write_registry(
        registry_path,
        [static_key_record([failing_key(error_since=to_iso(error_since))])],
    )
    monitor, _ = build_monitor(registry, clock, refused_handler)
    await monitor.run_once()
    before = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert before["recovery_attempts"] == 1

    clock.advance(30)
    await monitor.state.mark_key_failed("droid-1", "k1", "HTTP 401 again", clock.now)

    after = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert after["error_message"] == "HTTP 401 again"
    assert after["recovery_attempts"] == before["recovery_attempts"]
    assert after["error_since"] == before["error_since"]
    assert after["recovery_expires_at"] == before["recovery_expires_at"]
    assert after["next_recovery_at"] == before["next_recovery_at"]


@pytest.mark.asyncio
async def test_unparsable_error_since_is_treated_as_absent(registry, registry_path, clock):
    write_registry(registry_path, [static_key_record([failing_key(error_since="nan")])])
    monitor, requests = build_monitor(registry, clock, refused_handler)

    await monitor.run_once()

    assert len(requests) == 1
    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["recovery_attempts"] == 1
    assert entry["error_since"] == to_iso(clock.now)
    assert entry["recovery_expires_at"] == to_iso(clock.now + 86400)


@pytest.mark.asyncio
async def test_bad_proxy_port_connects_direct(registry, registry_path, clock):
    write_registry(
        registry_path,
        [
            static_key_record(
                [failing_key()], proxy={"type": "http", "host": "10.0.0.2", "port": "abc"}
            )
        ],
    )
    monitor, requests = build_monitor(registry, clock, hello_handler)

    await monitor.run_once()

    assert len(requests) == 1
    entry = read_registry(registry_path)["droid-1"]["api_keys"][0]
    assert entry["status"] == "active"
