from credential_monitor.core.config import (
    KEEPALIVE_MIN_SCAN_INTERVAL,
    KeepaliveConfig,
    RecoveryConfig,
)
from credential_monitor.monitors.keepalive import KeepaliveMonitor
from credential_monitor.monitors.key_recovery import KeyRecoveryMonitor


def test_defaults():
    keepalive = KeepaliveConfig()
    assert keepalive.enabled is False
    assert keepalive.cooldown_seconds == 600
    assert keepalive.usage_max_age == 120

    recovery = RecoveryConfig()
    assert recovery.enabled is True
    assert recovery.probe_interval == 120
    assert recovery.recovery_window == 86400
    assert recovery.max_probes == 3


def test_keepalive_from_env(monkeypatch):
    monkeypatch.setenv("KEEPALIVE_ENABLED", "true")
    monkeypatch.setenv("KEEPALIVE_MODEL", "claude-test")
    monkeypatch.setenv("KEEPALIVE_COOLDOWN_MINUTES", "5")
    monkeypatch.setenv("KEEPALIVE_SCAN_INTERVAL", "not-a-number")

    config = KeepaliveConfig.from_env()

    assert config.enabled is True
    assert config.model == "claude-test"
    assert config.cooldown_seconds == 300
    assert config.scan_interval == KeepaliveConfig().scan_interval


def test_recovery_from_env(monkeypatch):
    monkeypatch.setenv("KEY_RECOVERY_ENABLED", "0")
    monkeypatch.setenv("KEY_RECOVERY_MAX_PROBES", "0")
    monkeypatch.setenv("KEY_RECOVERY_TIMEOUT", "600")
    monkeypatch.setenv("KEY_RECOVERY_API_BASE", "https://relay.test/llm/")

    config = RecoveryConfig.from_env()

    assert config.enabled is False
    assert config.max_probes == 1
    assert config.effective_timeout == 60
    assert config.api_base == "https://relay.test/llm/"


def test_timeout_floor():
    assert RecoveryConfig(timeout=1).effective_timeout == 5


def test_monitors_clamp_scan_intervals(registry):
    keepalive = KeepaliveMonitor(
        registry, None, None, None, None, config=KeepaliveConfig(scan_interval=1)
    )
    recovery = KeyRecoveryMonitor(registry, RecoveryConfig(scan_interval=1))

    assert keepalive.scheduler.interval == KEEPALIVE_MIN_SCAN_INTERVAL
    assert keepalive.scheduler.warmup_delay == 5
    assert recovery.scheduler.interval == 5
    assert recovery.scheduler.warmup_delay == 0


def test_non_finite_env_values_fall_back(monkeypatch):
    monkeypatch.setenv("KEEPALIVE_SCAN_INTERVAL", "nan")
    monkeypatch.setenv("KEEPALIVE_TIMEOUT", "inf")
    monkeypatch.setenv("KEY_RECOVERY_WINDOW", "-inf")

    keepalive = KeepaliveConfig.from_env()
    recovery = RecoveryConfig.from_env()

    assert keepalive.scan_interval == KeepaliveConfig().scan_interval
    assert keepalive.timeout == KeepaliveConfig().timeout
    assert recovery.recovery_window == RecoveryConfig().recovery_window
