from chaindeploy.config import Settings


def test_defaults():
    """Polling and timeout defaults follow the deployment service."""

    settings = Settings()

    assert settings.monitor_poll_interval_seconds == 5.0
    assert settings.monitor_timeout_seconds == 300.0
    assert settings.wait_timeout_seconds == 600.0
    assert settings.confirmation_threshold == 2
    assert settings.deployment_confirmations == 1
    assert settings.min_bytecode_bytes == 10
    assert settings.rpc_timeout_seconds == 30.0


def test_rpc_override_from_env(monkeypatch):
    """Per-network RPC URLs load from <NETWORK>_RPC variables."""

    monkeypatch.setenv("SEPOLIA_RPC", "https://sepolia.my-node.example")

    settings = Settings()

    assert settings.sepolia_rpc == "https://sepolia.my-node.example"
    assert settings.rpc_url_for("sepolia") == "https://sepolia.my-node.example"


def test_rpc_url_for_unknown_network():
    assert Settings().rpc_url_for("solana") is None


def test_timeouts_from_env(monkeypatch):
    monkeypatch.setenv("MONITOR_POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("CONFIRMATION_THRESHOLD", "6")

    settings = Settings()

    assert settings.monitor_poll_interval_seconds == 0.5
    assert settings.confirmation_threshold == 6
