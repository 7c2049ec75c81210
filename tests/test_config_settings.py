from walletcore.config import Settings


def _clear_zerox_env(monkeypatch):
    for name in ("ZEROX_API_KEY", "ZERO_EX_API_KEY", "ZEROX_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_zerox_api_key_alias(monkeypatch):
    """0x API key should load from the alternate spelling."""

    _clear_zerox_env(monkeypatch)
    monkeypatch.setenv("ZERO_EX_API_KEY", "alias-key")

    settings = Settings(_env_file=None)

    assert settings.zerox_api_key == "alias-key"
    assert settings.has_zerox_key


def test_zerox_api_key_legacy_fallback(monkeypatch):
    """ZEROX_KEY is only consulted when no other key is configured."""

    _clear_zerox_env(monkeypatch)
    monkeypatch.setenv("ZEROX_KEY", "legacy-key")

    assert Settings(_env_file=None).zerox_api_key == "legacy-key"

    monkeypatch.setenv("ZEROX_API_KEY", "primary-key")

    assert Settings(_env_file=None).zerox_api_key == "primary-key"


def test_defaults(monkeypatch):
    _clear_zerox_env(monkeypatch)

    settings = Settings(_env_file=None)

    assert settings.has_zerox_key is False
    assert settings.rpc_retry_count == 3
    assert settings.tx_poll_interval_seconds == 3.0
    assert settings.tx_poll_max_attempts == 60
    assert settings.default_token_gas_limit == 65_000
    assert settings.default_slippage_percentage == 0.5


def test_rpc_urls_from_environment(monkeypatch):
    """Custom endpoints are keyed by chain id."""

    monkeypatch.setenv("RPC_URLS", '{"137": "https://polygon.example/rpc"}')

    settings = Settings(_env_file=None)

    assert settings.rpc_url_for(137) == "https://polygon.example/rpc"
    assert settings.rpc_url_for(1) is None
