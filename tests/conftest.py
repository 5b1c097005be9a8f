from dataclasses import replace

import pytest

from tokenvet.config import load_settings


_ENV_VARS = (
    "REDIS_URL", "BIRDEYE_API_KEY", "MORALIS_API_KEY", "SOLSCAN_API_KEY", "JUPITER_API_KEY",
    "DEX_SEARCH_QUERIES", "TOKEN_MONITORING_ENABLED", "VETTING_CONCURRENCY",
)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    return replace(load_settings(), monitoring_batch_delay_ms=0)
