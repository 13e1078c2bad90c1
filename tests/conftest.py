import pytest

from codechrono import config
from codechrono.store import LocalStore


@pytest.fixture(autouse=True)
def reset_codechrono_config(monkeypatch, tmp_path):
    """Point every test at a private data dir and reset config from the environment."""
    monkeypatch.setenv("CODECHRONO_DIR", str(tmp_path / "codechrono-home"))
    for name in ("CODECHRONO_DB", "CODECHRONO_TOKEN_FILE", "CODECHRONO_API_TOKEN", "CODECHRONO_API_URL"):
        monkeypatch.delenv(name, raising=False)
    config.reload()

    yield

    monkeypatch.undo()
    config.reload()


@pytest.fixture
async def store(tmp_path):
    s = LocalStore(tmp_path / "store" / "codechrono.db")
    await s.init()
    yield s
    await s.close()
