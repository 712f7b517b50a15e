import base64

import pytest
from cachelib import SimpleCache

from server import create_app
from settings import ROOT_DIR, RuntimeConfig

ENV_KEYS = ("PORT", "NODE_ENV", "USE_AUTH", "USE_HTTPS", "USE_BROWSER_SYNC", "USERNAME", "PASSWORD")


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so monkeypatch also undoes values written by load_dotenv
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def session_store():
    return SimpleCache()


@pytest.fixture
def make_app(session_store):
    def _make(**overrides):
        config = RuntimeConfig(**overrides)
        app = create_app(config, root=ROOT_DIR, session_store=session_store)
        app.config["TESTING"] = True
        return app
    return _make


@pytest.fixture
def dev_client(make_app):
    return make_app(environment_name="development").test_client()


def basic_header(username, password):
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}
