import pytest

from conftest import basic_header
from errors import ConfigurationError
from middleware import ROBOTS_ALLOW, ROBOTS_DISALLOW, Stage, compose
from settings import RuntimeConfig

CREDS = dict(username="kit", password="s3cret")
HTTPS = {"X-Forwarded-Proto": "https"}


# ----------------- Composition -----------------

def test_development_chain():
    chain = compose(RuntimeConfig(environment_name="development"))
    assert chain.names() == ["prevent_indexing", "session"]


@pytest.mark.parametrize("env", ["production", "staging"])
def test_deployed_chain_order(env):
    chain = compose(RuntimeConfig(environment_name=env, **CREDS))
    assert chain.names() == ["force_https", "basic_auth", "prevent_indexing", "session"]


def test_deployed_without_auth_allows_indexing():
    chain = compose(RuntimeConfig(environment_name="production", require_auth=False))
    assert chain.names() == ["force_https", "allow_indexing", "session"]


def test_deployed_without_https():
    chain = compose(RuntimeConfig(environment_name="production", force_https=False, **CREDS))
    assert "force_https" not in chain
    assert chain.names()[0] == "basic_auth"


def test_exactly_one_indexing_policy():
    for require_auth in (True, False):
        for env in ("development", "production"):
            chain = compose(RuntimeConfig(environment_name=env, require_auth=require_auth, **CREDS))
            policies = [n for n in chain.names() if n.endswith("_indexing")]
            assert len(policies) == 1


def test_extra_stages_come_last():
    chain = compose(RuntimeConfig(), extra=[Stage("static"), Stage("views")])
    assert chain.names()[-2:] == ["static", "views"]
    assert len(chain) == 4


@pytest.mark.parametrize("creds", [{}, {"username": "kit"}, {"password": "s3cret"}])
def test_auth_without_credentials_fails_at_compose_time(creds):
    with pytest.raises(ConfigurationError):
        compose(RuntimeConfig(environment_name="production", require_auth=True, **creds))


def test_missing_credentials_ignored_outside_deployed_envs():
    chain = compose(RuntimeConfig(environment_name="development", require_auth=True))
    assert "basic_auth" not in chain


# ----------------- Requests -----------------

def test_plaintext_redirects_before_auth(make_app):
    client = make_app(environment_name="production", **CREDS).test_client()
    resp = client.get("/components/button?tab=html", headers=basic_header("kit", "wrong"))
    assert resp.status_code == 302
    assert resp.headers["Location"] == "https://localhost/components/button?tab=html"


def test_secure_request_without_credentials_is_challenged(make_app):
    client = make_app(environment_name="production", **CREDS).test_client()
    resp = client.get("/", headers=HTTPS)
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"].startswith("Basic realm=")


def test_wrong_credentials_are_challenged(make_app):
    client = make_app(environment_name="production", **CREDS).test_client()
    resp = client.get("/", headers={**HTTPS, **basic_header("kit", "nope")})
    assert resp.status_code == 401


def test_correct_credentials_reach_the_page(make_app):
    client = make_app(environment_name="production", **CREDS).test_client()
    resp = client.get("/", headers={**HTTPS, **basic_header("kit", "s3cret")})
    assert resp.status_code == 200
    assert b"Component kit" in resp.data


def test_auth_without_https(make_app):
    client = make_app(environment_name="staging", force_https=False, **CREDS).test_client()
    assert client.get("/").status_code == 401
    assert client.get("/", headers=basic_header("kit", "s3cret")).status_code == 200


def test_robots_allows_all_when_deployed_without_auth(make_app):
    client = make_app(environment_name="production", require_auth=False).test_client()
    resp = client.get("/robots.txt", headers=HTTPS)
    assert resp.status_code == 200
    assert resp.mimetype == "text/plain"
    assert resp.get_data(as_text=True) == ROBOTS_ALLOW
    assert "X-Robots-Tag" not in client.get("/", headers=HTTPS).headers


def test_robots_disallows_when_auth_required(make_app):
    client = make_app(environment_name="production", **CREDS).test_client()
    headers = {**HTTPS, **basic_header("kit", "s3cret")}
    resp = client.get("/robots.txt", headers=headers)
    assert resp.get_data(as_text=True) == ROBOTS_DISALLOW
    assert resp.headers["X-Robots-Tag"] == "noindex"
    page = client.get("/components/button", headers=headers)
    assert page.status_code == 200
    assert page.headers["X-Robots-Tag"] == "noindex"


def test_development_never_indexes(dev_client):
    resp = dev_client.get("/robots.txt")
    assert resp.get_data(as_text=True) == ROBOTS_DISALLOW
    assert dev_client.get("/").headers["X-Robots-Tag"] == "noindex"
    assert dev_client.get("/public/stylesheets/application.css").headers["X-Robots-Tag"] == "noindex"


def test_development_skips_https_and_auth(dev_client):
    resp = dev_client.get("/")
    assert resp.status_code == 200


def test_installed_stage_names_are_recorded(make_app):
    app = make_app(environment_name="production", **CREDS)
    assert app.config["MIDDLEWARE_STAGES"] == [
        "force_https", "basic_auth", "prevent_indexing", "session", "static", "views",
    ]
