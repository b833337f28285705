import importlib

import pytest

import hls_proxy.vars as vars_module


@pytest.fixture
def reload_vars(monkeypatch):
    def _reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(vars_module)

    yield _reload
    monkeypatch.undo()
    importlib.reload(vars_module)


def test_defaults(reload_vars, monkeypatch):
    for name in ("PROXY_PATH", "PUBLIC_URL", "UPSTREAM_MAX_REDIRECTS", "PORT"):
        monkeypatch.delenv(name, raising=False)
    module = reload_vars()

    assert module.PROXY_PATH == "/proxy"
    assert module.PUBLIC_URL == ""
    assert module.UPSTREAM_MAX_REDIRECTS == 5
    assert module.PORT == 8000


def test_proxy_path_is_normalized(reload_vars):
    module = reload_vars(PROXY_PATH="hls/proxy/")
    assert module.PROXY_PATH == "/hls/proxy"


def test_public_url_trailing_slash_is_dropped(reload_vars):
    module = reload_vars(PUBLIC_URL="https://tv.example.com/")
    assert module.PUBLIC_URL == "https://tv.example.com"


@pytest.mark.parametrize("value,expected", [("true", True), ("TRUE", True), ("1", False), ("", False)])
def test_boolean_flags(reload_vars, value, expected):
    module = reload_vars(
        RESOLVE_HOSTS_BEFORE_CONNECT=value, DETECT_MANIFEST_CONTENT_TYPE=value
    )
    assert module.RESOLVE_HOSTS_BEFORE_CONNECT is expected
    assert module.DETECT_MANIFEST_CONTENT_TYPE is expected
