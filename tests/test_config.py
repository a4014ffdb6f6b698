from pathlib import Path

from tubegate.clients import CLIENT_PROFILES, DESKTOP_USER_AGENT, build_ytdlp_opts
from tubegate.config import DEFAULT_RELAY_INSTANCES, Settings
from tubegate.credentials import AuthContext


def test_defaults(monkeypatch):
    for name in ("RELAY_INSTANCES", "SUBPROCESS_EXTRACTOR", "PROXY_IMAGES", "ALLOWED_ORIGINS", "YTDLP_PROXY"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.relay_instances == DEFAULT_RELAY_INSTANCES
    assert settings.subprocess_extractor == "auto"
    assert settings.proxy is None
    assert settings.proxy_images is False
    assert settings.allowed_origins == ["*"]


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("COOKIES_FILE", str(tmp_path / "c.txt"))
    monkeypatch.setenv("COOKIE_CACHE_PATH", str(tmp_path / "cache.txt"))
    monkeypatch.setenv("RELAY_INSTANCES", "https://a.example.org, https://pipedapi.b.example.org,")
    monkeypatch.setenv("SUBPROCESS_EXTRACTOR", " OFF ")
    monkeypatch.setenv("YTDLP_PROXY", "http://proxy:3128")
    monkeypatch.setenv("STRATEGY_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("PROXY_IMAGES", "true")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://app.example.org,https://tv.example.org")

    settings = Settings.from_env()

    assert settings.cookies_file == tmp_path / "c.txt"
    assert settings.cookie_cache_path == Path(tmp_path / "cache.txt")
    assert settings.relay_instances == ["https://a.example.org", "https://pipedapi.b.example.org"]
    assert settings.subprocess_extractor_enabled() is False
    assert settings.proxy == "http://proxy:3128"
    assert settings.strategy_timeout_seconds == 12.5
    assert settings.proxy_images is True
    assert settings.allowed_origins == ["https://app.example.org", "https://tv.example.org"]


def test_subprocess_extractor_modes():
    assert Settings(subprocess_extractor="on", extractor_binary="definitely-missing").subprocess_extractor_enabled()
    assert not Settings(subprocess_extractor="auto", extractor_binary="definitely-missing").subprocess_extractor_enabled()


def test_ytdlp_opts_without_credentials():
    opts = build_ytdlp_opts(CLIENT_PROFILES[2])

    assert opts["extractor_args"] == {"youtube": {"player_client": ["android"]}}
    assert "cookiefile" not in opts
    assert "proxy" not in opts
    assert opts["noplaylist"] is True


def test_ytdlp_opts_with_credentials_and_proxy(tmp_path):
    auth = AuthContext(visitor_data="CgtW", po_token="MnQx", cookie_file=tmp_path / "cookies.txt")
    opts = build_ytdlp_opts(CLIENT_PROFILES[0], auth, proxy="socks5://127.0.0.1:9050")

    youtube = opts["extractor_args"]["youtube"]
    assert youtube["po_token"] == ["web+MnQx"]
    assert youtube["visitor_data"] == ["CgtW"]
    assert opts["cookiefile"] == str(tmp_path / "cookies.txt")
    assert opts["proxy"] == "socks5://127.0.0.1:9050"
    assert opts["user_agent"] == DESKTOP_USER_AGENT


def test_ytdlp_opts_are_fresh_per_attempt():
    first = build_ytdlp_opts(CLIENT_PROFILES[0])
    first["http_headers"]["X-Leak"] = "1"
    assert "X-Leak" not in build_ytdlp_opts(CLIENT_PROFILES[0])["http_headers"]
