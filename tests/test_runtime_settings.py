from shared.runtime_settings import (
    DEFAULT_DEV_CORS_ALLOW_ORIGINS,
    DEFAULT_PORT,
    env_flag,
    env_int,
    load_security_settings,
    load_server_settings,
    parse_cors_allowlist,
)


def test_env_flag_truthy_and_falsey() -> None:
    assert env_flag("X", default=False, environ={"X": "true"}) is True
    assert env_flag("X", default=True, environ={"X": "0"}) is False


def test_parse_cors_allowlist_uses_fallback_when_empty() -> None:
    assert parse_cors_allowlist("") == list(DEFAULT_DEV_CORS_ALLOW_ORIGINS)


def test_parse_cors_allowlist_parses_csv_values() -> None:
    raw = " http://localhost:3000, https://example.com "
    assert parse_cors_allowlist(raw) == ["http://localhost:3000", "https://example.com"]


def test_load_security_settings_reads_expected_keys() -> None:
    settings = load_security_settings(
        {
            "NARRATIVE_DIRECTOR_DEV_MODE": "false",
            "NARRATIVE_DIRECTOR_API_TOKEN": "abc123",
            "NARRATIVE_DIRECTOR_CORS_ALLOW_ORIGINS": "https://app.example.com",
        }
    )
    assert settings.dev_mode is False
    assert settings.api_token == "abc123"
    assert settings.cors_allow_origins == ["https://app.example.com"]


def test_load_security_settings_defaults_to_dev_mode() -> None:
    settings = load_security_settings({})
    assert settings.dev_mode is True
    assert settings.api_token == ""


def test_env_int_falls_back_on_garbage() -> None:
    assert env_int("N", 5, environ={"N": "12"}) == 12
    assert env_int("N", 5, environ={"N": "twelve"}) == 5
    assert env_int("N", 5, environ={}) == 5


def test_startup_problems_only_outside_dev_mode() -> None:
    dev = load_security_settings({"NARRATIVE_DIRECTOR_CORS_ALLOW_ORIGINS": "*"})
    assert dev.startup_problems() == []

    prod = load_security_settings(
        {"NARRATIVE_DIRECTOR_DEV_MODE": "0", "NARRATIVE_DIRECTOR_CORS_ALLOW_ORIGINS": "*"}
    )
    problems = prod.startup_problems()
    assert len(problems) == 2
    assert not prod.auth_enabled


def test_load_server_settings() -> None:
    assert load_server_settings({}).port == DEFAULT_PORT
    server = load_server_settings({"NARRATIVE_DIRECTOR_HOST": "0.0.0.0", "NARRATIVE_DIRECTOR_PORT": "9001"})
    assert (server.host, server.port) == ("0.0.0.0", 9001)
