from linear_agent.config import DEFAULT_AGENT_NAME, load_settings


def test_defaults(monkeypatch):
    for key in (
        "LINEAR_AGENT_NAME",
        "LINEAR_API_KEY",
        "LINEAR_BOT_OAUTH_TOKEN",
        "ENABLE_SIGNATURE_VERIFICATION",
        "SESSION_TIMEOUT_MINUTES",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)

    settings = load_settings()
    assert settings.agent_name == DEFAULT_AGENT_NAME
    assert settings.verify_signatures is True
    assert settings.session_timeout_minutes == 30
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.delenv("LINEAR_API_KEY", raising=False)
    monkeypatch.setenv("LINEAR_BOT_OAUTH_TOKEN", "bot-token")
    monkeypatch.setenv("ENABLE_SIGNATURE_VERIFICATION", "false")
    monkeypatch.setenv("SESSION_TIMEOUT_MINUTES", "not-a-number")
    monkeypatch.setenv("WEBHOOK_RATE_LIMIT_PER_MINUTE", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.linear_api_key == "bot-token"
    assert settings.verify_signatures is False
    assert settings.session_timeout_minutes == 30
    assert settings.rate_limit_per_minute == 5
    assert settings.log_level == "DEBUG"
