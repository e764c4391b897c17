import config as config_module
from config import AppConfig, load_config


def test_defaults():
    config = AppConfig()
    assert config.llm.provider == "openai"
    assert config.agent.max_iterations == 5
    assert config.market_data.base_url == "https://api.massive.com"
    assert config.max_history == 20


def test_load_from_environment(monkeypatch):
    monkeypatch.setenv("TICKERAI_LLM_PROVIDER", "Claude")
    monkeypatch.setenv("TICKERAI_MODEL", "claude-test")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ak")
    monkeypatch.setenv("MASSIVE_API_KEY", "mk")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config()

    assert config.llm.provider == "claude"
    assert config.llm.get_model() == "claude-test"
    assert config.llm.get_api_key() == "ak"
    assert config.market_data.api_key == "mk"
    assert config.log_level == "DEBUG"


def test_update_config_routes_to_section(monkeypatch):
    monkeypatch.setattr(config_module, "_config", AppConfig())

    updated = config_module.update_config(max_iterations=3, lookback_days=60, provider="claude")

    assert updated.agent.max_iterations == 3
    assert updated.market_data.lookback_days == 60
    assert updated.llm.provider == "claude"
