import pytest

from chatwire.config import DEFAULT_BASE_URL, ClientConfig, RequestOptions
from chatwire.errors import ConfigError


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8000/v1/")
        monkeypatch.setenv("OPENAI_TIMEOUT", "60")
        monkeypatch.setenv("OPENAI_CONNECT_TIMEOUT", "2.5")
        monkeypatch.setenv("OPENAI_RETRY_COUNT", "2")
        monkeypatch.setenv("OPENAI_USER_AGENT", "my-app/1.0")

        config = ClientConfig.from_env()
        assert config.api_key == "sk-env"
        assert config.base_url == "http://localhost:8000/v1"
        assert config.timeout == 60.0
        assert config.connect_timeout == 2.5
        assert config.max_retries == 2
        assert config.user_agent == "my-app/1.0"

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = ClientConfig.from_env()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.timeout == 300.0
        assert config.connect_timeout == 10.0
        assert config.max_retries == 5
        assert config.user_agent is None

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = ClientConfig.from_env(api_key="sk-arg", base_url=None)
        assert config.api_key == "sk-arg"
        assert config.base_url == DEFAULT_BASE_URL

    def test_missing_key_raises(self):
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            ClientConfig.from_env()

    def test_bad_number_raises(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_RETRY_COUNT", "many")
        with pytest.raises(ConfigError, match="OPENAI_RETRY_COUNT"):
            ClientConfig.from_env()


class TestPresets:
    def test_openrouter_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")
        config = ClientConfig.openrouter()
        assert config.api_key == "sk-or"
        assert config.base_url == "https://openrouter.ai/api/v1"
        assert config.timeout == 180.0

    def test_openrouter_missing_key(self):
        with pytest.raises(ConfigError):
            ClientConfig.openrouter()

    def test_vllm(self):
        config = ClientConfig.vllm("localhost", 8000)
        assert config.base_url == "http://localhost:8000/v1"
        assert config.api_key == "DUMMY"


def test_request_options_defaults():
    options = RequestOptions()
    assert options.max_retries is None
    assert options.extra_headers == {}
