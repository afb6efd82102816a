"""Unit tests for the settings model.

Each test builds ``Settings(_env_file=None)`` so that a local .env file
cannot leak into the assertions.
"""

import pytest
from pydantic import ValidationError

from relay_ai.core.config import AcpSettings, AgentSettings, AnthropicConfig, Settings, get_settings


class TestDefaults:
    def test_anthropic_defaults(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_MODEL", raising=False)

        anthropic = Settings(_env_file=None).anthropic

        assert isinstance(anthropic, AnthropicConfig)
        assert anthropic.api_key is None
        assert anthropic.model == "claude-sonnet-4-0"
        assert anthropic.max_retries == 2

    def test_agent_defaults(self, monkeypatch):
        monkeypatch.delenv("RELAY_AI_MAX_ITERATIONS", raising=False)

        agent = Settings(_env_file=None).agent

        assert isinstance(agent, AgentSettings)
        assert agent.max_iterations == 20
        assert agent.max_tokens is None

    def test_acp_defaults(self, monkeypatch):
        monkeypatch.delenv("ACP_PROTOCOL_VERSION", raising=False)
        monkeypatch.delenv("ACP_REQUEST_TIMEOUT_SECONDS", raising=False)

        acp = Settings(_env_file=None).acp

        assert isinstance(acp, AcpSettings)
        assert acp.protocol_version == "1.0.0"
        assert acp.request_timeout_seconds == 30.0


class TestSettingsBinding:
    """Test Settings model environment variable binding."""

    def test_anthropic_binding(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.setenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest")
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "http://mock-anthropic")

        anthropic = Settings(_env_file=None).anthropic

        assert anthropic.api_key == "sk-test"
        assert anthropic.model == "claude-3-5-haiku-latest"
        assert anthropic.base_url == "http://mock-anthropic"

    def test_agent_binding(self, monkeypatch):
        monkeypatch.setenv("RELAY_AI_MAX_ITERATIONS", "7")
        monkeypatch.setenv("RELAY_AI_TEMPERATURE", "0.3")

        agent = Settings(_env_file=None).agent

        assert agent.max_iterations == 7
        assert agent.temperature == pytest.approx(0.3)

    def test_acp_binding(self, monkeypatch):
        monkeypatch.setenv("ACP_REQUEST_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("ACP_SERVER_NAME", "bridge")

        acp = Settings(_env_file=None).acp

        assert acp.request_timeout_seconds == 2.5
        assert acp.server_name == "bridge"

    def test_log_level_binding(self, monkeypatch):
        monkeypatch.setenv("RELAY_AI_LOG_LEVEL", "DEBUG")

        assert Settings(_env_file=None).relay_ai_log_level == "DEBUG"

    def test_invalid_iterations_rejected(self, monkeypatch):
        monkeypatch.setenv("RELAY_AI_MAX_ITERATIONS", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
