import json

import pytest

from translatebridge import config as tb_config
from translatebridge.ai.exceptions import RequestValidationError
from translatebridge.ai.service import AIService, validate_ai_config
from translatebridge.translation.models import Credentials


def test_defaults_without_file(isolated_config):
    config = tb_config.load_config()
    assert not isolated_config.exists()
    assert config["ai_provider"] == "anthropic"
    assert config["anthropic"]["timeout"] == 45
    assert config["elevenlabs"]["voice_settings"]["style"] == 0.25


def test_initialize_app_writes_defaults(isolated_config):
    tb_config.initialize_app()
    stored = json.loads(isolated_config.read_text(encoding="utf-8"))
    assert stored["anthropic"]["models"] == tb_config.DEFAULT_CONFIG["anthropic"]["models"]


def test_partial_file_is_merged_over_defaults(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text(json.dumps({"anthropic": {"api_key": "sk-ant-file"}}), encoding="utf-8")

    config = tb_config.load_config()

    assert config["anthropic"]["api_key"] == "sk-ant-file"
    assert config["anthropic"]["api_version"] == "2023-06-01"
    assert config["openai"]["models"][0] == "gpt-4o-mini"


def test_corrupt_file_falls_back_to_defaults(isolated_config):
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("{not json", encoding="utf-8")

    assert tb_config.load_config()["ai_provider"] == "anthropic"


def test_environment_fills_placeholder_key(isolated_config, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
    assert tb_config.load_config()["anthropic"]["api_key"] == "sk-ant-env"


def test_file_key_beats_environment(app_config, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
    assert tb_config.load_config()["anthropic"]["api_key"] == "sk-ant-test"


def test_get_prompt_returns_copy():
    prompt = tb_config.get_prompt("verification_prompt")
    prompt["prompt"] = "changed"
    assert tb_config.get_prompt("verification_prompt")["prompt"] != "changed"
    assert "SOURCE_LANGUAGE" in prompt["required_placeholders"]


def test_get_provider_config_fills_defaults():
    provider_config = tb_config.get_provider_config({"custom": {"api_key": "k"}}, "custom")
    assert provider_config["timeout"] == 45
    assert tb_config.get_provider_config({}, "missing") is None


class TestValidateAIConfig:
    def test_placeholder_key_rejected(self, isolated_config):
        with pytest.raises(RequestValidationError) as excinfo:
            validate_ai_config()
        assert excinfo.value.details == {"provider": "anthropic", "missing_field": "api_key"}

    def test_request_credentials_satisfy_check(self, isolated_config):
        validate_ai_config(credentials=Credentials(anthropic="sk-ant-user"))

    def test_unknown_provider(self, app_config):
        with pytest.raises(RequestValidationError) as excinfo:
            validate_ai_config(provider_override="mistral")
        assert excinfo.value.code == "ai_config_missing"

    def test_missing_model(self, app_config):
        app_config["openai"]["models"] = []
        with pytest.raises(RequestValidationError) as excinfo:
            validate_ai_config(provider_override="openai", config=app_config)
        assert excinfo.value.details["missing_field"] == "models"


def test_service_model_and_key_resolution(app_config):
    service = AIService(config=app_config, credentials=Credentials(openai="sk-openai-user"))
    assert service.model == "claude-sonnet-4-20250514"
    assert service.api_key == "sk-ant-test"
    assert AIService(model_override="claude-x", config=app_config).model == "claude-x"

    openai_service = AIService(provider_override="openai", config=app_config, credentials=Credentials(openai="sk-openai-user"))
    assert openai_service.api_key == "sk-openai-user"
    assert openai_service.display_name == "OpenAI"


def test_credentials_repr_hides_keys():
    credentials = Credentials(anthropic="sk-ant-secret")
    assert "sk-ant-secret" not in repr(credentials)
    assert Credentials.from_payload({"anthropic": "  "}) is None
