import copy
import os

# Keep test runs from writing logs/app.log
os.environ.setdefault("TRANSLATEBRIDGE_LOG_TO_FILE", "0")

import pytest

from translatebridge import config as tb_config
from translatebridge.ai.service import AIService
from translatebridge.web import create_app

from fakes import ScriptedProvider


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an empty temp directory and hide real API keys."""
    for env_var in tb_config.API_KEY_ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    config_file = tmp_path / "config" / "config.json"
    monkeypatch.setattr(tb_config, "CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def app_config(isolated_config):
    """A saved configuration with server-managed keys for every provider."""
    config = copy.deepcopy(tb_config.DEFAULT_CONFIG)
    config["anthropic"]["api_key"] = "sk-ant-test"
    config["openai"]["api_key"] = "sk-openai-test"
    config["elevenlabs"]["api_key"] = "xi-test"
    tb_config.save_config(config)
    return config


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def make_service(app_config, provider):
    """Build an AIService wired to the scripted provider."""

    def factory(provider_name="anthropic", use_tools=True, credentials=None):
        config = copy.deepcopy(app_config)
        config["ai_provider"] = provider_name
        config[provider_name]["use_tools"] = use_tools
        return AIService(config=config, credentials=credentials, transport=provider.transport)

    return factory


@pytest.fixture
def app(app_config, provider):
    return create_app({"TESTING": True, "HTTP_TRANSPORT": provider.transport})


@pytest.fixture
def client(app):
    return app.test_client()


class ManualRunner:
    """Collects submitted work so tests decide when (and in which order) it runs."""

    def __init__(self):
        self.pending = []

    def __call__(self, task):
        self.pending.append(task)

    def run_next(self):
        task = self.pending.pop(0)
        task()

    def run_all(self):
        while self.pending:
            self.run_next()


@pytest.fixture
def runner():
    return ManualRunner()
