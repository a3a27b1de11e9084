import httpx
import pytest

from translatebridge.ai.exceptions import (
    ProviderTimeoutError,
    RequestValidationError,
    ResponseParseError,
    UpstreamError,
)
from translatebridge.translation.models import Credentials, TranslationRequest
from translatebridge.translation.translator import (
    iter_translation_events,
    stream_translation,
    translate,
)

from fakes import (
    SPANISH_TRANSLATION,
    anthropic_stream,
    anthropic_text,
    anthropic_tool,
    error_response,
    openai_stream,
    openai_text,
    openai_tool,
    timeout,
)

SOURCE = "Please take your medication with food after meals."


@pytest.fixture
def request_es():
    return TranslationRequest(SOURCE, "Spanish")


class TestTranslate:
    def test_anthropic_tool_call(self, provider, make_service, request_es):
        provider.add(anthropic_tool("submit_translation", SPANISH_TRANSLATION))
        service = make_service()

        result = translate(request_es, service=service)

        assert result.translation == SPANISH_TRANSLATION["translation"]
        assert result.cultural_notes == SPANISH_TRANSLATION["culturalNotes"]
        assert result.strategy == SPANISH_TRANSLATION["strategy"]
        body = provider.bodies()[0]
        assert body["tools"][0]["name"] == "submit_translation"
        assert body["tool_choice"] == {"type": "tool", "name": "submit_translation"}
        assert body["messages"] == [{"role": "user", "content": SOURCE}]
        assert "Spanish" in body["system"]
        assert provider.requests[0].headers["x-api-key"] == "sk-ant-test"
        assert service.get_last_token_usage() == {"prompt_tokens": 120, "completion_tokens": 80}

    def test_openai_function_call(self, provider, make_service, request_es):
        provider.add(openai_tool("submit_translation", SPANISH_TRANSLATION))

        result = translate(request_es, service=make_service("openai"))

        assert result.translation == SPANISH_TRANSLATION["translation"]
        body = provider.bodies()[0]
        assert body["messages"][0]["role"] == "system"
        assert body["tool_choice"] == {"type": "function", "function": {"name": "submit_translation"}}
        assert provider.requests[0].headers["authorization"] == "Bearer sk-openai-test"

    def test_text_mode_uses_labeled_blocks(self, provider, make_service, request_es):
        provider.add(anthropic_text(
            "INTENT: Instruct.\nTRANSLATION: Tome su medicamento con comida.\nCULTURAL NOTES: Formal usted."
        ))

        result = translate(request_es, service=make_service(use_tools=False))

        assert "tools" not in provider.bodies()[0]
        assert result.translation == "Tome su medicamento con comida."
        assert result.cultural_notes == "Formal usted."
        assert result.intent == "Instruct."

    def test_request_credentials_win(self, provider, make_service):
        provider.add(anthropic_tool("submit_translation", SPANISH_TRANSLATION))
        credentials = Credentials(anthropic="sk-ant-user")
        request = TranslationRequest(SOURCE, "Spanish", credentials=credentials)

        translate(request, service=make_service(credentials=credentials))

        assert provider.requests[0].headers["x-api-key"] == "sk-ant-user"

    def test_missing_key_fails_before_network(self, provider):
        with pytest.raises(RequestValidationError) as excinfo:
            translate(TranslationRequest(SOURCE, "Spanish"))
        assert excinfo.value.code == "ai_config_missing"
        assert provider.requests == []

    def test_empty_source_text_rejected(self):
        with pytest.raises(RequestValidationError) as excinfo:
            TranslationRequest("   ", "Spanish")
        assert excinfo.value.details == {"field": "sourceText"}

    def test_upstream_error(self, provider, make_service, request_es):
        provider.add(error_response(529, "Overloaded"))

        with pytest.raises(UpstreamError) as excinfo:
            translate(request_es, service=make_service())

        assert "Overloaded" in str(excinfo.value)
        assert excinfo.value.details["status_code"] == 529

    def test_timeout(self, provider, make_service, request_es):
        provider.add(timeout)

        with pytest.raises(ProviderTimeoutError) as excinfo:
            translate(request_es, service=make_service())

        assert excinfo.value.code == "timeout"
        assert isinstance(excinfo.value, UpstreamError)

    def test_unparseable_response(self, provider, make_service, request_es):
        provider.add(anthropic_text("---"))

        with pytest.raises(ResponseParseError):
            translate(request_es, service=make_service(use_tools=False))

    def test_labeled_reply_without_translation_is_rejected(self, provider, make_service, request_es):
        provider.add(anthropic_text(
            "INTENT: Give the patient a clear instruction.\nSTRATEGY: Formal register.\nCULTURAL_NOTES: Used usted."
        ))

        with pytest.raises(ResponseParseError) as excinfo:
            translate(request_es, service=make_service(use_tools=False))
        assert excinfo.value.details["field"] == "translation"


    def test_null_usage_is_tolerated(self, provider, make_service, request_es):
        provider.add(openai_text("TRANSLATION: Tome su medicamento con comida.", usage=None))
        service = make_service("openai", use_tools=False)

        result = translate(request_es, service=service)

        assert result.translation == "Tome su medicamento con comida."
        assert service.get_last_token_usage() == {"prompt_tokens": 0, "completion_tokens": 0}

    @pytest.mark.parametrize("provider_name, body", [
        ("openai", [{"choices": []}]),
        ("openai", {"choices": ["not a choice object"]}),
        ("anthropic", {"content": ["not a block"]}),
        ("anthropic", {"content": [{"type": "text", "text": "TRANSLATION: Hola."}], "usage": "n/a"}),
    ])
    def test_unexpected_reply_shape_is_upstream_error(self, provider, make_service, request_es, provider_name, body):
        provider.add(httpx.Response(200, json=body))

        with pytest.raises(UpstreamError):
            translate(request_es, service=make_service(provider_name, use_tools=False))


STREAMED = ["TRANSLATION: Por favor, ", "tome agua.\nCULTURAL_NOTES: ", "Formal."]


class TestTranslationEvents:
    def test_event_sequence(self, provider, make_service, request_es):
        provider.add(anthropic_stream(STREAMED))

        events = list(iter_translation_events(request_es, make_service()))

        assert events[0] == {"type": "start"}
        assert [e["text"] for e in events if e["type"] == "chunk"] == STREAMED
        complete = events[-1]
        assert complete["type"] == "complete"
        assert complete["fullText"] == "".join(STREAMED)
        assert complete["data"]["translation"] == "Por favor, tome agua."
        assert complete["data"]["culturalNotes"] == "Formal."
        body = provider.bodies()[0]
        assert body["stream"] is True
        assert "tools" not in body

    def test_openai_stream(self, provider, make_service, request_es):
        provider.add(openai_stream(STREAMED))

        events = list(iter_translation_events(request_es, make_service("openai")))

        assert events[-1]["result"].translation == "Por favor, tome agua."


class TestStreamTranslation:
    def test_callbacks(self, provider, make_service, request_es, runner):
        provider.add(anthropic_stream(STREAMED))
        chunks, completed, errors = [], [], []

        handle = stream_translation(
            request_es,
            on_chunk=chunks.append,
            on_complete=lambda text, result: completed.append((text, result)),
            on_error=errors.append,
            service=make_service(),
            runner=runner,
        )
        runner.run_all()

        assert chunks == STREAMED
        assert completed[0][0] == "".join(STREAMED)
        assert completed[0][1].translation == "Por favor, tome agua."
        assert errors == []
        assert handle.done

    def test_no_callbacks_after_cancel(self, provider, make_service, request_es, runner):
        provider.add(anthropic_stream(STREAMED))
        chunks, completed, errors = [], [], []
        handles = []

        def on_chunk(text):
            chunks.append(text)
            handles[0].cancel()

        handles.append(stream_translation(
            request_es,
            on_chunk=on_chunk,
            on_complete=lambda text, result: completed.append(text),
            on_error=errors.append,
            service=make_service(),
            runner=runner,
        ))
        runner.run_all()

        assert chunks == STREAMED[:1]
        assert completed == []
        assert errors == []
        assert handles[0].cancelled
        assert handles[0].done

    def test_cancel_before_start(self, provider, make_service, request_es, runner):
        provider.add(anthropic_stream(STREAMED))
        chunks, completed = [], []

        handle = stream_translation(
            request_es,
            on_chunk=chunks.append,
            on_complete=lambda text, result: completed.append(text),
            service=make_service(),
            runner=runner,
        )
        handle.cancel()
        runner.run_all()

        assert chunks == []
        assert completed == []

    def test_error_callback(self, provider, make_service, request_es, runner):
        provider.add(error_response(500, "Internal"))
        errors = []

        stream_translation(
            request_es,
            on_chunk=lambda text: None,
            on_complete=lambda text, result: None,
            on_error=errors.append,
            service=make_service(),
            runner=runner,
        )
        runner.run_all()

        assert len(errors) == 1
        assert isinstance(errors[0], UpstreamError)
        assert errors[0].details["status_code"] == 500
