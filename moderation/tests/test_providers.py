import json

import httpx
import pytest

from common.exceptions import DependencyError
from moderation.providers import DummyProvider, OpenAIModerationProvider, get_provider

URL = "https://classifier.test/v1/moderations"


def make_provider(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OpenAIModerationProvider(api_key="sk-test", url=URL, client=client)


class TestSelection:
    def test_default_is_dummy(self, settings):
        settings.SAFETY_CLASSIFIER_PROVIDER = "dummy"
        provider = get_provider()
        assert isinstance(provider, DummyProvider)
        assert provider.classify("anything").flagged is False

    def test_openai_from_settings(self, settings):
        settings.SAFETY_CLASSIFIER_PROVIDER = "openai"
        settings.SAFETY_CLASSIFIER_API_KEY = "sk-test"
        assert isinstance(get_provider(), OpenAIModerationProvider)

    def test_missing_key(self, settings):
        settings.SAFETY_CLASSIFIER_API_KEY = ""
        with pytest.raises(RuntimeError):
            OpenAIModerationProvider()


class TestOpenAIModerationProvider:
    def test_posts_text_and_parses_envelope(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"results": [{"flagged": True, "categories": {"hate": True}, "category_scores": {"hate": 0.9}}]})

        r = make_provider(handler).classify("some text")
        assert seen == {"auth": "Bearer sk-test", "body": {"input": "some text"}}
        assert r.flagged is True
        assert r.category_scores == {"hate": 0.9}

    def test_http_error_is_wrapped(self):
        provider = make_provider(lambda request: httpx.Response(500, json={"error": "down"}))
        with pytest.raises(DependencyError) as exc:
            provider.classify("text")
        assert str(exc.value.detail).startswith("Failed to classify content:")

    def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DependencyError):
            make_provider(handler).classify("text")

    @pytest.mark.parametrize("body", [b"not json", b'{"categories": {}}'])
    def test_malformed_response_is_wrapped(self, body):
        provider = make_provider(lambda request: httpx.Response(200, content=body))
        with pytest.raises(DependencyError):
            provider.classify("text")
