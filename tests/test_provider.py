from __future__ import annotations

import asyncio

import pytest

from nordlys import create_nordlys
from nordlys.config import API_KEY_ENV
from nordlys.core.adapters.http import HttpTransport
from nordlys.core.adapters.responses import ResponsesAdapter
from nordlys.core.errors import LoadAPIKeyError, NoSuchModelError
from nordlys.core.message import Message
from nordlys.provider import PROVIDER_NAME
from tests.fixtures.responses_fake import FakeTransport, response_body


def test_provider_is_callable_and_applies_settings() -> None:
    transport = FakeTransport(response=response_body())
    provider = create_nordlys(transport=transport)

    model = provider("nordlys/test", temperature=0.3)
    asyncio.run(model.generate([Message.user("hi")]))

    assert isinstance(model, ResponsesAdapter)
    assert model.model_id == "nordlys/test"
    assert provider.name == PROVIDER_NAME
    assert transport.calls[0].body["temperature"] == 0.3
    assert provider.chat("other").model_id == "other"


def test_missing_api_key_surfaces_when_a_model_is_requested() -> None:
    provider = create_nordlys()

    with pytest.raises(LoadAPIKeyError):
        provider.language_model("nordlys/test")


def test_environment_key_builds_http_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(API_KEY_ENV, "sk-env")
    provider = create_nordlys(base_url="https://example.test/v1")

    provider.language_model("nordlys/test")

    assert isinstance(provider._transport, HttpTransport)
    assert provider._transport.config.base_url == "https://example.test/v1"
    asyncio.run(provider.aclose())


@pytest.mark.parametrize(("factory", "model_type"), [("embedding_model", "embeddingModel"), ("image_model", "imageModel")])
def test_unsupported_model_types_raise(factory: str, model_type: str) -> None:
    provider = create_nordlys(transport=FakeTransport())

    with pytest.raises(NoSuchModelError) as excinfo:
        getattr(provider, factory)("anything")

    assert excinfo.value.model_type == model_type
    assert excinfo.value.model_id == "anything"


def test_aclose_closes_the_transport() -> None:
    transport = FakeTransport()
    provider = create_nordlys(transport=transport)

    asyncio.run(provider.aclose())

    assert transport.closed
