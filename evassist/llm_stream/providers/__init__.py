"""Language model providers."""

from evassist.llm_stream.providers.base_provider import BaseProvider, ProviderConfig
from evassist.llm_stream.providers.fake_provider import NOT_CONFIGURED_NOTICE, FakeProvider
from evassist.llm_stream.providers.openai_provider import OpenAIProvider

__all__ = ["BaseProvider", "FakeProvider", "NOT_CONFIGURED_NOTICE", "OpenAIProvider", "ProviderConfig"]
