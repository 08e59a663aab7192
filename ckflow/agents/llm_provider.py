"""Abstract LLM provider with OpenAI and Anthropic adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ckflow.config import get_settings


@dataclass(frozen=True)
class InlineAsset:
    """Base64 payload of an image or PDF sent alongside a prompt."""

    mime_type: str
    data: str
    name: str = "attachment"

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class LLMProvider(ABC):
    """Abstract interface for multimodal LLM calls."""

    @abstractmethod
    async def chat(self, prompt: str, system: str | None = None) -> str:
        """Text-only chat completion."""
        ...

    @abstractmethod
    async def analyze_assets(self, prompt: str, assets: list[InlineAsset], system: str | None = None) -> str:
        """Send a prompt plus images/PDFs to the LLM, return text response."""
        ...


class OpenAIProvider(LLMProvider):
    """OpenAI GPT-4o provider."""

    def __init__(self, api_key: str, model: str = "gpt-4o"):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    def _messages(self, content, system: str | None) -> list[dict]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": content})
        return messages

    async def chat(self, prompt: str, system: str | None = None) -> str:
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=self._messages(prompt, system),
            max_tokens=1024,
            temperature=0.2,
        )
        return resp.choices[0].message.content or ""

    async def analyze_assets(self, prompt: str, assets: list[InlineAsset], system: str | None = None) -> str:
        content = [{"type": "text", "text": prompt}]
        for asset in assets:
            if asset.is_pdf:
                content.append({"type": "file", "file": {"filename": asset.name, "file_data": asset.data_url}})
            else:
                content.append({"type": "image_url", "image_url": {"url": asset.data_url}})
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=self._messages(content, system),
            max_tokens=2048,
            temperature=0.2,
        )
        return resp.choices[0].message.content or ""


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        from anthropic import AsyncAnthropic
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model

    async def _create(self, content: list[dict], system: str | None, max_tokens: int) -> str:
        kwargs = {"system": system} if system else {}
        resp = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=0.2,
            messages=[{"role": "user", "content": content}],
            **kwargs,
        )
        return resp.content[0].text

    async def chat(self, prompt: str, system: str | None = None) -> str:
        return await self._create([{"type": "text", "text": prompt}], system, 1024)

    async def analyze_assets(self, prompt: str, assets: list[InlineAsset], system: str | None = None) -> str:
        content = []
        for asset in assets:
            source = {"type": "base64", "media_type": asset.mime_type, "data": asset.data}
            content.append({"type": "document" if asset.is_pdf else "image", "source": source})
        content.append({"type": "text", "text": prompt})
        return await self._create(content, system, 2048)


def get_llm_provider() -> LLMProvider:
    """Factory: returns OpenAI provider if key available, else Anthropic."""
    settings = get_settings()
    if settings.openai_api_key:
        return OpenAIProvider(settings.openai_api_key)
    if settings.anthropic_api_key:
        return AnthropicProvider(settings.anthropic_api_key)
    raise RuntimeError("No LLM API key configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY.")
