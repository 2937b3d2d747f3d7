"""
Provider-agnostic LLM client for AI scoring.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-generation
interface that also reports token usage for cost accounting.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import LLMConfig

logger = logging.getLogger("triage.common.llm_client")


@dataclass
class LLMResponse:
    """Generated text plus token counts"""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        self._google_models = {}

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # module; models are built per system prompt
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, config: "LLMConfig") -> "LLMClient":
        models = {
            "anthropic": config.anthropic_model,
            "openai": config.openai_model,
            "google": config.google_model,
        }
        provider = (config.provider or "anthropic").lower()
        return cls(
            provider=provider,
            model=models.get(provider, ""),
            anthropic_api_key=config.anthropic_api_key,
            openai_api_key=config.openai_api_key,
            google_api_key=config.google_api_key,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> LLMResponse:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            return self._generate_anthropic(prompt, system, max_tokens, timeout)
        if self.provider == "openai":
            return self._generate_openai(prompt, system, max_tokens, timeout)
        if self.provider == "google":
            return self._generate_google(prompt, system, max_tokens, timeout)

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    def _generate_anthropic(self, prompt, system, max_tokens, timeout) -> LLMResponse:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout,
        }
        if system:
            kwargs["system"] = system
        response = self._client.messages.create(**kwargs)
        usage = getattr(response, "usage", None)
        return LLMResponse(
            text=response.content[0].text.strip(),
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

    def _generate_openai(self, prompt, system, max_tokens, timeout) -> LLMResponse:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
        )
        usage = getattr(response, "usage", None)
        return LLMResponse(
            text=(response.choices[0].message.content or "").strip(),
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    def _generate_google(self, prompt, system, max_tokens, timeout) -> LLMResponse:
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
        model = self._google_models[cache_key]
        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        usage = getattr(response, "usage_metadata", None)
        return LLMResponse(
            text=response.text.strip(),
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )
