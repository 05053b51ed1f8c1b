"""
Provider-agnostic LLM client for answer generation.

Supports Anthropic, OpenAI, Google Gemini and Hugging Face hosted models
(through their OpenAI-compatible router) with a shared text-generation
interface. The provider call is bound once at construction.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Optional

from .errors import GeneratorUnavailable, from_provider_exception

logger = logging.getLogger("docqa.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google", "huggingface")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        huggingface_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None
        self._call: Optional[Callable[[str, Optional[str], int, float], str]] = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
                self._call = self._generate_anthropic
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider in ("openai", "huggingface"):
            api_key = openai_api_key if self.provider == "openai" else huggingface_api_key
            if not api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=api_key, base_url=base_url or None)
                self._call = self._generate_openai
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize %s client: %s", self.provider, e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by system prompt hash
                self._call = self._generate_google
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @property
    def is_available(self) -> bool:
        return self._client is not None and self._call is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Generate a completion.

        Raises:
            GeneratorUnavailable: No client for the configured provider
            RateLimited: Provider rate limited the request
            UpstreamFailure: Any other provider error, message kept verbatim
        """
        if not self.is_available:
            raise GeneratorUnavailable(f"LLM client is not available (provider: {self.provider})")

        try:
            return self._call(
                prompt,
                system,
                max_tokens or self.max_tokens,
                timeout or self.timeout,
            )
        except Exception as e:
            raise from_provider_exception(e, self.provider) from e

    def _generate_anthropic(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        kwargs = {}
        if system:
            kwargs["system"] = system
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **kwargs,
        )
        return response.content[0].text.strip()

    def _generate_openai(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=self.temperature,
            messages=messages,
            timeout=timeout,
        )
        return (response.choices[0].message.content or "").strip()

    def _generate_google(self, prompt: str, system: Optional[str], max_tokens: int, timeout: float) -> str:
        cache_key = hashlib.md5((system or "").encode()).hexdigest()
        if cache_key not in self._google_models:
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
        model = self._google_models[cache_key]
        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens, "temperature": self.temperature},
            request_options={"timeout": timeout},
        )
        return response.text.strip()


def create_llm_client(llm_config) -> LLMClient:
    """Build the client for the configured provider from an LLMConfig."""
    provider = (llm_config.provider or "openai").lower()
    model = {
        "anthropic": llm_config.anthropic_model,
        "openai": llm_config.openai_model,
        "google": llm_config.google_model,
        "huggingface": llm_config.huggingface_model,
    }.get(provider, "")
    base_url = {
        "openai": llm_config.openai_base_url,
        "huggingface": llm_config.huggingface_base_url,
    }.get(provider)

    return LLMClient(
        provider=provider,
        model=model,
        anthropic_api_key=llm_config.anthropic_api_key,
        openai_api_key=llm_config.openai_api_key,
        google_api_key=llm_config.google_api_key,
        huggingface_api_key=llm_config.huggingface_api_key,
        base_url=base_url,
        temperature=llm_config.temperature,
        max_tokens=llm_config.max_tokens,
        timeout=llm_config.timeout,
    )
