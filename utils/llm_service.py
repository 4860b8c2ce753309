import json
import logging
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from config.settings import settings
from utils.exceptions import GenerationBackendError
from utils.langfuse_config import get_langfuse_handler

logger = logging.getLogger(__name__)

OPENAI_COMPATIBLE = ("openai", "openrouter", "ollama")


def _extract_text(content: Any) -> str:
    """LangChain models return text either as a string or as a list of content parts."""
    if isinstance(content, str):
        return content
    if content and isinstance(content[0], dict):
        return content[0].get("text", "")
    return ""


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class LLMService:
    """
    Provider-agnostic LLM wrapper that supports:
    - OpenAI
    - OpenRouter (OpenAI-compatible)
    - Gemini
    - Ollama (local, OpenAI-compatible)

    Implements the `StructuredGenerator` capability used by the intake
    generation pipeline, so the provider can be swapped without touching
    orchestration code.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.7,
        model: Any = None,
    ):
        self.provider = (provider or settings.LLM_PROVIDER).lower()
        self.model_name = model_name or settings.LLM_MODEL
        self.temperature = temperature

        self.model = model if model is not None else self._load_provider_model()

    @classmethod
    def for_intake(cls) -> "LLMService":
        """Create LLM service with the model configured for intake artifacts"""
        return cls(
            model_name=settings.INTAKE_GENERATION_MODEL,
            temperature=settings.GENERATION_TEMPERATURE,
        )

    # ---------------------------------------------------------------------
    # Provider Loader
    # ---------------------------------------------------------------------
    def _load_provider_model(self):
        provider = self.provider
        # Client-side retries are disabled: the caller owns the attempt budget.
        timeout = settings.GENERATION_TIMEOUT_SECONDS

        # ★ OPENAI (native)
        if provider == "openai":
            return ChatOpenAI(
                model=self.model_name,
                temperature=self.temperature,
                timeout=timeout,
                max_retries=0,
            )

        # ★ OPENROUTER (OpenAI-compatible API)
        if provider == "openrouter":
            return ChatOpenAI(
                api_key=settings.OPENROUTER_API_KEY,
                base_url="https://openrouter.ai/api/v1",
                model=self.model_name,
                temperature=self.temperature,
                timeout=timeout,
                max_retries=0,
            )

        # ★ OLLAMA (OpenAI-compatible)
        if provider == "ollama":
            return ChatOpenAI(
                api_key="ollama",  # not used
                base_url="http://localhost:11434/v1",
                model=self.model_name,
                temperature=self.temperature,
                timeout=timeout,
                max_retries=0,
            )

        # ★ GOOGLE GEMINI
        if provider == "gemini":
            return ChatGoogleGenerativeAI(
                model=self.model_name,
                google_api_key=settings.GEMINI_API_KEY,
                temperature=self.temperature,
                timeout=timeout,
                max_retries=0,
            )

        raise ValueError(f"Unsupported LLM provider: {provider}")

    # ---------------------------------------------------------------------
    # Schema-constrained generator
    # ---------------------------------------------------------------------
    def structured_generate(
        self,
        prompt: str,
        json_schema: Dict[str, Any],
        system_prompt: str,
        model_id: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Issue one schema-constrained generation call.

        Args:
            prompt: Human prompt with the intake context
            json_schema: JSON schema the output must follow
            system_prompt: System prompt with the task instructions
            model_id: Optional model override (OpenAI-compatible providers)
            max_tokens: Optional completion token ceiling
            temperature: Optional sampling temperature override

        Returns:
            Parsed JSON object. Schema validation is the caller's job.

        Raises:
            GenerationBackendError: Empty or non-JSON output
            Exception: Provider/transport errors and timeouts propagate unchanged
        """
        messages = [
            SystemMessage(content=self._inject_json_rules(system_prompt, json_schema)),
            HumanMessage(content=prompt),
        ]

        invoke_kwargs: Dict[str, Any] = {}
        if self.provider in OPENAI_COMPATIBLE:
            # Only request JSON mode when we actually need JSON
            invoke_kwargs["response_format"] = {"type": "json_object"}
            if model_id:
                invoke_kwargs["model"] = model_id
            if max_tokens:
                invoke_kwargs["max_tokens"] = max_tokens
            if temperature is not None:
                invoke_kwargs["temperature"] = temperature
        elif model_id and model_id != self.model_name:
            logger.debug("Model override %s ignored for provider %s", model_id, self.provider)

        handler = get_langfuse_handler()
        config = {"callbacks": [handler]} if handler else None

        response = self.model.invoke(messages, config=config, **invoke_kwargs)
        content = _strip_code_fences(_extract_text(response.content))

        if not content:
            raise GenerationBackendError("Model returned an empty response")

        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationBackendError(
                "Model returned malformed JSON",
                details={"error": str(e), "excerpt": content[:200]},
            ) from e

        if not isinstance(payload, dict):
            raise GenerationBackendError(
                "Model returned JSON that is not an object",
                details={"type": type(payload).__name__},
            )
        return payload

    # ---------------------------------------------------------------------
    # JSON Enforcement Layer
    # ---------------------------------------------------------------------
    def _inject_json_rules(self, system_prompt: str, schema: Dict[str, Any]) -> str:
        """
        Ensures all providers return the correct JSON, especially Ollama and OpenRouter.
        """

        return f"""
{system_prompt}

You MUST return ONLY valid JSON matching this schema:

{json.dumps(schema, indent=2)}

Rules:
- Output **only** a JSON object.
- No commentary, no markdown, no code fences.
- Do not explain the JSON, only output it.
- Keys and structure must match the schema exactly.
"""
