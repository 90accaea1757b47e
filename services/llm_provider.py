"""LLM provider abstraction for OpenAI, OpenAI-compatible local servers and AWS Bedrock."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Sequence

from config import Settings
from models.schemas import ChatMessage
from services.exceptions import GenerationError, ProviderConfigurationError

logger = logging.getLogger(__name__)

# Model families that reject `temperature` and take `max_completion_tokens`
_REASONING_MODEL_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def coerce_messages(messages: Iterable[ChatMessage | Mapping[str, Any]]) -> list[ChatMessage]:
    """Accept ChatMessage objects or plain role/content dicts."""
    normalized: list[ChatMessage] = []
    for item in messages:
        if isinstance(item, ChatMessage):
            normalized.append(item)
        else:
            normalized.append(ChatMessage(role=item["role"], content=str(item.get("content") or "")))
    return normalized


def split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Pull system messages out of the list and join their content."""
    system_parts = [m.content.strip() for m in messages if m.role == "system" and m.content.strip()]
    turns = [m for m in messages if m.role != "system"]
    return "\n\n".join(system_parts), turns


class LLMProvider(ABC):
    """Abstract base class for chat-completion backends."""

    model_name: str = ""

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[ChatMessage | Mapping[str, Any]],
        max_output_tokens: int = 1000,
        temperature: float | None = None,
    ) -> str:
        """Return the model's text reply for an ordered conversation.

        Raises GenerationError on transport, auth or decoding failure.
        """
        ...


# --- OpenAI-compatible (hosted and self-hosted) ---


def uses_completion_tokens(model: str) -> bool:
    return model.lower().startswith(_REASONING_MODEL_PREFIXES)


def build_chat_completion_params(
    model: str,
    messages: Sequence[ChatMessage],
    max_output_tokens: int,
    temperature: float | None,
) -> dict[str, Any]:
    """Request kwargs for chat.completions.create, shaped for the model family."""
    params: dict[str, Any] = {
        "model": model,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
    }
    if uses_completion_tokens(model):
        params["max_completion_tokens"] = max_output_tokens
    else:
        params["max_tokens"] = max_output_tokens
        if temperature is not None:
            params["temperature"] = temperature
    return params


class OpenAICompatibleProvider(LLMProvider):
    """Chat completions via the openai SDK (api.openai.com or a local endpoint)."""

    def __init__(self, client: Any, model: str, label: str = "openai"):
        self.client = client
        self.model_name = model
        self.label = label

    async def generate(
        self,
        messages: Sequence[ChatMessage | Mapping[str, Any]],
        max_output_tokens: int = 1000,
        temperature: float | None = None,
    ) -> str:
        params = build_chat_completion_params(
            self.model_name, coerce_messages(messages), max_output_tokens, temperature
        )
        try:
            completion = await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"{self.label} generation error ({self.model_name}): {e}")
            raise GenerationError(f"{self.label} generation failed") from e
        if not completion.choices:
            return ""
        return (completion.choices[0].message.content or "").strip()


# --- AWS Bedrock model families ---


class BedrockModelFamily(ABC):
    """Request/response shape of one Bedrock model family."""

    prefix: str = ""

    @abstractmethod
    def build_request(
        self, messages: Sequence[ChatMessage], max_output_tokens: int, temperature: float | None
    ) -> dict[str, Any]: ...

    @abstractmethod
    def extract_text(self, body: dict[str, Any]) -> str: ...


class ClaudeFamily(BedrockModelFamily):
    """Anthropic Messages API: separate system field, content blocks per turn."""

    prefix = "anthropic.claude"
    anthropic_version = "bedrock-2023-05-31"
    opener = "Hello."

    def build_request(self, messages, max_output_tokens, temperature):
        system, turns = split_system(messages)
        converted: list[dict[str, Any]] = []
        for message in turns:
            block = {"type": "text", "text": message.content}
            if converted and converted[-1]["role"] == message.role:
                converted[-1]["content"].append(block)
            else:
                converted.append({"role": message.role, "content": [block]})
        # Conversations must open with a user turn
        if not converted or converted[0]["role"] != "user":
            converted.insert(0, {"role": "user", "content": [{"type": "text", "text": self.opener}]})

        body: dict[str, Any] = {
            "anthropic_version": self.anthropic_version,
            "max_tokens": max_output_tokens,
            "messages": converted,
        }
        if system:
            body["system"] = system
        if temperature is not None:
            body["temperature"] = temperature
        return body

    def extract_text(self, body):
        content = body.get("content")
        if isinstance(content, list):
            return "".join(
                item.get("text", "")
                for item in content
                if isinstance(item, dict) and item.get("type") == "text"
            )
        return ""


class TitanFamily(BedrockModelFamily):
    """Amazon Titan Text: one concatenated inputText, reply in results[].outputText."""

    prefix = "amazon.titan-text"

    def build_request(self, messages, max_output_tokens, temperature):
        system, turns = split_system(messages)
        lines = [system] if system else []
        for message in turns:
            speaker = "User" if message.role == "user" else "Bot"
            lines.append(f"{speaker}: {message.content}")
        lines.append("Bot:")

        config: dict[str, Any] = {"maxTokenCount": max_output_tokens}
        if temperature is not None:
            config["temperature"] = temperature
        return {"inputText": "\n\n".join(lines), "textGenerationConfig": config}

    def extract_text(self, body):
        results = body.get("results")
        if isinstance(results, list) and results and isinstance(results[0], dict):
            return results[0].get("outputText", "") or ""
        return ""


class LlamaFamily(BedrockModelFamily):
    """Meta Llama: a single chat-templated prompt, reply in `generation`."""

    prefix = "meta.llama"

    def build_request(self, messages, max_output_tokens, temperature):
        system, turns = split_system(messages)
        parts = ["<|begin_of_text|>"]
        if system:
            parts.append(f"<|start_header_id|>system<|end_header_id|>\n\n{system}<|eot_id|>")
        for message in turns:
            parts.append(
                f"<|start_header_id|>{message.role}<|end_header_id|>\n\n{message.content}<|eot_id|>"
            )
        parts.append("<|start_header_id|>assistant<|end_header_id|>\n\n")

        body: dict[str, Any] = {"prompt": "".join(parts), "max_gen_len": max_output_tokens}
        if temperature is not None:
            body["temperature"] = temperature
        return body

    def extract_text(self, body):
        return body.get("generation", "") or ""


BEDROCK_FAMILIES: tuple[BedrockModelFamily, ...] = (ClaudeFamily(), TitanFamily(), LlamaFamily())


def resolve_bedrock_family(model_id: str) -> BedrockModelFamily:
    """Pick the family for a model id, accepting inference-profile ids like `eu.anthropic...`."""
    candidate = model_id.strip()
    # Inference-profile ids carry one leading region segment (us., jp., us-gov., global., ...)
    candidates = [candidate]
    if "." in candidate:
        candidates.append(candidate.split(".", 1)[1])
    for name in candidates:
        for family in BEDROCK_FAMILIES:
            if name.startswith(family.prefix):
                return family
    raise ProviderConfigurationError(f"Unsupported Bedrock model id: {model_id}")


class BedrockProvider(LLMProvider):
    """Generation via the Bedrock runtime InvokeModel API."""

    def __init__(self, client: Any, model_id: str):
        self.client = client
        self.model_name = model_id
        self.family = resolve_bedrock_family(model_id)

    def _invoke(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = self.client.invoke_model(
            modelId=self.model_name,
            contentType="application/json",
            accept="application/json",
            body=json.dumps(payload),
        )
        return json.loads(response["body"].read())

    async def generate(
        self,
        messages: Sequence[ChatMessage | Mapping[str, Any]],
        max_output_tokens: int = 1000,
        temperature: float | None = None,
    ) -> str:
        payload = self.family.build_request(coerce_messages(messages), max_output_tokens, temperature)
        try:
            body = await asyncio.to_thread(self._invoke, payload)
        except Exception as e:
            logger.error(f"Bedrock generation error ({self.model_name}): {e}")
            raise GenerationError("Bedrock generation failed") from e
        return self.family.extract_text(body).strip()


def create_bedrock_client(settings: Settings) -> Any:
    """Bedrock runtime client using either a bearer token or static credentials."""
    if not settings.aws_region:
        raise ProviderConfigurationError("AWS_REGION is required for Bedrock")

    import boto3
    from botocore import UNSIGNED
    from botocore.config import Config

    timeout = Config(read_timeout=settings.llm_timeout_secs)

    if settings.aws_bearer_token_bedrock:
        token = settings.aws_bearer_token_bedrock
        client = boto3.client(
            "bedrock-runtime",
            region_name=settings.aws_region,
            config=timeout.merge(Config(signature_version=UNSIGNED)),
        )

        def _add_bearer_token(request, **kwargs) -> None:
            request.headers["Authorization"] = f"Bearer {token}"

        client.meta.events.register("before-send.bedrock-runtime.InvokeModel", _add_bearer_token)
        return client

    if settings.aws_access_key_id and settings.aws_secret_access_key:
        return boto3.client(
            "bedrock-runtime",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=timeout,
        )

    raise ProviderConfigurationError(
        "Either AWS_BEARER_TOKEN_BEDROCK or (AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY) "
        "are required for Bedrock"
    )


def create_llm_provider(settings: Settings) -> LLMProvider:
    """Factory function to create the provider selected by settings."""
    if settings.llm_provider == "bedrock":
        model_id = settings.model_name
        # Validate the model family before building a client
        resolve_bedrock_family(model_id)
        return BedrockProvider(create_bedrock_client(settings), model_id)

    import openai

    if settings.llm_provider == "local":
        if not settings.local_llm_base_url:
            raise ProviderConfigurationError("LOCAL_LLM_BASE_URL environment variable is not set")
        client = openai.AsyncOpenAI(
            base_url=settings.local_llm_base_url,
            api_key=settings.local_llm_api_key or "dummy",
            timeout=settings.llm_timeout_secs,
        )
        return OpenAICompatibleProvider(client, settings.model_name, label="local")

    if not settings.openai_api_key:
        raise ProviderConfigurationError("OPENAI_API_KEY environment variable is not set")
    client = openai.AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout_secs)
    return OpenAICompatibleProvider(client, settings.model_name, label="openai")
