"""Gemini ``generateContent`` engines for AI Studio and Vertex AI."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from unified_stream.adapters import GeminiStreamAdapter
from unified_stream.adapters.base import StreamAdapter
from unified_stream.capabilities import (
    is_image_generation_model,
    is_vision_model,
    is_web_search_model,
)
from unified_stream.capabilities.effort import gemini_thinking_config
from unified_stream.providers.base import (
    ProviderEngine,
    RoundOutput,
    VendorMessage,
    arguments_object,
    file_as_text,
)
from unified_stream.types import (
    ImageBlock,
    Message,
    Model,
    RequestConfig,
    TextBlock,
    ToolCallResponse,
    ToolDef,
)


class GeminiEngine(ProviderEngine):
    """Google AI Studio, keyed with ``x-goog-api-key``."""

    name = "gemini"
    default_api_host = "https://generativelanguage.googleapis.com"
    api_version = "v1beta"

    def create_adapter(self) -> StreamAdapter:
        return GeminiStreamAdapter()

    def endpoint(self, model: Model, stream: bool) -> str:
        if stream:
            return f"{self.base_url}/models/{model.id}:streamGenerateContent?alt=sse"
        return f"{self.base_url}/models/{model.id}:generateContent"

    def headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def convert_message(self, model: Model, message: Message) -> VendorMessage:
        role = "model" if message.role == "assistant" else "user"
        parts: list[dict[str, Any]] = []
        for block in message.blocks:
            if isinstance(block, TextBlock) and block.text:
                parts.append({"text": block.text})
            elif isinstance(block, ImageBlock) and role == "user" and is_vision_model(model, self.provider):
                if block.data:
                    parts.append({"inlineData": {"mimeType": block.mime_type, "data": block.data}})
                elif block.url:
                    parts.append({"fileData": {"mimeType": block.mime_type, "fileUri": block.url}})
        for block in message.files:
            parts.append({"text": file_as_text(block)})
        return {"role": role, "parts": parts}

    def text_message(self, role: str, text: str) -> VendorMessage:
        return {"role": "model" if role == "assistant" else "user", "parts": [{"text": text}]}

    def build_payload(
        self,
        model: Model,
        config: RequestConfig,
        conversation: Sequence[VendorMessage],
        *,
        system_prompt: str = "",
        tools: Sequence[ToolDef] = (),
    ) -> dict[str, Any]:
        generation: dict[str, Any] = {}
        if config.temperature is not None:
            generation["temperature"] = config.temperature
        if config.top_p is not None:
            generation["topP"] = config.top_p
        if config.max_tokens is not None:
            generation["maxOutputTokens"] = config.max_tokens
        generation.update(gemini_thinking_config(model, config.reasoning_effort))
        if config.enable_generate_image and is_image_generation_model(model, self.provider):
            generation["responseModalities"] = ["TEXT", "IMAGE"]

        payload: dict[str, Any] = {"contents": list(conversation)}
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if generation:
            payload["generationConfig"] = generation

        declared: list[dict[str, Any]] = []
        if tools:
            declared.append(
                {
                    "functionDeclarations": [
                        {"name": tool.id, "description": tool.description or "", "parameters": tool.input_schema}
                        for tool in tools
                    ]
                }
            )
        if config.enable_web_search and is_web_search_model(model, self.provider):
            declared.append({"googleSearch": {}})
        if declared:
            payload["tools"] = declared

        payload.update(config.custom_parameters)
        return payload

    def assistant_messages(self, output: RoundOutput, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        # the model may have called a tool by id or by name
        names = {call.tool.id for call in calls} | {call.tool.name for call in calls}
        if output.raw_output:
            parts = [
                part
                for part in output.raw_output
                if "functionCall" not in part or part["functionCall"].get("name") in names
            ]
        else:
            parts = [{"text": output.text}] if output.text else []
            parts.extend({"functionCall": {"name": call.tool.id, "args": arguments_object(call)}} for call in calls)
        return [{"role": "model", "parts": parts}]

    def tool_result_messages(self, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        parts = []
        for call in calls:
            content = call.response.content if call.response else ""
            key = "error" if call.response is not None and call.response.is_error else "output"
            parts.append({"functionResponse": {"name": call.tool.id, "response": {key: content}}})
        return [{"role": "user", "parts": parts}]


class VertexAIEngine(GeminiEngine):
    """Vertex AI publisher models, authorized with an OAuth bearer token.

    ``api_host`` must point at the publisher base, e.g.
    ``https://us-central1-aiplatform.googleapis.com/v1/projects/<project>/locations/us-central1/publishers/google``.
    """

    name = "vertexai"
    api_version = "v1"

    @property
    def base_url(self) -> str:
        return self.provider.api_host.rstrip("/")

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
