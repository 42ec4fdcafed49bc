"""OpenAI chat completions and Responses API engines."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from unified_stream.adapters import OpenAIChatStreamAdapter, OpenAIResponsesStreamAdapter
from unified_stream.adapters.base import StreamAdapter
from unified_stream.capabilities import (
    is_image_generation_model,
    is_reasoning_model,
    is_vision_model,
    is_web_search_model,
)
from unified_stream.capabilities.effort import openai_chat_reasoning_params, openai_responses_reasoning_params
from unified_stream.providers.base import (
    ProviderEngine,
    RoundOutput,
    VendorMessage,
    arguments_json,
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

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.openai.com"


def _openrouter_web_search(payload: dict[str, Any]) -> None:
    payload["plugins"] = [*payload.get("plugins", []), {"id": "web"}]


def _dashscope_web_search(payload: dict[str, Any]) -> None:
    payload["enable_search"] = True


def _hunyuan_web_search(payload: dict[str, Any]) -> None:
    payload.update(enable_enhancement=True, citation=True, search_info=True)


def _zhipu_web_search(payload: dict[str, Any]) -> None:
    # the search tool sits next to any function tools already declared
    payload.setdefault("tools", []).append(
        {"type": "web_search", "web_search": {"enable": True, "search_result": True}}
    )


def _builtin_web_search(payload: dict[str, Any]) -> None:
    """Vendors that search on their own for search-capable models."""


def _default_web_search(payload: dict[str, Any]) -> None:
    payload["web_search_options"] = {}


# provider id -> how web search is switched on in a chat completions payload
WEB_SEARCH_STRATEGIES: dict[str, Callable[[dict[str, Any]], None]] = {
    "openrouter": _openrouter_web_search,
    "dashscope": _dashscope_web_search,
    "hunyuan": _hunyuan_web_search,
    "zhipu": _zhipu_web_search,
    "perplexity": _builtin_web_search,
    "grok": _builtin_web_search,
}


def image_url(block: ImageBlock) -> str | None:
    if block.url:
        return block.url
    if block.data:
        return f"data:{block.mime_type};base64,{block.data}"
    return None


class OpenAIChatEngine(ProviderEngine):
    """``/chat/completions``, spoken by OpenAI and most compatible gateways."""

    name = "openai"
    default_api_host = _DEFAULT_BASE_URL
    extracts_reasoning_tags = True

    def create_adapter(self) -> StreamAdapter:
        return OpenAIChatStreamAdapter()

    def endpoint(self, model: Model, stream: bool) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def convert_message(self, model: Model, message: Message) -> VendorMessage:
        images = message.images if is_vision_model(model, self.provider) else []
        files = message.files
        if message.role != "user" or (not images and not files):
            return {"role": message.role, "content": message.text}

        parts: list[dict[str, Any]] = []
        for block in message.blocks:
            if isinstance(block, TextBlock) and block.text:
                parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageBlock) and images:
                url = image_url(block)
                if url:
                    parts.append({"type": "image_url", "image_url": {"url": url}})
        for block in files:
            parts.append({"type": "text", "text": file_as_text(block)})
        return {"role": "user", "content": parts}

    def build_payload(
        self,
        model: Model,
        config: RequestConfig,
        conversation: Sequence[VendorMessage],
        *,
        system_prompt: str = "",
        tools: Sequence[ToolDef] = (),
    ) -> dict[str, Any]:
        messages = list(conversation)
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        payload: dict[str, Any] = {"model": model.id, "messages": messages, "stream": config.stream_output}
        if config.stream_output and self.settings.include_usage:
            payload["stream_options"] = {"include_usage": True}
        if config.temperature is not None:
            payload["temperature"] = config.temperature
        if config.top_p is not None:
            payload["top_p"] = config.top_p
        if config.max_tokens is not None:
            payload["max_tokens"] = config.max_tokens

        if tools:
            payload["tools"] = self._serialize_tools(tools)

        if is_reasoning_model(model, self.provider):
            payload.update(openai_chat_reasoning_params(model, self.provider, config.reasoning_effort))

        if config.enable_web_search and is_web_search_model(model, self.provider):
            WEB_SEARCH_STRATEGIES.get(self.provider.id, _default_web_search)(payload)
        if config.enable_generate_image and is_image_generation_model(model, self.provider):
            payload["modalities"] = ["image", "text"]

        payload.update(config.custom_parameters)
        return payload

    @staticmethod
    def _serialize_tools(tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.id,
                    "description": tool.description or "",
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
        ]

    def assistant_messages(self, output: RoundOutput, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        return [
            {
                "role": "assistant",
                "content": output.text or None,
                "tool_calls": [
                    {
                        "id": call.call_id or call.id,
                        "type": "function",
                        "function": {"name": call.tool.id, "arguments": arguments_json(call)},
                    }
                    for call in calls
                ],
            }
        ]

    def tool_result_messages(self, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        return [
            {
                "role": "tool",
                "tool_call_id": call.call_id or call.id,
                "content": call.response.content if call.response else "",
            }
            for call in calls
        ]


class OpenAIResponsesEngine(ProviderEngine):
    """``/responses``, OpenAI's typed event API."""

    name = "openai-response"
    default_api_host = _DEFAULT_BASE_URL

    def create_adapter(self) -> StreamAdapter:
        return OpenAIResponsesStreamAdapter()

    def endpoint(self, model: Model, stream: bool) -> str:
        return f"{self.base_url}/responses"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def convert_message(self, model: Model, message: Message) -> VendorMessage:
        if message.role != "user":
            return {"role": message.role, "content": message.text}
        parts: list[dict[str, Any]] = []
        for block in message.blocks:
            if isinstance(block, TextBlock) and block.text:
                parts.append({"type": "input_text", "text": block.text})
            elif isinstance(block, ImageBlock) and is_vision_model(model, self.provider):
                url = image_url(block)
                if url:
                    parts.append({"type": "input_image", "image_url": url})
        for block in message.files:
            parts.append({"type": "input_text", "text": file_as_text(block)})
        return {"role": "user", "content": parts}

    def build_payload(
        self,
        model: Model,
        config: RequestConfig,
        conversation: Sequence[VendorMessage],
        *,
        system_prompt: str = "",
        tools: Sequence[ToolDef] = (),
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model.id, "input": list(conversation), "stream": config.stream_output}
        if system_prompt:
            payload["instructions"] = system_prompt
        if config.temperature is not None:
            payload["temperature"] = config.temperature
        if config.top_p is not None:
            payload["top_p"] = config.top_p
        if config.max_tokens is not None:
            payload["max_output_tokens"] = config.max_tokens

        declared: list[dict[str, Any]] = [
            {
                "type": "function",
                "name": tool.id,
                "description": tool.description or "",
                "parameters": tool.input_schema,
            }
            for tool in tools
        ]
        if config.enable_web_search and is_web_search_model(model, self.provider):
            declared.append({"type": "web_search_preview"})
        if config.enable_generate_image and is_image_generation_model(model, self.provider):
            declared.append({"type": "image_generation"})
        if declared:
            payload["tools"] = declared

        payload.update(openai_responses_reasoning_params(model, self.provider, config.reasoning_effort))
        payload.update(config.custom_parameters)
        return payload

    def assistant_messages(self, output: RoundOutput, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        call_ids = {call.call_id for call in calls}
        if output.raw_output:
            # echo output items; unanswered function calls would be rejected
            return [
                item
                for item in output.raw_output
                if item.get("type") != "function_call" or item.get("call_id") in call_ids
            ]
        items: list[VendorMessage] = []
        if output.text:
            items.append({"role": "assistant", "content": output.text})
        items.extend(
            {
                "type": "function_call",
                "call_id": call.call_id or call.id,
                "name": call.tool.id,
                "arguments": arguments_json(call),
            }
            for call in calls
        )
        return items

    def tool_result_messages(self, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        return [
            {
                "type": "function_call_output",
                "call_id": call.call_id or call.id,
                "output": call.response.content if call.response else "",
            }
            for call in calls
        ]
