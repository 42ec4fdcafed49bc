"""Anthropic Messages API engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from unified_stream.adapters import AnthropicStreamAdapter
from unified_stream.adapters.base import StreamAdapter
from unified_stream.capabilities import is_vision_model, is_web_search_model
from unified_stream.capabilities.effort import anthropic_thinking_params
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

_API_VERSION = "2023-06-01"
_WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


class AnthropicEngine(ProviderEngine):
    """``/v1/messages`` with server-sent events."""

    name = "anthropic"
    default_api_host = "https://api.anthropic.com"

    def create_adapter(self) -> StreamAdapter:
        return AnthropicStreamAdapter()

    def endpoint(self, model: Model, stream: bool) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": _API_VERSION,
            "Content-Type": "application/json",
        }

    def convert_message(self, model: Model, message: Message) -> VendorMessage:
        role = "assistant" if message.role == "assistant" else "user"
        if role == "assistant":
            return {"role": role, "content": message.text}

        content: list[dict[str, Any]] = []
        for block in message.blocks:
            if isinstance(block, TextBlock) and block.text:
                content.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageBlock) and is_vision_model(model, self.provider):
                source = self._image_source(block)
                if source:
                    content.append({"type": "image", "source": source})
        for block in message.files:
            content.append({"type": "text", "text": file_as_text(block)})
        return {"role": role, "content": content}

    @staticmethod
    def _image_source(block: ImageBlock) -> dict[str, Any] | None:
        if block.data:
            return {"type": "base64", "media_type": block.mime_type, "data": block.data}
        if block.url:
            return {"type": "url", "url": block.url}
        return None

    def build_payload(
        self,
        model: Model,
        config: RequestConfig,
        conversation: Sequence[VendorMessage],
        *,
        system_prompt: str = "",
        tools: Sequence[ToolDef] = (),
    ) -> dict[str, Any]:
        max_tokens = self.max_tokens(config)
        payload: dict[str, Any] = {
            "model": model.id,
            "messages": list(conversation),
            "max_tokens": max_tokens,
            "stream": config.stream_output,
        }
        if system_prompt:
            payload["system"] = system_prompt

        thinking = anthropic_thinking_params(model, config.reasoning_effort, max_tokens)
        payload.update(thinking)
        # sampling parameters are rejected while extended thinking is on
        if thinking.get("thinking", {}).get("type") != "enabled":
            if config.temperature is not None:
                payload["temperature"] = config.temperature
            if config.top_p is not None:
                payload["top_p"] = config.top_p

        declared: list[dict[str, Any]] = [
            {"name": tool.id, "description": tool.description or "", "input_schema": tool.input_schema}
            for tool in tools
        ]
        if config.enable_web_search and is_web_search_model(model, self.provider):
            declared.append(dict(_WEB_SEARCH_TOOL))
        if declared:
            payload["tools"] = declared

        payload.update(config.custom_parameters)
        return payload

    def assistant_messages(self, output: RoundOutput, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        call_ids = {call.call_id for call in calls}
        if output.raw_output:
            content = [
                block
                for block in output.raw_output
                if block.get("type") != "tool_use" or block.get("id") in call_ids
            ]
        else:
            content = []
            if output.text:
                content.append({"type": "text", "text": output.text})
            content.extend(
                {"type": "tool_use", "id": call.call_id or call.id, "name": call.tool.id, "input": arguments_object(call)}
                for call in calls
            )
        return [{"role": "assistant", "content": content}]

    def tool_result_messages(self, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        results = []
        for call in calls:
            result: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": call.call_id or call.id,
                "content": call.response.content if call.response else "",
            }
            if call.response is not None and call.response.is_error:
                result["is_error"] = True
            results.append(result)
        # every result of one round goes back in a single user turn
        return [{"role": "user", "content": results}]
