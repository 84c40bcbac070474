"""
Provider adapter base.

Every vendor adapter implements the same request/response contract. The
tool-calling loop lives here once: adapters only supply the vendor-shaped
pieces (conversation layout, request, frame decoding, tool turns).
"""
from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Annotated, Any, AsyncIterator, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from switchyard.errors import InvalidConfiguration, ToolLoopLimitExceeded
from switchyard.models.accumulator import ToolCall, ToolCallAccumulator
from switchyard.models.stream import (
    StreamDecoder,
    TextDelta,
    ThinkingDelta,
    ToolCallArgs,
    ToolCallEnd,
    ToolCallStart,
    UsageUpdate,
)
from switchyard.permissions.engine import PermissionContext
from switchyard.tools.base import ToolDefinition
from switchyard.tools.executor import ExecutionOptions, ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 1.0
DEFAULT_MAX_TOKENS = 10_000_000  # "use whatever the vendor allows"
DEFAULT_THINKING_BUDGET = 10_000
DEFAULT_MAX_ROUNDS = 50


# ── Messages ──────────────────────────────────────────────────────────────────

class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    mime_type: str
    data: str  # base64
    note: Optional[str] = None


ContentPart = Annotated[Union[TextContent, ImageContent], Field(discriminator="type")]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: Union[str, list[ContentPart]]

    def parts(self) -> list[Union[TextContent, ImageContent]]:
        if isinstance(self.content, str):
            return [TextContent(text=self.content)]
        return list(self.content)

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if isinstance(p, TextContent))


class CompletionConfig(BaseModel):
    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    thinking_enabled: bool = False
    thinking_budget: Optional[int] = None
    api_format: Optional[str] = None  # generic adapter only

    def effective_temperature(self) -> float:
        # 0 is a valid temperature; only a missing value falls back
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature

    def effective_max_tokens(self, default: int = DEFAULT_MAX_TOKENS) -> int:
        return default if self.max_tokens is None else self.max_tokens

    def effective_thinking_budget(self) -> int:
        return DEFAULT_THINKING_BUDGET if self.thinking_budget is None else self.thinking_budget


# ── Results and events ────────────────────────────────────────────────────────

class ToolResult(BaseModel):
    tool_call_id: str
    output: str
    is_error: bool = False


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: Union["Usage", UsageUpdate]) -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens


class StreamEvent(BaseModel):
    content: str = ""
    done: bool = False
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResult] = None
    thinking: Optional[str] = None
    usage: Optional[Usage] = None


class RequestOptions(BaseModel):
    permissions: PermissionContext = Field(default_factory=PermissionContext)
    max_rounds: Optional[PositiveInt] = None


class RoundResult(BaseModel):
    """What one request to the model produced."""
    text: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class Conversation(BaseModel):
    """The adapter's private, vendor-shaped copy of the dialogue."""
    system: Optional[str] = None
    messages: list[dict[str, Any]] = Field(default_factory=list)


class ProviderInfo(BaseModel):
    display_name: str
    supported_models: list[str] = Field(default_factory=list)


OnChunk = Callable[[StreamEvent], Union[None, Awaitable[None]]]


async def emit(on_chunk: OnChunk, event: StreamEvent) -> None:
    result = on_chunk(event)
    if inspect.isawaitable(result):
        await result


def system_text(messages: list[Message]) -> Optional[str]:
    texts = [m.text() for m in messages if m.role == "system"]
    joined = "\n".join(t for t in texts if t)
    return joined or None


# ── Adapter base ──────────────────────────────────────────────────────────────

class BaseProviderAdapter(ABC):
    """Unified interface for all vendor families."""

    name: str = ""
    display_name: str = ""
    supported_models: tuple[str, ...] = ()
    default_model: str = ""

    def __init__(self, tools: Optional[ToolExecutor] = None, max_rounds: int = DEFAULT_MAX_ROUNDS):
        self.tools = tools
        self.max_rounds = max_rounds

    def validate_config(self, config: CompletionConfig) -> bool:
        if not config.api_key or not config.api_key.strip():
            return False
        if self.supported_models and config.model not in self.supported_models:
            return False
        return True

    def describe(self) -> ProviderInfo:
        return ProviderInfo(display_name=self.display_name, supported_models=list(self.supported_models))

    def tool_definitions(self, config: CompletionConfig) -> list[ToolDefinition]:
        return self.tools.definitions() if self.tools is not None else []

    # ── Vendor hooks ─────────────────────────────────────────────────────────

    @abstractmethod
    def build_conversation(self, messages: list[Message], config: CompletionConfig) -> Conversation:
        ...

    @abstractmethod
    def open_stream(
        self,
        conversation: Conversation,
        tools: list[ToolDefinition],
        config: CompletionConfig,
    ) -> AsyncIterator[dict[str, Any]]:
        """Async generator of raw vendor frames for one streaming request."""

    @abstractmethod
    def new_decoder(self, config: CompletionConfig) -> StreamDecoder:
        ...

    @abstractmethod
    async def complete_round(
        self,
        conversation: Conversation,
        tools: list[ToolDefinition],
        config: CompletionConfig,
    ) -> RoundResult:
        ...

    @abstractmethod
    def append_tool_turns(
        self,
        conversation: Conversation,
        round_result: RoundResult,
        results: list[ToolResult],
        config: CompletionConfig,
    ) -> None:
        """Append the assistant turn with its tool calls and the matching tool-result turn."""

    # ── Loop ─────────────────────────────────────────────────────────────────

    async def send_message(
        self,
        messages: list[Message],
        config: CompletionConfig,
        on_chunk: Optional[OnChunk] = None,
        options: Optional[RequestOptions] = None,
    ) -> str:
        if not self.validate_config(config):
            raise InvalidConfiguration("Invalid configuration")

        options = options or RequestOptions()
        max_rounds = self.max_rounds if options.max_rounds is None else options.max_rounds
        conversation = self.build_conversation(messages, config)
        tools = self.tool_definitions(config)

        usage = Usage()
        full_text = ""
        rounds = 0

        while True:
            if rounds >= max_rounds:
                raise ToolLoopLimitExceeded(max_rounds)
            rounds += 1

            if on_chunk is not None:
                round_result = await self._stream_round(conversation, tools, config, on_chunk)
            else:
                round_result = await self.complete_round(conversation, tools, config)

            usage.add(round_result.usage)
            full_text += round_result.text

            if not round_result.tool_calls:
                break

            logger.debug("%s round %d requested %d tool call(s)", self.name, rounds, len(round_result.tool_calls))
            results = []
            for call in round_result.tool_calls:
                if on_chunk is not None:
                    await emit(on_chunk, StreamEvent(tool_call=call))
                output = await self._run_tool(call, options)
                result = ToolResult(tool_call_id=call.id, output=output, is_error=output.startswith("Error:"))
                results.append(result)
                if on_chunk is not None:
                    await emit(on_chunk, StreamEvent(tool_result=result))

            self.append_tool_turns(conversation, round_result, results, config)

        if on_chunk is not None:
            await emit(on_chunk, StreamEvent(done=True, usage=usage if usage.total > 0 else None))
        return full_text

    async def _run_tool(self, call: ToolCall, options: RequestOptions) -> str:
        if self.tools is None:
            return f"Error: Unknown tool: {call.name}"
        return await self.tools.execute(
            call.name,
            call.input,
            ExecutionOptions(tool_call_id=call.id, permissions=options.permissions),
        )

    async def _stream_round(
        self,
        conversation: Conversation,
        tools: list[ToolDefinition],
        config: CompletionConfig,
        on_chunk: OnChunk,
    ) -> RoundResult:
        decoder = self.new_decoder(config)
        accumulator = ToolCallAccumulator()
        result = RoundResult()

        async for frame in self.open_stream(conversation, tools, config):
            for event in decoder.decode(frame):
                if isinstance(event, TextDelta):
                    result.text += event.text
                    await emit(on_chunk, StreamEvent(content=event.text))
                elif isinstance(event, ThinkingDelta):
                    result.thinking += event.text
                    await emit(on_chunk, StreamEvent(thinking=event.text))
                elif isinstance(event, ToolCallStart):
                    accumulator.open(event.call_id, event.name)
                elif isinstance(event, ToolCallArgs):
                    accumulator.append(event.call_id, event.fragment)
                elif isinstance(event, ToolCallEnd):
                    accumulator.close(event.call_id)
                elif isinstance(event, UsageUpdate):
                    result.usage.add(event)

        result.tool_calls = accumulator.finish()
        return result
