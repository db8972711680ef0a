"""
The agent loop.

AgentLoop drives one run: request the model, execute any tool calls it
asks for, send the results back, and repeat until the model answers
without calling tools or the loop limit is reached.

    IDLE -> REQUESTING -> DONE
                       -> EXECUTING -> REQUESTING -> ...

The loop works against a ProviderAdapter, so the same control flow
serves every vendor. Usage is summed over all requests of the run.
"""

from __future__ import annotations

import asyncio as _asyncio
import dataclasses as _dataclasses
import enum as _enum
import inspect as _inspect
import json as _json
import logging as _logging
import typing as _typing

import agentloop.api.base as api_base
import agentloop.api.transport as transport
import agentloop.api.types as api_types
import agentloop.constants as _constants
import agentloop.core.tool_executor as tool_executor
import agentloop.errors as errors
import agentloop.logging as agentloop_logging
import agentloop.session as session
import agentloop.streaming as streaming
import agentloop.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)

ProgressCallback = _typing.Callable[
    [api_types.StreamEvent], _typing.Union[_typing.Awaitable[None], None]
]
"""Receives ``text_delta`` and ``stop`` events of streamed responses."""


class LoopState(_enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    EXECUTING = "executing"
    DONE = "done"


@_dataclasses.dataclass
class AgentResult:
    """Outcome of one agent run."""

    output: str | None
    """Final answer text. None only when the loop limit was reached on a
    response that carried no text."""

    usage: api_types.Usage
    """Token usage summed over every request of the run."""

    iterations: int
    """Number of model requests made."""

    last_turn: api_types.ModelTurn
    provider: str
    model: str

    loop_limit_reached: bool = False
    """The run stopped at max_loops with tool calls still pending."""

    parsed: _typing.Any = None
    """Output parsed as JSON, when structured output was requested."""

    tool_results: list[api_types.ToolResult] = _dataclasses.field(default_factory=list)
    """Every tool result of the run, in execution order."""

    tool_metrics: dict[str, dict[str, _typing.Any]] = _dataclasses.field(default_factory=dict)
    """Per-tool call counts, durations and success rates."""

    tool_summary: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    """Totals over every tool call of the run."""

    thread: session.ConversationStore | None = None
    """The conversation store the run appended to."""


class AgentLoop:
    """
    Runs the request/execute cycle for one adapter, transport and registry.

    One AgentLoop serves one run at a time; the registry and the
    conversation store it is given must not be shared with concurrent runs.
    """

    def __init__(
        self,
        adapter: api_base.ProviderAdapter,
        http: transport.HttpTransport,
        registry: tools_registry.ToolRegistry,
        *,
        max_loops: int = _constants.DEFAULT_MAX_LOOPS,
        stream: bool = True,
        progress: ProgressCallback | None = None,
        logger: agentloop_logging.ConversationLogger | None = None,
        max_extra_events: int = _constants.MAX_EXTRA_EVENTS_AFTER_TOOL_CALL,
        text_max_chars: int = _constants.DEFAULT_TOOL_TEXT_MAX_CHARS,
        binary_max_chars: int = _constants.DEFAULT_TOOL_BINARY_MAX_CHARS,
    ) -> None:
        """
        Initialize the loop.

        Args:
            adapter: Vendor adapter.
            http: Transport that sends requests.
            registry: Tools available to the run.
            max_loops: Maximum number of model requests.
            stream: Ask the vendor for a streaming response.
            progress: Callback for streamed text deltas and stream ends.
            logger: Optional JSONL run logger.
            max_extra_events: Events read after an incomplete streamed call.
            text_max_chars: Truncation limit for remote tool result text.
            binary_max_chars: Omission threshold for remote binary payloads.
        """
        if max_loops < 1:
            raise ValueError(f"max_loops must be at least 1, got {max_loops}")
        self._adapter = adapter
        self._transport = http
        self._registry = registry
        self._max_loops = max_loops
        self._stream = stream
        self._progress = progress
        self._logger = logger
        self._max_extra_events = max_extra_events
        self._executor = tool_executor.ToolExecutor(
            registry,
            logger=logger,
            text_max_chars=text_max_chars,
            binary_max_chars=binary_max_chars,
        )
        self._state = LoopState.IDLE

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def executor(self) -> tool_executor.ToolExecutor:
        return self._executor

    async def run(
        self,
        store: session.ConversationStore,
        input_items: _typing.Sequence[api_types.InputItem] | str,
        *,
        system: str | None = None,
        options: api_types.GenerationOptions | None = None,
        abort: _asyncio.Event | None = None,
    ) -> AgentResult:
        """
        Run the loop to completion.

        Args:
            store: Conversation store; the run's input, tool traffic and
                final answer are appended to it.
            input_items: New input for this run.
            system: System text (merged with any system messages in input).
            options: Generation options.
            abort: Setting this event cancels the in-flight request.

        Returns:
            The run's result.

        Raises:
            TransportError: The vendor request failed.
            ProviderResponseError: The vendor returned an unusable response.
            IncompleteStreamError: A stream ended without a usable event.
            NoOutputTextError: The final response has no text.
            RunAbortedError: The abort event was set.
        """
        coro = self._run(store, input_items, system=system, options=options or api_types.GenerationOptions())
        if abort is None:
            return await coro
        return await _run_abortable(coro, abort)

    async def _run(
        self,
        store: session.ConversationStore,
        input_items: _typing.Sequence[api_types.InputItem] | str,
        *,
        system: str | None,
        options: api_types.GenerationOptions,
    ) -> AgentResult:
        tools = self._registry.definitions()
        conversation = self._adapter.start_conversation(store, input_items, system=system)
        if self._logger:
            self._logger.log_run_start(
                session.normalize_input(input_items), [tool.name for tool in tools], system
            )

        usage = api_types.Usage()
        executed: list[api_types.ToolResult] = []
        loop_limit_reached = False
        turn: api_types.ModelTurn | None = None
        iterations = 0

        for iteration in range(self._max_loops):
            self._state = LoopState.REQUESTING
            iterations = iteration + 1
            turn = await self._request(conversation, tools, options, iteration)
            usage.add(turn.usage)
            self._adapter.record_model_output(conversation, turn, store)

            if not turn.tool_calls:
                break
            if iterations >= self._max_loops:
                loop_limit_reached = True
                _logger.warning(
                    "Loop limit of %d reached with %d tool call(s) pending; "
                    "returning the last response",
                    self._max_loops,
                    len(turn.tool_calls),
                )
                break

            self._state = LoopState.EXECUTING
            results = await self._executor.execute_batch(turn.tool_calls)
            self._adapter.record_tool_results(conversation, turn, results, store)
            executed.extend(results)

        self._state = LoopState.DONE
        assert turn is not None

        if loop_limit_reached:
            output = self._adapter.extract_text(turn)
        else:
            output = self._adapter.output_text(turn)

        parsed: _typing.Any = None
        if output is not None:
            if options.structured_output:
                try:
                    parsed = _json.loads(output)
                except ValueError as e:
                    raise errors.ProviderResponseError(
                        f"Structured output is not valid JSON: {e}", payload=output
                    ) from e
            self._adapter.record_final_output(output, store)

        if self._logger:
            self._logger.log_usage(usage.to_dict())
            self._logger.log_run_end(
                output, iterations=iterations, loop_limit_reached=loop_limit_reached
            )

        return AgentResult(
            output=output,
            usage=usage,
            iterations=iterations,
            last_turn=turn,
            provider=self._adapter.name,
            model=self._adapter.model,
            loop_limit_reached=loop_limit_reached,
            parsed=parsed,
            tool_results=executed,
            tool_metrics=self._executor.metrics.to_dict(),
            tool_summary=self._executor.metrics.summary(),
            thread=store,
        )

    async def _request(
        self,
        conversation: session.ConversationState,
        tools: _typing.Sequence[api_types.ToolDefinition],
        options: api_types.GenerationOptions,
        iteration: int,
    ) -> api_types.ModelTurn:
        request = self._adapter.build_request(conversation, tools, options, stream=self._stream)
        if self._logger:
            self._logger.log_request(iteration, stream=self._stream, body=request.body)

        async with agentloop_logging.log_timed(
            _logger, "llm.step", provider=self._adapter.name, iteration=iteration
        ) as record:
            async with self._transport.send(request) as response:
                if response.is_event_stream and response.stream is not None:
                    reader = streaming.StreamReader(
                        self._adapter,
                        iteration=iteration,
                        max_extra_events=self._max_extra_events,
                    )
                    async for event in reader.events(response.stream):
                        if event.type in ("text_delta", "stop"):
                            await self._notify(event)
                    assert reader.turn is not None
                    turn = reader.turn
                else:
                    assert response.json is not None
                    turn = self._adapter.parse_response(response.json, iteration=iteration)
            record["tool_calls"] = len(turn.tool_calls)
            record["streamed"] = turn.streamed

        if self._logger:
            self._logger.log_response(
                iteration,
                tool_calls=len(turn.tool_calls),
                finish_reason=turn.finish_reason,
                streamed=turn.streamed,
            )
        return turn

    async def _notify(self, event: api_types.StreamEvent) -> None:
        if self._progress is None:
            return
        try:
            result = self._progress(event)
            if _inspect.isawaitable(result):
                await result
        except Exception as e:
            _logger.warning("Progress callback failed: %s: %s", type(e).__name__, e)


async def _run_abortable(
    coro: _typing.Coroutine[_typing.Any, _typing.Any, AgentResult],
    abort: _asyncio.Event,
) -> AgentResult:
    """Run coro until it finishes or abort is set, whichever comes first."""
    task = _asyncio.ensure_future(coro)
    waiter = _asyncio.ensure_future(abort.wait())
    try:
        done, _ = await _asyncio.wait({task, waiter}, return_when=_asyncio.FIRST_COMPLETED)
    except BaseException:
        # Outer cancellation: let the run unwind before the caller releases
        # the transport and tool clients under it.
        task.cancel()
        await _asyncio.gather(task, return_exceptions=True)
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    try:
        await task
    except _asyncio.CancelledError:
        _logger.info("Run aborted by caller")
    raise errors.RunAbortedError("Run aborted")
