"""
Top-level entry point: run one agent call.

call_agent() wires the pieces for a single run: it creates the vendor
adapter, opens the HTTP transport, builds and validates the tool
registry, runs the loop, and releases every resource it opened whether
the run succeeds or fails.
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import typing as _typing

import agentloop.api.factory as factory
import agentloop.api.transport as transport
import agentloop.api.types as api_types
import agentloop.config as config
import agentloop.core.loop as loop
import agentloop.errors as errors
import agentloop.logging as agentloop_logging
import agentloop.session as session
import agentloop.tools.base as tools_base
import agentloop.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


async def call_agent(
    input: _typing.Sequence[api_types.InputItem] | str,
    *,
    provider: str | None = None,
    model: str | None = None,
    system: str | None = None,
    settings: config.Settings | None = None,
    local_tools: tools_base.LocalToolset | None = None,
    mcp_servers: _typing.Sequence[config.McpServerConfig] | None = None,
    remote_clients: _typing.Sequence[tools_base.RemoteToolClient] = (),
    thread: session.ConversationStore | None = None,
    stream: bool | None = None,
    progress: loop.ProgressCallback | None = None,
    options: api_types.GenerationOptions | None = None,
    max_loops: int | None = None,
    abort: _asyncio.Event | None = None,
    http: transport.HttpTransport | None = None,
    connect: tools_registry.RemoteConnector | None = None,
) -> loop.AgentResult:
    """
    Run the agent loop once and return its result.

    Args:
        input: A user prompt, or a list of input items (messages).
        provider: "openai" or "google" (default from settings).
        model: Model override.
        system: System text.
        settings: Settings (default: loaded from environment and YAML).
        local_tools: Local tool declarations and handlers.
        mcp_servers: MCP servers to connect to (default from settings).
        remote_clients: Already-connected remote tool clients; the run
            takes ownership and closes them.
        thread: Conversation store to continue (default: a new Thread).
        stream: Request a streaming response (default from settings).
        progress: Callback for streamed text deltas and stream ends.
        options: Generation options (temperature, structured output, ...).
        max_loops: Maximum number of model requests (default from settings).
        abort: Setting this event cancels the run.
        http: Transport to use; the caller keeps ownership.
        connect: Connector for mcp_servers (default: MCP).

    Returns:
        The run's AgentResult; ``result.thread`` is the store used.

    Raises:
        ToolSetupError: Tool validation or an MCP connection failed.
        AgentLoopError: Any failure of the run itself.
        ValueError: The provider is unknown.
    """
    owns_transport = http is None
    run_logger: agentloop_logging.ConversationLogger | None = None
    # The registry owns remote_clients once build() is called.
    clients_handed_over = False

    try:
        if settings is None:
            settings = config.Settings()

        adapter = factory.create_adapter(provider, settings, model=model)
        store = thread if thread is not None else session.Thread()
        servers = list(mcp_servers) if mcp_servers is not None else list(settings.tools.mcp_servers)

        if http is None:
            http = transport.HttpTransport(timeout=settings.http.timeout)

        if settings.logging.enabled:
            run_logger = agentloop_logging.ConversationLogger(
                log_dir=settings.logging.dir,
                private_mode=settings.logging.private,
                provider=adapter.name,
                model=adapter.model,
            )

        clients_handed_over = True
        registry = await tools_registry.ToolRegistry.build(
            local=local_tools,
            servers=servers,
            clients=remote_clients,
            connect=connect,
        )
        async with registry:
            agent_loop = loop.AgentLoop(
                adapter,
                http,
                registry,
                max_loops=max_loops if max_loops is not None else settings.max_loops,
                stream=stream if stream is not None else settings.loop.stream,
                progress=progress,
                logger=run_logger,
                max_extra_events=settings.loop.extra_events_after_tool_call,
                text_max_chars=settings.tools.text_max_chars,
                binary_max_chars=settings.tools.binary_max_chars,
            )
            return await agent_loop.run(
                store, input, system=system, options=options, abort=abort
            )
    except errors.AgentLoopError as e:
        _logger.error("Agent run failed: %s: %s", type(e).__name__, e)
        if run_logger:
            run_logger.log_error(str(e), context=type(e).__name__)
        raise
    finally:
        if not clients_handed_over:
            await tools_registry.close_clients(remote_clients)
        if run_logger:
            run_logger.close()
        if owns_transport and http is not None:
            await http.close()
