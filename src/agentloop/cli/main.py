"""
Main CLI entry point for agentloop.

Provides the command-line interface using Click:
- ``agentloop run PROMPT``: one agent run, streaming text to the terminal
- ``agentloop config show``: effective configuration
- ``agentloop tools list``: tools served by the configured MCP servers
- ``agentloop api providers``: supported providers and key status
"""

import asyncio as _asyncio
import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.logging as _rich_logging
import rich.syntax as _rich_syntax

import agentloop
import agentloop.api.factory as factory
import agentloop.api.types as api_types
import agentloop.config as config
import agentloop.config.sources as config_sources
import agentloop.errors as errors
import agentloop.logging as agentloop_logging
import agentloop.session as session
import agentloop.tools as tools

_logger = _logging.getLogger(__name__)

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(agentloop.__version__, "-v", "--version", prog_name="agentloop")
@_click.option(
    "--config-file",
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Extra YAML config file (highest-precedence file layer)",
)
@_click.option(
    "--log-level",
    type=_click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (default from logging.level)",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    config_file: _pathlib.Path | None,
    log_level: str | None,
) -> None:
    """agentloop - run tool-calling models from the terminal."""
    import os as _os

    if config_file is not None:
        _os.environ[config_sources.ENV_CONFIG_FILE] = str(config_file)

    try:
        settings = config.Settings()
    except config_sources.ConfigFileError as e:
        raise _click.ClickException(str(e)) from None

    agentloop_logging.configure_logging(
        log_level or settings.logging.level,
        handler=_rich_logging.RichHandler(
            console=_rich_console.Console(stderr=True),
            show_path=False,
        ),
    )
    for path in settings.collect_all_extra_fields():
        _logger.warning("Unknown config key: %s", path)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# run
# =============================================================================


@cli.command()
@_click.argument("prompt")
@_click.option(
    "--provider",
    type=_click.Choice(["openai", "google", "gemini"]),
    default=None,
    help="Provider to use (default from providers.default)",
)
@_click.option("--model", type=str, default=None, help="Model to use")
@_click.option("--system", type=str, default=None, help="System instructions")
@_click.option("--max-loops", type=_click.IntRange(min=1), default=None, help="Maximum model requests")
@_click.option("--stream/--no-stream", default=None, help="Stream the response (default from loop.stream)")
@_click.option("--temperature", type=float, default=None, help="Sampling temperature")
@_click.option(
    "--thread",
    "thread_file",
    type=_click.Path(dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Thread file to continue; created if missing and saved after the run",
)
@_click.option("--json", "json_output", is_flag=True, help="Output the result as JSON")
@_click.pass_context
def run(
    ctx: _click.Context,
    prompt: str,
    provider: str | None,
    model: str | None,
    system: str | None,
    max_loops: int | None,
    stream: bool | None,
    temperature: float | None,
    thread_file: _pathlib.Path | None,
    json_output: bool,
) -> None:
    """Run the agent once with PROMPT and print the answer.

    Tools come from the MCP servers configured under tools.mcp_servers.

    Examples:
        agentloop run "What is 2+2?"
        agentloop run --provider google --no-stream "Summarize README.md"
        agentloop run --thread chat.json "And what about 3+3?"
    """
    settings: config.Settings = ctx.obj["settings"]
    console = _rich_console.Console()

    thread = session.Thread()
    if thread_file is not None and thread_file.exists():
        thread = session.Thread.load(thread_file)

    streamed_any = False

    def on_progress(event: api_types.StreamEvent) -> None:
        nonlocal streamed_any
        if json_output:
            return
        if event.type == "text_delta" and event.text:
            streamed_any = True
            console.print(event.text, end="", markup=False, highlight=False, soft_wrap=True)
        elif event.type == "stop" and streamed_any:
            console.print()

    try:
        result = _run_async(
            agentloop.call_agent(
                prompt,
                provider=provider,
                model=model,
                system=system,
                settings=settings,
                thread=thread,
                stream=stream,
                progress=on_progress,
                options=api_types.GenerationOptions(temperature=temperature),
                max_loops=max_loops,
            )
        )
    except errors.AgentLoopError as e:
        if json_output:
            _click.echo(_json.dumps({"error": str(e), "type": type(e).__name__}, indent=2))
            raise SystemExit(1) from None
        raise _click.ClickException(str(e)) from None

    if thread_file is not None:
        thread.save(thread_file)

    if json_output:
        _click.echo(
            _json.dumps(
                {
                    "output": result.output,
                    "provider": result.provider,
                    "model": result.model,
                    "iterations": result.iterations,
                    "loop_limit_reached": result.loop_limit_reached,
                    "usage": result.usage.to_dict(),
                    "tool_calls": [
                        {"name": r.name, "call_id": r.call_id, "is_error": r.is_error}
                        for r in result.tool_results
                    ],
                    "tool_summary": result.tool_summary,
                    "thread_id": thread.id,
                },
                indent=2,
            )
        )
        return

    if not streamed_any and result.output:
        console.print(result.output, markup=False, highlight=False)
    if result.loop_limit_reached:
        _click.echo(
            f"[stopped after {result.iterations} requests with tool calls pending]", err=True
        )


# =============================================================================
# config
# =============================================================================


@cli.group()
def config_cmd() -> None:
    """Configuration commands."""
    pass


# Register config_cmd with the name "config" to avoid shadowing the module
cli.add_command(config_cmd, name="config")


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool, section: str | None) -> None:
    """Show effective configuration from all sources.

    Secrets are masked.

    Examples:
        agentloop config show
        agentloop config show --section loop --json
    """
    import yaml as _yaml

    settings: config.Settings = ctx.obj["settings"]
    full_config = settings.model_dump(mode="json")

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
        return

    yaml_text = _yaml.dump(full_config, default_flow_style=False, sort_keys=False)
    console = _rich_console.Console()
    if console.is_terminal:
        console.print(
            _rich_syntax.Syntax(yaml_text, "yaml", theme="monokai", background_color="default")
        )
    else:
        _click.echo(yaml_text)


# =============================================================================
# tools
# =============================================================================


@cli.group()
def tools_cmd() -> None:
    """Tool commands."""
    pass


# Register tools_cmd with the name "tools" to avoid shadowing the module
cli.add_command(tools_cmd, name="tools")


async def _list_remote_tools(settings: config.Settings) -> list[dict[str, _typing.Any]]:
    async with await tools.ToolRegistry.build(servers=settings.tools.mcp_servers) as registry:
        return [
            {"name": d.name, "description": d.description}
            for d in registry.definitions()
        ]


@tools_cmd.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def tools_list(ctx: _click.Context, json_output: bool) -> None:
    """List the tools served by the configured MCP servers."""
    settings: config.Settings = ctx.obj["settings"]
    try:
        tool_list = _run_async(_list_remote_tools(settings))
    except errors.ToolSetupError as e:
        raise _click.ClickException(str(e)) from None

    if json_output:
        _click.echo(_json.dumps(tool_list, indent=2))
        return
    if not tool_list:
        _click.echo("No tools (configure MCP servers under tools.mcp_servers)")
        return
    _click.echo("Available Tools:")
    for t in tool_list:
        _click.echo(f"  {t['name']}: {t['description'][:60]}")


# =============================================================================
# api
# =============================================================================


@cli.group()
def api_cmd() -> None:
    """API-related commands."""
    pass


# Register api_cmd with the name "api" to avoid shadowing the module
cli.add_command(api_cmd, name="api")


@api_cmd.command(name="providers")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def api_providers(ctx: _click.Context, json_output: bool) -> None:
    """List supported providers."""
    settings: config.Settings = ctx.obj["settings"]
    providers = factory.get_available_providers(settings)

    if json_output:
        _click.echo(_json.dumps(providers, indent=2))
        return
    _click.echo("Available Providers:")
    for p in providers:
        status = "✓" if p["key_configured"] else "✗"
        _click.echo(f"  {status} {p['name']}")
        _click.echo(f"      Key: {p['key_env_var']}")
        _click.echo(f"      Default model: {p['default_model']}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="agentloop")


if __name__ == "__main__":
    main()
