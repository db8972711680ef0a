"""
Run logger for agentloop.

Logs the events of agent runs to JSONL files for debugging and analysis.
"""

import datetime as _datetime
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing


class ConversationLogger:
    """
    Logs agent run events to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - session_start: Logger metadata (provider, model, timestamp)
    - run_start: Input and tool names of a run
    - request: A model request (iteration, streaming flag)
    - response: A parsed model response (tool call count, finish reason)
    - tool_call: Tool invocation request
    - tool_result: Result of tool execution
    - usage: Accumulated token usage of a run
    - run_end: Final output of a run
    - error: Error events
    - session_end: Logger closed

    Usage:
        logger = ConversationLogger(log_dir="/tmp", provider="openai", model="gpt-4.1-mini")
        logger.log_run_start(input_items=[...], tools=["echo"])
        logger.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        provider: str = "unknown",
        model: str = "unknown",
        enabled: bool = True,
    ) -> None:
        """
        Initialize the logger.

        Args:
            log_dir: Directory for log files (default: /tmp/agentloop-logs).
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            provider: Provider name.
            model: Model name.
            enabled: Whether logging is enabled.
        """
        self._enabled = enabled
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._session_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self._event_count = 0

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else _pathlib.Path("/tmp/agentloop-logs")
            base_dir.mkdir(parents=True, exist_ok=True)
            if private_mode:
                _os.chmod(base_dir, 0o700)
            self._file_path = base_dir / f"agentloop_{self._session_id}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "w", encoding="utf-8")  # noqa: SIM115

        self._write_event(
            "session_start",
            {"session_id": self._session_id, "provider": provider, "model": model},
        )

    @property
    def file_path(self) -> _pathlib.Path | None:
        return self._file_path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _write_event(self, event_type: str, data: dict[str, _typing.Any]) -> None:
        """Write an event to the log file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }
        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()  # Ensure immediate write for crash safety
        except OSError:
            # Logging must not break a run
            pass

    def log_run_start(
        self,
        input_items: _typing.Sequence[_typing.Any],
        tools: _typing.Sequence[str],
        system: str | None = None,
    ) -> None:
        data: dict[str, _typing.Any] = {"input": list(input_items), "tools": list(tools)}
        if system:
            data["system"] = system
        self._write_event("run_start", data)

    def log_request(self, iteration: int, *, stream: bool, body: dict[str, _typing.Any]) -> None:
        """Log a model request (the body is logged without tool schemas)."""
        summary = {key: value for key, value in body.items() if key != "tools"}
        self._write_event("request", {"iteration": iteration, "stream": stream, "body": summary})

    def log_response(
        self,
        iteration: int,
        *,
        tool_calls: int,
        finish_reason: str | None,
        streamed: bool,
    ) -> None:
        self._write_event(
            "response",
            {
                "iteration": iteration,
                "tool_calls": tool_calls,
                "finish_reason": finish_reason,
                "streamed": streamed,
            },
        )

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: dict[str, _typing.Any],
        tool_id: str | None = None,
    ) -> None:
        """Log a tool call request."""
        self._write_event(
            "tool_call",
            {"tool_name": tool_name, "tool_input": tool_input, "tool_id": tool_id},
        )

    def log_tool_result(
        self,
        tool_name: str,
        success: bool,
        output: str | None = None,
        tool_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log a tool execution result."""
        data: dict[str, _typing.Any] = {
            "tool_name": tool_name,
            "success": success,
            "tool_id": tool_id,
        }
        if output is not None:
            data["output"] = output
        if duration_ms is not None:
            data["duration_ms"] = round(duration_ms, 2)
        self._write_event("tool_result", data)

    def log_usage(self, usage: dict[str, int]) -> None:
        self._write_event("usage", {"usage": usage})

    def log_run_end(self, output: str | None, *, iterations: int, loop_limit_reached: bool) -> None:
        self._write_event(
            "run_end",
            {
                "output": output,
                "iterations": iterations,
                "loop_limit_reached": loop_limit_reached,
            },
        )

    def log_error(self, error: str, context: str | None = None) -> None:
        """Log an error."""
        data: dict[str, _typing.Any] = {"error": error}
        if context:
            data["context"] = context
        self._write_event("error", data)

    def close(self) -> None:
        """Close the log file."""
        if self._file:
            self._write_event("session_end", {"total_events": self._event_count})
            self._file.close()
            self._file = None

    def __enter__(self) -> "ConversationLogger":
        return self

    def __exit__(self, *args: _typing.Any) -> None:
        self.close()
