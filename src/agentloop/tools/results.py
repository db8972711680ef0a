"""
Sanitization of remote tool results.

MCP tool results may carry very long text or base64 images, audio and
resource blobs. Before a result is fed back to the model, long text is
truncated and large binary payloads are replaced with an empty string.
What was cut is recorded under ``_meta.__sanitizer`` so the model (and
the logs) can see it.
"""

import copy as _copy
import dataclasses as _dataclasses
import hashlib as _hashlib
import typing as _typing

import agentloop.constants as _constants

TRUNCATION_MARKER = "…[[TRUNCATED]]"


@_dataclasses.dataclass
class SanitizedResult:
    """Raw and sanitized forms of one tool result."""

    raw: _typing.Any
    sanitized: _typing.Any
    changed: bool


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _fingerprint(data: str, sample_chars: int) -> dict[str, _typing.Any]:
    sample = data[:sample_chars]
    return {
        "omitted": True,
        "originalLength": len(data),
        "sampledChars": len(sample),
        "isSampled": len(data) > len(sample),
        "fingerprint": _hashlib.sha256(sample.encode("utf-8")).hexdigest()[:16],
        "fingerprintAlg": "sha256(sample)[:16]",
    }


def _with_meta(block: dict[str, _typing.Any], key: str, info: dict[str, _typing.Any]) -> None:
    meta = block.get("_meta") if isinstance(block.get("_meta"), dict) else {}
    sanitizer = meta.get("__sanitizer") if isinstance(meta.get("__sanitizer"), dict) else {}
    block["_meta"] = {**meta, "__sanitizer": {**sanitizer, key: info}}


def sanitize_tool_result(
    result: _typing.Any,
    *,
    text_max_chars: int = _constants.DEFAULT_TOOL_TEXT_MAX_CHARS,
    binary_max_chars: int = _constants.DEFAULT_TOOL_BINARY_MAX_CHARS,
    sample_chars: int = _constants.BINARY_SAMPLE_CHARS,
) -> SanitizedResult:
    """
    Shrink an MCP ``CallToolResult`` (as a dict) for the model.

    Args:
        result: The result dict (``{"content": [...], ...}``). Other
            values are returned unchanged.
        text_max_chars: Text blocks longer than this are truncated.
        binary_max_chars: Base64 payloads at least this long are omitted.
        sample_chars: Leading characters fingerprinted for omitted payloads.

    Returns:
        SanitizedResult holding both forms; the raw result is not modified.
    """
    if not isinstance(result, dict) or not isinstance(result.get("content"), list):
        return SanitizedResult(raw=result, sanitized=result, changed=False)

    changed = False
    content = []
    for original in result["content"]:
        if not isinstance(original, dict):
            content.append(original)
            continue
        block = _copy.copy(original)
        block_type = block.get("type")

        if block_type == "text" and isinstance(block.get("text"), str):
            text = block["text"]
            if len(text) > text_max_chars:
                block["text"] = truncate(text, text_max_chars)
                _with_meta(
                    block,
                    "text",
                    {"truncated": True, "originalLength": len(text), "maxChars": text_max_chars},
                )
                changed = True

        elif block_type in ("image", "audio") and isinstance(block.get("data"), str):
            data = block["data"]
            if len(data) >= binary_max_chars:
                block["data"] = ""
                _with_meta(block, "data", _fingerprint(data, sample_chars))
                changed = True

        elif block_type == "resource" and isinstance(block.get("resource"), dict):
            resource = _copy.copy(block["resource"])
            text = resource.get("text")
            blob = resource.get("blob")
            if isinstance(text, str) and len(text) > text_max_chars:
                resource["text"] = truncate(text, text_max_chars)
                _with_meta(
                    resource,
                    "text",
                    {"truncated": True, "originalLength": len(text), "maxChars": text_max_chars},
                )
                changed = True
            if isinstance(blob, str) and len(blob) >= binary_max_chars:
                resource["blob"] = ""
                _with_meta(resource, "blob", _fingerprint(blob, sample_chars))
                changed = True
            block["resource"] = resource

        content.append(block)

    if not changed:
        return SanitizedResult(raw=result, sanitized=result, changed=False)

    sanitized = {**result, "content": content}
    _with_meta(
        sanitized,
        "limits",
        {"maxTextChars": text_max_chars, "binaryOmitThresholdChars": binary_max_chars},
    )
    return SanitizedResult(raw=result, sanitized=sanitized, changed=True)
