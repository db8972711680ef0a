"""Tests for tools/results.py."""

import copy as _copy

import agentloop.tools.results as results


class TestSanitizeToolResult:
    """Tests for sanitize_tool_result."""

    def test_short_result_unchanged(self) -> None:
        raw = {"content": [{"type": "text", "text": "short"}]}
        out = results.sanitize_tool_result(raw, text_max_chars=100)
        assert out.changed is False
        assert out.sanitized is raw

    def test_long_text_truncated_with_meta(self) -> None:
        raw = {"content": [{"type": "text", "text": "x" * 50}]}
        original = _copy.deepcopy(raw)
        out = results.sanitize_tool_result(raw, text_max_chars=10)

        block = out.sanitized["content"][0]
        assert block["text"] == "x" * 10 + results.TRUNCATION_MARKER
        assert block["_meta"]["__sanitizer"]["text"] == {
            "truncated": True,
            "originalLength": 50,
            "maxChars": 10,
        }
        assert out.sanitized["_meta"]["__sanitizer"]["limits"]["maxTextChars"] == 10
        assert raw == original

    def test_large_image_omitted_with_fingerprint(self) -> None:
        data = "A" * 100
        raw = {"content": [{"type": "image", "data": data, "mimeType": "image/png"}]}
        out = results.sanitize_tool_result(raw, binary_max_chars=100, sample_chars=40)

        block = out.sanitized["content"][0]
        assert block["data"] == ""
        assert block["mimeType"] == "image/png"
        info = block["_meta"]["__sanitizer"]["data"]
        assert info["omitted"] is True
        assert info["originalLength"] == 100
        assert info["sampledChars"] == 40
        assert info["isSampled"] is True
        assert len(info["fingerprint"]) == 16

    def test_binary_below_threshold_kept(self) -> None:
        raw = {"content": [{"type": "audio", "data": "A" * 99}]}
        assert results.sanitize_tool_result(raw, binary_max_chars=100).changed is False

    def test_resource_text_and_blob(self) -> None:
        raw = {
            "content": [
                {"type": "resource", "resource": {"uri": "file:///a", "text": "y" * 30}},
                {"type": "resource", "resource": {"uri": "file:///b", "blob": "B" * 30}},
            ]
        }
        out = results.sanitize_tool_result(raw, text_max_chars=5, binary_max_chars=10)

        text_resource = out.sanitized["content"][0]["resource"]
        blob_resource = out.sanitized["content"][1]["resource"]
        assert text_resource["text"].startswith("yyyyy…")
        assert text_resource["_meta"]["__sanitizer"]["text"]["originalLength"] == 30
        assert blob_resource["blob"] == ""
        assert blob_resource["uri"] == "file:///b"

    def test_existing_meta_preserved(self) -> None:
        raw = {"content": [{"type": "text", "text": "z" * 20, "_meta": {"source": "db"}}]}
        out = results.sanitize_tool_result(raw, text_max_chars=5)
        meta = out.sanitized["content"][0]["_meta"]
        assert meta["source"] == "db"
        assert "__sanitizer" in meta

    def test_non_dict_result_passes_through(self) -> None:
        out = results.sanitize_tool_result("plain text")
        assert out.sanitized == "plain text"
        assert out.changed is False
