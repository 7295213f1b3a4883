"""Tests for upstream request assembly"""
import pytest

import settings

from constants import DEFAULT_STOP_SEQUENCES, GEMINI_MAX_OUTPUT_TOKENS, GEMINI_SKIP_SIGNATURE, INTERLEAVED_THINKING_HINT
from conversation.blocks import (
    ConversationTurn,
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolInvocationBlock,
    ToolResultBlock,
)
from converters.common import (
    build_generation_config,
    build_request_body,
    build_system_instruction,
    convert_content_to_parts,
    convert_role,
    convert_tools,
    convert_turns_to_contents,
    resolve_thinking_budget,
    sanitize_schema,
)

SIG = "s" * 60


def assistant(*blocks):
    return ConversationTurn(role="assistant", content=tuple(blocks))


def user(*blocks):
    return ConversationTurn(role="user", content=tuple(blocks))


@pytest.mark.unit
class TestContentConversion:
    """Test suite for turn to parts conversion"""

    def test_roles(self):
        """Test user/model role mapping"""
        assert convert_role("assistant") == "model"
        assert convert_role("user") == "user"

    def test_string_content(self, relay_context):
        """Test that string content becomes one text part"""
        parts = convert_content_to_parts(
            ConversationTurn(role="user", content="Hi"),
            model="claude-sonnet-4-5", context=relay_context, invocation_names={},
        )

        assert parts == [{"text": "Hi"}]

    def test_thinking_and_tool_call_parts(self, relay_context):
        """Test thought parts and functionCall parts with signatures"""
        turn = assistant(
            ThinkingBlock("plan", signature=SIG),
            TextBlock("Calling"),
            ToolInvocationBlock("toolu_1", "search", {"q": "x"}, signature=SIG),
        )

        parts = convert_content_to_parts(turn, model="claude-sonnet-4-5-thinking", context=relay_context, invocation_names={})

        assert parts == [
            {"text": "plan", "thought": True, "thoughtSignature": SIG},
            {"text": "Calling"},
            {"functionCall": {"id": "toolu_1", "name": "search", "args": {"q": "x"}}, "thoughtSignature": SIG},
        ]

    def test_tool_call_signature_from_cache(self, relay_context):
        """Test that a cached signature is attached to an unsigned tool call"""
        relay_context.signature_cache.put("toolu_1", SIG)
        turn = assistant(ToolInvocationBlock("toolu_1", "search"))

        parts = convert_content_to_parts(turn, model="claude-sonnet-4-5", context=relay_context, invocation_names={})

        assert parts[0]["thoughtSignature"] == SIG

    def test_gemini_unsigned_tool_call_uses_skip_sentinel(self, relay_context):
        """Test the Gemini sentinel for tool calls with no known signature"""
        turn = assistant(ToolInvocationBlock("read-0", "read"))

        gemini_parts = convert_content_to_parts(turn, model="gemini-3-pro-high", context=relay_context, invocation_names={})
        claude_parts = convert_content_to_parts(turn, model="claude-sonnet-4-5", context=relay_context, invocation_names={})

        assert gemini_parts[0]["thoughtSignature"] == GEMINI_SKIP_SIGNATURE
        assert "thoughtSignature" not in claude_parts[0]

    def test_tool_result_takes_name_from_invocation(self, relay_context):
        """Test that functionResponse names come from the matching invocation"""
        turn = user(ToolResultBlock("toolu_1", "found"), ToolResultBlock("toolu_2", "boom", is_error=True))

        parts = convert_content_to_parts(
            turn, model="claude-sonnet-4-5", context=relay_context,
            invocation_names={"toolu_1": "search", "toolu_2": "mcp.fetch"},
        )

        assert parts == [
            {"functionResponse": {"id": "toolu_1", "name": "search", "response": {"output": "found"}}},
            {"functionResponse": {"id": "toolu_2", "name": "mcp_fetch", "response": {"error": "boom"}}},
        ]

    def test_image_part(self, relay_context):
        """Test inlineData conversion"""
        parts = convert_content_to_parts(
            user(ImageBlock("image/png", "iVBOR")), model="gemini-2.5-flash", context=relay_context, invocation_names={},
        )

        assert parts == [{"inlineData": {"mimeType": "image/png", "data": "iVBOR"}}]

    def test_empty_turn_gets_placeholder(self, relay_context):
        """Test that a turn converting to nothing still has one part"""
        parts = convert_content_to_parts(
            assistant(TextBlock("")), model="claude-sonnet-4-5", context=relay_context, invocation_names={},
        )

        assert parts == [{"text": ""}]

    def test_contents_skip_system_turns(self, relay_context):
        """Test that system turns do not become contents"""
        turns = (
            ConversationTurn(role="system", content="rules"),
            ConversationTurn(role="user", content="Hi"),
        )

        contents = convert_turns_to_contents(turns, model="claude-sonnet-4-5", context=relay_context)

        assert contents == [{"role": "user", "parts": [{"text": "Hi"}]}]


@pytest.mark.unit
class TestToolConversion:
    """Test suite for tool declarations"""

    def test_claude_openai_and_gemini_shapes(self, relay_context):
        """Test that all three tool formats become function declarations"""
        schema = {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}
        tools = [
            {"name": "claude_tool", "description": "C", "input_schema": schema},
            {"type": "function", "function": {"name": "openai_tool", "description": "O", "parameters": schema}},
            {"functionDeclarations": [{"name": "gemini_tool", "parameters": schema}]},
            {"type": "web_search_20250305"},
        ]

        converted = convert_tools(tools, model="claude-sonnet-4-5", context=relay_context)

        declarations = converted[0]["functionDeclarations"]
        assert [d["name"] for d in declarations] == ["claude_tool", "openai_tool", "gemini_tool"]
        assert declarations[0]["description"] == "C"
        assert "description" not in declarations[2]
        assert declarations[1]["parameters"] == schema

    def test_no_tools(self, relay_context):
        """Test that no tools gives an empty list"""
        assert convert_tools(None, model="claude-sonnet-4-5", context=relay_context) == []

    def test_names_are_sanitized_and_remembered(self, relay_context):
        """Test that invalid names are sanitized with a reverse mapping"""
        converted = convert_tools(
            [{"name": "mcp.server/read file", "input_schema": {}}],
            model="claude-sonnet-4-5", context=relay_context,
        )

        assert converted[0]["functionDeclarations"][0]["name"] == "mcp_server_read_file"
        assert relay_context.tool_names.get_original(
            relay_context.session_id, "claude-sonnet-4-5", "mcp_server_read_file"
        ) == "mcp.server/read file"

    def test_sanitize_schema(self):
        """Test removal of unsupported keywords and nullable type lists"""
        schema = {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "name": {"type": ["string", "null"], "default": "x", "description": "Name"},
                "tags": {"type": "array", "items": {"type": "string", "pattern": "^a"}},
            },
            "required": ["name", "missing"],
        }

        assert sanitize_schema(schema) == {
            "type": "object",
            "properties": {
                "name": {"type": "string", "nullable": True, "description": "Name"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["name"],
        }

    def test_sanitize_empty_schema(self):
        """Test that a missing schema becomes an empty object schema"""
        assert sanitize_schema(None) == {"type": "object", "properties": {}}

    def test_property_named_like_keyword_survives(self):
        """Test that property names are not filtered as keywords"""
        schema = {"type": "object", "properties": {"default": {"type": "string"}}}

        assert sanitize_schema(schema)["properties"] == {"default": {"type": "string"}}


@pytest.mark.unit
class TestGenerationConfig:
    """Test suite for generation config"""

    def test_defaults(self, monkeypatch):
        """Test max tokens and stop sequences defaults"""
        monkeypatch.setattr("settings.DEFAULT_MAX_TOKENS", 8192)
        monkeypatch.setattr("settings.DEFAULT_TEMPERATURE", None)
        monkeypatch.setattr("settings.DEFAULT_TOP_P", None)
        monkeypatch.setattr("settings.DEFAULT_TOP_K", None)

        config = build_generation_config("claude-sonnet-4-5")

        assert config == {"maxOutputTokens": 8192, "stopSequences": DEFAULT_STOP_SEQUENCES}

    def test_sampling_values_are_coerced(self, monkeypatch):
        """Test that string settings become numbers"""
        monkeypatch.setattr("settings.DEFAULT_TEMPERATURE", "0.3")
        monkeypatch.setattr("settings.DEFAULT_TOP_K", "40")

        config = build_generation_config("claude-sonnet-4-5", top_p=0.9)

        assert config["temperature"] == 0.3
        assert config["topK"] == 40
        assert config["topP"] == 0.9

    def test_stop_sequences_extend_defaults(self):
        """Test client stop sequences are appended once"""
        config = build_generation_config("claude-sonnet-4-5", stop="END")

        assert config["stopSequences"] == DEFAULT_STOP_SEQUENCES + ["END"]

    def test_claude_thinking_config(self):
        """Test snake_case thinking config for Claude"""
        config = build_generation_config("claude-sonnet-4-5-thinking", max_tokens=32000, thinking_budget=16000)

        assert config["thinkingConfig"] == {"include_thoughts": True, "thinking_budget": 16000}
        assert config["maxOutputTokens"] == 32000

    def test_gemini_thinking_config_and_cap(self):
        """Test camelCase thinking config and the Gemini output cap"""
        config = build_generation_config("gemini-3-pro-high", max_tokens=100000, thinking_budget=70000)

        assert config["maxOutputTokens"] == GEMINI_MAX_OUTPUT_TOKENS
        assert config["thinkingConfig"] == {"includeThoughts": True, "thinkingBudget": GEMINI_MAX_OUTPUT_TOKENS - 1}

    def test_max_tokens_raised_above_budget(self, monkeypatch):
        """Test that the output budget leaves room after thinking"""
        monkeypatch.setattr("settings.DEFAULT_MAX_TOKENS", 8192)

        config = build_generation_config("claude-sonnet-4-5-thinking", max_tokens=1000, thinking_budget=16000)

        assert config["maxOutputTokens"] == 16000 + 8192

    def test_resolve_thinking_budget(self, monkeypatch):
        """Test explicit, effort-based, default and disabled budgets"""
        monkeypatch.setattr("settings.DEFAULT_THINKING_BUDGET", 16000)

        assert resolve_thinking_budget("claude-sonnet-4-5", budget_tokens=2048) == 2048
        assert resolve_thinking_budget("claude-sonnet-4-5", reasoning_effort="high") == 32000
        assert resolve_thinking_budget("claude-sonnet-4-5-thinking") == 16000
        assert resolve_thinking_budget("claude-sonnet-4-5") is None
        assert resolve_thinking_budget("claude-sonnet-4-5-thinking", enabled=False) is None
        assert resolve_thinking_budget("claude-sonnet-4-5", enabled=True) == 16000


@pytest.mark.unit
class TestRequestEnvelope:
    """Test suite for the upstream envelope"""

    def test_envelope_shape(self, relay_context, monkeypatch):
        """Test top-level and request fields"""
        monkeypatch.setattr("settings.SYSTEM_INSTRUCTION", "")
        turns = (ConversationTurn(role="user", content="Hi"),)

        body = build_request_body(turns, model="claude-sonnet-4-5-thinking", context=relay_context, system_text="Be brief")

        assert body["project"] == "test-project"
        assert body["requestId"].startswith("agent-")
        assert body["model"] == "claude-sonnet-4-5"
        assert body["userAgent"] == settings.UPSTREAM_USER_AGENT
        request = body["request"]
        assert request["contents"] == [{"role": "user", "parts": [{"text": "Hi"}]}]
        assert request["toolConfig"] == {"functionCallingConfig": {"mode": "VALIDATED"}}
        assert request["sessionId"] == relay_context.session_id
        assert request["systemInstruction"] == {"role": "user", "parts": [{"text": "Be brief"}]}
        assert request["tools"] == []

    def test_no_system_instruction_when_empty(self, relay_context, monkeypatch):
        """Test that systemInstruction is omitted without any system text"""
        monkeypatch.setattr("settings.SYSTEM_INSTRUCTION", "")

        body = build_request_body((), model="gemini-2.5-flash", context=relay_context)

        assert "systemInstruction" not in body["request"]

    def test_interleaved_hint_for_claude_thinking_with_tools(self, monkeypatch):
        """Test the interleaved thinking hint is added only with tools on Claude thinking"""
        monkeypatch.setattr("settings.SYSTEM_INSTRUCTION", "Base")

        with_tools = build_system_instruction("Client", model="claude-sonnet-4-5-thinking", has_tools=True)
        without_tools = build_system_instruction("Client", model="claude-sonnet-4-5-thinking", has_tools=False)

        assert with_tools["parts"][0]["text"] == f"Base\n\nClient\n\n{INTERLEAVED_THINKING_HINT}"
        assert without_tools["parts"][0]["text"] == "Base\n\nClient"
