"""Tests for LLM Tool Calling infrastructure."""

import json

import pytest

from airagent.core.llm.default_tools import (
    create_default_tool_registry,
    get_default_tool_names,
)
from airagent.core.llm.tool_calling import (
    FunctionDefinition,
    HostTool,
    ToolCall,
    ToolDefinition,
    ToolRegistry,
    ToolResult,
    empty_parameters_schema,
    format_tool_result_message,
    parse_tool_calls_from_openai,
)


def make_host_tool(name, source=None, result="ok", description=""):
    async def executor(arguments):
        return ToolResult(success=True, result=result)

    return HostTool(
        definition=ToolDefinition(function=FunctionDefinition(name=name, description=description)),
        executor=executor,
        source=source,
    )


class TestToolDefinition:
    """Tests for ToolDefinition class."""

    def test_default_parameters(self):
        """Test a definition without parameters gets an empty object schema."""
        definition = ToolDefinition(function=FunctionDefinition(name="noop"))

        assert definition.name == "noop"
        assert definition.function.parameters == empty_parameters_schema()

    def test_to_openai_format(self):
        """Test converting definition to OpenAI format."""
        schema = {
            "type": "object",
            "properties": {"query": {"type": "string", "minLength": 1}},
            "required": ["query"],
        }
        definition = ToolDefinition(
            function=FunctionDefinition(name="search", description="Search", parameters=schema)
        )

        openai_format = definition.to_openai_format()

        assert openai_format == {
            "type": "function",
            "function": {"name": "search", "description": "Search", "parameters": schema},
        }


class TestToolResult:
    """Tests for ToolResult class."""

    def test_success_string_content(self):
        """Test a string result is passed through as content."""
        assert ToolResult(success=True, result="plain").to_content() == "plain"

    def test_success_json_content(self):
        """Test a structured result is JSON encoded."""
        content = ToolResult(success=True, result={"a": 1}).to_content()
        assert json.loads(content) == {"a": 1}

    def test_error_content(self):
        """Test an error result is encoded as an error object."""
        content = ToolResult(success=False, error="boom").to_content()
        assert json.loads(content) == {"error": "boom"}


class TestToolRegistry:
    """Tests for ToolRegistry class."""

    def test_register_and_get(self):
        """Test registering and getting tools."""
        registry = ToolRegistry()
        tool = make_host_tool("alpha")

        registry.register_tool(tool)

        assert registry.get_tool("alpha") is tool
        assert registry.has_tool("alpha")
        assert "alpha" in registry
        assert len(registry) == 1
        assert registry.get_tool("missing") is None

    def test_register_overwrites_same_name(self):
        """Test the last registration for a name wins."""
        registry = ToolRegistry()
        registry.register_tool(make_host_tool("alpha", description="first"))
        registry.register_tool(make_host_tool("alpha", description="second"))

        assert len(registry) == 1
        assert registry.get_tool("alpha").definition.function.description == "second"

    def test_unregister(self):
        """Test removing a tool by name."""
        registry = ToolRegistry()
        registry.register_tool(make_host_tool("alpha"))

        assert registry.unregister("alpha") is True
        assert registry.unregister("alpha") is False
        assert len(registry) == 0

    def test_unregister_all_by_source(self):
        """Test removing every tool from one source."""
        registry = ToolRegistry()
        registry.register_tools(
            [
                make_host_tool("builtin"),
                make_host_tool("remote_a", source="mcp:a"),
                make_host_tool("remote_b", source="mcp:a"),
                make_host_tool("other", source="mcp:b"),
            ]
        )

        removed = registry.unregister_all(lambda tool: tool.source == "mcp:a")

        assert removed == 2
        assert registry.list_tool_names() == ["builtin", "other"]

    def test_unregister_all(self):
        """Test clearing the registry."""
        registry = ToolRegistry()
        registry.register_tools([make_host_tool("a"), make_host_tool("b")])

        assert registry.unregister_all() == 2
        assert len(registry) == 0

    def test_list_tools_is_snapshot(self):
        """Test mutating the registry does not affect an earlier listing."""
        registry = ToolRegistry()
        registry.register_tool(make_host_tool("a"))

        snapshot = registry.list_tools()
        registry.register_tool(make_host_tool("b"))

        assert [t.name for t in snapshot] == ["a"]

    def test_to_openai_format(self):
        """Test converting all tools to OpenAI format."""
        registry = ToolRegistry()
        registry.register_tools([make_host_tool("a"), make_host_tool("b")])

        names = [entry["function"]["name"] for entry in registry.to_openai_format()]
        assert names == ["a", "b"]

    @pytest.mark.asyncio
    async def test_execute(self):
        """Test executing a registered tool."""
        registry = ToolRegistry()
        registry.register_tool(make_host_tool("a", result={"value": 42}))

        result = await registry.execute(ToolCall(id="1", name="a", arguments={}))

        assert result.success
        assert result.result == {"value": 42}

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self):
        """Test executing an unknown tool returns an error."""
        registry = ToolRegistry()

        result = await registry.execute(ToolCall(id="1", name="nope", arguments={}))

        assert not result.success
        assert "Unknown tool" in result.error

    @pytest.mark.asyncio
    async def test_execute_raising_executor(self):
        """Test an executor exception becomes a failed result."""

        async def explode(arguments):
            raise RuntimeError("kaboom")

        registry = ToolRegistry()
        registry.register_tool(
            HostTool(
                definition=ToolDefinition(function=FunctionDefinition(name="bad")),
                executor=explode,
            )
        )

        result = await registry.execute(ToolCall(id="1", name="bad", arguments={}))

        assert not result.success
        assert "kaboom" in result.error


class TestParseToolCalls:
    """Tests for parsing tool calls from OpenAI messages."""

    def test_parse_tool_calls(self):
        """Test parsing tool calls with JSON arguments."""
        message = {
            "role": "assistant",
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "calculator", "arguments": '{"operation": "add", "a": 1, "b": 2}'},
                },
                {
                    "id": "call_2",
                    "type": "function",
                    "function": {"name": "get_current_time", "arguments": ""},
                },
            ],
        }

        calls = parse_tool_calls_from_openai(message)

        assert len(calls) == 2
        assert calls[0].id == "call_1"
        assert calls[0].name == "calculator"
        assert calls[0].arguments == {"operation": "add", "a": 1, "b": 2}
        assert calls[1].arguments == {}

    def test_parse_malformed_arguments(self):
        """Test malformed or non-object arguments become an empty dict."""
        message = {
            "tool_calls": [
                {"id": "a", "function": {"name": "x", "arguments": "{not json"}},
                {"id": "b", "function": {"name": "y", "arguments": "[1, 2]"}},
            ]
        }

        calls = parse_tool_calls_from_openai(message)

        assert [c.arguments for c in calls] == [{}, {}]

    def test_parse_no_tool_calls(self):
        """Test a message without tool calls."""
        assert parse_tool_calls_from_openai({"role": "assistant", "content": "hi"}) == []

    def test_format_tool_result_message(self):
        """Test formatting a result as a tool message."""
        call = ToolCall(id="call_1", name="calculator", arguments={})

        message = format_tool_result_message(call, ToolResult(success=True, result=3))

        assert message == {
            "role": "tool",
            "tool_call_id": "call_1",
            "name": "calculator",
            "content": "3",
        }


class TestDefaultRegistry:
    """Tests for the built-in tool registry."""

    def test_create_default_registry(self):
        """Test the built-in tools are registered."""
        registry = create_default_tool_registry()

        assert registry.list_tool_names() == ["calculator", "get_current_time"]
        assert get_default_tool_names() == ["calculator", "get_current_time"]
        assert all(tool.source is None for tool in registry.list_tools())
