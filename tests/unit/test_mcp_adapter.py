"""Tests for adapting MCP tools into host tools."""

import pytest

from airagent.core.llm.tool_calling import empty_parameters_schema
from airagent.core.mcp.adapter import mcp_source_tag, mcp_tool_to_host_tool
from airagent.core.mcp.client import RemoteToolDescriptor
from airagent.core.mcp.exceptions import InvalidToolDescriptorError


@pytest.fixture
def session(server_a, make_session):
    """Fake session with an echo and a failing tool."""

    def fail(arguments):
        raise RuntimeError("upstream timeout")

    return make_session(
        server_a,
        handlers={"echo": lambda args: {"echo": args}, "fail": fail},
    )


class TestMcpToolToHostTool:
    """Tests for mcp_tool_to_host_tool."""

    def test_schema_passed_through(self, session):
        """Test the input schema is kept as given, including extra keywords."""
        schema = {
            "type": "object",
            "properties": {"q": {"type": "string", "pattern": "^[a-z]+$"}},
            "required": ["q"],
            "additionalProperties": False,
        }
        descriptor = RemoteToolDescriptor(name="search", description="Search", input_schema=schema)

        tool = mcp_tool_to_host_tool(descriptor, session)

        assert tool.name == "search"
        assert tool.definition.function.description == "Search"
        assert tool.definition.function.parameters == schema
        assert tool.source == mcp_source_tag(session.config.id)

    def test_missing_schema_and_description(self, session):
        """Test defaults for a bare descriptor."""
        tool = mcp_tool_to_host_tool(RemoteToolDescriptor(name="ping"), session)

        assert tool.definition.function.description == ""
        assert tool.definition.function.parameters == empty_parameters_schema()

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, session, name):
        """Test descriptors without a usable name are rejected."""
        with pytest.raises(InvalidToolDescriptorError):
            mcp_tool_to_host_tool(RemoteToolDescriptor(name=name), session)

    def test_source_tag(self):
        """Test the source tag format."""
        assert mcp_source_tag("abc") == "mcp:abc"

    @pytest.mark.asyncio
    async def test_executor_success(self, session):
        """Test the executor forwards arguments and wraps the result."""
        tool = mcp_tool_to_host_tool(RemoteToolDescriptor(name="echo"), session)

        result = await tool.executor({"x": 1})

        assert result.success
        assert result.result == {"echo": {"x": 1}}
        assert session.calls == [("echo", {"x": 1})]

    @pytest.mark.asyncio
    async def test_executor_never_raises(self, session):
        """Test remote failures become failed results."""
        tool = mcp_tool_to_host_tool(RemoteToolDescriptor(name="fail"), session)

        result = await tool.executor({})

        assert not result.success
        assert result.error == "upstream timeout"

    @pytest.mark.asyncio
    async def test_executor_none_arguments(self, session):
        """Test missing arguments are sent as an empty object."""
        tool = mcp_tool_to_host_tool(RemoteToolDescriptor(name="echo"), session)

        await tool.executor(None)

        assert session.calls == [("echo", {})]

