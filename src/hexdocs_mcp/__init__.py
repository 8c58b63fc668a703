"""hexdocs MCP Server - Agent-ready mirror of hexdocs.pm documentation."""

from importlib.metadata import version

from hexdocs_mcp.__main__ import _cli as main
from hexdocs_mcp.handler import WrapperResponse, handle_request
from hexdocs_mcp.server import mcp

__version__ = version("hexdocs-mcp")
__all__ = ["WrapperResponse", "handle_request", "mcp", "main", "__version__"]
