"""MCP tool registration - modular tool definitions."""

import logging

from mcp.server.fastmcp import FastMCP

from ..communication.orchestrator import get_orchestrator
from ..config import Config
from .collaboration import register_collaboration_tools
from .core import register_core_tools
from .progress import register_progress_tools
from .responses import register_response_tools

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, config: Config) -> None:
	"""Register all MCP tools against the process-wide orchestrator."""
	orchestrator = get_orchestrator(config)
	register_core_tools(mcp, config, orchestrator)
	register_progress_tools(mcp, config, orchestrator)
	register_response_tools(mcp, config, orchestrator)
	register_collaboration_tools(mcp, config, orchestrator)
	logger.debug("Registered communication tools")
