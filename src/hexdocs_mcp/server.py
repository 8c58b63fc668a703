"""hexdocs MCP Server - Main server definition."""

import asyncio
import json
import sys
from importlib.resources import files

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from hexdocs_mcp.config import is_version_segment, settings
from hexdocs_mcp.handler import handle_request
from hexdocs_mcp.security import wrap_external_content

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

mcp = FastMCP(
    name="hexdocs-mcp",
    instructions=(
        "Agent-oriented mirror of hexdocs.pm package documentation. "
        "Use `docs` with action='index' to list a package's modules, guides "
        "and tasks, action='page' to read one module or guide enriched with "
        "specs, option tables and related links, and action='llms' for a "
        "compact package overview."
    ),
)

# Grace period (seconds) given to a cancelled task before it is abandoned.
_CANCEL_GRACE_PERIOD = 5.0

_VALID_CONFIG_KEYS = {"log_level", "tool_timeout", "wrapper_origin", "http_timeout"}


async def _with_timeout(coro, action: str) -> str:
    """Bound a tool coroutine by ``settings.tool_timeout``.

    Uses ``asyncio.wait`` so the deadline holds even when the inner task
    is slow to react to cancellation.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)
    if done:
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")
    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=_CANCEL_GRACE_PERIOD)
    except (asyncio.CancelledError, TimeoutError):
        pass

    return (
        f"Error: '{action}' timed out after {timeout}s. "
        "Increase TOOL_TIMEOUT or retry later."
    )


def build_wrapper_url(package: str, page: str, version: str | None = None) -> str:
    """Wrapper URL for a page of *package*, e.g. ``/ecto/3.12.5/Ecto.Repo.html``."""
    base = f"{settings.normalized_wrapper_origin()}/{package.strip('/')}"
    if version:
        base = f"{base}/{version}"
    return f"{base}/{page.lstrip('/')}"


async def _serve(tool_name: str, url: str) -> str:
    response = await handle_request(url)
    return wrap_external_content(tool_name, response.body, response.status)


# ---------------------------------------------------------------------------
# docs tool: page, index, llms
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
        idempotentHint=True,
    ),
)
async def docs(
    action: str,
    package: str,
    page: str | None = None,
    version: str | None = None,
) -> str:
    """Read hexdocs.pm documentation in an agent-friendly form.

    Actions:
    - page: One module or guide page (page = "Ecto.Repo.html" or "Ecto.Repo.md")
    - index: JSON catalog of modules, guides, mix tasks and common tasks
    - llms: Markdown overview of the package

    version is a release like "3.12.5"; omit it for the latest docs.
    """
    if not package:
        return "Error: package is required"
    if version and not is_version_segment(version):
        return f"Error: Invalid version '{version}'. Expected e.g. 1.2.3"

    match action:
        case "page":
            if not page:
                return "Error: page is required for page action"
            url = build_wrapper_url(package, page, version)
        case "index":
            url = build_wrapper_url(package, "index.json", version)
        case "llms":
            url = build_wrapper_url(package, "llms.txt", version)
        case _:
            return f"Error: Unknown action '{action}'. Valid actions: page, index, llms"

    logger.info(f"docs.{action}: {url}")
    return await _with_timeout(_serve("docs", url), f"docs.{action}")


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
async def help(tool_name: str = "docs") -> str:
    """Get full documentation for a tool.
    Valid tool names: docs, config.
    """
    try:
        doc_file = files("hexdocs_mcp.docs").joinpath(f"{tool_name}.md")
        return doc_file.read_text()
    except FileNotFoundError:
        return f"Error: No documentation found for tool '{tool_name}'"


@mcp.tool(
    description=(
        "Server config. Actions: status|set. "
        "Use help tool with tool_name='config' for full docs."
    ),
    annotations=ToolAnnotations(
        title="Config",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)
async def config(
    action: str,
    key: str | None = None,
    value: str | None = None,
) -> str:
    """Server configuration.

    Actions:
    - status: Show current settings
    - set: Update a runtime setting (key + value required)
    """
    match action:
        case "status":
            status = {
                "upstream_origin": settings.upstream_origin,
                "wrapper_origin": settings.wrapper_origin,
                "http_timeout": settings.http_timeout,
                "tool_timeout": settings.tool_timeout,
                "log_level": settings.log_level,
            }
            return json.dumps(status, indent=2)

        case "set":
            if not key or value is None:
                return json.dumps({"error": "key and value are required for set"})
            if key not in _VALID_CONFIG_KEYS:
                return json.dumps(
                    {
                        "error": f"Invalid key: {key}",
                        "valid_keys": sorted(_VALID_CONFIG_KEYS),
                    }
                )
            try:
                if key == "log_level":
                    settings.log_level = value.upper()
                    logger.remove()
                    logger.add(sys.stderr, level=settings.log_level)
                elif key == "tool_timeout":
                    settings.tool_timeout = int(value)
                elif key == "http_timeout":
                    settings.http_timeout = float(value)
                elif key == "wrapper_origin":
                    settings.wrapper_origin = value.rstrip("/")
            except ValueError:
                return json.dumps({"error": f"Invalid value for {key}: {value}"})
            return json.dumps({"status": "updated", "key": key, "value": value})

        case _:
            return json.dumps(
                {
                    "error": f"Unknown action: {action}",
                    "valid_actions": ["status", "set"],
                }
            )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def module_docs(package: str, module: str, question: str) -> str:
    """Generate a prompt to answer a question from a module's documentation."""
    return (
        f"Answer using the documentation of {module} from the '{package}' package: "
        f"{question}\n\n"
        f"1. Use the docs tool with action='page', package='{package}', "
        f"page='{module}.html'.\n"
        "2. Check the Module Synopsis, Spec lines and option tables first.\n"
        "3. Follow Related Pages with further page calls when the answer "
        "spans several modules."
    )


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
