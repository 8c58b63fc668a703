"""Tests for src/hexdocs_mcp/server.py."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from hexdocs_mcp.config import settings
from hexdocs_mcp.handler import MARKDOWN_CONTENT_TYPE, WrapperResponse
from hexdocs_mcp.server import (
    _with_timeout,
    build_wrapper_url,
    config,
    docs,
    module_docs,
)


def _response(body: str, status: int = 200) -> WrapperResponse:
    return WrapperResponse(status, MARKDOWN_CONTENT_TYPE, "public, max-age=3600", body)


@pytest.fixture
def wrapper_origin():
    with patch.object(settings, "wrapper_origin", "https://w/"):
        yield "https://w"


# -----------------------------------------------------------------------
# docs tool
# -----------------------------------------------------------------------


def test_build_wrapper_url(wrapper_origin):
    assert build_wrapper_url("ecto", "Ecto.Repo.html", "3.12.5") == (
        "https://w/ecto/3.12.5/Ecto.Repo.html"
    )
    assert build_wrapper_url("/ecto/", "/llms.txt") == "https://w/ecto/llms.txt"


@pytest.mark.asyncio
async def test_docs_page_success(wrapper_origin):
    """Test page action wraps the rendered document."""
    with patch("hexdocs_mcp.server.handle_request", new_callable=AsyncMock) as mock_handle:
        mock_handle.return_value = _response("# Ecto.Repo")

        result = await docs(
            action="page", package="ecto", page="Ecto.Repo.html", version="3.12.5"
        )

        mock_handle.assert_called_once_with("https://w/ecto/3.12.5/Ecto.Repo.html")
        assert result.startswith("<untrusted_docs_content>\n# Ecto.Repo\n</untrusted_docs_content>")
        assert "[SECURITY:" in result


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action,path",
    [("index", "ecto/index.json"), ("llms", "ecto/llms.txt")],
)
async def test_docs_index_and_llms(wrapper_origin, action, path):
    with patch("hexdocs_mcp.server.handle_request", new_callable=AsyncMock) as mock_handle:
        mock_handle.return_value = _response("{}")

        await docs(action=action, package="ecto")

        mock_handle.assert_called_once_with(f"https://w/{path}")


@pytest.mark.asyncio
async def test_docs_upstream_error_not_wrapped(wrapper_origin):
    """Test upstream failures are returned as-is."""
    body = "## Navigation\n\n## Upstream Error\nmessage: Upstream html fetch failed"
    with patch("hexdocs_mcp.server.handle_request", new_callable=AsyncMock) as mock_handle:
        mock_handle.return_value = _response(body, status=502)

        result = await docs(action="page", package="ecto", page="Nope.html")

        assert result == body


@pytest.mark.asyncio
async def test_docs_missing_package():
    assert await docs(action="page", package="") == "Error: package is required"


@pytest.mark.asyncio
async def test_docs_missing_page():
    result = await docs(action="page", package="ecto")
    assert result == "Error: page is required for page action"


@pytest.mark.asyncio
async def test_docs_invalid_version():
    result = await docs(action="index", package="ecto", version="latest")
    assert "Error: Invalid version 'latest'" in result


@pytest.mark.asyncio
async def test_docs_unknown_action():
    result = await docs(action="search", package="ecto")
    assert "Error: Unknown action 'search'" in result


# -----------------------------------------------------------------------
# Timeouts
# -----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_with_timeout_returns_result():
    async def quick():
        return "done"

    with patch.object(settings, "tool_timeout", 5):
        assert await _with_timeout(quick(), "docs.page") == "done"


@pytest.mark.asyncio
async def test_with_timeout_disabled():
    async def quick():
        return "done"

    with patch.object(settings, "tool_timeout", 0):
        assert await _with_timeout(quick(), "docs.page") == "done"


@pytest.mark.asyncio
async def test_with_timeout_expires():
    async def slow():
        await asyncio.sleep(10)
        return "never"

    with patch.object(settings, "tool_timeout", 1):
        result = await _with_timeout(slow(), "docs.page")

    assert result.startswith("Error: 'docs.page' timed out after 1s")


# -----------------------------------------------------------------------
# config tool
# -----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_config_status():
    status = json.loads(await config(action="status"))
    assert status["upstream_origin"] == settings.upstream_origin
    assert set(status) == {
        "upstream_origin",
        "wrapper_origin",
        "http_timeout",
        "tool_timeout",
        "log_level",
    }


@pytest.mark.asyncio
async def test_config_set_tool_timeout():
    with patch.object(settings, "tool_timeout", 120):
        result = json.loads(await config(action="set", key="tool_timeout", value="30"))
        assert result == {"status": "updated", "key": "tool_timeout", "value": "30"}
        assert settings.tool_timeout == 30


@pytest.mark.asyncio
async def test_config_set_wrapper_origin():
    with patch.object(settings, "wrapper_origin", "http://localhost:8787"):
        await config(action="set", key="wrapper_origin", value="https://docs.example/")
        assert settings.wrapper_origin == "https://docs.example"


@pytest.mark.asyncio
async def test_config_set_invalid_value():
    with patch.object(settings, "http_timeout", 30.0):
        result = json.loads(await config(action="set", key="http_timeout", value="soon"))
        assert result == {"error": "Invalid value for http_timeout: soon"}
        assert settings.http_timeout == 30.0


@pytest.mark.asyncio
async def test_config_set_invalid_key():
    result = json.loads(await config(action="set", key="upstream_origin", value="x"))
    assert result["error"] == "Invalid key: upstream_origin"
    assert "wrapper_origin" in result["valid_keys"]


@pytest.mark.asyncio
async def test_config_set_missing_value():
    result = json.loads(await config(action="set", key="tool_timeout"))
    assert "error" in result


@pytest.mark.asyncio
async def test_config_unknown_action():
    result = json.loads(await config(action="reset"))
    assert result["valid_actions"] == ["status", "set"]


def test_module_docs_prompt():
    prompt = module_docs(package="ecto", module="Ecto.Repo", question="How do I insert?")
    assert "How do I insert?" in prompt
    assert "page='Ecto.Repo.html'" in prompt
