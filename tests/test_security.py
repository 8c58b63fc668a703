"""Tests for src/hexdocs_mcp/security.py."""

from hexdocs_mcp.security import is_error_result, wrap_external_content


def test_wraps_documents():
    result = wrap_external_content("docs", "# Ecto.Repo", 200)
    assert result.startswith("<untrusted_docs_content>\n# Ecto.Repo\n</untrusted_docs_content>")
    assert "UNTRUSTED" in result


def test_error_status_not_wrapped():
    body = '{"error": "Upstream api-reference fetch failed"}'
    assert wrap_external_content("docs", body, 502) == body


def test_tool_errors_not_wrapped():
    body = "Error: package is required"
    assert wrap_external_content("docs", body) == body


def test_rendered_error_documents_not_wrapped():
    upstream = "## Navigation\n- Base: https://w/pkg/1.0.0\n\n## Upstream Error\nmessage: failed"
    invalid = "## Invalid Request\nExpected URL format: /{package}/{version}/{page}.html"
    assert wrap_external_content("docs", upstream, 502) == upstream
    assert wrap_external_content("docs", invalid, 400) == invalid


def test_is_error_result():
    assert is_error_result("anything", 400)
    assert not is_error_result("## Navigation", 200)
    assert not is_error_result("# Errors in Ecto")
