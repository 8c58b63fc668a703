"""hexdocs MCP Server entry point."""

import asyncio
import sys


def _render(path: str) -> int:
    """Render one wrapper path to stdout without starting the server.

    Run this to inspect what an agent would receive:
        hexdocs-mcp render /ecto/3.12.5/Ecto.Repo.html
    """
    from hexdocs_mcp.config import settings
    from hexdocs_mcp.handler import handle_request

    url = f"{settings.normalized_wrapper_origin()}/{path.lstrip('/')}"
    response = asyncio.run(handle_request(url))
    print(response.body)
    return 0 if response.status < 400 else 1


def _cli() -> None:
    """CLI dispatcher: server (default) or render subcommand."""
    if len(sys.argv) >= 2 and sys.argv[1] == "render":
        if len(sys.argv) < 3:
            print("Usage: hexdocs-mcp render /{package}/{version}/{page}.html")
            sys.exit(2)
        sys.exit(_render(sys.argv[2]))
    else:
        from hexdocs_mcp.server import main

        main()


if __name__ == "__main__":
    _cli()
