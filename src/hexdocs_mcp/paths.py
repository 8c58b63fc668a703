"""Path layout of mirrored documentation: /{package}[/{version}]/{page}."""

from typing import NamedTuple

from hexdocs_mcp.config import is_version_segment


class PathContext(NamedTuple):
    package: str | None
    version: str | None
    rest_path: str
    base_path: str
    is_versioned: bool


def parse_path_context(pathname: str) -> PathContext:
    """Split a request path into package, optional version and page path.

    The second segment only counts as a version when it looks like one
    (``1.2.3``, ``1.0.0-rc.1``); otherwise it is the first page segment.
    """
    segments = [s for s in pathname.split("/") if s]
    if not segments:
        return PathContext(None, None, "", "", False)
    package = segments[0]
    if len(segments) < 2:
        return PathContext(package, None, "", f"/{package}", False)

    maybe_version, rest = segments[1], segments[2:]
    if is_version_segment(maybe_version):
        return PathContext(
            package,
            maybe_version,
            "/".join(rest),
            f"/{package}/{maybe_version}",
            True,
        )
    return PathContext(
        package, None, "/".join([maybe_version, *rest]), f"/{package}", False
    )
