"""
Path normalization.

Every path stored in descriptors or registered with the router goes
through these helpers, so "/users", "users/" and "users" are the same
route.
"""

import re
from typing import Optional

_SLASH_RUN = re.compile(r"/+")


def normalize(path: Optional[str]) -> str:
    """
    Reduce a path fragment to canonical form.

    Examples:
        normalize("")        -> "/"
        normalize("users/")  -> "/users"
        normalize("users")   -> "/users"
    """
    if not path or path == "/":
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


def build_full_path(*segments: Optional[str]) -> str:
    """
    Join path segments into one canonical path.

    Empty segments are skipped, runs of slashes collapse to one.

    Example:
        build_full_path("/api", "/users", "/:id") -> "/api/users/:id"
    """
    joined = "/".join(s for s in segments if s)
    return normalize(_SLASH_RUN.sub("/", joined))
