# gallery/paths.py
import hashlib
import os

THUMB_EXT = ".jpg"


def normalize(path: str) -> str:
    """Platform separators -> '/'. Used as the hashing input for thumbnails."""
    path = str(path)
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    return path.replace("\\", "/")


def thumbnail_id(path: str) -> str:
    """
    md5 of the normalized logical path, as 32 hex chars.
    Unsalted: the same video maps to the same cache file across restarts.
    The key is the path, not the file content, so a replaced video keeps its old thumbnail.
    """
    return hashlib.md5(normalize(path).encode("utf-8")).hexdigest()


def thumbnail_filename(path: str) -> str:
    return thumbnail_id(path) + THUMB_EXT


def sanitize_request_path(raw: str) -> str:
    """
    Turn a user supplied relative path into a logical path that stays inside the root.
    - "\\" and "/" are both separators; empty and "." segments collapse
    - ".." pops the previous segment, or is dropped at the root
    - dot-prefixed (hidden) segments are dropped; callers that must not fall back
      to the parent check has_hidden_segment() first
    Returns "" for the root. Idempotent.
    """
    parts = []
    for seg in normalize(raw or "").split("/"):
        seg = seg.strip()
        if seg == "..":
            if parts:
                parts.pop()
            continue
        if not seg or seg.startswith(".") or "\x00" in seg:
            continue
        parts.append(seg)
    return "/".join(parts)


def has_hidden_segment(path: str) -> bool:
    """True when a segment is dot-prefixed (other than "." and ".."): names that listings never show."""
    return any(
        seg.startswith(".") and seg not in (".", "..")
        for seg in (s.strip() for s in normalize(path or "").split("/"))
    )


def safe_join(root: str, logical: str) -> str:
    """Join a logical path onto the library root (sanitizing it first)."""
    logical = sanitize_request_path(logical)
    if not logical:
        return os.path.normpath(root)
    return os.path.normpath(os.path.join(root, *logical.split("/")))


def join_logical(base: str, name: str) -> str:
    return f"{base}/{name}" if base else name


def parent_of(logical: str) -> str:
    return logical.rsplit("/", 1)[0] if "/" in logical else ""


def basename(logical: str) -> str:
    return normalize(logical).rsplit("/", 1)[-1]
