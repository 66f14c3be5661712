# gallery/scan.py: folder listing and recursive search over the library root
import logging
import math
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, List, Set, Tuple

from .config import IGNORE_FOLDERS, SEARCH_CAP, VIDEO_EXTENSIONS
from .paths import join_logical

log = logging.getLogger("gallery.scan")

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


class EntryType(str, Enum):
    FOLDER = "folder"
    VIDEO = "video"


@dataclass
class Entry:
    type: EntryType
    name: str
    path: str
    bytes: int = 0
    size: str = "-"

    def as_dict(self) -> dict:
        return {
            "type": self.type.value,
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "bytes": self.bytes,
        }


@dataclass
class ScanResult:
    entries: List[Entry] = field(default_factory=list)
    # logical paths (or names) that could not be stat'ed / opened
    skipped: List[str] = field(default_factory=list)

    @property
    def folders(self) -> List[Entry]:
        return [e for e in self.entries if e.type is EntryType.FOLDER]

    @property
    def videos(self) -> List[Entry]:
        return [e for e in self.entries if e.type is EntryType.VIDEO]


def format_bytes(num, decimals: int = 1) -> str:
    """1536 -> '1.5 KB'; zero, negative or non-numeric -> '0 B'."""
    try:
        num = float(num)
    except (TypeError, ValueError):
        return "0 B"
    if not num or num < 0 or math.isnan(num) or math.isinf(num):
        return "0 B"
    dm = max(decimals, 0)
    # floor(log_1024(num)) without float log error at exact powers
    i = 0
    while num >= 1024 and i < len(SIZE_UNITS) - 1:
        num /= 1024
        i += 1
    text = f"{num:.{dm}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def is_video(name: str, extensions: AbstractSet[str] = VIDEO_EXTENSIONS) -> bool:
    return os.path.splitext(name)[1].lower() in extensions


def _folder_entry(name: str, rel: str) -> Entry:
    return Entry(type=EntryType.FOLDER, name=name, path=rel)


def _video_entry(name: str, rel: str, size: int) -> Entry:
    return Entry(type=EntryType.VIDEO, name=name, path=rel, bytes=size, size=format_bytes(size))


def list_folder(abs_dir: str, logical_base: str = "",
                ignore: AbstractSet[str] = IGNORE_FOLDERS,
                extensions: AbstractSet[str] = VIDEO_EXTENSIONS) -> ScanResult:
    """
    One level of abs_dir, classified into folders and videos.
    - dot-names are hidden; ignored folder names are dropped
    - files that are not videos are left out silently
    - an entry whose stat fails lands in `skipped`, the rest still come back
    - a directory that cannot be opened gives an empty result
    Order follows os.scandir(); callers sort.
    """
    result = ScanResult()
    try:
        it = os.scandir(abs_dir)
    except (OSError, ValueError) as e:
        log.debug("cannot open %s: %s", abs_dir, e)
        return result

    with it as entries:
        try:
            for entry in entries:
                name = entry.name
                if name.startswith("."):
                    continue
                rel = join_logical(logical_base, name)
                try:
                    if entry.is_dir():
                        if name in ignore:
                            continue
                        result.entries.append(_folder_entry(name, rel))
                    elif is_video(name, extensions):
                        st = entry.stat()
                        result.entries.append(_video_entry(name, rel, st.st_size))
                except OSError:
                    result.skipped.append(rel)
        except OSError as e:
            # directory vanished mid-iteration: keep what was read
            log.debug("listing of %s cut short: %s", abs_dir, e)
    return result


def search(root_dir: str, term: str, max_results: int = SEARCH_CAP,
           ignore: AbstractSet[str] = IGNORE_FOLDERS,
           extensions: AbstractSet[str] = VIDEO_EXTENSIONS) -> ScanResult:
    """
    Depth-first, pre-order substring search (case-insensitive) under root_dir.
    Matching folders are reported and still descended into; a video is reported
    only when its own name matches. Stops as soon as more than max_results
    entries are collected, so the result is in traversal order.
    """
    result = ScanResult()
    if not os.path.isdir(root_dir):
        return result
    _search_dir(root_dir, "", term.casefold(), max_results, ignore, extensions, result, set())
    return result


def _search_dir(abs_dir: str, base: str, needle: str, cap: int,
                ignore: AbstractSet[str], extensions: AbstractSet[str],
                result: ScanResult, seen: Set[Tuple[int, int]]) -> bool:
    """Returns True once the cap is exceeded."""
    try:
        st = os.stat(abs_dir)
        names = sorted(os.listdir(abs_dir))
    except OSError:
        result.skipped.append(base)
        return False
    # symlinked directories may loop back onto an ancestor
    key = (st.st_dev, st.st_ino)
    if key in seen:
        return False
    seen.add(key)

    for name in names:
        if name.startswith(".") or name in ignore:
            continue
        full = os.path.join(abs_dir, name)
        rel = join_logical(base, name)
        matched = needle in name.casefold()
        try:
            child = os.stat(full)
        except OSError:
            result.skipped.append(rel)
        else:
            if stat.S_ISDIR(child.st_mode):
                if matched:
                    result.entries.append(_folder_entry(name, rel))
                if _search_dir(full, rel, needle, cap, ignore, extensions, result, seen):
                    return True
            elif matched and is_video(name, extensions):
                result.entries.append(_video_entry(name, rel, child.st_size))
        if len(result.entries) > cap:
            return True
    return False


def walk_videos(root_dir: str,
                ignore: AbstractSet[str] = IGNORE_FOLDERS,
                extensions: AbstractSet[str] = VIDEO_EXTENSIONS) -> List[str]:
    """Logical paths of every video under root_dir (hidden/ignored folders pruned)."""
    out: List[str] = []

    def onerror(e: OSError):
        log.debug("walk skipped %s: %s", getattr(e, "filename", "?"), e)

    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=onerror):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in ignore)
        rel_dir = os.path.relpath(dirpath, root_dir)
        base = "" if rel_dir == "." else rel_dir.replace(os.sep, "/")
        for fn in sorted(filenames):
            if fn.startswith(".") or not is_video(fn, extensions):
                continue
            out.append(join_logical(base, fn))
    return out
