# gallery/service.py: joins folder listings with stored metadata for the web layer
import logging
import os
import random
import re
from typing import List, Optional, Tuple
from urllib.parse import quote

from . import thumbs
from .config import GalleryConfig
from .models import (
    ContinueItem, Crumb, EntryOut, FavoriteItem, FolderView, NextVideo, VideoOut, VideoPage,
)
from .paths import basename, has_hidden_segment, normalize, parent_of, safe_join, sanitize_request_path
from .scan import Entry, list_folder, search, walk_videos
from .store import MetadataStore, percent_of

log = logging.getLogger("gallery.service")

MIN_SEARCH_TERM = 2
HOME_CONTINUE_LIMIT = 5
HOME_FAVORITES_LIMIT = 10

_digits_re = re.compile(r"(\d+)")


class FolderNotFound(LookupError):
    """The requested logical folder does not exist (as opposed to being empty)."""


def natural_key(name: str):
    """'file2' sorts before 'file10'; case-insensitive, raw name breaks ties."""
    parts = _digits_re.split(name)
    chunks = tuple(
        (0, int(p), "") if i % 2 else (1, 0, p.casefold())
        for i, p in enumerate(parts)
    )
    return chunks, name


def sort_entries(entries: List[Entry]) -> List[Entry]:
    return sorted(entries, key=lambda e: natural_key(e.name))


def build_crumbs(logical: str) -> List[Crumb]:
    parts = [p for p in logical.split("/") if p]
    return [
        Crumb(name=part, url="?path=" + quote("/".join(parts[:i + 1]), safe="!'()*"))
        for i, part in enumerate(parts)
    ]


class GalleryService:
    def __init__(self, config: GalleryConfig, store: MetadataStore):
        self.config = config
        self.store = store

    # ---------- helpers ----------

    def _resolve(self, logical_path: str) -> Tuple[str, str]:
        # a hidden folder is a miss, never its parent
        if has_hidden_segment(logical_path):
            raise FolderNotFound(normalize(logical_path))
        logical = sanitize_request_path(logical_path)
        abs_dir = safe_join(self.config.root, logical)
        if not os.path.isdir(abs_dir):
            raise FolderNotFound(logical)
        return logical, abs_dir

    def _list(self, logical: str, abs_dir: str):
        res = list_folder(abs_dir, logical, self.config.ignore_folders, self.config.video_extensions)
        if res.skipped:
            log.debug("%d entries skipped under /%s", len(res.skipped), logical)
        return res

    def _enrich(self, entry: Entry) -> VideoOut:
        url, has = thumbs.thumb_info(self.config.thumb_dir, entry.path)
        hist = self.store.get_progress(entry.path)
        meta = self.store.get_video_meta(entry.path)
        return VideoOut(
            **entry.as_dict(),
            thumbUrl=url,
            hasThumb=has,
            isFavorite=self.store.is_favorite(entry.path),
            progress=(hist or {}).get("progress") or 0,
            duration=(meta or {}).get("duration"),
            percent=percent_of(hist["progress"], hist.get("duration")) if hist else 0,
        )

    # ---------- listing ----------

    def list_page(self, logical_path: str, page: int = 1, page_size: Optional[int] = None) -> VideoPage:
        """
        One page of videos in a folder, natural-sorted by name.
        Raises FolderNotFound when the folder does not exist.
        """
        logical, abs_dir = self._resolve(logical_path)
        videos = sort_entries(self._list(logical, abs_dir).videos)

        page = max(int(page or 1), 1)
        size = max(int(page_size or self.config.page_size), 1)
        start = (page - 1) * size
        end = start + size
        return VideoPage(
            videos=[self._enrich(v) for v in videos[start:end]],
            hasMore=end < len(videos),
            total=len(videos),
            page=page,
        )

    def folder_view(self, logical_path: str, active: Optional[str] = None) -> FolderView:
        logical, abs_dir = self._resolve(logical_path)
        res = self._list(logical, abs_dir)
        folders = sort_entries(res.folders)
        all_videos = sort_entries(res.videos)
        size = self.config.page_size

        next_video = None
        if active:
            idx = next((i for i, v in enumerate(all_videos) if v.path == active), -1)
            if 0 <= idx < len(all_videos) - 1:
                nxt = all_videos[idx + 1]
                url, has = thumbs.thumb_info(self.config.thumb_dir, nxt.path)
                next_video = NextVideo(path=nxt.path, name=nxt.name, thumbUrl=url, hasThumb=has)

        at_root = logical == ""
        return FolderView(
            currentPath=logical,
            crumbs=build_crumbs(logical),
            folders=[EntryOut(**f.as_dict()) for f in folders],
            videos=[self._enrich(v) for v in all_videos[:size]],
            hasMoreVideos=len(all_videos) > size,
            activeVideo=active or None,
            nextVideo=next_video,
            continueWatching=self.continue_watching(HOME_CONTINUE_LIMIT) if at_root else [],
            favorites=self.favorite_items(HOME_FAVORITES_LIMIT) if at_root else [],
        )

    def search(self, term: Optional[str]) -> List[Entry]:
        if not term or len(term) < MIN_SEARCH_TERM:
            return []
        res = search(self.config.root, term, self.config.search_cap,
                     self.config.ignore_folders, self.config.video_extensions)
        return res.entries

    # ---------- metadata views ----------

    def continue_watching(self, limit: int = 10) -> List[ContinueItem]:
        out = []
        for item in self.store.get_continue_watching(limit):
            url, has = thumbs.thumb_info(self.config.thumb_dir, item["path"])
            out.append(ContinueItem(**item, name=basename(item["path"]), thumbUrl=url, hasThumb=has))
        return out

    def favorites(self) -> List[str]:
        return self.store.list_favorites()

    def favorite_items(self, limit: Optional[int] = None) -> List[FavoriteItem]:
        favs = self.store.list_favorites()
        if limit is not None:
            favs = favs[:limit]
        out = []
        for p in favs:
            url, has = thumbs.thumb_info(self.config.thumb_dir, p)
            meta = self.store.get_video_meta(p) or {}
            hist = self.store.get_progress(p) or {}
            out.append(FavoriteItem(
                path=p, name=basename(p), thumbUrl=url, hasThumb=has,
                duration=meta.get("duration") or hist.get("duration") or None,
            ))
        return out

    def save_thumbnail(self, video_path: str, data: str, duration=None) -> str:
        if not video_path or not data:
            raise ValueError("path and data are required")
        out = thumbs.save_thumbnail(self.config.thumb_dir, video_path, data)
        if duration:
            self.store.set_video_meta(video_path, {"duration": duration, "hasThumbnail": True})
        return out

    # ---------- random pick ----------

    def random_video(self, logical_path: str = "", rng=random) -> Optional[str]:
        try:
            logical, abs_dir = self._resolve(logical_path)
        except FolderNotFound:
            return None
        videos = sort_entries(self._list(logical, abs_dir).videos)
        if not videos:
            return None
        return rng.choice(videos).path

    def random_global(self, rng=random) -> Tuple[Optional[str], Optional[str]]:
        videos = walk_videos(self.config.root, self.config.ignore_folders, self.config.video_extensions)
        if not videos:
            return None, None
        pick = rng.choice(videos)
        return pick, parent_of(pick)
