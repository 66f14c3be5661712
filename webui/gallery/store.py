# gallery/store.py: per-video metadata, favorites and watch history in one JSON file
import copy
import json
import logging
import math
import os
import threading
import time
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .models import HistoryRecord, VideoMeta
from .paths import normalize

log = logging.getLogger("gallery.store")

COMPLETED_RATIO = 0.9
_RECORD_MODELS = {"videos": VideoMeta, "history": HistoryRecord}


def empty_document() -> dict:
    return {"videos": {}, "favorites": [], "history": {}}


def now_ms() -> int:
    return int(time.time() * 1000)


def percent_of(progress, duration) -> int:
    """round(100 * progress / duration), half up; 0 when duration is missing or zero."""
    try:
        if not duration or duration <= 0:
            return 0
        return int(math.floor(100.0 * progress / duration + 0.5))
    except (TypeError, ValueError, OverflowError):
        return 0


def is_completed(progress, duration) -> bool:
    try:
        return bool(duration) and duration > 0 and progress / duration > COMPLETED_RATIO
    except (TypeError, ZeroDivisionError):
        return False


def _usable_records(path: str, section: str, records) -> dict:
    """Keep the records of one section that pass the strict shape check; drop (and log) the rest."""
    if not isinstance(records, dict):
        log.warning("metadata file %s: %r section unusable, ignored", path, section)
        return {}
    model = _RECORD_MODELS[section]
    out = {}
    for key, rec in records.items():
        try:
            # shape check only; the raw record is kept so unknown fields survive a save
            model.model_validate(rec, strict=True)
        except ValidationError as e:
            log.warning("metadata file %s: %s record %r unusable, dropped: %s", path, section, key, e)
            continue
        out[key] = rec
    return out


def load_document(path: str) -> dict:
    """
    Read and shape-check the metadata file.
    Missing or unparsable content gives the empty document; a bad record only
    costs that record. Never raises.
    """
    if not os.path.exists(path):
        return empty_document()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        log.warning("metadata file %s unusable, starting empty: %s", path, e)
        return empty_document()
    if not isinstance(raw, dict):
        log.warning("metadata file %s unusable, starting empty: top level is %s", path, type(raw).__name__)
        return empty_document()

    out = empty_document()
    for section in _RECORD_MODELS:
        if section in raw:
            out[section] = _usable_records(path, section, raw[section])

    favs = raw.get("favorites", [])
    if not isinstance(favs, list):
        log.warning("metadata file %s: 'favorites' section unusable, ignored", path)
        favs = []
    kept = [f for f in favs if isinstance(f, str)]
    if len(kept) != len(favs):
        log.warning("metadata file %s: %d unusable favorites dropped", path, len(favs) - len(kept))
    # favorites stay unique, first occurrence wins
    out["favorites"] = list(dict.fromkeys(kept))
    return out


def save_document(path: str, doc: dict) -> bool:
    """
    Write to a temp file next to the target, then os.replace().
    Failures are logged and reported as False; nothing is retried.
    """
    tmp_path = path + ".tmp"
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(doc, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
        return True
    except (OSError, TypeError, ValueError) as e:
        log.error("saving metadata to %s failed: %s", path, e)
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError:
            pass
        return False


def _require_path(video_path) -> str:
    if not isinstance(video_path, str) or not video_path.strip():
        raise ValueError("video path is required")
    return normalize(video_path)


class MetadataStore:
    """
    Owner of the metadata document. Every mutation runs merge/replace + save
    under one lock, and the save is attempted before the call returns.
    A failed save keeps the in-memory change (the file may then lag behind).
    """

    def __init__(self, path: str, clock: Callable[[], int] = now_ms):
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._doc = load_document(path)

    # ---------- persistence ----------

    def _persist(self) -> bool:
        return save_document(self.path, self._doc)

    def reload(self) -> None:
        with self._lock:
            self._doc = load_document(self.path)

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._doc)

    # ---------- videos ----------

    def get_video_meta(self, video_path: str) -> Optional[dict]:
        key = normalize(video_path)
        with self._lock:
            rec = self._doc["videos"].get(key)
            return dict(rec) if rec is not None else None

    def set_video_meta(self, video_path: str, fields: Dict) -> dict:
        """Merge fields into the record. A merge that would not load back raises ValueError and changes nothing."""
        key = _require_path(video_path)
        fields = dict(fields or {})
        with self._lock:
            rec = dict(self._doc["videos"].get(key) or {})
            rec.update(fields)
            rec["lastAccessed"] = self._clock()
            try:
                VideoMeta.model_validate(rec, strict=True)
            except ValidationError as e:
                raise ValueError(f"invalid video metadata for {key}: {e}")
            self._doc["videos"][key] = rec
            self._persist()
            return dict(rec)

    # ---------- favorites ----------

    def list_favorites(self) -> List[str]:
        with self._lock:
            return list(self._doc["favorites"])

    def is_favorite(self, video_path: str) -> bool:
        key = normalize(video_path)
        with self._lock:
            return key in self._doc["favorites"]

    def toggle_favorite(self, video_path: str) -> bool:
        """Remove if present, else append at the end. Returns the new membership."""
        key = _require_path(video_path)
        with self._lock:
            favs = self._doc["favorites"]
            if key in favs:
                favs.remove(key)
                state = False
            else:
                favs.append(key)
                state = True
            self._persist()
            return state

    # ---------- history ----------

    def get_history(self) -> Dict[str, dict]:
        with self._lock:
            return copy.deepcopy(self._doc["history"])

    def get_progress(self, video_path: str) -> Optional[dict]:
        key = normalize(video_path)
        with self._lock:
            rec = self._doc["history"].get(key)
            return dict(rec) if rec is not None else None

    def update_progress(self, video_path: str, progress, duration=None) -> dict:
        """
        Replace the whole history record. `completed` is decided here only;
        a later duration fix through set_video_meta does not revisit it.
        """
        key = _require_path(video_path)
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            raise ValueError("progress must be a number")
        if duration is not None and (isinstance(duration, bool) or not isinstance(duration, (int, float))):
            raise ValueError("duration must be a number")
        with self._lock:
            rec = {
                "progress": progress,
                "duration": duration,
                "lastWatched": self._clock(),
                "completed": is_completed(progress, duration),
            }
            self._doc["history"][key] = rec
            self._persist()
            return dict(rec)

    def get_continue_watching(self, limit: int = 10) -> List[dict]:
        """
        Unfinished records with some progress, newest first.
        Equal lastWatched values keep history insertion order (stable sort).
        """
        with self._lock:
            items = [
                (p, dict(rec)) for p, rec in self._doc["history"].items()
                if not rec.get("completed") and (rec.get("progress") or 0) > 0
            ]
        items.sort(key=lambda kv: kv[1].get("lastWatched") or 0, reverse=True)
        out = []
        for p, rec in items[:max(int(limit), 0)]:
            out.append({
                "path": p,
                "progress": rec.get("progress"),
                "duration": rec.get("duration"),
                "lastWatched": rec.get("lastWatched") or 0,
                "percent": percent_of(rec.get("progress"), rec.get("duration")),
            })
        return out
