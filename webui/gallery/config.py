# gallery/config.py
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

# === Folder names never listed or searched (exact, case-sensitive basename) ===
IGNORE_FOLDERS = frozenset({
    "node_modules",
    ".git",
    ".vscode",
    "dist",
    "build",
    "temp",
    "tmp",
    "__pycache__",
    "src",
    "venv",
    ".next",
    "out",
    "cache",
    ".thumbnails",
    "$RECYCLE.BIN",
    "System Volume Information",
    "RECYCLER",
})

# Lower-case, with the leading dot
VIDEO_EXTENSIONS = frozenset({
    ".mp4", ".webm", ".ogg", ".mov", ".mkv", ".avi", ".flv", ".wmv", ".m4v",
})

DEFAULT_PAGE_SIZE = 20
SEARCH_CAP = 100


@dataclass(frozen=True)
class GalleryConfig:
    root: str
    data_dir: str
    metadata_file: str
    thumb_dir: str
    page_size: int = DEFAULT_PAGE_SIZE
    search_cap: int = SEARCH_CAP
    host: str = "0.0.0.0"
    port: int = 3000
    ignore_folders: FrozenSet[str] = field(default=IGNORE_FOLDERS)
    video_extensions: FrozenSet[str] = field(default=VIDEO_EXTENSIONS)

    @classmethod
    def for_root(cls, root: str, data_dir: Optional[str] = None,
                 thumb_dir: Optional[str] = None, **kwargs) -> "GalleryConfig":
        root = os.path.abspath(root)
        data_dir = data_dir or os.path.join(root, ".data")
        return cls(
            root=root,
            data_dir=data_dir,
            metadata_file=kwargs.pop("metadata_file", None) or os.path.join(data_dir, "metadata.json"),
            thumb_dir=thumb_dir or os.path.join(root, ".thumbnails"),
            **kwargs,
        )

    @classmethod
    def from_env(cls) -> "GalleryConfig":
        """
        Build the config from GALLERY_* environment variables.
        Unset variables fall back to paths under the library root.
        """
        return cls.for_root(
            os.getenv("GALLERY_ROOT", os.getcwd()),
            data_dir=os.getenv("GALLERY_DATA_DIR") or None,
            thumb_dir=os.getenv("GALLERY_THUMB_DIR") or None,
            metadata_file=os.getenv("GALLERY_METADATA_FILE") or None,
            page_size=int(os.getenv("GALLERY_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
            search_cap=int(os.getenv("GALLERY_SEARCH_CAP", str(SEARCH_CAP))),
            host=os.getenv("GALLERY_HOST", "0.0.0.0"),
            port=int(os.getenv("GALLERY_PORT", "3000")),
        )

    def ensure_dirs(self) -> None:
        os.makedirs(self.data_dir, exist_ok=True)
        os.makedirs(os.path.dirname(self.metadata_file) or ".", exist_ok=True)
        os.makedirs(self.thumb_dir, exist_ok=True)
