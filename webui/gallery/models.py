# gallery/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

# ========= persisted document =========

class VideoMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    duration: Optional[float] = None
    lastAccessed: Optional[int] = None
    hasThumbnail: Optional[bool] = None

class HistoryRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    progress: float = 0.0
    duration: Optional[float] = None
    lastWatched: int = 0
    completed: bool = False

# ========= responses =========

class EntryOut(BaseModel):
    type: str
    name: str
    path: str
    size: str
    bytes: int

class VideoOut(EntryOut):
    thumbUrl: str = ""
    hasThumb: bool = False
    isFavorite: bool = False
    progress: float = 0
    duration: Optional[float] = None
    percent: int = 0

class VideoPage(BaseModel):
    videos: List[VideoOut]
    hasMore: bool
    total: int = 0
    page: int = 1

class ContinueItem(BaseModel):
    path: str
    progress: float
    duration: Optional[float] = None
    lastWatched: int
    percent: int
    name: str = ""
    thumbUrl: str = ""
    hasThumb: bool = False

class FavoriteItem(BaseModel):
    path: str
    name: str
    thumbUrl: str = ""
    hasThumb: bool = False
    duration: Optional[float] = None

class Crumb(BaseModel):
    name: str
    url: str

class NextVideo(BaseModel):
    path: str
    name: str
    thumbUrl: str = ""
    hasThumb: bool = False

class FolderView(BaseModel):
    currentPath: str
    crumbs: List[Crumb]
    folders: List[EntryOut]
    videos: List[VideoOut]
    hasMoreVideos: bool
    activeVideo: Optional[str] = None
    nextVideo: Optional[NextVideo] = None
    continueWatching: List[ContinueItem] = Field(default_factory=list)
    favorites: List[FavoriteItem] = Field(default_factory=list)

class RandomOut(BaseModel):
    video: Optional[str] = None

class RandomGlobalOut(BaseModel):
    video: Optional[str] = None
    folder: Optional[str] = None

# ========= requests =========
# path is optional here so a missing one is answered with 400, not 422

class FavoriteRequest(BaseModel):
    path: Optional[str] = None

class ProgressRequest(BaseModel):
    path: Optional[str] = None
    progress: Optional[float] = None
    duration: Optional[float] = None

class MetadataRequest(BaseModel):
    path: Optional[str] = None
    duration: Optional[float] = None

class ThumbRequest(BaseModel):
    path: Optional[str] = None
    data: Optional[str] = None
    duration: Optional[float] = None
