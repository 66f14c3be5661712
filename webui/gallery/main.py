# gallery/main.py: FastAPI web layer over the gallery core
import os, logging
from typing import Optional

from fastapi import FastAPI, Query, Request, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .config import GalleryConfig
from .models import (
  EntryOut, VideoPage, FolderView, ContinueItem, RandomOut, RandomGlobalOut,
  FavoriteRequest, ProgressRequest, MetadataRequest, ThumbRequest,
)
from .paths import has_hidden_segment
from .service import GalleryService, FolderNotFound
from .store import MetadataStore
from .thumbs import THUMB_URL_PREFIX

log = logging.getLogger("gallery.main")

APP_DIR = os.path.dirname(__file__)
templates = Jinja2Templates(directory=os.path.join(APP_DIR, "templates"))

# ==== quiet access log for health polling ====
class _HealthFilter(logging.Filter):
  def filter(self, record):
    msg = getattr(record, "msg", "")
    args = getattr(record, "args", None) or ()
    return "/health" not in str(msg) and not any("/health" in str(a) for a in args)

if os.getenv("GALLERY_SILENCE_HEALTH_LOGS", "1") == "1":
  logging.getLogger("uvicorn.access").addFilter(_HealthFilter())


class MediaFiles(StaticFiles):
  """StaticFiles that 404s dot-prefixed files and folders (metadata, thumbnail cache, ...)."""
  async def get_response(self, path: str, scope):
    if has_hidden_segment(path):
      raise HTTPException(404)
    return await super().get_response(path, scope)


def _bad_request(detail: str):
  return HTTPException(400, detail=detail)


def create_app(config: Optional[GalleryConfig] = None, store: Optional[MetadataStore] = None) -> FastAPI:
  config = config or GalleryConfig.from_env()
  config.ensure_dirs()
  store = store or MetadataStore(config.metadata_file)
  service = GalleryService(config, store)

  app = FastAPI(title="Ox Video Gallery")
  app.state.config = config
  app.state.store = store
  app.state.service = service

  # thumbnails are immutable per logical path
  app.mount(THUMB_URL_PREFIX, StaticFiles(directory=config.thumb_dir), name="thumbnails")
  # video bytes (incl. Range) are left to the static file server
  app.mount("/media", MediaFiles(directory=config.root, check_dir=False), name="media")

  # ========== pages ==========
  @app.get("/", response_class=HTMLResponse)
  def index(request: Request, path: str = "", v: Optional[str] = None):
    try:
      view = service.folder_view(path, active=v)
    except FolderNotFound:
      return PlainTextResponse("Folder not found", status_code=404)
    return templates.TemplateResponse(request, "index.html", {"view": view})

  @app.get("/api/folder", response_model=FolderView)
  def api_folder(path: str = "", v: Optional[str] = None):
    try:
      return service.folder_view(path, active=v)
    except FolderNotFound:
      raise HTTPException(404, detail="folder-not-found")

  # ========== listing / search ==========
  @app.get("/api/videos", response_model=VideoPage)
  def api_videos(
    path: str = Query("", description="logical folder, e.g. A/B"),
    page: int = Query(1, ge=1),
    limit: int = Query(config.page_size, ge=1, le=500),
  ):
    try:
      return service.list_page(path, page, limit)
    except FolderNotFound:
      return VideoPage(videos=[], hasMore=False, total=0, page=page)

  @app.get("/api/search", response_model=list[EntryOut])
  def api_search(q: str = ""):
    return [e.as_dict() for e in service.search(q)]

  @app.get("/api/random", response_model=RandomOut)
  def api_random(path: str = ""):
    return RandomOut(video=service.random_video(path))

  @app.get("/api/random-global", response_model=RandomGlobalOut)
  def api_random_global():
    video, folder = service.random_global()
    return RandomGlobalOut(video=video, folder=folder)

  # ========== favorites ==========
  @app.get("/api/favorites")
  def api_get_favorites():
    return service.favorites()

  @app.post("/api/favorites")
  def api_toggle_favorite(payload: FavoriteRequest):
    if not payload.path:
      raise _bad_request("path-required")
    return {"isFavorite": store.toggle_favorite(payload.path)}

  # ========== history / progress ==========
  @app.get("/api/history")
  def api_get_history():
    return store.get_history()

  @app.post("/api/history")
  def api_update_history(payload: ProgressRequest):
    if not payload.path or payload.progress is None:
      raise _bad_request("path-and-progress-required")
    try:
      store.update_progress(payload.path, payload.progress, payload.duration)
    except ValueError as e:
      raise _bad_request(str(e))
    return {"ok": True}

  @app.get("/api/continue", response_model=list[ContinueItem])
  def api_continue(limit: int = Query(10, ge=1, le=500)):
    return service.continue_watching(limit)

  # ========== per-video metadata / thumbnails ==========
  @app.post("/api/metadata")
  def api_set_metadata(payload: MetadataRequest):
    if not payload.path:
      raise _bad_request("path-required")
    fields = {} if payload.duration is None else {"duration": payload.duration}
    try:
      store.set_video_meta(payload.path, fields)
    except ValueError as e:
      raise _bad_request(str(e))
    return {"ok": True}

  @app.post("/save-thumb")
  def api_save_thumb(payload: ThumbRequest):
    if not payload.path or not payload.data:
      raise _bad_request("path-and-data-required")
    try:
      service.save_thumbnail(payload.path, payload.data, payload.duration)
    except ValueError as e:
      raise _bad_request(str(e))
    except OSError as e:
      log.error("thumbnail write for %s failed: %s", payload.path, e)
      raise HTTPException(500, detail="thumbnail-write-failed")
    return {"ok": True}

  @app.get("/health")
  def health():
    return {
      "root": config.root,
      "root_exists": os.path.isdir(config.root),
      "thumb_dir": config.thumb_dir,
      "thumb_dir_exists": os.path.isdir(config.thumb_dir),
      "metadata_file": config.metadata_file,
      "metadata_file_exists": os.path.isfile(config.metadata_file),
    }

  return app


def run():
  logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
  import uvicorn
  config = GalleryConfig.from_env()
  log.info("serving %s on http://%s:%d", config.root, config.host, config.port)
  uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
  run()
