# gallery/thumbs.py: thumbnail cache (<thumb_dir>/<md5 of logical path>.jpg)
import base64
import binascii
import io
import logging
import os
import re

from PIL import Image, UnidentifiedImageError

from .paths import thumbnail_filename

log = logging.getLogger("gallery.thumbs")

THUMB_URL_PREFIX = "/.thumbnails"
JPEG_QUALITY = 85
_data_url_re = re.compile(r"^data:image/[\w.+-]+;base64,")


def thumb_path(thumb_dir: str, video_path: str) -> str:
    return os.path.join(thumb_dir, thumbnail_filename(video_path))


def thumb_info(thumb_dir: str, video_path: str):
    """(url, exists). The file on disk is the only signal that a thumbnail is ready."""
    name = thumbnail_filename(video_path)
    if os.path.isfile(os.path.join(thumb_dir, name)):
        return f"{THUMB_URL_PREFIX}/{name}", True
    return "", False


def decode_data_url(data: str) -> bytes:
    payload = _data_url_re.sub("", (data or "").strip(), count=1)
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 image data: {e}")


def save_thumbnail(thumb_dir: str, video_path: str, data: str) -> str:
    """
    Decode a captured frame (data URL or bare base64), re-encode it as JPEG
    and drop it into the cache. Tmp file + os.replace, so readers never see half a file.
    Bad image data -> ValueError; disk errors propagate as OSError.
    """
    raw = decode_data_url(data)
    if not raw:
        raise ValueError("empty image data")
    try:
        im = Image.open(io.BytesIO(raw))
        im.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, SyntaxError, ValueError, OSError) as e:
        raise ValueError(f"not an image: {e}")

    if im.mode != "RGB":
        im = im.convert("RGB")

    os.makedirs(thumb_dir, exist_ok=True)
    out_path = thumb_path(thumb_dir, video_path)
    tmp_path = out_path + ".tmp"
    try:
        im.save(tmp_path, format="JPEG", quality=JPEG_QUALITY, optimize=True)
        os.replace(tmp_path, out_path)
    except OSError:
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError:
            pass
        raise
    log.debug("thumbnail for %s -> %s", video_path, out_path)
    return out_path
