"""Artwork loader for the now-playing tile.

MPRIS players hand out artwork as file:// paths (browsers cache
thumbnails on disk) or http(s) URLs (Spotify). Either way the image is
decoded with Pillow, thumbnailed and re-encoded as PNG so the panel and
the web status page can show it without touching the original file.

Blocking; the ArtworkResolver runs it on a worker thread.
"""

import io
import logging
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, UnidentifiedImageError

from config import ARTWORK_SIZE, ARTWORK_TIMEOUT
from core.errors import ProviderFailure

logger = logging.getLogger(__name__)

MAX_ARTWORK_BYTES = 8 * 1024 * 1024


def read_artwork_bytes(ref: str, session: Optional[requests.Session] = None,
                       timeout: float = ARTWORK_TIMEOUT) -> bytes:
    url = urlparse(ref)
    if url.scheme in ("http", "https"):
        http = session or requests
        try:
            resp = http.get(ref, timeout=timeout, stream=True)
            try:
                resp.raise_for_status()
                data = bytearray()
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    data.extend(chunk)
                    if len(data) > MAX_ARTWORK_BYTES:
                        raise ProviderFailure("artwork", "image too large")
            finally:
                resp.close()
        except requests.RequestException as exc:
            raise ProviderFailure("artwork", str(exc)) from exc
        return bytes(data)

    if url.scheme in ("file", ""):
        path = unquote(url.path) if url.scheme == "file" else ref
        try:
            with open(path, "rb") as f:
                data = f.read(MAX_ARTWORK_BYTES + 1)
        except OSError as exc:
            raise ProviderFailure("artwork", str(exc)) from exc
        if len(data) > MAX_ARTWORK_BYTES:
            raise ProviderFailure("artwork", "image too large")
        return data

    raise ProviderFailure("artwork", f"unsupported artwork scheme '{url.scheme}'")


def thumbnail_png(data: bytes, size: Tuple[int, int] = ARTWORK_SIZE) -> Tuple[bytes, int, int]:
    """Decode any Pillow-readable image, shrink it to fit size, return PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = img.convert("RGBA")
            img.thumbnail(size)
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue(), img.width, img.height
    except (UnidentifiedImageError, OSError) as exc:
        raise ProviderFailure("artwork", f"undecodable image: {exc}") from exc


def load_artwork(ref: str, session: Optional[requests.Session] = None) -> Tuple[bytes, int, int]:
    png, width, height = thumbnail_png(read_artwork_bytes(ref, session=session))
    logger.debug("Artwork loaded from %s (%dx%d)", ref, width, height)
    return png, width, height
