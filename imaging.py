import base64
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from config import JPEG_QUALITY, MAX_IMAGE_SIDE
from errors import ImageError


def _open(source):
    # werkzeug FileStorage exposes .stream; plain files and BytesIO are read as-is
    stream = getattr(source, "stream", source)
    if isinstance(stream, (bytes, bytearray)):
        stream = io.BytesIO(stream)
    try:
        return Image.open(stream)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImageError(f"Unreadable image: {e}") from e


def to_small_jpeg(source, max_edge=MAX_IMAGE_SIDE, quality=JPEG_QUALITY):
    """Downscale an uploaded photo to a JPEG that fits in a model request.

    Returns a dict with ``data_url``, ``base64``, ``media_type`` and the raw
    ``jpeg_bytes`` (kept for saving the upload next to a stored result).
    """
    img = _open(source)
    try:
        img = ImageOps.exif_transpose(img).convert("RGB")
    except (Image.DecompressionBombError, OSError) as e:
        raise ImageError(f"Unreadable image: {e}") from e
    if max(img.size) > max_edge:
        img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality, optimize=True, progressive=True)
    jpeg_bytes = buf.getvalue()
    b64 = base64.b64encode(jpeg_bytes).decode("utf-8")
    return {
        "data_url": f"data:image/jpeg;base64,{b64}",
        "base64": b64,
        "media_type": "image/jpeg",
        "jpeg_bytes": jpeg_bytes,
    }
