from __future__ import annotations
from typing import Optional, Tuple
from PIL import Image, ImageOps, UnidentifiedImageError
import os
import logging
import numpy as np

from .errors import InputError, OutputError

logger = logging.getLogger(__name__)

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".gif", ".webp"}
_NO_ALPHA_FORMATS = {".jpg", ".jpeg", ".bmp"}


def load_image(path: str) -> Image.Image:
    try:
        img = Image.open(path)
        img = ImageOps.exif_transpose(img)
        # Pillow lazy loads; ensure it's loaded now
        img.load()
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise InputError(f"unable to read input image {path!r}: {e}") from e
    logger.debug("Loaded %s: %s %dx%d", path, img.mode, img.width, img.height)
    return to_8bit(img)


def to_8bit(img: Image.Image) -> Image.Image:
    """Rescale 16-bit and float grayscale to an 8-bit L image; other modes pass through."""
    if not (img.mode.startswith("I") or img.mode == "F"):
        return img
    a = np.asarray(img, dtype=np.float64)
    if img.mode == "F" and a.size and float(a.max()) <= 1.0:
        a = a * 255.0
    else:
        a = a / 257.0
    return Image.fromarray(np.clip(a + 0.5, 0, 255).astype(np.uint8), "L")


def split_rgba(img: Image.Image) -> Tuple[Image.Image, Optional[Image.Image]]:
    if img.mode == "RGBA":
        rgb = img.convert("RGB")
        a = img.split()[3]
        return rgb, a
    if img.mode == "LA":
        rgb = img.convert("RGB")
        a = img.split()[1]
        return rgb, a
    if img.mode == "P":
        # Paletted with transparency -> convert
        if "transparency" in img.info:
            img = img.convert("RGBA")
            return split_rgba(img)
        return img.convert("RGB"), None
    return img.convert("RGB"), None


def recombine_rgb_alpha(rgb: Image.Image, alpha: Optional[Image.Image]) -> Image.Image:
    if alpha is None or alpha.size != rgb.size:
        return rgb
    out = rgb.convert("RGBA")
    out.putalpha(alpha)
    return out


def flatten(img: Image.Image, background=(255, 255, 255)) -> Image.Image:
    """Composite an image with alpha onto a solid background."""
    if img.mode not in ("RGBA", "LA", "P"):
        return img.convert("RGB")
    rgba = img.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, tuple(background) + (255,))
    return Image.alpha_composite(bg, rgba).convert("RGB")


def save_image(img: Image.Image, path: str, quality: int = 92) -> None:
    ext = os.path.splitext(path)[1].lower()
    if ext not in IMAGE_EXTS:
        raise OutputError(f"unsupported output format {ext or '(none)'!r} for {path!r}")
    if ext in _NO_ALPHA_FORMATS:
        img = flatten(img)
    elif img.mode not in ("RGB", "RGBA", "L", "LA", "1", "P"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    kwargs = {"quality": quality} if ext in (".jpg", ".jpeg", ".webp") else {}
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        img.save(path, **kwargs)
    except (OSError, ValueError) as e:
        raise OutputError(f"unable to write output image {path!r}: {e}") from e
    logger.debug("Wrote %s (%s %dx%d)", path, img.mode, img.width, img.height)


def make_output_path(out_dir: str, in_path: str, effect_name: str, ext: Optional[str] = None) -> str:
    base, in_ext = os.path.splitext(os.path.basename(in_path))
    ext = (ext or in_ext.lstrip(".") or "png").lstrip(".")
    filename = f"{base}_{effect_name}.{ext}"
    return os.path.join(out_dir, filename)


def is_image_path(path: str) -> bool:
    return os.path.splitext(path.lower())[1] in IMAGE_EXTS
