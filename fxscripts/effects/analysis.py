from __future__ import annotations
from typing import Callable, Dict, List, Optional
import logging
import math
import numpy as np
from PIL import Image
from scipy import fft as sfft
from scipy import ndimage

from ..effects_core import effect, Int, Enum, Color, Choices

logger = logging.getLogger(__name__)

# ========= perceptual hashes =========
# Every hash is 64 bits, row-major, most significant bit first. The toolkit
# does the decoding, area resampling, blurring, polar sampling and the
# DCT/FFT; the functions below only turn those statistics into bits.

HASH_BITS = 64


def _gray(im: Image.Image, size) -> np.ndarray:
    g = im.convert("L").resize(size, Image.Resampling.BOX)
    return np.asarray(g, dtype=np.float64)


def ahash(im: Image.Image) -> np.ndarray:
    g = _gray(im, (8, 8))
    return (g > g.mean()).ravel()

def mhash(im: Image.Image) -> np.ndarray:
    g = _gray(im, (8, 8))
    return (g > np.median(g)).ravel()

def dhash(im: Image.Image) -> np.ndarray:
    g = _gray(im, (9, 8))  # 8 rows of 9
    return (g[:, :-1] < g[:, 1:]).ravel()

def phash(im: Image.Image) -> np.ndarray:
    g = _gray(im, (32, 32))
    block = sfft.dctn(g, type=2, norm="ortho")[:8, :8]
    med = np.median(block.ravel()[1:])  # DC excluded
    return (block > med).ravel()

def fhash(im: Image.Image) -> np.ndarray:
    """Rotation-tolerant hash from the angular spectrum of a polar unwrap."""
    g = ndimage.gaussian_filter(_gray(im, (64, 64)), 1.0)
    n_ang, n_rad = 64, 64
    theta = np.linspace(0.0, 2.0 * math.pi, n_ang, endpoint=False)[:, None]
    rad = np.linspace(0.0, 31.5, n_rad)[None, :]
    c = 31.5
    polar = ndimage.map_coordinates(g, [c + rad * np.sin(theta), c + rad * np.cos(theta)], order=1, mode="nearest")
    mag = np.abs(np.fft.fft(polar, axis=0))[1:9]               # angular frequencies 1..8
    bands = mag.reshape(8, 8, n_rad // 8).mean(axis=2)        # 8 radial bands
    return (bands > np.median(bands)).ravel()


HASHES: Dict[str, Callable[[Image.Image], np.ndarray]] = {
    "ahash": ahash,
    "mhash": mhash,
    "dhash": dhash,
    "phash": phash,
    "fhash": fhash,
}


def bits_to_int(bits: np.ndarray) -> int:
    v = 0
    for b in bits:
        v = (v << 1) | int(bool(b))
    return v

def to_hex(bits: np.ndarray) -> str:
    return f"{bits_to_int(bits):0{len(bits) // 4}x}"

def to_binary(bits: np.ndarray) -> str:
    return "".join("1" if b else "0" for b in bits)

def hamming(a: np.ndarray, b: np.ndarray) -> int:
    if len(a) != len(b):
        raise ValueError("hashes differ in length")
    return int(np.count_nonzero(np.asarray(a, dtype=bool) != np.asarray(b, dtype=bool)))


@effect(
    "phashes",
    summary="Compute perceptual hashes of an image or compare two images",
    options={
        "methods": Choices(list(HASHES), "m", list(HASHES), help="comma-separated hash methods, or 'all'"),
        "format": Enum("hex", "f", ["hex", "binary"], help="how hashes are printed"),
    },
    inputs=(1, 2),
    output="text",
    keep_alpha=False,
    input_names=["infile", "infile2"],
)
def phashes(im: Image.Image, im2: Optional[Image.Image] = None, *, methods: List[str], format: str) -> str:
    show = to_hex if format == "hex" else to_binary
    lines = []
    for name in methods:
        h1 = HASHES[name](im)
        if im2 is None:
            lines.append(f"{name}: {show(h1)}")
            continue
        h2 = HASHES[name](im2)
        d = hamming(h1, h2)
        logger.debug("%s distance %d/%d", name, d, HASH_BITS)
        lines.append(f"{name}: {show(h1)} {show(h2)} distance={d}")
    return "\n".join(lines)


# ========= histogram =========

@effect(
    "histog",
    summary="Render the image histogram as a graph",
    options={
        "width": Int(256, "W", 64, 4096, help="graph width in pixels"),
        "height": Int(200, "H", 32, 4096, help="graph height in pixels"),
        "mode": Enum("gray", "m", ["gray", "rgb"], help="luminance histogram or one curve per channel"),
        "bgcolor": Color("black", "c", help="background color"),
    },
    keep_alpha=False,
)
def histog(im: Image.Image, *, width: int, height: int, mode: str, bgcolor):
    src = im.convert("L") if mode == "gray" else im.convert("RGB")
    counts = np.array(src.histogram(), dtype=np.float64).reshape(len(src.getbands()), 256)
    peak = max(1.0, float(counts.max()))
    bins = (np.arange(width) * 256) // width
    rows = np.arange(height)[:, None]
    canvas = np.zeros((height, width, 3), dtype=bool)
    for c, hist in enumerate(counts):
        bar = np.round(hist[bins] / peak * height).astype(np.int64)
        filled = rows >= (height - bar)[None, :]
        if mode == "gray":
            canvas |= filled[..., None]
        else:
            canvas[..., c] |= filled
    out = np.empty((height, width, 3), dtype=np.uint8)
    out[...] = np.array(bgcolor, dtype=np.uint8)
    lit = canvas.any(axis=2)
    out[lit] = (canvas[lit] * 255).astype(np.uint8)
    return Image.fromarray(out, "RGB")
