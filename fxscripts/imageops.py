from __future__ import annotations
from typing import Optional, Tuple
import numpy as np
from PIL import Image
from scipy import ndimage

# Shared helpers for the effect modules. Arrays are float32 in [0, 1],
# shaped (H, W) or (H, W, 3).

def fit_rgb(im: Image.Image) -> Image.Image:
    return im.convert("RGB")

def px_min(im: Image.Image, frac: float) -> int:
    return max(1, int(round(float(min(im.width, im.height)) * max(0.0, frac))))

def to_np(im: Image.Image) -> np.ndarray:
    if im.mode not in ("RGB", "L"):
        im = im.convert("RGB")
    return np.asarray(im).astype(np.float32) / 255.0

def from_np(a: np.ndarray) -> Image.Image:
    a = np.clip(a * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return Image.fromarray(a, "RGB" if a.ndim == 3 else "L")

def luma(a: np.ndarray) -> np.ndarray:
    if a.ndim == 2:
        return a
    return 0.299*a[..., 0] + 0.587*a[..., 1] + 0.114*a[..., 2]

def percentiles(a: np.ndarray, clip_pct: float) -> Tuple[float, float]:
    if clip_pct <= 0:
        return float(a.min()), float(a.max())
    lo, hi = np.percentile(a, [clip_pct, 100.0 - clip_pct])
    return float(lo), float(hi)

def stretch(a: np.ndarray, lo: float, hi: float) -> np.ndarray:
    if hi - lo < 1e-6:
        return np.clip(a, 0.0, 1.0)
    return np.clip((a - lo) / (hi - lo), 0.0, 1.0)

def gamma_for_mean(mean: float, target: float) -> float:
    """Gamma g such that mean**g == target; 1.0 when undefined."""
    if not (0.0 < mean < 1.0) or not (0.0 < target < 1.0):
        return 1.0
    return float(np.log(target) / np.log(mean))

def blur(a: np.ndarray, sigma: float) -> np.ndarray:
    if sigma <= 0:
        return a
    if a.ndim == 3:
        return ndimage.gaussian_filter(a, sigma=(sigma, sigma, 0), mode="reflect")
    return ndimage.gaussian_filter(a, sigma=sigma, mode="reflect")

def smoothstep(e0: float, e1: float, x: np.ndarray) -> np.ndarray:
    t = np.clip((x - e0) / max(1e-6, e1 - e0), 0.0, 1.0)
    return t*t*(3.0 - 2.0*t)

def radial_distance(h: int, w: int, ellipse: bool = True) -> np.ndarray:
    """Distance from the center, 1.0 at the corners. ``ellipse`` follows the aspect ratio."""
    y, x = np.mgrid[0:h, 0:w].astype(np.float32)
    cx, cy = (w - 1) / 2.0, (h - 1) / 2.0
    if ellipse:
        nx = (x - cx) / max(cx, 0.5); ny = (y - cy) / max(cy, 0.5)
        return np.sqrt(nx*nx + ny*ny) / np.sqrt(2.0)
    r = np.sqrt((x - cx)**2 + (y - cy)**2)
    return r / max(1e-6, float(np.sqrt(cx*cx + cy*cy)))

def remap(a: np.ndarray, src_y: np.ndarray, src_x: np.ndarray, order: int = 1,
          mode: str = "nearest", cval: float = 0.0) -> np.ndarray:
    """Sample ``a`` at (src_y, src_x) for every output pixel."""
    coords = np.array([src_y, src_x])
    if a.ndim == 2:
        return ndimage.map_coordinates(a, coords, order=order, mode=mode, cval=cval)
    out = np.empty(src_y.shape + (a.shape[2],), dtype=np.float32)
    for c in range(a.shape[2]):
        out[..., c] = ndimage.map_coordinates(a[..., c], coords, order=order, mode=mode, cval=cval)
    return out

def solid(h: int, w: int, rgb: Tuple[int, int, int]) -> np.ndarray:
    return np.broadcast_to(np.array(rgb, dtype=np.float32) / 255.0, (h, w, 3)).copy()

def rng_for(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(seed)
