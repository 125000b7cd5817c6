from __future__ import annotations
from typing import Optional
import logging
import math
import numpy as np
from PIL import Image, ImageChops, ImageDraw, ImageEnhance, ImageFilter, ImageStat
from scipy import ndimage
from scipy.spatial import cKDTree

from ..effects_core import effect, Int, Float, Enum, Color
from ..imageops import fit_rgb, to_np, from_np, luma, blur, smoothstep, remap, rng_for

logger = logging.getLogger(__name__)


def posterize(a: np.ndarray, levels: int) -> np.ndarray:
    idx = np.minimum(np.floor(a * levels), levels - 1)
    return idx / float(levels - 1)

def edge_magnitude(g: np.ndarray) -> np.ndarray:
    # a unit step gives 1.0
    gx = ndimage.sobel(g, axis=1, mode="nearest")
    gy = ndimage.sobel(g, axis=0, mode="nearest")
    return np.hypot(gx, gy) / 4.0


@effect(
    "cartoon",
    summary="Cartoon look: smoothed, posterized colors with dark outlines",
    options={
        "levels": Int(6, "l", 2, 32, help="gray levels per channel"),
        "edge": Float(0.25, "e", 0.01, 2.0, help="edge strength that becomes an outline"),
        "width": Int(1, "w", 1, 10, help="outline width in pixels"),
        "smooth": Int(2, "s", 0, 7, help="median filter radius applied first"),
    },
)
def cartoon(im: Image.Image, *, levels: int, edge: float, width: int, smooth: int):
    base = fit_rgb(im)
    if smooth > 0:
        base = base.filter(ImageFilter.MedianFilter(2 * smooth + 1))
    a = to_np(base)
    out = posterize(a, levels)
    lines = edge_magnitude(luma(a)) > edge
    if width > 1:
        lines = ndimage.binary_dilation(lines, iterations=width - 1)
    out[lines] = 0.0
    logger.debug("cartoon: %d outline pixels", int(lines.sum()))
    return from_np(out)


@effect(
    "sketch",
    summary="Pencil sketch from a color dodge of the image over its blurred negative",
    options={
        "radius": Float(8.0, "r", 0.5, 100.0, help="blur sigma of the negative; larger gives heavier strokes"),
        "contrast": Float(1.0, "c", 0.1, 5.0, help="gamma applied to the strokes"),
        "mode": Enum("gray", "m", ["gray", "color"], help="pencil or colored pencil"),
    },
)
def sketch(im: Image.Image, *, radius: float, contrast: float, mode: str):
    a = to_np(fit_rgb(im))
    g = luma(a)
    b = blur(1.0 - g, radius)
    dodge = np.clip(g / np.maximum(1.0 - b, 1e-4), 0.0, 1.0) ** contrast
    if mode == "gray":
        return from_np(dodge)
    return from_np(dodge[..., None] * (0.5 * a + 0.5))


# ========= tessellation =========

def _seed_points(kind: str, h: int, w: int, size: int, offset: int, rng: np.random.Generator) -> np.ndarray:
    if kind == "random":
        n = max(1, int(round(w * h / float(size * size))))
        return rng.uniform((0.0, 0.0), (float(h), float(w)), size=(n, 2))
    if kind == "square":
        ys = np.arange(size / 2.0, h + size / 2.0, size)
        xs = np.arange(size / 2.0, w + size / 2.0, size)
        pts = np.array([(y, x) for y in ys for x in xs], dtype=np.float64)
    else:
        dy = size * math.sqrt(3.0) / 2.0
        rows = []
        for i, y in enumerate(np.arange(dy / 2.0, h + dy, dy)):
            shift = size / 2.0 if i % 2 else 0.0
            rows.extend((y, x) for x in np.arange(shift, w + size, size))
        pts = np.array(rows, dtype=np.float64)
    if offset > 0:
        pts = pts + rng.uniform(-offset, offset, size=pts.shape)
    return pts


@effect(
    "stainedglass",
    summary="Stained-glass look: Voronoi cells filled with their mean color",
    options={
        "kind": Enum("random", "k", ["random", "hexagon", "square"], help="layout of the cell seeds"),
        "size": Int(16, "s", 4, 256, help="mean cell size in pixels"),
        "offset": Int(4, "o", 0, 128, help="random jitter of hexagon/square seeds in pixels"),
        "ecolor": Color("black", "e", help="cell border color"),
        "thick": Int(1, "t", 0, 10, help="border thickness; 0 draws none"),
        "seed": Int(None, "S", 0, 2**31 - 1, help="random seed"),
    },
)
def stainedglass(im: Image.Image, *, kind: str, size: int, offset: int, ecolor, thick: int, seed: Optional[int]):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    rng = rng_for(seed)
    pts = _seed_points(kind, h, w, size, offset if kind != "random" else 0, rng)
    yy, xx = np.mgrid[0:h, 0:w]
    centers = np.column_stack([yy.ravel() + 0.5, xx.ravel() + 0.5])
    _, labels = cKDTree(pts).query(centers)
    n = len(pts)
    counts = np.maximum(np.bincount(labels, minlength=n), 1)
    means = np.stack([np.bincount(labels, weights=a[..., c].ravel(), minlength=n) / counts for c in range(3)], axis=1)
    labels = labels.reshape(h, w)
    out = means[labels].astype(np.float32)
    if thick > 0:
        border = np.zeros((h, w), dtype=bool)
        border[:, :-1] |= labels[:, :-1] != labels[:, 1:]
        border[:-1, :] |= labels[:-1, :] != labels[1:, :]
        if thick > 1:
            border = ndimage.binary_dilation(border, iterations=thick - 1)
        out[border] = np.array(ecolor, dtype=np.float32) / 255.0
    logger.debug("stainedglass %s: %d cells", kind, n)
    return from_np(out)


# ========= color quantization =========

def _kmeans_pp(sample: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    centers = [sample[rng.integers(len(sample))]]
    d2 = ((sample - centers[0]) ** 2).sum(axis=1)
    for _ in range(1, k):
        total = d2.sum()
        if total <= 0:
            break  # fewer distinct colors than k
        c = sample[rng.choice(len(sample), p=d2 / total)]
        centers.append(c)
        d2 = np.minimum(d2, ((sample - c) ** 2).sum(axis=1))
    return np.array(centers, dtype=np.float64)

def _nearest(points: np.ndarray, centers: np.ndarray, chunk: int = 65536) -> np.ndarray:
    out = np.empty(len(points), dtype=np.int64)
    for i in range(0, len(points), chunk):
        p = points[i:i + chunk]
        out[i:i + chunk] = ((p[:, None, :] - centers[None, :, :]) ** 2).sum(axis=2).argmin(axis=1)
    return out


@effect(
    "kmeans",
    summary="Reduce colors by k-means clustering",
    options={
        "colors": Int(8, "n", 2, 64, help="number of colors"),
        "iterations": Int(20, "i", 1, 200, help="maximum k-means iterations"),
        "seed": Int(None, "S", 0, 2**31 - 1, help="random seed for sampling and initialization"),
    },
)
def kmeans(im: Image.Image, *, colors: int, iterations: int, seed: Optional[int]):
    a = to_np(fit_rgb(im))
    flat = a.reshape(-1, 3).astype(np.float64)
    rng = rng_for(seed)
    sample = flat if len(flat) <= 20000 else flat[rng.choice(len(flat), 20000, replace=False)]
    centers = _kmeans_pp(sample, colors, rng)
    for it in range(iterations):
        lab = _nearest(sample, centers)
        new = np.array([sample[lab == j].mean(axis=0) if np.any(lab == j) else centers[j]
                        for j in range(len(centers))])
        if np.allclose(new, centers, atol=1e-5):
            break
        centers = new
    logger.debug("kmeans: %d centers after %d iterations", len(centers), it + 1)
    out = centers[_nearest(flat, centers)].reshape(a.shape)
    return from_np(out.astype(np.float32))


# ========= spots =========

@effect(
    "spots",
    summary="Grid of spots, each filled with the mean color of its cell",
    options={
        "size": Int(12, "s", 3, 256, help="cell size in pixels"),
        "shape": Enum("circle", "t", ["circle", "square", "diamond"], help="spot shape"),
        "bgcolor": Color("black", "b", help="background color between spots"),
        "spread": Float(0.9, "p", 0.1, 1.0, help="spot diameter relative to the cell"),
    },
)
def spots(im: Image.Image, *, size: int, shape: str, bgcolor, spread: float):
    im = fit_rgb(im)
    w, h = im.size
    out = Image.new("RGB", (w, h), tuple(bgcolor))
    draw = ImageDraw.Draw(out)
    r = size * spread / 2.0
    for y in range(0, h, size):
        for x in range(0, w, size):
            box = (x, y, min(x + size, w), min(y + size, h))
            fill = tuple(int(round(c)) for c in ImageStat.Stat(im.crop(box)).mean)
            cx = x + size / 2.0; cy = y + size / 2.0
            if shape == "circle":
                draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=fill)
            elif shape == "square":
                draw.rectangle((cx - r, cy - r, cx + r, cy + r), fill=fill)
            else:
                draw.polygon([(cx, cy - r), (cx + r, cy), (cx, cy + r), (cx - r, cy)], fill=fill)
    return out


# ========= blur based =========

@effect(
    "glow",
    summary="Soft glow from a blurred copy blended over the image",
    options={
        "amount": Float(0.5, "a", 0.0, 1.0, help="strength of the glow"),
        "radius": Float(8.0, "r", 0.5, 200.0, help="blur radius in pixels"),
        "mode": Enum("screen", "m", ["screen", "soft"], help="blend of the blurred copy"),
    },
)
def glow(im: Image.Image, *, amount: float, radius: float, mode: str):
    base = fit_rgb(im)
    blurred = base.filter(ImageFilter.GaussianBlur(radius))
    lit = ImageChops.screen(base, blurred) if mode == "screen" else ImageChops.soft_light(base, blurred)
    return Image.blend(base, lit, amount)


@effect(
    "tiltshift",
    summary="Miniature look: blur outside a sharp horizontal band and boost color",
    options={
        "center": Float(0.5, "c", 0.0, 1.0, help="vertical position of the sharp band"),
        "band": Float(0.2, "b", 0.0, 1.0, help="height of the sharp band, fraction of the image"),
        "radius": Float(6.0, "r", 0.0, 100.0, help="blur radius outside the band"),
        "saturation": Float(1.3, "s", 0.0, 3.0, help="color enhancement factor"),
    },
)
def tiltshift(im: Image.Image, *, center: float, band: float, radius: float, saturation: float):
    base = fit_rgb(im)
    w, h = base.size
    rows = (np.arange(h, dtype=np.float32) + 0.5) / h
    d = np.abs(rows - center)
    weight = smoothstep(band / 2.0, band / 2.0 + 0.25, d)
    mask = Image.fromarray(np.repeat((weight * 255.0 + 0.5).astype(np.uint8)[:, None], w, axis=1), "L")
    out = Image.composite(base.filter(ImageFilter.GaussianBlur(radius)), base, mask)
    return ImageEnhance.Color(out).enhance(saturation)


@effect(
    "disperse",
    summary="Scatter pixels along a smoothed random displacement field",
    options={
        "amount": Int(6, "a", 0, 200, help="maximum displacement in pixels"),
        "density": Float(2.0, "d", 0.5, 50.0, help="smoothing of the field; larger gives broader swirls"),
        "seed": Int(None, "S", 0, 2**31 - 1, help="random seed"),
    },
)
def disperse(im: Image.Image, *, amount: int, density: float, seed: Optional[int]):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    rng = rng_for(seed)
    fields = []
    for _ in range(2):
        f = blur(rng.standard_normal((h, w)).astype(np.float32), density)
        fields.append(f / max(1e-6, float(np.abs(f).max())))
    yy, xx = np.mgrid[0:h, 0:w].astype(np.float32)
    return from_np(remap(a, yy + fields[0] * amount, xx + fields[1] * amount, mode="nearest"))
