from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import math
import numpy as np
from PIL import Image

from ..effects_core import effect, Bool, Int, Float, Enum, Color, IntList
from ..io_utils import split_rgba
from ..imageops import (
    fit_rgb, to_np, from_np, luma, percentiles, stretch, gamma_for_mean, blur,
    smoothstep, radial_distance, solid, rng_for,
)

logger = logging.getLogger(__name__)

# ========= levels & gamma =========

@effect(
    "autolevel",
    summary="Stretch channels to the full range and auto-correct gamma",
    options={
        "mode": Enum("rgb", "c", ["rgb", "luminance", "gray"], help="stretch each channel, the luminance, or a grayscale copy"),
        "clip": Float(0.0, "p", 0.0, 10.0, help="percent clipped at each end of the range"),
        "midtone": Float(0.5, "m", 0.0, 0.99, help="target mean for the gamma correction; 0 disables it"),
    },
)
def autolevel(im: Image.Image, *, mode: str, clip: float, midtone: float):
    a = to_np(fit_rgb(im))
    if mode == "gray":
        g = luma(a)
        lo, hi = percentiles(g, clip)
        g = stretch(g, lo, hi)
        if midtone > 0:
            g = g ** gamma_for_mean(float(g.mean()), midtone)
        logger.debug("autolevel gray: lo=%.4f hi=%.4f", lo, hi)
        return from_np(g)

    if mode == "luminance":
        lo, hi = percentiles(luma(a), clip)
        a = stretch(a, lo, hi)
        if midtone > 0:
            gamma = gamma_for_mean(float(luma(a).mean()), midtone)
            logger.debug("autolevel luminance: lo=%.4f hi=%.4f gamma=%.4f", lo, hi, gamma)
            a = a ** gamma
        return from_np(a)

    out = np.empty_like(a)
    for c in range(3):
        ch = a[..., c]
        lo, hi = percentiles(ch, clip)
        ch = stretch(ch, lo, hi)
        if midtone > 0:
            ch = ch ** gamma_for_mean(float(ch.mean()), midtone)
        out[..., c] = ch
    return from_np(out)


@effect(
    "autogamma",
    summary="Gamma-correct so the mean lands on a target midtone",
    options={
        "mode": Enum("rgb", "c", ["rgb", "global"], help="one gamma per channel, or one from the luminance"),
        "midtone": Float(0.5, "m", 0.01, 0.99, help="target mean"),
    },
)
def autogamma(im: Image.Image, *, mode: str, midtone: float):
    a = to_np(fit_rgb(im))
    if mode == "global":
        gamma = gamma_for_mean(float(luma(a).mean()), midtone)
        logger.debug("autogamma global: gamma=%.4f", gamma)
        return from_np(a ** gamma)
    gammas = [gamma_for_mean(float(a[..., c].mean()), midtone) for c in range(3)]
    logger.debug("autogamma per channel: %s", ["%.4f" % g for g in gammas])
    return from_np(a ** np.array(gammas, dtype=np.float32))


@effect(
    "autowhite",
    summary="Automatic white balance",
    options={
        "method": Enum("brightest", "m", ["brightest", "grayworld"], help="reference: brightest pixels or the whole image"),
        "percent": Float(1.0, "p", 0.01, 100.0, help="share of brightest pixels used as the white reference"),
    },
)
def autowhite(im: Image.Image, *, method: str, percent: float):
    a = to_np(fit_rgb(im))
    flat = a.reshape(-1, 3)
    if method == "grayworld":
        ref = flat.mean(axis=0)
        gain = ref.mean() / np.maximum(ref, 1e-4)
    else:
        y = luma(a).reshape(-1)
        cut = np.percentile(y, 100.0 - percent)
        ref = flat[y >= cut].mean(axis=0)
        gain = 1.0 / np.maximum(ref, 1e-4)
    logger.debug("autowhite %s: ref=%s gain=%s", method, np.round(ref, 4), np.round(gain, 4))
    return from_np(np.clip(a * gain.astype(np.float32), 0.0, 1.0))


# ========= thresholding =========

def _hist256(a: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    y8 = np.clip(luma(a) * 255.0 + 0.5, 0, 255).astype(np.int64)
    return y8, np.bincount(y8.ravel(), minlength=256).astype(np.float64)

def threshold_otsu(hist: np.ndarray) -> int:
    p = hist / hist.sum()
    omega = np.cumsum(p)
    mu = np.cumsum(p * np.arange(256))
    with np.errstate(divide="ignore", invalid="ignore"):
        sigma_b = (mu[-1] * omega - mu) ** 2 / (omega * (1.0 - omega))
    sigma_b = np.nan_to_num(sigma_b, nan=0.0, posinf=0.0, neginf=0.0)
    return int(np.argmax(sigma_b))

def threshold_isodata(hist: np.ndarray) -> int:
    levels = np.arange(256, dtype=np.float64)
    t = int((hist * levels).sum() / hist.sum())
    for _ in range(256):
        lo, hi = hist[:t + 1], hist[t + 1:]
        if lo.sum() == 0 or hi.sum() == 0:
            break
        m0 = (lo * levels[:t + 1]).sum() / lo.sum()
        m1 = (hi * levels[t + 1:]).sum() / hi.sum()
        nt = int((m0 + m1) / 2.0)
        if nt == t:
            break
        t = nt
    return t

def threshold_kapur(hist: np.ndarray) -> int:
    p = hist / hist.sum()
    cum = np.cumsum(p)
    best, t_best = -math.inf, 0
    for t in range(255):
        p0 = cum[t]; p1 = 1.0 - p0
        if p0 <= 0 or p1 <= 0:
            continue
        a = p[:t + 1]; a = a[a > 0] / p0
        b = p[t + 1:]; b = b[b > 0] / p1
        h = -(a * np.log(a)).sum() - (b * np.log(b)).sum()
        if h > best:
            best, t_best = h, t
    return t_best


@effect(
    "autothresh",
    summary="Binarize with an automatically computed threshold",
    options={
        "method": Enum("otsu", "m", ["otsu", "isodata", "kapur", "mean", "ptile"], help="threshold selection"),
        "percent": Float(50.0, "p", 0.0, 100.0, help="percentile used by the ptile method"),
        "negate": Bool(False, "n", help="white background, black foreground"),
    },
)
def autothresh(im: Image.Image, *, method: str, percent: float, negate: bool):
    a = to_np(fit_rgb(im))
    y8, hist = _hist256(a)
    if method == "otsu":
        t = threshold_otsu(hist)
    elif method == "isodata":
        t = threshold_isodata(hist)
    elif method == "kapur":
        t = threshold_kapur(hist)
    elif method == "mean":
        t = int(y8.mean())
    else:
        t = int(np.percentile(y8, percent))
    logger.info("autothresh %s: threshold=%d (%.1f%%)", method, t, 100.0 * t / 255.0)
    fg = y8 > t
    if negate:
        fg = ~fg
    return Image.fromarray((fg * 255).astype(np.uint8), "L")


# ========= brightness, contrast, distribution =========

@effect(
    "bcimage",
    summary="Adjust brightness and contrast",
    options={
        "brightness": Float(0.0, "b", -100.0, 100.0, help="percent shift of the whole range"),
        "contrast": Float(0.0, "c", -100.0, 99.0, help="slope about mid-gray; -100 flattens to gray"),
    },
)
def bcimage(im: Image.Image, *, brightness: float, contrast: float):
    a = to_np(fit_rgb(im))
    slope = math.tan((contrast + 100.0) / 200.0 * (math.pi / 2.0))
    out = (a - 0.5) * slope + 0.5 + brightness / 100.0
    return from_np(np.clip(out, 0.0, 1.0))


@effect(
    "redist",
    summary="Redistribute the luminance histogram to a gaussian or uniform shape",
    options={
        "shape": Enum("gaussian", "s", ["gaussian", "uniform"], help="target distribution"),
        "mean": Float(50.0, "m", 0.0, 100.0, help="gaussian mean, percent of range"),
        "sigma": Float(30.0, "d", 1.0, 100.0, help="gaussian standard deviation, percent of range"),
    },
)
def redist(im: Image.Image, *, shape: str, mean: float, sigma: float):
    a = to_np(fit_rgb(im))
    y8, hist = _hist256(a)
    cdf = np.cumsum(hist) / hist.sum()
    levels = np.linspace(0.0, 1.0, 256)
    if shape == "uniform":
        target = levels
    else:
        pdf = np.exp(-0.5 * ((levels - mean / 100.0) / (sigma / 100.0)) ** 2) + 1e-9
        target = np.cumsum(pdf); target /= target[-1]
    lut = np.interp(cdf, target, levels).astype(np.float32)
    y = luma(a)
    shift = lut[y8] - y
    return from_np(np.clip(a + shift[..., None], 0.0, 1.0))


@effect(
    "retinex",
    summary="Multi-scale retinex for dynamic range compression and color constancy",
    options={
        "scales": IntList([15, 80, 250], "s", 1, 1000, help="gaussian sigmas of the surround"),
        "clip": Float(1.0, "p", 0.0, 20.0, help="percent clipped at each end before stretching"),
        "gain": Float(1.0, "g", 0.1, 10.0, help="multiplier of the retinex output"),
    },
)
def retinex(im: Image.Image, *, scales: List[int], clip: float, gain: float):
    a = to_np(fit_rgb(im)) * 255.0
    log_a = np.log1p(a)
    msr = np.zeros_like(a)
    for s in scales:
        msr += log_a - np.log1p(blur(a, float(s)))
    msr *= gain / len(scales)
    lo, hi = percentiles(msr, clip)
    if hi - lo < 1e-3:
        # no local contrast to recover
        logger.debug("retinex: flat response, image left unchanged")
        return fit_rgb(im)
    return from_np(stretch(msr, lo, hi))


# ========= looks =========

_SEPIA = np.array([
    [0.393, 0.769, 0.189],
    [0.349, 0.686, 0.168],
    [0.272, 0.534, 0.131],
], dtype=np.float32)

def vignette_mask(h: int, w: int, strength: float) -> np.ndarray:
    r = radial_distance(h, w, ellipse=False)
    return (1.0 - strength * r**2)[..., None]

@effect(
    "vintage",
    summary="Old photograph look: sepia, vignette and grain",
    options={
        "sepia": Float(80.0, "s", 0.0, 100.0, help="percent of sepia toning"),
        "vignette": Float(0.5, "v", 0.0, 1.0, help="corner darkening"),
        "noise": Float(6.0, "n", 0.0, 50.0, help="grain sigma in 8-bit units"),
        "seed": Int(None, "S", 0, 2**31 - 1, help="random seed for the grain"),
    },
)
def vintage(im: Image.Image, *, sepia: float, vignette: float, noise: float, seed: Optional[int]):
    a = to_np(fit_rgb(im))
    tone = np.clip(a @ _SEPIA.T, 0.0, 1.0)
    s = sepia / 100.0
    a = a * (1.0 - s) + tone * s
    a = (a - 0.5) * 1.1 + 0.52
    h, w = a.shape[:2]
    a = a * vignette_mask(h, w, vignette)
    if noise > 0:
        a = a + rng_for(seed).normal(0.0, noise / 255.0, size=(h, w, 1)).astype(np.float32)
    return from_np(np.clip(a, 0.0, 1.0))


@effect(
    "vignette",
    summary="Darken (or tint) the image toward its edges",
    options={
        "amount": Float(0.6, "a", 0.0, 1.0, help="opacity of the vignette color at the corners"),
        "inner": Float(0.3, "i", 0.0, 0.99, help="relative radius where the falloff starts"),
        "color": Color("black", "c", help="vignette color"),
        "ellipse": Bool(False, "e", help="follow the image aspect ratio instead of a circle"),
    },
)
def vignette(im: Image.Image, *, amount: float, inner: float, color, ellipse: bool):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    m = (amount * smoothstep(inner, 1.0, radial_distance(h, w, ellipse)))[..., None]
    return from_np(a * (1.0 - m) + solid(h, w, color) * m)


@effect(
    "color2alpha",
    summary="Turn a color transparent, removing it from partially covered pixels",
    options={
        "color": Color("white", "c", help="color to remove"),
        "method": Enum("gimp", "m", ["gimp", "distance"], help="un-mix the color, or cut by color distance"),
        "fuzz": Float(0.0, "f", 0.0, 100.0, help="percent distance treated as an exact match"),
    },
    keep_alpha=False,
)
def color2alpha(im: Image.Image, *, color, method: str, fuzz: float):
    rgb, alpha_in = split_rgba(im)
    a = to_np(rgb)
    k = np.array(color, dtype=np.float32) / 255.0
    f = fuzz / 100.0
    if method == "distance":
        d = np.sqrt(((a - k) ** 2).sum(axis=2) / 3.0)
        alpha = np.clip((d - f) / max(f, 1e-3), 0.0, 1.0) if f > 0 else (d > 1e-6).astype(np.float32)
        out = a
    else:
        diff = a - k
        with np.errstate(divide="ignore", invalid="ignore"):
            up = np.where(diff > 0, diff / np.maximum(1.0 - k, 1e-6), 0.0)
            down = np.where(diff < 0, -diff / np.maximum(k, 1e-6), 0.0)
        alpha = np.clip(np.maximum(up, down).max(axis=2), 0.0, 1.0)
        alpha = np.where(alpha <= f, 0.0, alpha)
        safe = np.maximum(alpha, 1e-6)[..., None]
        out = np.where(alpha[..., None] > 1e-6, (a - k) / safe + k, 0.0)
    alpha = alpha.astype(np.float32)
    if alpha_in is not None:
        alpha = alpha * (np.asarray(alpha_in, dtype=np.float32) / 255.0)
    rgba = np.dstack([np.clip(out, 0.0, 1.0), alpha])
    return Image.fromarray(np.clip(rgba * 255.0 + 0.5, 0, 255).astype(np.uint8), "RGBA")
