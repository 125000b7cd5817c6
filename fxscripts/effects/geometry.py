from __future__ import annotations
import logging
import math
import numpy as np
from PIL import Image, ImageDraw

from ..effects_core import effect, Int, Float, Enum, Color
from ..imageops import fit_rgb, to_np, from_np, blur, remap, solid

logger = logging.getLogger(__name__)

# ========= coordinate helpers =========
# Output pixel centers; every warp below computes, per output pixel, where in
# the source to sample.

def _grid(h: int, w: int):
    yy, xx = np.mgrid[0:h, 0:w].astype(np.float32)
    return yy, xx, (h - 1) / 2.0, (w - 1) / 2.0


@effect(
    "pagecurl",
    summary="Fold the bottom-right corner of the page back over itself",
    options={
        "amount": Float(40.0, "a", 1.0, 90.0, help="percent of the diagonal that is folded back"),
        "mode": Enum("gradient", "m", ["plain", "gradient"], help="shading of the back of the page"),
        "bgcolor": Color("white", "b", help="color uncovered behind the fold"),
        "backcolor": Color("#dcdcdc", "c", help="color of the back of the page"),
        "shadow": Float(0.3, "s", 0.0, 1.0, help="opacity of the shadow cast by the flap; 0 disables it"),
    },
)
def pagecurl(im: Image.Image, *, amount: float, mode: str, bgcolor, backcolor, shadow: float):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    diag = math.hypot(h, w)
    dy, dx = h / diag, w / diag
    yy, xx = np.mgrid[0:h, 0:w].astype(np.float32)
    yy += 0.5; xx += 0.5
    s = yy * dy + xx * dx
    s0 = diag * (1.0 - amount / 100.0)

    page = s <= s0
    out = np.where(page[..., None], a, solid(h, w, bgcolor))

    # back of the flap: page point p is covered when its mirror image across
    # the fold line lies on the original sheet
    qy = yy + 2.0 * (s0 - s) * dy
    qx = xx + 2.0 * (s0 - s) * dx
    flap = page & (qy >= 0) & (qy < h) & (qx >= 0) & (qx < w)

    if shadow > 0:
        sigma = max(2.0, 0.015 * min(h, w))
        cast = blur(flap.astype(np.float32), sigma)
        out = np.where((page & ~flap)[..., None], out * (1.0 - shadow * cast)[..., None], out)

    back = solid(h, w, backcolor)
    if mode == "gradient":
        t = np.clip((s0 - s) / max(1.0, diag - s0), 0.0, 1.0)
        back = back * (0.7 + 0.3 * np.sqrt(t))[..., None]
    out = np.where(flap[..., None], back, out)
    logger.debug("pagecurl: fold at %.1f of %.1f, flap %d px", s0, diag, int(flap.sum()))
    return from_np(out)


@effect(
    "kaleidoscope",
    summary="Mirror one wedge of the image around the center",
    options={
        "segments": Int(6, "n", 2, 64, help="number of mirrored wedges"),
        "rotation": Float(0.0, "r", -360.0, 360.0, help="angle of the source wedge in degrees"),
    },
)
def kaleidoscope(im: Image.Image, *, segments: int, rotation: float):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    yy, xx, cy, cx = _grid(h, w)
    ry, rx = yy - cy, xx - cx
    r = np.hypot(ry, rx)
    rot = math.radians(rotation)
    wedge = 2.0 * math.pi / segments
    theta = np.mod(np.arctan2(ry, rx) - rot, 2.0 * math.pi)
    k = np.floor(theta / wedge)
    t = theta - k * wedge
    t = np.where(np.mod(k, 2) == 1, wedge - t, t) + rot
    return from_np(remap(a, cy + r * np.sin(t), cx + r * np.cos(t), mode="mirror"))


@effect(
    "mirrorize",
    summary="Mirror one half (or quadrant) of the image over the rest",
    options={
        "mode": Enum("left", "m", ["left", "right", "top", "bottom", "quad"], help="part that is kept and mirrored"),
    },
)
def mirrorize(im: Image.Image, *, mode: str):
    a = np.asarray(fit_rgb(im)).copy()
    h, w = a.shape[:2]
    hw, hh = w // 2, h // 2
    if mode in ("left", "quad"):
        a[:, w - hw:] = a[:, :hw][:, ::-1]
    if mode == "right":
        a[:, :hw] = a[:, w - hw:][:, ::-1]
    if mode in ("top", "quad"):
        a[h - hh:] = a[:hh][::-1]
    if mode == "bottom":
        a[:hh] = a[h - hh:][::-1]
    return Image.fromarray(a, "RGB")


@effect(
    "bubblewarp",
    summary="Spherical bulge or pinch inside a centered circle",
    options={
        "amount": Float(0.5, "a", -1.0, 1.0, help="positive bulges, negative pinches"),
        "radius": Float(1.0, "r", 0.1, 1.0, help="circle radius, fraction of half the smaller side"),
    },
)
def bubblewarp(im: Image.Image, *, amount: float, radius: float):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    yy, xx, cy, cx = _grid(h, w)
    ry, rx = yy - cy, xx - cx
    big_r = max(1.0, radius * min(h, w) / 2.0)
    rn = np.hypot(ry, rx) / big_r
    p = 1.0 + amount if amount >= 0 else 1.0 / (1.0 - amount)
    inside = (rn < 1.0) & (rn > 0)
    with np.errstate(divide="ignore", invalid="ignore"):
        scale = np.where(inside, np.power(rn, p) / rn, 1.0)
    return from_np(remap(a, cy + ry * scale, cx + rx * scale, mode="nearest"))


@effect(
    "zoomblur",
    summary="Radial zoom blur about the center",
    options={
        "amount": Float(10.0, "a", 0.0, 100.0, help="percent zoom of the farthest copy"),
        "steps": Int(12, "n", 2, 64, help="number of zoomed copies averaged"),
    },
)
def zoomblur(im: Image.Image, *, amount: float, steps: int):
    a = to_np(fit_rgb(im))
    h, w = a.shape[:2]
    yy, xx, cy, cx = _grid(h, w)
    acc = np.zeros_like(a)
    for i in range(steps):
        z = 1.0 + (amount / 100.0) * i / (steps - 1)
        acc += remap(a, cy + (yy - cy) / z, cx + (xx - cx) / z, mode="nearest")
    return from_np(acc / steps)


@effect(
    "grid",
    summary="Overlay evenly spaced grid lines",
    options={
        "spacing": Int(32, "s", 2, 4096, help="distance between lines in pixels"),
        "color": Color("white", "c", help="line color"),
        "thick": Int(1, "t", 1, 64, help="line thickness in pixels"),
        "opacity": Float(1.0, "o", 0.0, 1.0, help="line opacity"),
    },
)
def grid(im: Image.Image, *, spacing: int, color, thick: int, opacity: float):
    im = fit_rgb(im).convert("RGBA")
    w, h = im.size
    ov = Image.new("RGBA", im.size, (0, 0, 0, 0)); d = ImageDraw.Draw(ov)
    fill = tuple(color) + (int(round(255 * opacity)),)
    for x in range(0, w, spacing):
        d.rectangle([x, 0, x + thick - 1, h - 1], fill=fill)
    for y in range(0, h, spacing):
        d.rectangle([0, y, w - 1, y + thick - 1], fill=fill)
    return Image.alpha_composite(im, ov).convert("RGB")
