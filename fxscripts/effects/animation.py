from __future__ import annotations
from typing import Optional
import logging
import numpy as np
from PIL import Image

from ..effects_core import effect, Int, Enum
from ..errors import EffectError
from ..imageops import fit_rgb, to_np, from_np, radial_distance, rng_for

logger = logging.getLogger(__name__)


@effect(
    "transitions",
    summary="Animated transition from one image to another",
    options={
        "type": Enum("fade", "t", ["fade", "wipe", "dissolve", "circle"], help="transition style"),
        "frames": Int(10, "f", 2, 200, help="number of frames including both end images"),
        "delay": Int(100, "d", 10, 10000, help="milliseconds per frame"),
        "pause": Int(1000, "p", 0, 60000, help="extra milliseconds on the first and last frame"),
        "seed": Int(None, "S", 0, 2**31 - 1, help="random seed for the dissolve pattern"),
    },
    inputs=(2, 2),
    output="frames",
    keep_alpha=False,
    input_names=["infile1", "infile2"],
)
def transitions(im1: Image.Image, im2: Image.Image, *, type: str, frames: int, delay: int, pause: int,
                seed: Optional[int]):
    if im1.size != im2.size:
        raise EffectError(f"images must be the same size ({im1.width}x{im1.height} vs {im2.width}x{im2.height})")
    a = to_np(fit_rgb(im1)); b = to_np(fit_rgb(im2))
    h, w = a.shape[:2]
    if type == "wipe":
        field = np.broadcast_to((np.arange(w, dtype=np.float32) + 0.5) / w, (h, w))
    elif type == "dissolve":
        field = rng_for(seed).random((h, w), dtype=np.float32)
    elif type == "circle":
        field = radial_distance(h, w, ellipse=False)
    else:
        field = None

    out = []
    for i in range(frames):
        t = i / (frames - 1)
        if field is None:
            m = np.float32(t)
            out.append(from_np(a * (1.0 - m) + b * m))
            continue
        m = (field <= t) if type != "wipe" else (field < t)
        if i == frames - 1:
            m = np.ones((h, w), dtype=bool)
        out.append(from_np(np.where(m[..., None], b, a)))

    durations = [delay] * frames
    durations[0] += pause; durations[-1] += pause
    logger.debug("transitions %s: %d frames", type, frames)
    return {"frames": out, "durations": durations, "loop": 0}
