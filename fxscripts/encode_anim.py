from __future__ import annotations
from typing import List, Dict
import imageio
import os
import shutil
import logging
import numpy as np
from PIL import Image

from .errors import EffectError, OutputError

logger = logging.getLogger(__name__)

Animation = Dict[str, object]  # {"frames": [PIL.Image], "durations": [ms], "loop": int}

def _to_frame_array(frame: Image.Image) -> np.ndarray:
    if frame.mode != "RGB":
        frame = frame.convert("RGB")
    return np.asarray(frame)


def _save_pillow(frames: List[Image.Image], durations: List[int], out_path: str, loop: int, fmt: str) -> None:
    frames = [f.convert("RGB") for f in frames]
    kwargs = {"optimize": False} if fmt == "GIF" else {"method": 6, "quality": 90}
    frames[0].save(
        out_path, format=fmt, save_all=True, append_images=frames[1:],
        duration=durations, loop=loop, **kwargs
    )


def encode_frames_to_mp4(frames: List[Image.Image], out_path: str, fps: int = 24, crf: int = 20) -> None:
    if not frames:
        raise EffectError("no frames to encode")

    w, h = frames[0].size
    pad_w = w % 2
    pad_h = h % 2

    with imageio.get_writer(
        out_path,
        format="ffmpeg",
        mode="I",
        fps=fps,
        codec="libx264",
        quality=None,
        pixelformat="yuv420p",
        macro_block_size=None,
        ffmpeg_params=["-crf", str(crf)] + (["-vf", f"pad=iw+{pad_w}:ih+{pad_h}"] if (pad_w or pad_h) else []),
    ) as writer:
        for fr in frames:
            writer.append_data(_to_frame_array(fr))


def save_animation(anim: Animation, out_path: str) -> None:
    """Write frames as GIF/WebP (Pillow) or MP4 (imageio + ffmpeg), chosen by extension."""
    frames = list(anim["frames"])  # type: ignore[arg-type]
    if not frames:
        raise EffectError("no frames to encode")
    durations = [int(d) for d in anim.get("durations", [100] * len(frames))]  # type: ignore[union-attr]
    loop = int(anim.get("loop", 0))  # type: ignore[arg-type]

    ext = os.path.splitext(out_path)[1].lower()
    if ext not in (".gif", ".webp", ".mp4"):
        raise OutputError(f"unsupported animation format {ext or '(none)'!r} (use .gif, .webp or .mp4)")
    try:
        os.makedirs(os.path.dirname(os.path.abspath(out_path)), exist_ok=True)
        if ext == ".gif":
            _save_pillow(frames, durations, out_path, loop, "GIF")
        elif ext == ".webp":
            _save_pillow(frames, durations, out_path, loop, "WEBP")
        else:
            if not shutil.which("ffmpeg"):
                logger.debug("ffmpeg not on PATH; relying on imageio-ffmpeg's bundled binary")
            # constant frame rate: repeat frames to honour longer (pause) durations
            base = max(1, min(durations))
            expanded = []
            for fr, d in zip(frames, durations):
                expanded.extend([fr] * max(1, int(round(d / base))))
            encode_frames_to_mp4(expanded, out_path, fps=max(1, int(round(1000 / base))))
    except (OSError, ValueError, RuntimeError) as e:
        raise OutputError(f"unable to write animation {out_path!r}: {e}") from e
    logger.debug("Wrote %d frames to %s", len(frames), out_path)
