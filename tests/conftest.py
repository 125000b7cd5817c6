from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import Callable

import numpy as np
import pytest
from PIL import Image, ImageDraw

from fxscripts.effects_core import discover_effects


@pytest.fixture(autouse=True)
def _restore_global_hooks():
    """Scripts reconfigure logging and exception hooks; undo that after every test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    excepthook, thread_hook = sys.excepthook, threading.excepthook
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    sys.excepthook, threading.excepthook = excepthook, thread_hook


@pytest.fixture(scope="session")
def registry():
    return discover_effects()


def solid_image(color, size=(32, 32), mode="RGB") -> Image.Image:
    return Image.new(mode, size, color)


@pytest.fixture
def gradient() -> Image.Image:
    """64x48: red ramps left to right, green top to bottom, blue constant."""
    w, h = 64, 48
    x = np.linspace(0, 255, w)[None, :].repeat(h, axis=0)
    y = np.linspace(0, 255, h)[:, None].repeat(w, axis=1)
    arr = np.dstack([x, y, np.full((h, w), 128.0)]).round().astype(np.uint8)
    return Image.fromarray(arr, "RGB")


@pytest.fixture
def halves() -> Image.Image:
    """64x64, left half black, right half white."""
    arr = np.zeros((64, 64, 3), dtype=np.uint8)
    arr[:, 32:] = 255
    return Image.fromarray(arr, "RGB")


@pytest.fixture
def scene() -> Image.Image:
    """64x64 asymmetric picture with a few shapes over a gradient."""
    arr = np.zeros((64, 64, 3), dtype=np.uint8)
    arr[..., 0] = np.linspace(20, 220, 64, dtype=np.uint8)[None, :]
    arr[..., 2] = np.linspace(200, 40, 64, dtype=np.uint8)[:, None]
    im = Image.fromarray(arr, "RGB")
    d = ImageDraw.Draw(im)
    d.rectangle((6, 8, 26, 30), fill=(250, 240, 30))
    d.ellipse((34, 30, 58, 56), fill=(10, 10, 10))
    d.polygon([(40, 4), (60, 10), (44, 22)], fill=(255, 255, 255))
    return im


@pytest.fixture
def write_image(tmp_path: Path) -> Callable[..., str]:
    def write(img: Image.Image, name: str = "in.png") -> str:
        path = tmp_path / name
        img.save(path)
        return str(path)
    return write
