from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from fxscripts.effects.geometry import bubblewarp, grid, kaleidoscope, mirrorize, pagecurl, zoomblur

from .conftest import solid_image


def _arr(im: Image.Image) -> np.ndarray:
    return np.asarray(im).astype(np.int64)


def test_pagecurl_regions() -> None:
    src = solid_image((10, 20, 30), size=(100, 100))
    out = pagecurl(src, amount=40.0, mode="plain", bgcolor=(255, 255, 255), backcolor=(200, 0, 0), shadow=0.0)
    assert out.size == src.size
    assert out.getpixel((0, 0)) == (10, 20, 30)
    assert out.getpixel((99, 99)) == (255, 255, 255)
    assert out.getpixel((40, 40)) == (200, 0, 0)


def test_pagecurl_gradient_back_and_shadow() -> None:
    src = solid_image((250, 250, 250), size=(80, 60))
    out = _arr(pagecurl(src, amount=50.0, mode="gradient", bgcolor=(0, 0, 0), backcolor=(220, 220, 220),
                        shadow=0.8))
    # shading keeps the back of the flap no brighter than its color
    assert out.max() <= 250
    assert out[59, 79].tolist() == [0, 0, 0]
    back = out[20, 30]
    assert back[0] == back[1] == back[2] and 150 <= back[0] <= 220


def test_kaleidoscope_is_mirror_symmetric(scene: Image.Image) -> None:
    src = scene.crop((0, 0, 63, 63))
    out = _arr(kaleidoscope(src, segments=6, rotation=0.0))
    assert out.shape == (63, 63, 3)
    assert np.abs(out - out[::-1]).max() <= 2


@pytest.mark.parametrize("mode", ["left", "right"])
def test_mirrorize_horizontal(scene: Image.Image, mode: str) -> None:
    out = _arr(mirrorize(scene, mode=mode))
    assert np.array_equal(out, out[:, ::-1])
    src = _arr(scene)
    if mode == "left":
        assert np.array_equal(out[:, :32], src[:, :32])
    else:
        assert np.array_equal(out[:, 32:], src[:, 32:])


def test_mirrorize_quad_is_symmetric_both_ways(scene: Image.Image) -> None:
    out = _arr(mirrorize(scene, mode="quad"))
    assert np.array_equal(out, out[:, ::-1])
    assert np.array_equal(out, out[::-1])
    assert np.array_equal(out[:32, :32], _arr(scene)[:32, :32])


def test_bubblewarp_zero_amount_is_identity(scene: Image.Image) -> None:
    assert np.array_equal(_arr(bubblewarp(scene, amount=0.0, radius=1.0)), _arr(scene))


def test_bubblewarp_only_moves_pixels_inside_the_circle(scene: Image.Image) -> None:
    out = _arr(bubblewarp(scene, amount=0.8, radius=0.5))
    src = _arr(scene)
    assert np.array_equal(out[0], src[0])
    assert not np.array_equal(out[24:40, 24:40], src[24:40, 24:40])


def test_zoomblur_zero_amount_is_identity(scene: Image.Image) -> None:
    assert np.abs(_arr(zoomblur(scene, amount=0.0, steps=4)) - _arr(scene)).max() <= 1


def test_grid_draws_lines_at_spacing() -> None:
    out = grid(solid_image("black", size=(16, 16)), spacing=4, color=(255, 0, 0), thick=1, opacity=1.0)
    assert out.getpixel((0, 5)) == (255, 0, 0)
    assert out.getpixel((4, 1)) == (255, 0, 0)
    assert out.getpixel((5, 12)) == (255, 0, 0)
    assert out.getpixel((1, 1)) == (0, 0, 0)
    faint = grid(solid_image("black", size=(16, 16)), spacing=4, color=(255, 0, 0), thick=1, opacity=0.5)
    r, g, b = faint.getpixel((8, 3))
    assert 120 <= r <= 135 and g == 0 and b == 0
