from __future__ import annotations

import numpy as np
from PIL import Image

from fxscripts.effects.artistic import (
    cartoon, disperse, glow, kmeans, posterize, sketch, spots, stainedglass, tiltshift,
)

from .conftest import solid_image


def _arr(im: Image.Image) -> np.ndarray:
    return np.asarray(im).astype(np.int64)


def test_posterize_levels() -> None:
    a = np.array([0.0, 0.2, 0.5, 0.99, 1.0])
    assert posterize(a, 2).tolist() == [0.0, 0.0, 1.0, 1.0, 1.0]
    assert len(np.unique(posterize(np.linspace(0, 1, 101), 4))) == 4


def test_cartoon_flat_image_has_no_outlines() -> None:
    out = _arr(cartoon(solid_image((100, 100, 100)), levels=6, edge=0.25, width=1, smooth=2))
    assert np.all(out == 102)


def test_cartoon_draws_outline_on_edges() -> None:
    arr = np.full((32, 32, 3), 100, dtype=np.uint8)
    arr[:, 16:] = 200
    out = _arr(cartoon(Image.fromarray(arr), levels=6, edge=0.25, width=2, smooth=0))
    row = out[16, :, 0]
    assert row[2] == 102 and row[29] == 204
    assert np.any(row[14:18] == 0)


def test_sketch_uniform_image_is_blank_paper() -> None:
    out = _arr(sketch(solid_image((120, 120, 120)), radius=4.0, contrast=1.0, mode="gray"))
    assert np.all(out == 255)


def test_sketch_color_mode(gradient: Image.Image) -> None:
    out = sketch(gradient, radius=3.0, contrast=1.5, mode="color")
    assert out.mode == "RGB" and out.size == gradient.size


def test_stainedglass_square_cells_are_flat_block_means(gradient: Image.Image) -> None:
    src = gradient.crop((0, 0, 32, 32))
    out = _arr(stainedglass(src, kind="square", size=8, offset=0, ecolor=(0, 0, 0), thick=0, seed=1))
    block = out[8:16, 16:24].reshape(-1, 3)
    assert np.all(block == block[0])
    expected = np.asarray(src).astype(np.float64)[8:16, 16:24].reshape(-1, 3).mean(axis=0)
    assert np.all(np.abs(block[0] - expected) <= 1)


def test_stainedglass_borders_use_edge_color(gradient: Image.Image) -> None:
    out = _arr(stainedglass(gradient, kind="hexagon", size=10, offset=2, ecolor=(255, 0, 0), thick=1, seed=5))
    assert np.any(np.all(out == [255, 0, 0], axis=2))


def test_stainedglass_seed_is_reproducible(gradient: Image.Image) -> None:
    a = _arr(stainedglass(gradient, kind="random", size=12, offset=0, ecolor=(0, 0, 0), thick=1, seed=42))
    b = _arr(stainedglass(gradient, kind="random", size=12, offset=0, ecolor=(0, 0, 0), thick=1, seed=42))
    assert np.array_equal(a, b)


def test_kmeans_recovers_a_two_color_image() -> None:
    arr = np.zeros((20, 20, 3), dtype=np.uint8)
    arr[:, :10] = (200, 30, 30)
    arr[:, 10:] = (20, 40, 220)
    out = _arr(kmeans(Image.fromarray(arr), colors=4, iterations=10, seed=0))
    assert np.array_equal(out, arr.astype(np.int64))


def test_kmeans_limits_the_palette(gradient: Image.Image) -> None:
    out = _arr(kmeans(gradient, colors=5, iterations=15, seed=1))
    assert len(np.unique(out.reshape(-1, 3), axis=0)) <= 5


def test_spots_fill_cells_with_mean_color() -> None:
    out = spots(solid_image((200, 0, 0)), size=8, shape="circle", bgcolor=(0, 0, 0), spread=0.9)
    assert out.getpixel((4, 4)) == (200, 0, 0)
    assert out.getpixel((0, 0)) == (0, 0, 0)
    diamond = spots(solid_image((0, 200, 0)), size=8, shape="diamond", bgcolor=(9, 9, 9), spread=1.0)
    assert diamond.getpixel((4, 4)) == (0, 200, 0)
    assert diamond.getpixel((0, 0)) == (9, 9, 9)


def test_glow_keeps_black_black_and_brightens(gradient: Image.Image) -> None:
    assert _arr(glow(solid_image("black"), amount=1.0, radius=4.0, mode="screen")).max() == 0
    out = glow(gradient, amount=0.6, radius=4.0, mode="screen")
    assert _arr(out).mean() >= _arr(gradient).mean()
    assert glow(gradient, amount=0.5, radius=2.0, mode="soft").size == gradient.size


def test_tiltshift_keeps_the_band_sharp(gradient: Image.Image) -> None:
    out = _arr(tiltshift(gradient, center=0.5, band=0.2, radius=4.0, saturation=1.0))
    src = _arr(gradient)
    assert np.array_equal(out[24], src[24])


def test_disperse_zero_amount_is_identity(gradient: Image.Image) -> None:
    out = _arr(disperse(gradient, amount=0, density=2.0, seed=1))
    assert np.array_equal(out, _arr(gradient))


def test_disperse_moves_pixels_reproducibly(gradient: Image.Image) -> None:
    a = _arr(disperse(gradient, amount=6, density=2.0, seed=9))
    b = _arr(disperse(gradient, amount=6, density=2.0, seed=9))
    assert np.array_equal(a, b)
    assert not np.array_equal(a, _arr(gradient))
