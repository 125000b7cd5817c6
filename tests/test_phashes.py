from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from fxscripts.effects.analysis import (
    HASHES, ahash, dhash, fhash, hamming, histog, mhash, phash, phashes, to_binary, to_hex,
)

from .conftest import solid_image


def test_average_and_median_hash_of_halves(halves: Image.Image) -> None:
    assert to_hex(ahash(halves)) == "0f0f0f0f0f0f0f0f"
    assert to_hex(mhash(halves)) == "0f0f0f0f0f0f0f0f"


def test_difference_hash_of_halves(halves: Image.Image) -> None:
    assert to_hex(dhash(halves)) == "1818181818181818"


def test_bit_formatting() -> None:
    bits = np.array([1] + [0] * 63, dtype=bool)
    assert to_hex(bits) == "8000000000000000"
    assert to_binary(bits) == "1" + "0" * 63


def test_hamming() -> None:
    a = np.zeros(64, dtype=bool)
    b = a.copy()
    b[[0, 5, 63]] = True
    assert hamming(a, a) == 0
    assert hamming(a, b) == 3
    with pytest.raises(ValueError):
        hamming(a, b[:32])


@pytest.mark.parametrize("name", sorted(HASHES))
def test_hashes_are_64_bits_and_deterministic(scene: Image.Image, name: str) -> None:
    h1 = HASHES[name](scene)
    h2 = HASHES[name](scene.copy())
    assert h1.shape == (64,)
    assert np.array_equal(h1, h2)


def test_phash_ignores_brightness_and_contrast(scene: Image.Image) -> None:
    washed = Image.eval(scene, lambda v: v // 2 + 64)
    assert hamming(phash(scene), phash(washed)) <= 6


def test_fhash_tolerates_rotation(scene: Image.Image) -> None:
    assert hamming(fhash(scene), fhash(scene.rotate(90))) <= 6


def test_phashes_prints_one_line_per_method(halves: Image.Image) -> None:
    text = phashes(halves, methods=["ahash", "dhash"], format="hex")
    assert text.splitlines() == ["ahash: 0f0f0f0f0f0f0f0f", "dhash: 1818181818181818"]


def test_phashes_compares_two_images(halves: Image.Image) -> None:
    line = phashes(halves, halves.copy(), methods=["mhash"], format="binary")
    name, h1, h2, dist = line.split(" ")
    assert name == "mhash:"
    assert h1 == h2 and len(h1) == 64
    assert dist == "distance=0"
    flipped = phashes(halves, halves.transpose(Image.Transpose.FLIP_LEFT_RIGHT), methods=["ahash"], format="hex")
    assert flipped.endswith("distance=64")


def test_histog_draws_bars() -> None:
    out = histog(solid_image((100, 100, 100)), width=256, height=200, mode="gray", bgcolor=(0, 0, 0))
    assert out.size == (256, 200)
    assert out.getpixel((100, 0)) == (255, 255, 255)
    assert out.getpixel((100, 199)) == (255, 255, 255)
    assert out.getpixel((50, 199)) == (0, 0, 0)


def test_histog_rgb_mode_colors_each_channel() -> None:
    out = histog(solid_image((255, 0, 0)), width=256, height=64, mode="rgb", bgcolor=(9, 9, 9))
    assert out.getpixel((255, 0)) == (255, 0, 0)
    assert out.getpixel((0, 0)) == (0, 255, 255)
    assert out.getpixel((128, 63)) == (9, 9, 9)
