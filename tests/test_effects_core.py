from __future__ import annotations

import pytest

from fxscripts.effects_core import Bool, Choices, Color, Enum, Float, Int, IntList, effect, get_effect

ALL_SCRIPTS = {
    "autolevel", "autogamma", "autowhite", "autothresh", "bcimage", "redist", "retinex", "vintage",
    "vignette", "color2alpha", "cartoon", "sketch", "stainedglass", "kmeans", "spots", "glow",
    "tiltshift", "disperse", "pagecurl", "kaleidoscope", "mirrorize", "bubblewarp", "zoomblur",
    "grid", "phashes", "histog", "transitions",
}


def test_every_script_is_registered(registry) -> None:
    assert ALL_SCRIPTS <= set(registry)


def test_every_option_default_is_valid(registry) -> None:
    for meta in registry.values():
        for key, opt in meta.options.items():
            if opt.default is None:
                continue
            value = opt.coerce(opt.default)
            assert opt.coerce(value) == value, (meta.name, key)
            assert opt.coerce(opt.to_json(value)) == value, (meta.name, key)


def test_int_option_parses_and_checks_range() -> None:
    opt = Int(5, "n", 1, 10)
    assert opt.parse("7") == 7
    assert opt.parse(" 10 ") == 10
    with pytest.raises(ValueError, match="outside the range"):
        opt.parse("11")
    with pytest.raises(ValueError, match="integer"):
        opt.parse("2.5")
    with pytest.raises(ValueError):
        opt.coerce(True)


def test_float_option_rejects_nan_and_out_of_range() -> None:
    opt = Float(0.5, "m", 0.0, 1.0)
    assert opt.parse("0.25") == 0.25
    with pytest.raises(ValueError):
        opt.parse("nan")
    with pytest.raises(ValueError, match="outside the range"):
        opt.parse("-0.1")
    with pytest.raises(ValueError, match="number"):
        opt.parse("abc")


def test_enum_option_is_case_insensitive() -> None:
    opt = Enum("rgb", "c", ["rgb", "gray"])
    assert opt.parse("GRAY") == "gray"
    with pytest.raises(ValueError, match="not one of"):
        opt.parse("hsl")


@pytest.mark.parametrize(
    ("text", "rgb"),
    [("red", (255, 0, 0)), ("#00ff00", (0, 255, 0)), ("#00f", (0, 0, 255)), ("rgb(1,2,3)", (1, 2, 3))],
)
def test_color_option_accepts_pillow_color_syntax(text: str, rgb) -> None:
    assert Color("black", "c").parse(text) == rgb


def test_color_option_rejects_unknown_and_serializes_to_hex() -> None:
    opt = Color("black", "c")
    with pytest.raises(ValueError, match="unknown color"):
        opt.parse("notacolor")
    assert opt.to_json((255, 0, 16)) == "#ff0010"
    assert opt.coerce([300, -5, 7]) == (255, 0, 7)


def test_int_list_option() -> None:
    opt = IntList([15, 80, 250], "s", 1, 1000)
    assert opt.parse("15, 80,250") == [15, 80, 250]
    assert opt.to_json([1, 2]) == "1,2"
    with pytest.raises(ValueError, match="outside the range"):
        opt.parse("0,5")
    with pytest.raises(ValueError):
        opt.parse("a,b")


def test_choices_option_keeps_order_and_expands_all() -> None:
    opt = Choices(["a"], "m", ["a", "b", "c"])
    assert opt.parse("c,a,c") == ["c", "a"]
    assert opt.parse("all") == ["a", "b", "c"]
    with pytest.raises(ValueError, match="not one of"):
        opt.parse("a,z")


def test_bool_option_coerces_strings() -> None:
    opt = Bool(False, "n")
    assert opt.coerce("yes") is True
    assert opt.coerce("off") is False
    with pytest.raises(ValueError):
        opt.coerce("maybe")


def test_resolve_layers_over_defaults() -> None:
    meta = get_effect("autolevel")
    values = meta.resolve({"clip": 2.0}, {"clip": None, "mode": "gray"})
    assert values == {"mode": "gray", "clip": 2.0, "midtone": 0.5}
    assert meta.resolve({"clip": 2.0}, {"clip": 3.0})["clip"] == 3.0
    with pytest.raises(KeyError):
        meta.resolve({"bogus": 1})


def test_effect_decorator_rejects_reserved_and_duplicate_flags(registry) -> None:
    with pytest.raises(ValueError, match="reserved"):
        effect("bad_reserved", summary="x", options={"height": Int(1, "h", 0, 2)})(lambda im, **kw: im)
    with pytest.raises(ValueError, match="duplicate"):
        effect("bad_dup", summary="x", options={"a": Int(1, "a", 0, 2), "b": Int(1, "a", 0, 2)})(lambda im, **kw: im)
    assert "bad_reserved" not in registry and "bad_dup" not in registry


def test_get_effect_unknown_name() -> None:
    with pytest.raises(LookupError, match="unknown script"):
        get_effect("no-such-script")


def test_two_input_scripts_declare_their_inputs(registry) -> None:
    assert registry["transitions"].inputs == (2, 2)
    assert registry["transitions"].input_names == ["infile1", "infile2"]
    assert registry["phashes"].inputs == (1, 2)
    assert registry["phashes"].output == "text"
