from __future__ import annotations
import importlib
import pkgutil
import logging
import re
from typing import Dict, Any, Callable, List, Optional, Tuple
from dataclasses import dataclass, field

from PIL import ImageColor

logger = logging.getLogger(__name__)

# ---------------- registry & option types ----------------
_registry: Dict[str, "EffectMeta"] = {}

# -h is help, -V is verbosity; both are added to every script's parser
RESERVED_FLAGS = {"h", "V"}


class Option:
    """A typed script option. ``parse`` turns flag text into a value, ``coerce``
    validates a value coming from a preset or a default."""
    metavar = "VALUE"

    def __init__(self, default: Any, flag: str = "", help: str = ""):
        self.default = default; self.flag = flag; self.help = help

    def parse(self, text: str) -> Any:
        return self.coerce(text)

    def coerce(self, value: Any) -> Any:
        return value

    def to_json(self, value: Any) -> Any:
        return value

    def describe(self) -> str:
        text = self.help or ""
        if self.default is not None:
            text = f"{text} (default: {self.to_json(self.coerce(self.default))})".strip()
        return text


class Bool(Option):
    metavar = ""

    def __init__(self, default: bool = False, flag: str = "", help: str = ""):
        super().__init__(default, flag, help)

    def coerce(self, value):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(value, str) and value.lower() in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"expected a boolean, got {value!r}")


class Int(Option):
    metavar = "N"

    def __init__(self, default: Optional[int], flag: str, min_value: int, max_value: int, help: str = ""):
        super().__init__(default, flag, help); self.min = min_value; self.max = max_value

    def coerce(self, value):
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        try:
            v = int(str(value).strip()) if not isinstance(value, int) else value
        except ValueError:
            raise ValueError(f"expected an integer, got {value!r}") from None
        if not (self.min <= v <= self.max):
            raise ValueError(f"{v} is outside the range {self.min}..{self.max}")
        return v


class Float(Option):
    metavar = "X"

    def __init__(self, default: Optional[float], flag: str, min_value: float, max_value: float, help: str = ""):
        super().__init__(default, flag, help); self.min = min_value; self.max = max_value

    def coerce(self, value):
        if isinstance(value, bool):
            raise ValueError(f"expected a number, got {value!r}")
        try:
            v = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"expected a number, got {value!r}") from None
        if v != v or not (self.min <= v <= self.max):
            raise ValueError(f"{value} is outside the range {self.min:g}..{self.max:g}")
        return v


class Enum(Option):
    def __init__(self, default: str, flag: str, choices, help: str = ""):
        super().__init__(default, flag, help); self.choices = list(choices)
        self.metavar = "{" + ",".join(self.choices) + "}"

    def coerce(self, value):
        v = str(value).strip().lower()
        if v not in self.choices:
            raise ValueError(f"{value!r} is not one of {', '.join(self.choices)}")
        return v


class Color(Option):
    """Any color Pillow understands: names, #rgb, #rrggbb, rgb(r,g,b)."""
    metavar = "COLOR"

    def coerce(self, value):
        if isinstance(value, (tuple, list)) and len(value) == 3:
            return tuple(max(0, min(255, int(c))) for c in value)
        try:
            rgb = ImageColor.getrgb(str(value).strip())
        except ValueError:
            raise ValueError(f"unknown color {value!r}") from None
        return tuple(rgb[:3])

    def to_json(self, value):
        return "#%02x%02x%02x" % tuple(value)


class IntList(Option):
    """Comma-separated integers, e.g. ``15,80,250``."""
    metavar = "N,N,..."

    def __init__(self, default: List[int], flag: str, min_value: int, max_value: int, help: str = ""):
        super().__init__(default, flag, help); self.min = min_value; self.max = max_value

    def coerce(self, value):
        items = value if isinstance(value, (list, tuple)) else re.split(r"\s*,\s*", str(value).strip())
        try:
            out = [int(v) for v in items if str(v) != ""]
        except ValueError:
            raise ValueError(f"expected comma-separated integers, got {value!r}") from None
        if not out:
            raise ValueError("expected at least one value")
        for v in out:
            if not (self.min <= v <= self.max):
                raise ValueError(f"{v} is outside the range {self.min}..{self.max}")
        return out

    def to_json(self, value):
        return ",".join(str(v) for v in value)


class Choices(Option):
    """Comma-separated subset of fixed names, order kept, duplicates dropped."""

    def __init__(self, default: List[str], flag: str, choices, help: str = ""):
        super().__init__(default, flag, help); self.choices = list(choices)
        self.metavar = "NAME,..."

    def coerce(self, value):
        items = value if isinstance(value, (list, tuple)) else str(value).split(",")
        out: List[str] = []
        for item in items:
            v = str(item).strip().lower()
            if not v:
                continue
            if v == "all":
                return list(self.choices)
            if v not in self.choices:
                raise ValueError(f"{item!r} is not one of {', '.join(self.choices)}")
            if v not in out:
                out.append(v)
        if not out:
            raise ValueError("expected at least one name")
        return out

    def to_json(self, value):
        return ",".join(value)


@dataclass
class EffectMeta:
    name: str
    func: Callable[..., Any]
    summary: str
    options: Dict[str, Option]
    inputs: Tuple[int, int] = (1, 1)
    output: str = "image"   # "image" | "frames" | "text"
    keep_alpha: bool = True
    input_names: List[str] = field(default_factory=list)

    def defaults(self) -> Dict[str, Any]:
        return {k: (o.coerce(o.default) if o.default is not None else None) for k, o in self.options.items()}

    def resolve(self, *layers: Dict[str, Any]) -> Dict[str, Any]:
        """Merge option layers over the defaults; ``None`` means "not given"."""
        values = self.defaults()
        for layer in layers:
            for k, v in layer.items():
                if v is None:
                    continue
                if k not in self.options:
                    raise KeyError(k)
                values[k] = v
        return values

    def __call__(self, *images, **values):
        return self.func(*images, **values)


def effect(name: str, *, summary: str, options: Dict[str, Option], inputs: Tuple[int, int] = (1, 1),
           output: str = "image", keep_alpha: bool = True, input_names: Optional[List[str]] = None):
    def deco(fn: Callable[..., Any]):
        flags = [o.flag for o in options.values() if o.flag]
        if len(flags) != len(set(flags)):
            raise ValueError(f"duplicate short flag in effect {name!r}")
        if set(flags) & RESERVED_FLAGS:
            raise ValueError(f"effect {name!r}: flags {sorted(RESERVED_FLAGS)} are reserved")
        names = list(input_names or (["infile"] if inputs[1] == 1 else [f"infile{i + 1}" for i in range(inputs[1])]))
        _registry[name] = EffectMeta(name=name, func=fn, summary=summary, options=options, inputs=inputs,
                                     output=output, keep_alpha=keep_alpha, input_names=names)
        return fn
    return deco


# ---------------- discovery ----------------
def _import_effects_package(package: str) -> None:
    pkg = importlib.import_module(package)
    if hasattr(pkg, "__path__"):
        for m in pkgutil.iter_modules(pkg.__path__):
            importlib.import_module(f"{package}.{m.name}")


def discover_effects(package: str = "fxscripts.effects") -> Dict[str, EffectMeta]:
    """Import every module of the effects package so its effects register."""
    _import_effects_package(package)
    logger.debug("Effects registered: %d -> %s", len(_registry), sorted(_registry.keys()))
    return dict(_registry)


def get_effect(name: str) -> EffectMeta:
    registry = discover_effects()
    try:
        return registry[name]
    except KeyError:
        raise LookupError(f"unknown script {name!r}") from None
