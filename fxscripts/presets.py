from __future__ import annotations
import json
from dataclasses import dataclass, asdict, field
from typing import Dict, Any

from .effects_core import EffectMeta
from .errors import PresetError

PRESET_VERSION = 1


@dataclass
class Preset:
    version: int
    effect: str
    options: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, sort_keys=False)

    @staticmethod
    def from_json(s: str) -> "Preset":
        try:
            obj = json.loads(s)
        except json.JSONDecodeError as e:
            raise PresetError(f"preset is not valid JSON: {e}") from e
        if not isinstance(obj, dict) or "effect" not in obj:
            raise PresetError("preset must be an object with an 'effect' key")
        options = obj.get("options", {})
        if not isinstance(options, dict):
            raise PresetError("preset 'options' must be an object")
        version = int(obj.get("version", PRESET_VERSION))
        if version > PRESET_VERSION:
            raise PresetError(f"preset version {version} is newer than supported ({PRESET_VERSION})")
        return Preset(version=version, effect=str(obj["effect"]), options=dict(options))

    @staticmethod
    def from_values(meta: EffectMeta, values: Dict[str, Any]) -> "Preset":
        opts = {k: meta.options[k].to_json(v) for k, v in values.items() if v is not None}
        return Preset(version=PRESET_VERSION, effect=meta.name, options=opts)

    def values_for(self, meta: EffectMeta) -> Dict[str, Any]:
        """Validate the stored options against ``meta`` and return parsed values."""
        if self.effect != meta.name:
            raise PresetError(f"preset is for {self.effect!r}, not {meta.name!r}")
        values: Dict[str, Any] = {}
        for k, raw in self.options.items():
            opt = meta.options.get(k)
            if opt is None:
                raise PresetError(f"preset option {k!r} is not an option of {meta.name!r}")
            if raw is None:
                continue
            try:
                values[k] = opt.coerce(raw)
            except ValueError as e:
                raise PresetError(f"preset option {k!r}: {e}") from e
        return values


def load_preset(path: str) -> Preset:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return Preset.from_json(f.read())
    except OSError as e:
        raise PresetError(f"unable to read preset {path!r}: {e}") from e


def save_preset(preset: Preset, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(preset.to_json())
    except OSError as e:
        raise PresetError(f"unable to write preset {path!r}: {e}") from e
