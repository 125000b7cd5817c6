from __future__ import annotations
import argparse
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional

from PIL import Image

from .effects_core import EffectMeta, Bool, discover_effects, get_effect
from .encode_anim import save_animation
from .errors import FxError, UsageError, install_global_exception_hooks, safe_callback
from .io_utils import load_image, save_image, split_rgba, recombine_rgb_alpha, make_output_path, is_image_path
from .logconf import setup_logging
from .presets import Preset, load_preset, save_preset
from .watcher import FolderWatcher

logger = logging.getLogger(__name__)

USAGE = """\
usage: fxscripts list
       fxscripts run SCRIPT [options] files...
       fxscripts watch SCRIPT INDIR OUTDIR [--existing] [--ext EXT] [-- script options]

Every script is also installed as its own command; run 'SCRIPT -h' for its options.
"""


class ScriptParser(argparse.ArgumentParser):
    """argparse that raises UsageError instead of exiting with status 2."""

    def error(self, message):
        raise UsageError(message, self.format_usage())


def _arg_type(opt):
    def parse(text):
        try:
            return opt.parse(text)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from None
    parse.__name__ = type(opt).__name__.lower()
    return parse


def build_parser(meta: EffectMeta, prog: Optional[str] = None, positional: bool = True) -> ScriptParser:
    p = ScriptParser(prog=prog or meta.name, description=meta.summary, add_help=False)
    p.add_argument("-h", "-help", "--help", action="help", help="show this help message and exit")

    group = p.add_argument_group("effect options")
    for key, opt in meta.options.items():
        flags = ([f"-{opt.flag}"] if opt.flag else []) + [f"--{key}"]
        if isinstance(opt, Bool):
            group.add_argument(*flags, dest=key, action="store_true", default=None, help=opt.help)
        else:
            group.add_argument(*flags, dest=key, type=_arg_type(opt), default=None,
                               metavar=opt.metavar, help=opt.describe())

    common = p.add_argument_group("common options")
    common.add_argument("--preset", metavar="FILE", help="load option values from a JSON preset")
    common.add_argument("--save-preset", metavar="FILE", help="write the effective option values to a JSON preset")
    common.add_argument("-V", "--verbose", action="count", default=0, help="log progress; twice for debug output")
    common.add_argument("--log-file", metavar="FILE", help="also log to a rotating file")

    if positional:
        lo, _ = meta.inputs
        for i, name in enumerate(meta.input_names):
            p.add_argument(name, nargs=None if i < lo else "?", help="input image")
        if meta.output == "image":
            p.add_argument("outfile", help="output image")
        elif meta.output == "frames":
            p.add_argument("outfile", help="output animation (.gif, .webp or .mp4)")
    return p


def _configure(args) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    setup_logging(level, args.log_file)
    install_global_exception_hooks(os.path.dirname(os.path.abspath(args.log_file)) if args.log_file else None)


def resolve_values(meta: EffectMeta, args) -> Dict[str, Any]:
    """Defaults < preset < command line."""
    preset_values = load_preset(args.preset).values_for(meta) if args.preset else {}
    cli_values = {k: getattr(args, k) for k in meta.options}
    return meta.resolve(preset_values, cli_values)


def apply_effect(meta: EffectMeta, images: List[Image.Image], values: Dict[str, Any]):
    alpha = None
    if meta.keep_alpha and len(images) == 1:
        rgb, alpha = split_rgba(images[0])
        images = [rgb]
    result = meta(*images, **values)
    if meta.output == "image" and alpha is not None:
        return recombine_rgb_alpha(result, alpha)
    return result


def write_result(meta: EffectMeta, result, outfile: Optional[str]) -> None:
    if meta.output == "text":
        print(result)
    elif meta.output == "frames":
        save_animation(result, outfile)
    else:
        save_image(result, outfile)


def run_script(name: str, argv: Optional[List[str]] = None, prog: Optional[str] = None) -> int:
    """Run one script the way its console command does; returns the exit status."""
    argv = sys.argv[1:] if argv is None else list(argv)
    try:
        meta = get_effect(name)
    except LookupError as e:
        print(f"{prog or 'fxscripts'}: error: {e}", file=sys.stderr)
        return 1
    parser = build_parser(meta, prog=prog)
    try:
        args = parser.parse_args(argv)
        _configure(args)
        values = resolve_values(meta, args)
        logger.info("%s: %s", meta.name, ", ".join(f"{k}={v}" for k, v in values.items()))
        if args.save_preset:
            save_preset(Preset.from_values(meta, values), args.save_preset)
            logger.info("Saved preset %s", args.save_preset)
        images = [load_image(getattr(args, n)) for n in meta.input_names if getattr(args, n) is not None]
        result = apply_effect(meta, images, values)
        write_result(meta, result, getattr(args, "outfile", None))
    except SystemExit as e:  # -h
        return int(e.code or 0)
    except UsageError as e:
        sys.stderr.write(e.usage or parser.format_usage())
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 1
    except FxError as e:
        logger.debug("%s failed", meta.name, exc_info=True)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 1
    return 0


# ---------------- umbrella command ----------------

def list_scripts() -> int:
    for name, meta in sorted(discover_effects().items()):
        print(f"{name} - {meta.summary}")
    return 0


def make_processor(meta: EffectMeta, values: Dict[str, Any], out_dir: str, ext: Optional[str] = None):
    """Callback for FolderWatcher: run ``meta`` on each new file, writing into ``out_dir``.

    A file that fails is logged and skipped; the rest of the batch still runs.
    """
    @safe_callback
    def process_one(path: str) -> str:
        out = make_output_path(out_dir, path, meta.name, ext)
        result = apply_effect(meta, [load_image(path)], values)
        save_image(result, out)
        logger.info("Wrote %s", out)
        return out

    def process(paths: List[str]) -> List[str]:
        return [out for out in map(process_one, paths) if out is not None]
    return process


def watch(argv: List[str], poll: float = 0.5) -> int:
    head, tail = (argv[:argv.index("--")], argv[argv.index("--") + 1:]) if "--" in argv else (argv, [])
    wp = ScriptParser(prog="fxscripts watch", description="Apply a script to every image added to a folder.",
                      add_help=False)
    wp.add_argument("-h", "-help", "--help", action="help", help="show this help message and exit")
    wp.add_argument("script")
    wp.add_argument("indir")
    wp.add_argument("outdir")
    wp.add_argument("--existing", action="store_true", help="also process images already in INDIR")
    wp.add_argument("--ext", help="output extension (default: same as the input)")
    try:
        wargs = wp.parse_args(head)
        try:
            meta = get_effect(wargs.script)
        except LookupError as e:
            raise UsageError(str(e), wp.format_usage()) from None
        if meta.inputs != (1, 1) or meta.output != "image":
            raise UsageError(f"{meta.name} does not turn one image into one image", wp.format_usage())
        if not os.path.isdir(wargs.indir):
            raise UsageError(f"{wargs.indir!r} is not a directory", wp.format_usage())
        if os.path.abspath(wargs.indir) == os.path.abspath(wargs.outdir):
            raise UsageError("OUTDIR must differ from INDIR", wp.format_usage())
        ep = build_parser(meta, prog=f"fxscripts watch {meta.name}", positional=False)
        eargs = ep.parse_args(tail)
        _configure(eargs)
        values = resolve_values(meta, eargs)
    except SystemExit as e:
        return int(e.code or 0)
    except UsageError as e:
        sys.stderr.write(e.usage)
        print(f"fxscripts watch: error: {e}", file=sys.stderr)
        return 1
    except FxError as e:
        print(f"fxscripts watch: error: {e}", file=sys.stderr)
        return 1

    os.makedirs(wargs.outdir, exist_ok=True)
    process = make_processor(meta, values, wargs.outdir, wargs.ext)
    if wargs.existing:
        names = sorted(n for n in os.listdir(wargs.indir) if is_image_path(n))
        process([os.path.join(wargs.indir, n) for n in names])

    watcher = FolderWatcher(process)
    watcher.start(wargs.indir)
    logger.warning("Watching %s -> %s with %s (Ctrl-C to stop)", watcher.path(), wargs.outdir, meta.name)
    try:
        while watcher.is_running():
            time.sleep(poll)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv or argv[0] in ("-h", "-help", "--help"):
        (sys.stdout if argv else sys.stderr).write(USAGE)
        return 0 if argv else 1
    cmd, rest = argv[0], argv[1:]
    if cmd == "list":
        return list_scripts()
    if cmd == "watch":
        return watch(rest)
    if cmd == "run":
        if not rest:
            sys.stderr.write(USAGE)
            print("fxscripts run: error: missing SCRIPT", file=sys.stderr)
            return 1
        return run_script(rest[0], rest[1:])
    if cmd in discover_effects():
        return run_script(cmd, rest)
    sys.stderr.write(USAGE)
    print(f"fxscripts: error: unknown command {cmd!r}", file=sys.stderr)
    return 1


def console_main() -> None:
    sys.exit(main())
