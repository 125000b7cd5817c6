"""Console entry points, one command per script."""
import sys

from .cli import run_script


def _script(name: str):
    def main() -> None:
        sys.exit(run_script(name))
    main.__name__ = name
    return main


autolevel = _script("autolevel")
autogamma = _script("autogamma")
autowhite = _script("autowhite")
autothresh = _script("autothresh")
bcimage = _script("bcimage")
redist = _script("redist")
retinex = _script("retinex")
vintage = _script("vintage")
vignette = _script("vignette")
color2alpha = _script("color2alpha")
cartoon = _script("cartoon")
sketch = _script("sketch")
stainedglass = _script("stainedglass")
kmeans = _script("kmeans")
spots = _script("spots")
glow = _script("glow")
tiltshift = _script("tiltshift")
disperse = _script("disperse")
pagecurl = _script("pagecurl")
kaleidoscope = _script("kaleidoscope")
mirrorize = _script("mirrorize")
bubblewarp = _script("bubblewarp")
zoomblur = _script("zoomblur")
grid = _script("grid")
phashes = _script("phashes")
histog = _script("histog")
transitions = _script("transitions")
