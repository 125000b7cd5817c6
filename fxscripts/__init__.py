"""Single-purpose image effect scripts built on Pillow, numpy and scipy."""

__version__ = "1.0.0"
