"""Mirror Pretalx room assets into a local directory tree."""

__version__ = "0.3.0"
