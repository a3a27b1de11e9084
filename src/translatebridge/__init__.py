"""translatebridge: translate, safety-check, refine and voice short messages."""

__version__ = "1.0.0"
