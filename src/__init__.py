"""inkwell: blog content store with pluggable persistence."""

__version__ = "0.3.0"
