"""Python virtual environment manager with curated package sets."""

__version__ = "0.1.0"
