"""A-Reader: plain-text document reading sessions with sidecar progress."""

__version__ = "0.1.0"
