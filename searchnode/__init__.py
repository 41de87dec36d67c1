"""searchnode: search node with production bootstrap checks."""

__version__ = "0.1.0"
