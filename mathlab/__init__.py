"""mathlab-engine: LaTeX solution and recolor service."""

__version__ = "0.1.0"
