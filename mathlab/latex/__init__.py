"""LaTeX job pipeline."""
