"""Markdown document buffers, heading structure and wiki-link graph tools."""

__version__ = "0.1.0"
