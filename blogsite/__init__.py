"""Markdown blog generator: YAML config + front-matter posts in, static HTML/RSS/JSON out."""

__version__ = "0.1.0"
