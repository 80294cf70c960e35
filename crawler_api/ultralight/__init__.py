"""Ultralight 2.0 payload encoding."""

from .encoder import SEPARATOR, encode, render_value

__all__ = ["SEPARATOR", "encode", "render_value"]
