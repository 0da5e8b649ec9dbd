"""Presentation layers for the render tree."""
