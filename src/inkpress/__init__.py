"""inkpress: document rendering core for hybrid markdown and embedded diagrams."""

__version__ = "0.1.0"
