"""JSON tree editing: node model, container projections, presets and a file-store API."""

__version__ = "0.1.0"
