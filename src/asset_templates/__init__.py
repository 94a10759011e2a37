"""asset-templates - schema-driven decoding and re-encoding of game asset data."""

__version__ = "0.1.0"
