"""abitrack: incremental ABI compatibility timeline builder."""

__version__ = "0.1.0"
