"""Infrastructure adapters: logging, persistence, filesystem and external tools."""
