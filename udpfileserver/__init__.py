"""UDP file server: open, read, write and truncate files under a base directory."""

__version__ = "0.1.0"
__all__ = ["__version__"]