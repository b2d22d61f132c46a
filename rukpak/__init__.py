"""Bundle file trees, archive storage, unpacking sources, admission validation and upload handling."""

__version__ = "0.1.0"