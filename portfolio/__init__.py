"""Portfolio site backend: content management, contact inbox and self-hosted analytics."""

__version__ = "1.0.0"
