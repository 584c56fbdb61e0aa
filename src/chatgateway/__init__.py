"""Chat completion gateway for hosted and local language models."""

__version__ = "0.1.0"
