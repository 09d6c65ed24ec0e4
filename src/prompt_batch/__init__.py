"""Sequential batch runner for generative-AI prompt files."""

__version__ = "0.1.0"
