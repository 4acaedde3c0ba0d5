"""Build HTML pages by chatting with an AI model."""

__version__ = "0.1.0"
