"""quickrag - question answering over web pages with retrieval-augmented generation."""

__version__ = "0.1.0"
