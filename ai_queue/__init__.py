"""In-process priority task queue for AI work items."""

__version__ = "0.1.0"
