"""slidegate: gated slide navigation over a lesson progression graph."""

__version__ = "0.1.0"
