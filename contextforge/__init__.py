"""ContextForge: blueprint optimizer for AI context pipelines."""

__version__ = "0.3.0"
