"""ContextForge command line interface."""
