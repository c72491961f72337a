"""Command line interface for Reclaim."""
