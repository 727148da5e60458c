"""Command-line interface for tess-prewhiten."""
