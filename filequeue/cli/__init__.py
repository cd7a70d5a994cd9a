"""Command line interface for filequeue."""
