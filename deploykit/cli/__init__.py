"""Command-line interface for deploykit."""
