"""Command line interface for crate swaps."""
