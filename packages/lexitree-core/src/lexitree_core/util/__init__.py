"""Shared utilities for lexitree."""
