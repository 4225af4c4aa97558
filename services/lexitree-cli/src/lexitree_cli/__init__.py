"""lexitree-cli: command line interface for lexitree."""

__version__ = "0.1.0"
