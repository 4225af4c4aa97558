"""lexitree-schemas: Data model for lexitree localization projects."""

__version__ = "0.1.0"
