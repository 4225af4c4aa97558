"""Machine translation adapters."""

from lexitree_io.translation.azure import AzureTranslator

__all__ = ["AzureTranslator"]
