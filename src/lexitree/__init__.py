"""lexitree: hierarchical localization manager."""
