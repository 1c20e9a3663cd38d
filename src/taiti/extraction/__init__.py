"""Feature file discovery."""

from taiti.extraction.feature_files import FeatureFileLocator

__all__ = ["FeatureFileLocator"]
