"""TAITI - anticipate merge conflicts from the test scenarios each task touches."""

__version__ = "0.3.0"
