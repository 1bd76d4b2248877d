"""
Services orchestrating the discovery pipeline.
"""

from .aggregator import ChatAggregator

__all__ = ["ChatAggregator"]
