"""
Transformers for turning decoded store values into domain models.

Classification, shape normalization, and aggregate building.
"""

from .builder import AggregateBuilder, ProjectRegistry
from .classifier import Classification, RecordClassifier, validation_details
from .normalizer import ShapeNormalizer

__all__ = [
    "AggregateBuilder",
    "Classification",
    "ProjectRegistry",
    "RecordClassifier",
    "ShapeNormalizer",
    "validation_details",
]
