"""MongoSense: a fluent MongoDB aggregation pipeline builder with IntelliOptimizer.

Example:
    >>> from mongosense import MongoSense
    >>> MongoSense().collection("users").match({"isActive": True}).limit(10).build()
"""

from .builder import AggregationQuery, MongoSense, MongoSenseQueryBuilder
from .intelli import IndexInspector, IntelliOptimizer, MotorIndexInspector

__version__ = "1.0.0"

__all__ = [
    "AggregationQuery",
    "IndexInspector",
    "IntelliOptimizer",
    "MongoSense",
    "MongoSenseQueryBuilder",
    "MotorIndexInspector",
]
