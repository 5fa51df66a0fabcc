"""Pipeline reordering and index advice for MongoSense pipelines."""

from .index_inspector import IndexInspector, MotorIndexInspector
from .optimizer import IntelliOptimizer

__all__ = [
    "IndexInspector",
    "IntelliOptimizer",
    "MotorIndexInspector",
]
