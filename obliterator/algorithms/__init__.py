# Obliterator Algorithms Module
"""
Segmentation algorithms as validated parameter models.

Importing this module registers every algorithm in ``ALGORITHM_REGISTRY``.
"""

from .base import (
    ALGORITHM_REGISTRY,
    AlgorithmInfo,
    ParameterInfo,
    SegmentationAlgorithm,
    SegmentationContext,
    available_algorithms,
    get_algorithm_class,
    get_algorithm_info,
    register_algorithm,
)
from .otsu2d import BinarizationRule, Otsu2D, Otsu2DResult, binarize_2d
from .triclass import IterativeTriclass

__all__ = [
    'ALGORITHM_REGISTRY',
    'AlgorithmInfo',
    'ParameterInfo',
    'SegmentationAlgorithm',
    'SegmentationContext',
    'available_algorithms',
    'get_algorithm_class',
    'get_algorithm_info',
    'register_algorithm',
    'BinarizationRule',
    'Otsu2D',
    'Otsu2DResult',
    'binarize_2d',
    'IterativeTriclass',
]
