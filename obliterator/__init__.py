"""
Obliterator - 2D Otsu and iterative triclass thresholding for 8-bit grayscale grids
"""

from .errors import (
    ObliteratorError,
    ValidationError,
    DimensionMismatchError,
    EmptyHistogramError,
    DegeneratePartitionError,
    InvariantViolation,
)
from .binning import map_to_bin, map_to_bins, bin_to_intensity, bin_upper_edge
from .histogram2d import Histogram2D, Histogram2DBuilder, gaussian_kernel
from .statistics import GlobalStatistics2D, ClassStatistics2D
from .optimizer import Quality, Threshold2D, ThresholdOptimizer2D
from .histogram1d import Histogram1D, ThresholdMethod, ThresholdSelector1D
from .triclass import TriclassBounds, TriclassSplit, TriclassSegmenter
from .convergence import (
    TerminationReason,
    IterationRecord,
    ConvergenceHistory,
    ConvergenceMonitor,
)
from .iterative import IterationPhase, TriclassResult, IterativeController
from .algorithms import (
    ALGORITHM_REGISTRY,
    AlgorithmInfo,
    ParameterInfo,
    SegmentationAlgorithm,
    SegmentationContext,
    register_algorithm,
    BinarizationRule,
    Otsu2D,
    Otsu2DResult,
    binarize_2d,
    IterativeTriclass,
)
from .config import SegmentationConfig

__all__ = [
    # Errors
    "ObliteratorError",
    "ValidationError",
    "DimensionMismatchError",
    "EmptyHistogramError",
    "DegeneratePartitionError",
    "InvariantViolation",
    # Binning
    "map_to_bin",
    "map_to_bins",
    "bin_to_intensity",
    "bin_upper_edge",
    # 2D path
    "Histogram2D",
    "Histogram2DBuilder",
    "gaussian_kernel",
    "GlobalStatistics2D",
    "ClassStatistics2D",
    "Quality",
    "Threshold2D",
    "ThresholdOptimizer2D",
    # Iterative path
    "Histogram1D",
    "ThresholdMethod",
    "ThresholdSelector1D",
    "TriclassBounds",
    "TriclassSplit",
    "TriclassSegmenter",
    "TerminationReason",
    "IterationRecord",
    "ConvergenceHistory",
    "ConvergenceMonitor",
    "IterationPhase",
    "TriclassResult",
    "IterativeController",
    # Algorithms
    "ALGORITHM_REGISTRY",
    "AlgorithmInfo",
    "ParameterInfo",
    "SegmentationAlgorithm",
    "SegmentationContext",
    "register_algorithm",
    "BinarizationRule",
    "Otsu2D",
    "Otsu2DResult",
    "binarize_2d",
    "IterativeTriclass",
    # Configuration
    "SegmentationConfig",
]

__version__ = "0.1.0"
