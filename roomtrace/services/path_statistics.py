"""
Path statistics for tuning filter thresholds
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Sequence

import numpy as np

from roomtrace.parser.segment import Segment

logger = logging.getLogger(__name__)

LENGTH_BUCKETS = 20


@dataclass
class PathStatistics:
    """Summary of a segment set"""
    count: int = 0
    min_length: float = 0.0
    max_length: float = 0.0
    avg_length: float = 0.0
    min_width: float = 0.0
    max_width: float = 0.0
    avg_width: float = 0.0
    width_distribution: List[Tuple[float, int]] = field(default_factory=list)
    length_histogram: List[Tuple[float, float, int]] = field(default_factory=list)
    shape_distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "length": {"min": self.min_length, "max": self.max_length, "avg": self.avg_length},
            "width": {"min": self.min_width, "max": self.max_width, "avg": self.avg_width},
            "width_distribution": [{"width": w, "count": c} for w, c in self.width_distribution],
            "length_histogram": [
                {"lower": lo, "upper": hi, "count": c} for lo, hi, c in self.length_histogram
            ],
            "shape_distribution": dict(self.shape_distribution),
        }


def compute_path_statistics(segments: Sequence[Segment]) -> PathStatistics:
    """Length, width and shape statistics for a segment set"""
    if not segments:
        return PathStatistics()

    lengths = np.array([s.length for s in segments], dtype=float)
    widths = np.array([s.line_width for s in segments], dtype=float)

    rounded, counts = np.unique(np.round(widths, 2), return_counts=True)
    width_distribution = sorted(
        ((float(w), int(c)) for w, c in zip(rounded, counts)),
        key=lambda item: (-item[1], item[0])
    )

    hist_counts, edges = np.histogram(lengths, bins=LENGTH_BUCKETS)
    length_histogram = [
        (float(edges[i]), float(edges[i + 1]), int(hist_counts[i]))
        for i in range(len(hist_counts))
    ]

    shapes = Counter(s.shape.value for s in segments)

    return PathStatistics(
        count=len(segments),
        min_length=float(lengths.min()),
        max_length=float(lengths.max()),
        avg_length=float(lengths.mean()),
        min_width=float(widths.min()),
        max_width=float(widths.max()),
        avg_width=float(widths.mean()),
        width_distribution=width_distribution,
        length_histogram=length_histogram,
        shape_distribution=dict(sorted(shapes.items())),
    )
