"""
Skew estimation from a detection probability map.

Three independent estimators vote on the text angle:
- minimum-area rotated rectangles of each text region
- least-squares baselines through the lowest contour points
- probabilistic Hough lines over the binarized map

The votes are filtered with an IQR outlier test and averaged by weight.
Angles are in degrees; positive means text descends to the right.
"""

import math
from typing import List, NamedTuple, Sequence, Tuple

import cv2
import numpy as np
from loguru import logger

from . import image_ops
from .postprocess import region_from_contour
from .types import TextRegion

MIN_ANGLE = -20.0
MAX_ANGLE = 20.0
MIN_ASPECT = 0.2
MAX_ASPECT = 10.0
HEIGHT_TOLERANCE = 1.5
BASELINE_SEGMENTS = 3


class AngleVote(NamedTuple):
    angle: float
    weight: float
    method: str


def fold_angle(angle: float) -> float:
    """Map an angle into [-45, 45] by quarter turns."""
    if angle > 45:
        angle -= 90
    if angle < -45:
        angle += 90
    return angle


def line_angle(points: Sequence[Tuple[float, float]]) -> float:
    """Angle of the least-squares line through ``points``, folded."""
    if len(points) < 2:
        return 0.0

    xs = np.array([p[0] for p in points], dtype=np.float64)
    ys = np.array([p[1] for p in points], dtype=np.float64)
    n = len(points)

    denominator = n * np.sum(xs * xs) - np.sum(xs) ** 2
    if abs(denominator) < 1e-10:
        return 0.0

    slope = (n * np.sum(xs * ys) - np.sum(xs) * np.sum(ys)) / denominator
    return fold_angle(math.degrees(math.atan(slope)))


class SkewEstimator:
    """Consensus skew angle from rotated rects, baselines and Hough lines."""

    def __init__(self, minimum_area_threshold: int = 25, verbose: bool = False):
        self.minimum_area_threshold = minimum_area_threshold or 20
        self.verbose = verbose

    def _log(self, message: str) -> None:
        logger.log("INFO" if self.verbose else "DEBUG", "[SkewEstimator] " + message)

    def __call__(self, gray_map: np.ndarray) -> float:
        return self.estimate(gray_map)

    def estimate(self, gray_map: np.ndarray) -> float:
        """Estimate the skew angle of the text in a probability map.

        Args:
            gray_map: 8-bit (H, W) rendering of the detection probability map

        Returns:
            Consensus angle in degrees, within [-20, 20]; 0 when nothing is found
        """
        binary = image_ops.otsu_binarize(gray_map)
        regions = self.text_regions(binary)

        if not regions:
            self._log("No valid text regions found for skew calculation.")
            return 0.0

        self._log(f"Found {len(regions)} text regions for skew analysis.")

        votes = (
            [AngleVote(a, w, "minRect") for a, w in self.min_rect_angles(regions)]
            + [AngleVote(a, w, "baseline") for a, w in self.baseline_angles(regions)]
            + [AngleVote(a, w, "hough") for a, w in self.hough_angles(binary)]
        )

        if not votes:
            self._log("No angles detected from any method.")
            return 0.0

        angle = self.consensus_angle(votes)
        self._log(f"Calculated skew angle: {angle:.3f} deg (from {len(votes)} measurements)")
        return angle

    def text_regions(self, binary: np.ndarray) -> List[TextRegion]:
        """Text-like regions: large enough, plausible aspect, not too tall."""
        regions = []
        for contour in image_ops.find_contours(binary):
            region = region_from_contour(contour)
            if region.area < self.minimum_area_threshold:
                continue
            if MIN_ASPECT < region.aspect_ratio < MAX_ASPECT:
                regions.append(region)

        if not regions:
            return []

        average_height = sum(r.rect.height for r in regions) / len(regions)
        return [r for r in regions if r.rect.height <= average_height * HEIGHT_TOLERANCE]

    def min_rect_angles(self, regions: Sequence[TextRegion]) -> List[Tuple[float, float]]:
        angles = []
        for region in regions:
            try:
                _, _, angle = cv2.minAreaRect(region.contour)
            except cv2.error as e:
                logger.debug(f"minAreaRect failed for region {region.rect}: {e}")
                continue

            aspect_weight = min(region.aspect_ratio, 1 / region.aspect_ratio) * 2
            weight = math.log(region.area + 1) * aspect_weight
            angles.append((fold_angle(float(angle)), weight))
        return angles

    def baseline_angles(self, regions: Sequence[TextRegion]) -> List[Tuple[float, float]]:
        angles = []
        for region in regions:
            points = region.contour.reshape(-1, 2)
            if len(points) < 4:
                continue

            points = points[np.argsort(points[:, 0], kind="stable")]
            segment_size = len(points) // BASELINE_SEGMENTS

            baseline = []
            for seg in range(BASELINE_SEGMENTS):
                start = seg * segment_size
                end = len(points) if seg == BASELINE_SEGMENTS - 1 else (seg + 1) * segment_size
                segment = points[start:end]
                if len(segment):
                    lowest = segment[np.argmax(segment[:, 1])]
                    baseline.append((float(lowest[0]), float(lowest[1])))

            if len(baseline) < 2:
                continue

            weight = region.area * min(region.aspect_ratio, 1 / region.aspect_ratio)
            angles.append((line_angle(baseline), weight))
        return angles

    def hough_angles(self, binary: np.ndarray) -> List[Tuple[float, float]]:
        angles = []
        try:
            closed = image_ops.close_horizontal_gaps(binary)
            segments = image_ops.hough_segments(closed)
        except Exception as e:
            logger.warning(f"Hough transform failed, skipping this method: {e}")
            return angles

        for x1, y1, x2, y2 in segments:
            dx = x2 - x1
            dy = y2 - y1
            if abs(dx) <= 1:
                continue

            angle = fold_angle(math.degrees(math.atan2(dy, dx)))
            if MIN_ANGLE <= angle <= MAX_ANGLE:
                angles.append((angle, math.hypot(dx, dy)))
        return angles

    def consensus_angle(self, votes: Sequence[AngleVote]) -> float:
        """Weighted mean of the votes after IQR outlier removal."""
        if not votes:
            return 0.0

        ordered = sorted(votes, key=lambda v: v.angle)
        n = len(ordered)
        q1 = ordered[int(n * 0.25)].angle
        q3 = ordered[int(n * 0.75)].angle
        iqr = q3 - q1
        lower = q1 - 1.5 * iqr
        upper = q3 + 1.5 * iqr

        kept = [
            v for v in votes
            if lower <= v.angle <= upper and MIN_ANGLE <= v.angle <= MAX_ANGLE
        ]

        if not kept:
            self._log("All angles filtered out as outliers, using median of original set.")
            return ordered[n // 2].angle

        total_weight = sum(v.weight for v in kept)
        if total_weight == 0:
            return sum(v.angle for v in kept) / len(kept)

        counts = {}
        for v in kept:
            counts[v.method] = counts.get(v.method, 0) + 1
        self._log("Angle methods used: " + ", ".join(f"{m}:{c}" for m, c in counts.items()))

        weighted = sum(v.angle * v.weight for v in kept) / total_weight
        return max(MIN_ANGLE, min(MAX_ANGLE, weighted))
