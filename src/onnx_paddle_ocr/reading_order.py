"""Reading-order sorting and line grouping of recognition results."""

from functools import cmp_to_key
from typing import List, Sequence

from .types import OcrResult, RecognitionResult

# Line grouping tolerance, as a fraction of the current line's average height
LINE_TOLERANCE = 0.5


def _compare(a: RecognitionResult, b: RecognitionResult) -> int:
    # Pairwise same-line test; not transitive across three or more boxes
    if abs(a.box.y - b.box.y) < (a.box.height + b.box.height) / 4:
        return a.box.x - b.box.x
    return a.box.y - b.box.y


def sort_reading_order(results: Sequence[RecognitionResult]) -> List[RecognitionResult]:
    """Sort results top-to-bottom, left-to-right within a line."""
    return sorted(results, key=cmp_to_key(_compare))


def group_lines(results: Sequence[RecognitionResult]) -> List[List[RecognitionResult]]:
    """Group already sorted results into lines.

    Each result is compared with the one right before it. It joins the
    current line when the vertical gap is within ``LINE_TOLERANCE`` times
    the current line's average height.

    Args:
        results: Results in reading order

    Returns:
        Lines of results, in order
    """
    if not results:
        return []

    lines: List[List[RecognitionResult]] = []
    current = [results[0]]
    avg_height = results[0].box.height

    for previous, result in zip(results, results[1:]):
        if abs(result.box.y - previous.box.y) <= avg_height * LINE_TOLERANCE:
            current.append(result)
            avg_height = sum(r.box.height for r in current) / len(current)
        else:
            lines.append(current)
            current = [result]
            avg_height = result.box.height

    lines.append(current)
    return lines


def assemble(results: Sequence[RecognitionResult]) -> OcrResult:
    """Sort, group and join recognition results into an OcrResult."""
    if not results:
        return OcrResult(text="", lines=[], confidence=0.0)

    ordered = sort_reading_order(results)
    lines = group_lines(ordered)
    text = "\n".join(" ".join(r.text for r in line) for line in lines)
    confidence = sum(r.confidence for r in ordered) / len(ordered)
    return OcrResult(text=text, lines=lines, confidence=confidence)
