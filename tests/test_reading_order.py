"""
Tests for reading-order sorting and line grouping.
"""

import pytest

from onnx_paddle_ocr.reading_order import assemble, group_lines, sort_reading_order
from onnx_paddle_ocr.types import Box, RecognitionResult


def result(x, y, h=10, w=10, text="", confidence=1.0):
    return RecognitionResult(text=text or f"{x},{y}", box=Box(x, y, w, h), confidence=confidence)


class TestSortReadingOrder:
    def test_same_line_sorted_by_x(self):
        items = [result(50, 0), result(0, 1), result(0, 20)]

        ordered = sort_reading_order(items)

        assert [(r.box.x, r.box.y) for r in ordered] == [(0, 1), (50, 0), (0, 20)]

    def test_different_lines_sorted_by_y(self):
        items = [result(0, 40), result(100, 0)]

        ordered = sort_reading_order(items)

        assert [r.box.y for r in ordered] == [0, 40]


class TestGroupLines:
    def test_groups_close_results(self):
        items = sort_reading_order([result(50, 0), result(0, 1), result(0, 20)])

        lines = group_lines(items)

        assert len(lines) == 2
        assert [r.box.x for r in lines[0]] == [0, 50]
        assert [r.box.y for r in lines[1]] == [20]

    def test_tolerance_boundary_joins(self):
        # Gap of exactly half the line height still joins
        lines = group_lines([result(0, 0), result(20, 5)])

        assert len(lines) == 1

    def test_compares_against_previous_result(self):
        # Each step is 4px, so the drift accumulates within one line
        lines = group_lines([result(0, 0), result(20, 4), result(40, 8), result(60, 12)])

        assert len(lines) == 1

    def test_empty(self):
        assert group_lines([]) == []


class TestAssemble:
    def test_text_and_confidence(self):
        items = [
            result(50, 0, text="world", confidence=0.8),
            result(0, 1, text="hello", confidence=0.6),
            result(0, 20, text="next", confidence=1.0),
        ]

        out = assemble(items)

        assert out.text == "hello world\nnext"
        assert out.confidence == pytest.approx(0.8)
        assert [len(line) for line in out.lines] == [2, 1]

    def test_empty(self):
        out = assemble([])

        assert out.text == ""
        assert out.lines == []
        assert out.confidence == 0.0

    def test_flatten_preserves_order(self):
        out = assemble([result(0, 20, text="b"), result(0, 0, text="a")])
        flat = out.flatten()

        assert [r.text for r in flat.results] == ["a", "b"]
        assert flat.text == out.text == "a\nb"
