"""
Static mesh over the standard 68-point face landmark scheme.

Index groups: 0-16 jaw, 17-21 / 22-26 brows, 27-35 nose,
36-41 left eye, 42-47 right eye, 48-59 outer mouth, 60-67 inner mouth.
"""
from __future__ import annotations
from typing import Iterator, Tuple

LANDMARK_COUNT = 68

# Flat table, read three indices at a time
TRIANGULATION: Tuple[int, ...] = (
    0, 1, 36, 1, 2, 36, 2, 3, 36, 3, 4, 48, 4, 5, 48, 5, 6, 48, 6, 7, 48, 7, 8, 48,
    8, 9, 54, 9, 10, 54, 10, 11, 54, 11, 12, 54, 12, 13, 54, 13, 14, 54, 14, 15, 54, 15, 16, 54,
    17, 18, 36, 18, 19, 36, 19, 20, 36, 20, 21, 36, 22, 23, 45, 23, 24, 45, 24, 25, 45, 25, 26, 45,
    27, 28, 39, 28, 29, 39, 29, 30, 39, 30, 31, 39, 31, 32, 39, 32, 33, 39, 33, 34, 39, 34, 35, 39,
    36, 37, 41, 37, 38, 41, 38, 39, 41, 39, 40, 41, 41, 42, 47, 42, 43, 47, 43, 44, 47, 44, 45, 47,
    48, 49, 59, 49, 50, 59, 50, 51, 59, 51, 52, 59, 52, 53, 59, 53, 54, 59,
    54, 55, 59, 55, 56, 59, 56, 57, 59, 57, 58, 59, 58, 48, 59,
    60, 61, 67, 61, 62, 67, 62, 63, 67, 63, 64, 67, 64, 65, 67, 65, 66, 67, 66, 60, 67,
)


def iter_triangles(table: Tuple[int, ...] = TRIANGULATION) -> Iterator[Tuple[int, int, int]]:
    """Yield (a, b, c) index triples from a flat triangulation table."""
    if len(table) % 3:
        raise ValueError(f"triangulation length {len(table)} is not a multiple of 3")
    for i in range(0, len(table), 3):
        yield table[i], table[i + 1], table[i + 2]


TRIANGLE_COUNT = len(TRIANGULATION) // 3
