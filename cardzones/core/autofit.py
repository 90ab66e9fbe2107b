"""Shrink-to-fit and wrapped text sizing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

FONT_STEP = 0.5

Measure = Callable[[str, float], float]


@dataclass(frozen=True)
class TextFit:
    font_size: float
    wrap: bool = False

    @property
    def white_space(self) -> str:
        return "normal" if self.wrap else "nowrap"


def fit_text(
    text: str,
    max_font_size: float,
    min_font_size: float,
    container_width: float,
    measure: Measure,
    text_wrap: bool = False,
    step: float = FONT_STEP,
) -> TextFit:
    """
    Largest size from ``max_font_size`` down in ``step`` increments whose
    single-line width fits ``container_width``; ``min_font_size`` when none
    does. With ``text_wrap`` the size stays fixed and lines wrap instead.
    """
    if text_wrap:
        return TextFit(max_font_size, wrap=True)
    if not text or container_width <= 0:
        return TextFit(max_font_size)

    size = max_font_size
    while measure(text, size) > container_width and size > min_font_size:
        size = max(size - step, min_font_size)
    return TextFit(size)


class AutoFitText:
    """Memoises the last fit; recomputes only when text, bounds or width change."""

    def __init__(self, measure: Measure):
        self.measure = measure
        self.computations = 0
        self._key: Optional[Tuple] = None
        self._fit: Optional[TextFit] = None

    def fit(
        self,
        text: str,
        max_font_size: float,
        min_font_size: float,
        container_width: float,
        text_wrap: bool = False,
    ) -> TextFit:
        key = (text, max_font_size, min_font_size, container_width, text_wrap)
        if key != self._key:
            self._fit = fit_text(text, max_font_size, min_font_size, container_width, self.measure, text_wrap)
            self._key = key
            self.computations += 1
        return self._fit


def wrap_lines(text: str, font_size: float, width: float, measure: Measure) -> List[str]:
    """Greedy word wrap. A word wider than ``width`` gets a line of its own."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        current = ""
        for word in paragraph.split():
            trial = f"{current} {word}" if current else word
            if current and measure(trial, font_size) > width:
                lines.append(current)
                current = word
            else:
                current = trial
        lines.append(current)
    return lines


def average_char_width_measure(ratio: float = 0.6) -> Measure:
    """Deterministic measurer: every character is ``ratio * font_size`` wide."""

    def measure(text: str, font_size: float) -> float:
        return len(text) * font_size * ratio

    return measure
