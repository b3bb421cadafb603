"""Bar sparkline for the total power history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import Static

if TYPE_CHECKING:
    from textual.app import RenderResult


class Sparkline(Static):
    """Vertical bars drawn with Unicode block characters.

    Values are scaled against ``max_value`` (or the largest value when it is
    None). Each extra row of height adds 8 levels:
    - height=1: 8 levels (▁ to █)
    - height=3: 24 levels

    Example:
        ```python
        sparkline = Sparkline(height=3)
        sparkline.data = [12.0, 9.0, 14.0]
        ```
    """

    CHARS = " ▁▂▃▄▅▆▇█"
    LEVELS_PER_ROW = 8

    DEFAULT_CSS = """
    Sparkline {
        width: 1fr;
        height: auto;
    }
    """

    data: reactive[list[float]] = reactive(list, always_update=True)

    def __init__(
        self,
        height: int = 1,
        max_value: float | None = None,
        bar_width: int = 1,
        color: str = "",
        **kwargs,
    ) -> None:
        """Initialize sparkline.

        Args:
            height: Number of character rows (1-8).
            max_value: Value drawn as a full bar. None to auto-scale.
            bar_width: Characters per bar.
            color: Rich style applied to bars.
            **kwargs: Passed to Static.__init__
        """
        super().__init__(**kwargs)
        self._height = max(1, min(8, height))
        self._max_value = max_value
        self._bar_width = max(1, bar_width)
        self._color = color

    def render(self) -> RenderResult:
        """Render the bars as Rich Text, top row first."""
        if not self.data:
            return Text("")

        effective_max = self._max_value
        if effective_max is None:
            effective_max = max(self.data)
        if effective_max <= 0:
            effective_max = 1.0

        columns = [self._render_column(self._scale_value(v, effective_max)) for v in self.data]

        result = Text()
        for row in reversed(range(self._height)):
            if row < self._height - 1:
                result.append("\n")
            line = " ".join(column[row] * self._bar_width for column in columns)
            result.append(line, style=self._color)
        return result

    def _scale_value(self, value: float, effective_max: float) -> int:
        """Scale a value to 0..(height * LEVELS_PER_ROW)."""
        total_levels = self._height * self.LEVELS_PER_ROW
        normalized = max(0.0, min(1.0, value / effective_max))
        return int(normalized * total_levels)

    def _render_column(self, level: int) -> list[str]:
        """Render one bar as characters, bottom row first."""
        result: list[str] = []
        for row in range(self._height):
            remaining = level - row * self.LEVELS_PER_ROW
            if remaining <= 0:
                result.append(self.CHARS[0])
            elif remaining >= self.LEVELS_PER_ROW:
                result.append(self.CHARS[self.LEVELS_PER_ROW])
            else:
                result.append(self.CHARS[remaining])
        return result

    def watch_data(self, new_data: list[float]) -> None:
        """React to data changes by refreshing the widget."""
        self.refresh()
