"""Terminal output: colours, banners and progress lines."""

import sys
from typing import Optional, TextIO

WIDTH = 74


class ColorCodes:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[1;37m"
    GRAY = "\033[90m"
    BOLD = "\033[1m"


class Console:
    """Writes user-facing messages to a stream."""

    def __init__(self, stream: Optional[TextIO] = None, color: Optional[bool] = None):
        self.stream = stream or sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color
        self._partial_line = False

    def _paint(self, text: str, color: str) -> str:
        if not self.color or not color:
            return text
        return f"{color}{text}{ColorCodes.RESET}"

    def _end_partial(self) -> None:
        if self._partial_line:
            self.stream.write("\n")
            self._partial_line = False

    def line(self, text: str = "", color: str = "") -> None:
        self._end_partial()
        self.stream.write(self._paint(text, color) + "\n")
        self.stream.flush()

    def progress(self, text: str) -> None:
        """Redraw the current line in place."""
        self.stream.write("\r" + text)
        self.stream.flush()
        self._partial_line = True

    def end_progress(self) -> None:
        self._end_partial()

    def section(self, title: str) -> None:
        self.line()
        self.line(f"  {'=' * WIDTH}", ColorCodes.CYAN)
        self.line(f"  {title}", ColorCodes.CYAN)
        self.line(f"  {'=' * WIDTH}", ColorCodes.CYAN)

    def banner(self, title: str, color: str = ColorCodes.YELLOW) -> None:
        self.line()
        self.line(f"  +{'-' * WIDTH}+", color)
        self.line(f"  |  {title[:WIDTH - 4]:<{WIDTH - 4}}  |", color)
        self.line(f"  +{'-' * WIDTH}+", color)
        self.line()

    def rule(self) -> None:
        self.line(f"  {'-' * WIDTH}", ColorCodes.GRAY)

    def step(self, number: int, title: str) -> None:
        self.line()
        self.line(f"  [{number}] {title}", ColorCodes.CYAN)

    def ok(self, text: str) -> None:
        self.line(f"  [OK] {text}", ColorCodes.GREEN)

    def err(self, text: str) -> None:
        self.line(f"  [ERROR] {text}", ColorCodes.RED)

    def warn(self, text: str) -> None:
        self.line(f"  [WARN] {text}", ColorCodes.YELLOW)

    def info(self, text: str) -> None:
        self.line(f"  [INFO] {text}", ColorCodes.GRAY)

    def detail(self, text: str) -> None:
        self.line(f"         {text}", ColorCodes.GRAY)
