"""Progress, ETA and summary rendering for package set installs.

Rendering only observes installer events; it never drives retries or
installs itself.
"""

import re
from typing import List, Optional, Sequence

from stank_venv.console import ColorCodes, Console
from stank_venv.errors import TransientInstallError
from stank_venv.types import InstallResult

BAR_WIDTH = 20

HINTS = [
    (
        re.compile(
            r"(command '[^']*(gcc|clang|cc|g\+\+)' failed|unable to execute '(gcc|cc|clang)'"
            r"|xcrun: error|Microsoft Visual C\+\+ \d+\.\d+ or greater is required)",
            re.IGNORECASE,
        ),
        "Missing compiler toolchain: install Xcode Command Line Tools (xcode-select --install) or build-essential",
    ),
    (
        re.compile(r"(rustc|cargo|rust compiler)", re.IGNORECASE),
        "Rust toolchain required to build this package: install it from https://rustup.rs",
    ),
    (
        re.compile(r"(No matching distribution found|Could not find a version that satisfies)", re.IGNORECASE),
        "No release for this Python version or platform (or the name is misspelled)",
    ),
    (
        re.compile(
            r"(Temporary failure in name resolution|Could not fetch URL|ConnectionError"
            r"|Connection (refused|reset)|Read timed out|Network is unreachable)",
            re.IGNORECASE,
        ),
        "Network problem reaching the package index; check your connection and retry",
    ),
]


def failure_hint(error: Optional[str]) -> Optional[str]:
    """One-line remediation hint for a known error pattern."""
    if not error:
        return None
    for pattern, hint in HINTS:
        if pattern.search(error):
            return hint
    return None


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[:width] + "..."


def progress_bar(done: int, total: int, width: int = BAR_WIDTH) -> str:
    filled = width * done // total if total else width
    return "[" + "=" * filled + " " * (width - filled) + "]"


def format_duration(seconds: float) -> str:
    seconds = int(round(seconds))
    minutes, secs = divmod(seconds, 60)
    if minutes >= 60:
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def estimate_remaining(elapsed: Sequence[float], remaining: int, parallel: int = 1) -> float:
    """Mean time per completed package times the packages left."""
    if not elapsed or remaining <= 0:
        return 0.0
    mean = sum(elapsed) / len(elapsed)
    return mean * remaining / max(parallel, 1)


def rough_estimate_minutes(total: int) -> tuple[int, int]:
    """Up-front guess of roughly 9 seconds per package."""
    low = total * 15 // 100 + 1
    return low, low * 3 // 2


class SetProgress:
    """Observer that renders the lifecycle of one package set install."""

    def __init__(
        self,
        console: Console,
        total: int,
        describe=None,
        description_width: int = 35,
        eta_interval: int = 5,
        parallel: int = 1,
    ):
        self.console = console
        self.total = total
        self.describe = describe or (lambda _: None)
        self.description_width = description_width
        self.eta_interval = eta_interval
        self.parallel = parallel
        self.started = 0
        self.completed: List[InstallResult] = []
        self.etas: List[float] = []

    def start(self, display_name: str) -> None:
        low, high = rough_estimate_minutes(self.total)
        self.console.banner(f"INSTALLING: {display_name}")
        self.console.line(f"    Packages: {self.total}")
        self.console.line(f"    Estimated time: {low}-{high} minutes", ColorCodes.GRAY)
        self.console.line()
        self.console.rule()

    def _status_line(self, position: int, label: str, package: str, description: Optional[str]) -> str:
        pct = position * 100 // self.total if self.total else 100
        bar = progress_bar(position, self.total)
        head = f"    {bar} {pct:3d}% ({position}/{self.total})"
        if description:
            return f"{head} {package:<20} {truncate(description, self.description_width)}"
        return f"{head} {label}: {package:<25}"

    def package_started(self, package: str) -> int:
        self.started += 1
        description = self.describe(package)
        self.console.progress(self._status_line(self.started, "Installing", package, description))
        return self.started

    def retrying(self, package: str, attempt: int, error: TransientInstallError) -> None:
        self.console.progress(self._status_line(self.started, "Retrying", package, None))

    def package_finished(self, result: InstallResult) -> None:
        self.completed.append(result)
        done = len(self.completed)
        if done % self.eta_interval == 0 and done < self.total:
            eta = estimate_remaining([r.elapsed for r in self.completed], self.total - done, self.parallel)
            self.etas.append(eta)
            self.console.end_progress()
            self.console.line(f"    ETA: ~{format_duration(eta)} remaining", ColorCodes.GRAY)

    def summary(self, results: Sequence[InstallResult], elapsed: float) -> None:
        succeeded = sum(1 for r in results if r.success)
        failures = [r for r in results if not r.success]

        self.console.end_progress()
        self.console.line()
        self.console.rule()
        self.console.line()
        self.console.line("    INSTALL COMPLETE", ColorCodes.GREEN)
        self.console.line()
        self.console.line(f"    Successful: {succeeded}/{len(results)}", ColorCodes.GREEN)
        if failures:
            self.console.line(f"    Failed:     {len(failures)}", ColorCodes.RED)
        self.console.line(f"    Time:       {format_duration(elapsed)}", ColorCodes.GRAY)

        if failures:
            self.console.line()
            self.console.line("    Failed packages:", ColorCodes.RED)
            for result in failures:
                self.console.line(f"      - {result.package}", ColorCodes.GRAY)
                hint = failure_hint(result.error)
                if hint:
                    self.console.line(f"        hint: {hint}", ColorCodes.MAGENTA)
        self.console.line()
