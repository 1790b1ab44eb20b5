import io

import pytest

from stank_venv.console import Console
from stank_venv.installer.progress import (
    SetProgress,
    estimate_remaining,
    failure_hint,
    format_duration,
    progress_bar,
    truncate,
)
from stank_venv.types import InstallResult


def ok(package, elapsed=1.0):
    return InstallResult(package=package, success=True, elapsed=elapsed)


def test_progress_bar():
    assert progress_bar(0, 4, width=8) == "[        ]"
    assert progress_bar(2, 4, width=8) == "[====    ]"
    assert progress_bar(4, 4, width=8) == "[========]"


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("a" * 40, 35) == "a" * 35 + "..."


def test_format_duration():
    assert format_duration(42) == "42s"
    assert format_duration(125) == "2m 5s"
    assert format_duration(3725) == "1h 2m"


def test_estimate_remaining():
    assert estimate_remaining([2.0, 4.0], 5) == 15.0
    assert estimate_remaining([2.0, 4.0], 5, parallel=3) == 5.0
    assert estimate_remaining([], 5) == 0.0


@pytest.mark.parametrize(
    "error,fragment",
    [
        ("error: command 'gcc' failed with exit status 1", "compiler"),
        ("error: can't find Rust compiler", "Rust"),
        ("ERROR: No matching distribution found for tensorflow", "No release"),
        ("WARNING: Retrying ... Read timed out.", "Network"),
    ],
)
def test_failure_hints(error, fragment):
    assert fragment in failure_hint(error)


def test_unknown_error_has_no_hint():
    assert failure_hint("something odd") is None
    assert failure_hint(None) is None


def test_eta_every_fifth_package_while_work_remains():
    progress = SetProgress(Console(io.StringIO(), color=False), total=12, eta_interval=5)
    for index in range(12):
        progress.package_started(f"pkg{index}")
        progress.package_finished(ok(f"pkg{index}", elapsed=2.0))

    # after packages 5 and 10; nothing after the last one
    assert progress.etas == [14.0, 4.0]


def test_no_eta_when_set_ends_on_interval():
    progress = SetProgress(Console(io.StringIO(), color=False), total=5, eta_interval=5)
    for index in range(5):
        progress.package_finished(ok(f"pkg{index}"))
    assert progress.etas == []


def test_status_line_uses_description():
    stream = io.StringIO()
    progress = SetProgress(
        Console(stream, color=False),
        total=2,
        describe=lambda p: "Fast N-dimensional arrays and numerical computing" if p == "numpy" else None,
        description_width=10,
    )
    progress.package_started("numpy")
    progress.package_started("other")
    text = stream.getvalue()

    assert "Fast N-dim..." in text
    assert "(1/2)" in text
    assert "Installing: other" in text


def test_summary_lists_failures_with_hints():
    stream = io.StringIO()
    progress = SetProgress(Console(stream, color=False), total=2)
    results = [
        ok("numpy"),
        InstallResult(package="scipy", success=False, elapsed=1.0, error="command 'gcc' failed"),
    ]
    progress.summary(results, 65.0)
    text = stream.getvalue()

    assert "Successful: 1/2" in text
    assert "Failed:     1" in text
    assert "- scipy" in text
    assert "hint: Missing compiler toolchain" in text
    assert "1m 5s" in text
