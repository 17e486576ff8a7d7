"""
Pytest Configuration, Shared Fixtures and HTML Report Hooks

This module configures the pytest test runner for the tofsim project.
It handles automatic HTML report generation with custom columns for test
metadata (description, goal, passing criteria) and embedded plot images,
and provides the parameter snapshots shared by the simulator test modules.

The hooks integrate with pytest-html to produce self-contained test reports
that include both textual descriptions and visual verification plots for
each test case.
"""

import sys
from html import escape
from pathlib import Path

import pytest

# Resolve the project root directory (one level above the tests/ folder)
ROOT = Path(__file__).resolve().parents[1]

# Ensure the project root is on the Python import path so that the
# tofsim package can be imported without installation
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tofsim.Config import SimulationConfig  # noqa: E402
from tofsim.params import SimulationParameters  # noqa: E402


class QuietConfig(SimulationConfig):
    """Small detector, short run, no background light and no dark counts."""
    resolution_width = 16
    resolution_height = 16
    n_frames = 2000
    solar_irradiance = 0.0  # no background photons
    dark_count_rate = 0.0  # no spontaneous detector events
    random_seed = 1234


@pytest.fixture
def quiet_params():
    """Noise-free snapshot: the dataset only ever receives signal writes."""
    return SimulationParameters.from_config(QuietConfig)


@pytest.fixture
def noisy_params():
    """Same geometry as quiet_params with the package default background levels."""
    return SimulationParameters.from_config(
        QuietConfig,
        solar_irradiance=SimulationConfig.solar_irradiance,
        dark_count_rate=SimulationConfig.dark_count_rate,
    )


def _report_name_from_args(args):
    """
    Determine the HTML report filename based on the pytest command-line arguments.

    If exactly one test file is being run, the report is named after that
    file (e.g. "report_trajectory.html" for test_trajectory.py). Otherwise
    the name "report_all.html" is used.

    :param args: List of command-line arguments passed to pytest.
    :return: Report filename string.
    """
    test_files = []

    def _as_test_file(text):
        # Split off any pytest node ID suffix (e.g. "test_noise.py::test_cap")
        base = text.split("::", 1)[0]
        path = Path(base)
        if path.suffix == ".py" and path.name.startswith("test_"):
            return path
        return None

    for arg in args:
        text = str(arg)
        if text.startswith("-"):
            continue
        path = _as_test_file(text)
        if path is not None:
            test_files.append(path)

    unique_files = {str(p).lower(): p for p in test_files}
    if len(unique_files) == 1:
        module_name = next(iter(unique_files.values())).stem.removeprefix("test_")
        if module_name:
            return f"report_{module_name}.html"

    return "report_all.html"


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    """
    Set up automatic HTML report output unless --html was given explicitly.

    :param config: The pytest Config object for this session.
    """
    user_set_html = any(str(arg).startswith("--html") for arg in config.invocation_params.args)
    if user_set_html:
        return

    report_dir = ROOT / "tests" / "test_reports"
    report_dir.mkdir(parents=True, exist_ok=True)
    report_name = _report_name_from_args(config.invocation_params.args)
    config.option.htmlpath = str(report_dir / report_name)


def pytest_html_results_table_header(cells):
    """Insert the "Test Description" and "Plot" column headers."""
    cells.insert(3, '<th class="col-testmeta">Test Description</th>')
    cells.insert(4, '<th class="col-plot">Plot</th>')


def _format_test_meta(report):
    """
    Format test metadata (description, goal, passing criteria) as an HTML block.

    :param report: The pytest test report object.
    :return: HTML string containing the formatted metadata.
    """
    meta = getattr(report, "test_meta", None)
    if not meta:
        return '<div style="color:#666;">n/a</div>'

    # Escape all strings to prevent HTML injection
    description = escape(str(meta.get("description", "")))
    goal = escape(str(meta.get("goal", "")))
    passing = escape(str(meta.get("passing_criteria", "")))
    return (
        '<div style="min-width:340px;max-width:520px;line-height:1.35;">'
        f"<div><strong>Test Description:</strong> {description}</div>"
        f"<div><strong>Test Goal:</strong> {goal}</div>"
        f"<div><strong>Passing Criteria:</strong> {passing}</div>"
        "</div>"
    )


def pytest_html_results_table_row(report, cells):
    """Populate the metadata and plot columns for one report row."""
    cells.insert(3, f'<td class="col-testmeta">{_format_test_meta(report)}</td>')

    images = []
    for extra in getattr(report, "extras", []):
        if extra.get("format_type") != "image":
            continue
        content = extra.get("content")
        if not content:
            continue
        images.append(
            f'<a href="{content}" target="_blank" rel="noopener noreferrer">'
            f'<img src="{content}" alt="plot" '
            f'style="max-width:320px;height:auto;display:block;margin:4px 0;cursor:zoom-in;" />'
            f"</a>"
        )

    if images:
        cells.insert(4, f'<td class="col-plot">{"".join(images)}</td>')
    else:
        cells.insert(4, '<td class="col-plot"></td>')


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach the test_meta marker kwargs and any plot extras to the call report.

    :param item: The pytest test item that just ran.
    :param call: The pytest CallInfo object for this test phase.
    """
    outcome = yield
    report = outcome.get_result()

    if report.when != "call":
        return

    marker = item.get_closest_marker("test_meta")
    if marker:
        report.test_meta = {
            "description": marker.kwargs.get("description", ""),
            "goal": marker.kwargs.get("goal", ""),
            "passing_criteria": marker.kwargs.get("passing_criteria", ""),
        }

    item_extra = getattr(item, "extra", None)
    if not item_extra:
        return

    extras = getattr(report, "extras", [])
    extras.extend([dict(extra) for extra in item_extra])
    report.extras = extras

    # Also set report.extra for compatibility with older pytest-html versions
    if hasattr(report, "extra"):
        report.extra = extras
