"""
Shared test helpers for the simulator test suite.

Provides plot embedding and a binomial confidence interval used by the
Monte Carlo detection and noise tests.
"""

import base64
import io

import numpy as np


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    The figure is rendered to an in memory byte buffer, Base64 encoded, and
    appended to the ``extras`` list on the current test node. If the
    ``pytest-html`` plugin is not active the function does nothing.

    :param request:  the pytest ``request`` fixture
    :param fig:      a ``matplotlib.figure.Figure`` to embed
    :param name:     a short label shown beside the image in the report
    """
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra


def binomial_ci(k, n, confidence=0.99):
    """
    Normal approximation confidence interval for a binomial proportion.

        margin = z * sqrt(p_hat * (1 - p_hat) / n)

    :param k:          number of successes
    :param n:          number of trials
    :param confidence: two-sided confidence level
    :return: (p_hat, ci_lower, ci_upper)
    """
    z_table = {0.99: 2.576, 0.95: 1.960, 0.90: 1.645}
    z = z_table.get(confidence, 2.576)

    p_hat = k / n
    margin = z * np.sqrt(p_hat * (1.0 - p_hat) / n)
    return p_hat, max(p_hat - margin, 0.0), min(p_hat + margin, 1.0)


def run_progress(run):
    """Drive a SimulationRun step by step and return the list of StepStatus values."""
    return [status for status in run]
