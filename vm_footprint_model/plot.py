"""
Plotting utilities for instance power curves and run results.

Requires the 'plot' optional dependency: pip install -e ".[plot]"

Usage:
    from vm_footprint_model import Runner, load_config, default_registry
    from vm_footprint_model.plot import plot_power_curve, plot_result

    # Compare the interpolation modes of an instance type
    profile = default_registry().get("aws", "m5n.large")
    plot_power_curve(profile)

    # Per-record energy and embodied carbon of a run
    result = Runner(load_config("configs/example.json")).run()
    plot_result(result, save_path="result.png", show=False)
"""

from dataclasses import dataclass
from typing import Optional, Union, Dict, Any, Tuple
from pathlib import Path

try:
    import matplotlib.pyplot as plt
    import numpy as np
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from .energy import (
    UTILIZATION_KNOTS, LinearPowerCurve, PiecewiseLinearPowerCurve, SplinePowerCurve,
)
from .model import FIELD_EMBODIED_CARBON, FIELD_ENERGY
from .registry import InstanceProfile


COLORS = {
    'embodied': '#1a5276',      # Dark blue for embodied carbon
    'operational': '#5dade2',   # Light blue for operational energy
    'spline': '#27ae60',
    'calibration': '#e74c3c',
    'neutral': '#7f8c8d',
}


@dataclass
class PlotStyle:
    """Style configuration shared by all plots.

    Override individual fields to customize: ``PlotStyle(dpi=150)``.
    """

    bar_alpha: float = 0.8
    bar_edgecolor: str = 'black'
    bar_linewidth: float = 0.5

    line_width: float = 1.5
    line_alpha: float = 0.9
    marker_size: int = 7

    grid: bool = True
    grid_alpha: float = 0.3
    grid_linestyle: str = '--'
    grid_color: str = '#cccccc'

    dpi: int = 300
    facecolor: str = 'white'

    title_fontsize: int = 13
    axis_label_fontsize: int = 11
    tick_fontsize: int = 10
    legend_fontsize: int = 10

    hide_top_spine: bool = True
    hide_right_spine: bool = True
    spine_color: str = '#cccccc'


DEFAULT_STYLE = PlotStyle()


def _apply_common_style(ax, style: PlotStyle):
    """Apply shared style settings (grid, spines, background) to an axes."""
    ax.set_facecolor(style.facecolor)
    if style.grid:
        ax.grid(True, alpha=style.grid_alpha,
                linestyle=style.grid_linestyle, color=style.grid_color)
        ax.set_axisbelow(True)
    if style.hide_top_spine:
        ax.spines['top'].set_visible(False)
    if style.hide_right_spine:
        ax.spines['right'].set_visible(False)
    ax.spines['left'].set_color(style.spine_color)
    ax.spines['bottom'].set_color(style.spine_color)


def _check_matplotlib():
    """Raise helpful error if matplotlib is not installed."""
    if not HAS_MATPLOTLIB:
        raise ImportError(
            "Plotting requires matplotlib. Install with: pip install -e '.[plot]'"
        )


def _finish(fig, save_path, show: bool, style: PlotStyle):
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=style.dpi, bbox_inches='tight',
                    facecolor=style.facecolor)
    if show:
        plt.show()
    return fig


def power_curve_samples(profile: InstanceProfile, points: int = 101) -> Dict[str, Tuple[Any, Any]]:
    """
    Sample every power curve available for a profile over 0-100% utilization.

    Returns:
        Dict of curve label -> (utilization array, watts array). 'linear' is
        always present; 'piecewise' and 'spline' only with calibration data.
    """
    _check_matplotlib()
    utils = np.linspace(0, 100, points)
    consumption = profile.consumption

    curves = {'linear': LinearPowerCurve(consumption.min_watts, consumption.max_watts)}
    if consumption.calibration is not None:
        curves['piecewise'] = PiecewiseLinearPowerCurve(consumption.calibration.watts)
        curves['spline'] = SplinePowerCurve(consumption.calibration.watts)

    return {
        label: (utils, np.array([curve.power_at_util(u) for u in utils]))
        for label, curve in curves.items()
    }


def plot_power_curve(
    profile: InstanceProfile,
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (8, 5),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    Plot instance wattage against CPU utilization.

    Draws the min/max linear curve and, when the profile carries calibration
    data, the piecewise-linear and spline curves with the calibration points.

    Args:
        profile: InstanceProfile (e.g. from a registry or model.profile)
        save_path: Optional path to save the figure
        figsize: Figure size (width, height) in inches
        show: Whether to display the plot (default True)
        title: Optional custom title
        style: Optional PlotStyle

    Returns:
        matplotlib Figure object
    """
    _check_matplotlib()
    if style is None:
        style = DEFAULT_STYLE

    plt.rcParams.update({
        'font.family': 'sans-serif',
        'font.size': style.tick_fontsize,
    })

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)

    line_styles = {
        'linear': (COLORS['operational'], '-', 'Linear (min/max)'),
        'piecewise': (COLORS['neutral'], '--', 'Linear (calibration)'),
        'spline': (COLORS['spline'], '-', 'Spline (calibration)'),
    }
    for label, (utils, watts) in power_curve_samples(profile).items():
        color, linestyle, legend = line_styles[label]
        ax.plot(utils, watts, linestyle, color=color, linewidth=style.line_width,
                alpha=style.line_alpha, label=legend)

    if profile.has_calibration:
        ax.plot(UTILIZATION_KNOTS, profile.consumption.calibration.watts, 'o',
                color=COLORS['calibration'], markersize=style.marker_size,
                label='Calibration points')

    ax.set_xlabel('CPU utilization (%)', fontsize=style.axis_label_fontsize)
    ax.set_ylabel('Instance power (W)', fontsize=style.axis_label_fontsize)
    ax.set_xlim(0, 100)
    ax.legend(loc='upper left', frameon=True, fontsize=style.legend_fontsize)
    _apply_common_style(ax, style)

    if title is None:
        title = f"{profile.vendor.value} {profile.name} ({profile.vcpus}/{profile.max_vcpus} vCPU)"
    ax.set_title(title, fontsize=style.title_fontsize, fontweight='bold',
                 color='#333333')

    return _finish(fig, save_path, show, style)


def plot_result(
    result,
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (10, 6),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    Plot per-record energy (kWh) and embodied carbon (gCO2e) of a run.

    Args:
        result: RunResult object or dict (e.g. from load_result)
        save_path: Optional path to save the figure
        figsize: Figure size (width, height) in inches
        show: Whether to display the plot
        title: Optional custom title
        style: Optional PlotStyle

    Returns:
        matplotlib Figure object
    """
    _check_matplotlib()
    if style is None:
        style = DEFAULT_STYLE

    if hasattr(result, 'outputs'):
        outputs = result.outputs
        meta = result.meta
    elif isinstance(result, dict):
        if 'outputs' not in result:
            raise ValueError("Dict must contain 'outputs' key")
        outputs = result['outputs']
        meta = result.get('meta', {})
    else:
        raise ValueError("Expected RunResult or dict with outputs")

    if not outputs:
        raise ValueError("Result has no outputs to plot")

    x = np.arange(len(outputs))
    energy = [record.get(FIELD_ENERGY, 0.0) for record in outputs]
    embodied = [record.get(FIELD_EMBODIED_CARBON, 0.0) for record in outputs]
    labels = [str(record.get('timestamp', i)) for i, record in enumerate(outputs)]

    plt.rcParams.update({
        'font.family': 'sans-serif',
        'font.size': style.tick_fontsize,
    })

    fig, (ax_energy, ax_carbon) = plt.subplots(2, 1, figsize=figsize, sharex=True)
    fig.patch.set_facecolor(style.facecolor)

    ax_energy.bar(x, energy, color=COLORS['operational'], alpha=style.bar_alpha,
                  edgecolor=style.bar_edgecolor, linewidth=style.bar_linewidth)
    ax_energy.set_ylabel('Energy (kWh)', fontsize=style.axis_label_fontsize)
    _apply_common_style(ax_energy, style)

    ax_carbon.bar(x, embodied, color=COLORS['embodied'], alpha=style.bar_alpha,
                  edgecolor=style.bar_edgecolor, linewidth=style.bar_linewidth)
    ax_carbon.set_ylabel('Embodied carbon (gCO2e)', fontsize=style.axis_label_fontsize)
    ax_carbon.set_xticks(x)
    ax_carbon.set_xticklabels(labels, rotation=30, ha='right')
    _apply_common_style(ax_carbon, style)

    if title is None:
        title = f"Footprint: {meta.get('experiment_name', 'run')}"
    fig.suptitle(title, fontsize=style.title_fontsize, fontweight='bold',
                 color='#333333')

    return _finish(fig, save_path, show, style)
