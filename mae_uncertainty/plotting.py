"""
Histogram of simulated absolute differences against the analytical density.
Headless: the Agg backend is selected on import, figures are closed after saving.
"""

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
from scipy.stats import halfnorm

from mae_uncertainty.log_config import get_logger
from mae_uncertainty.mae_engine import InvalidParameterError, TrialResult, analytical_mae

logger = get_logger(__name__)


def save_and_close_figure(fig, filepath, dpi=150):
    """Save a figure and always release it."""
    try:
        fig.savefig(filepath, dpi=dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        logger.info("Figure saved: %s", filepath)
    finally:
        plt.close(fig)


def plot_difference_histogram(result: TrialResult, filepath=None, bins=None):
    """
    Density histogram of |x - y| with the half-normal density of the
    absolute difference of two Normal(0, σ) errors overlaid.

    Parameters
    ----------
    result : TrialResult
        Run produced with ``keep_differences=True``.
    filepath : str or Path, optional
        Where to save the figure. If omitted the open figure is returned.
    bins : int, optional
        Histogram bins; defaults to the Freedman-Diaconis rule.
    """
    if result.differences is None:
        raise InvalidParameterError(
            "Result has no differences to plot; run with keep_differences=True."
        )
    data = result.differences
    expected = analytical_mae(result.model)

    fig, ax = plt.subplots(figsize=(8, 5))
    if result.model.is_degenerate:
        ax.axvline(0.0, color='#4BA3C7', lw=2, label='|x - y| (all zero)')
    else:
        ax.hist(data, bins=bins or freedman_diaconis_bins(data), density=True,
                color='#4BA3C7', alpha=0.6, label='simulated |x - y|')
        grid = np.linspace(0.0, data.max(), 400)
        scale = np.sqrt(2.0) * result.model.sigma
        ax.plot(grid, halfnorm.pdf(grid, scale=scale), color='#D7263D',
                lw=2, label='analytical density')

    ax.axvline(result.mae, color='k', ls='--', lw=1,
               label=f'empirical MAE = {result.mae:.4g}')
    ax.axvline(expected, color='#FF8C42', ls=':', lw=1.5,
               label=f'analytical MAE = {expected:.4g}')
    ax.set_xlabel('|x - y|')
    ax.set_ylabel('density')
    ax.set_title(f'{result.model!r}, n = {result.n}')
    ax.legend()

    if filepath is None:
        return fig
    save_and_close_figure(fig, filepath)
    return filepath


def freedman_diaconis_bins(data):
    """Number of histogram bins by the Freedman-Diaconis rule."""
    iqr = np.percentile(data, 75) - np.percentile(data, 25)
    n = len(data)
    if iqr > 0:
        bin_width = 2 * iqr / (n ** (1 / 3))
        num_bins = int(np.ceil((np.max(data) - np.min(data)) / bin_width))
    else:
        num_bins = int(np.ceil(np.sqrt(n)))
    return max(num_bins, 1)
