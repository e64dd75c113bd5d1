"""
╔══════════════════════════════════════════════════════════════════════╗
║  MAEEngine — Absolute Differences Under Measurement Uncertainty      ║
║  Numerical validation of the folded-normal MAE derivation            ║
║                                                                      ║
║  Supports:                                                           ║
║    • No-uncertainty (delta) and Gaussian measurement-error models    ║
║    • Seeded sampling of observation pairs and empirical MAE          ║
║    • Closed-form expected |x - y| (symbolic, with partials)          ║
║    • Clean MAE: inverting measurement noise out of a naive MAE       ║
║    • Summary reports in text format                                  ║
╚══════════════════════════════════════════════════════════════════════╝
"""

import numpy as np
import sympy as sp
from dataclasses import dataclass, field
from typing import Optional

from mae_uncertainty.log_config import get_logger

logger = get_logger(__name__)


class InvalidParameterError(ValueError):
    """Raised when a simulation parameter is outside its valid domain."""


def _check_sigma(sigma, name="sigma") -> float:
    try:
        sigma = float(sigma)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} must be a number, got {sigma!r}.")
    if not np.isfinite(sigma) or sigma < 0:
        raise InvalidParameterError(f"{name} must be finite and >= 0, got {sigma}.")
    return sigma


def _check_trials(n) -> int:
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise InvalidParameterError(f"Number of trials must be an integer, got {n!r}.")
    if n < 1:
        raise InvalidParameterError(f"Number of trials must be >= 1, got {n}.")
    return int(n)


def _check_range(true_range) -> tuple:
    try:
        bounds = [float(v) for v in true_range]
    except (TypeError, ValueError):
        raise InvalidParameterError(
            f"True-value range must be a pair of numbers, got {true_range!r}."
        )
    if len(bounds) != 2:
        raise InvalidParameterError(
            f"True-value range must have exactly two bounds, got {len(bounds)}."
        )
    low, high = bounds
    if not (np.isfinite(low) and np.isfinite(high)):
        raise InvalidParameterError(
            f"True-value range must be finite, got ({low}, {high})."
        )
    if low > high:
        raise InvalidParameterError(
            f"True-value range must satisfy low <= high, got ({low}, {high})."
        )
    return low, high


# ═══════════════════════════════════════════════════════════════════════
# §1  DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UncertaintyModel:
    """Measurement-error model applied identically to every observation."""
    kind: str = "none"    # "none" (delta) or "normal"
    sigma: float = 0.0    # std of the additive Normal(0, sigma) error

    KINDS = ("none", "normal")

    def __post_init__(self):
        if self.kind not in self.KINDS:
            raise InvalidParameterError(
                f"Unknown uncertainty model '{self.kind}'. "
                f"Choose from: {list(self.KINDS)}"
            )
        sigma = _check_sigma(self.sigma)
        if self.kind == "none" and sigma != 0:
            raise InvalidParameterError(
                "The no-uncertainty model does not take a sigma."
            )
        object.__setattr__(self, "sigma", sigma)

    @classmethod
    def none(cls) -> "UncertaintyModel":
        return cls("none", 0.0)

    @classmethod
    def normal(cls, sigma: float) -> "UncertaintyModel":
        return cls("normal", sigma)

    @property
    def is_degenerate(self) -> bool:
        """True when observations equal their true values."""
        return self.sigma == 0

    def __repr__(self):
        if self.kind == "none":
            return "UncertaintyModel(none)"
        return f"UncertaintyModel(normal: sigma={self.sigma:.4g})"


@dataclass
class TrialResult:
    """Empirical MAE of a run, optionally with the per-trial differences."""
    model: UncertaintyModel
    n: int
    mae: float
    differences: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def std_error(self) -> float:
        """Standard error of the empirical MAE (needs the kept differences)."""
        if self.differences is None or self.n < 2:
            return float('nan')
        return float(np.std(self.differences, ddof=1) / np.sqrt(self.n))

    def relative_error(self, reference: float) -> float:
        if reference == 0:
            return 0.0 if self.mae == 0 else float('inf')
        return abs(self.mae - reference) / abs(reference)


# ═══════════════════════════════════════════════════════════════════════
# §2  SAMPLER & TRIAL RUNNER
# ═══════════════════════════════════════════════════════════════════════

def sample_pairs(model: UncertaintyModel, rng: np.random.Generator, size: int,
                 true_range: tuple = (8.0, 12.0)) -> tuple:
    """
    Draw ``size`` observation pairs sharing one true value per pair.

    Draw order is fixed (true values, x noise, y noise) so that a seeded
    generator always yields the same sequence.

    Returns
    -------
    x, y : np.ndarray
        Observed values of each pair.
    """
    size = _check_trials(size)
    low, high = _check_range(true_range)

    true_values = rng.uniform(low, high, size)
    if model.is_degenerate:
        return true_values.copy(), true_values.copy()

    x = true_values + rng.normal(0.0, model.sigma, size)
    y = true_values + rng.normal(0.0, model.sigma, size)
    return x, y


def sample_pair(model: UncertaintyModel, rng: np.random.Generator,
                true_range: tuple = (8.0, 12.0)) -> tuple:
    """Draw a single observation pair (x, y)."""
    x, y = sample_pairs(model, rng, 1, true_range)
    return float(x[0]), float(y[0])


def run_trials(model: UncertaintyModel, n: int, rng: np.random.Generator,
               keep_differences: bool = False,
               true_range: tuple = (8.0, 12.0)) -> TrialResult:
    """
    Estimate E|x - y| from ``n`` independent trials.

    Parameters
    ----------
    model : UncertaintyModel
        Noise applied to both observations of every pair.
    n : int
        Number of trials, >= 1.
    rng : np.random.Generator
        Seeded generator; the only source of randomness.
    keep_differences : bool
        If True the ordered |x - y| sequence is returned for plotting.
    """
    n = _check_trials(n)
    x, y = sample_pairs(model, rng, n, true_range)
    differences = np.abs(x - y)
    mae = float(np.mean(differences))

    logger.debug("%r: %d trials, empirical MAE = %.6g", model, n, mae)

    return TrialResult(
        model=model,
        n=n,
        mae=mae,
        differences=differences if keep_differences else None,
    )


def mean_difference(a, b) -> float:
    """Mean absolute difference between two equally sized samples."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape or a.size == 0:
        raise InvalidParameterError(
            f"Samples must be non-empty and of equal shape, got {a.shape} and {b.shape}."
        )
    return float(np.mean(np.abs(a - b)))


# ═══════════════════════════════════════════════════════════════════════
# §3  ANALYTICAL EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════

class FoldedNormalMAE:
    """
    Expected absolute value of a Normal(h, s) variable:

        F(h, s) = h·erf(h / (√2·s)) + s·√(2/π)·exp(-h² / (2s²))

    h is the true difference between the two compared quantities and s the
    standard deviation of their combined measurement error. The expression
    is kept symbolic so the report can show it with its partial derivatives.
    """

    def __init__(self):
        self.h, self.s = sp.symbols("h s", real=True)
        h, s = self.h, self.s
        self.expr = (
            h * sp.erf(h / (sp.sqrt(2) * s))
            + s * sp.sqrt(2 / sp.pi) * sp.exp(-h**2 / (2 * s**2))
        )
        self.partials = {
            "h": sp.simplify(sp.diff(self.expr, h)),
            "s": sp.simplify(sp.diff(self.expr, s)),
        }
        self._mean = sp.lambdify((h, s), self.expr, modules=["scipy", "numpy"])
        self._ds = sp.lambdify((h, s), self.partials["s"], modules=["scipy", "numpy"])

    def mean(self, h, s):
        """Evaluate F(h, s); s = 0 collapses to |h|."""
        h = np.asarray(h, dtype=float)
        s = _check_sigma(s, "s")
        if s == 0:
            return np.abs(h) if h.ndim else float(abs(h))
        value = self._mean(h, s)
        return value if np.ndim(value) else float(value)

    def sensitivity(self, h, s) -> float:
        """∂F/∂s, which equals √(2/π)·exp(-h² / (2s²))."""
        s = _check_sigma(s, "s")
        if s == 0:
            return float(np.sqrt(2 / np.pi)) if h == 0 else 0.0
        return float(self._ds(float(h), s))

    def inverse(self, observed, s, n_grid: int = 10_000) -> float:
        """
        Solve F(h, s) = observed for h >= 0 by table interpolation.

        F is tabulated on a uniform grid over [0, max(5s, observed + s)].
        Since F(h, s) >= h the table always reaches the observed value;
        observations below the noise floor F(0, s) map to 0.
        """
        observed = float(observed)
        if not np.isfinite(observed) or observed < 0:
            raise InvalidParameterError(
                f"Observed MAE must be finite and >= 0, got {observed}."
            )
        if n_grid < 2:
            raise InvalidParameterError(f"n_grid must be >= 2, got {n_grid}.")
        s = _check_sigma(s, "s")
        if s == 0:
            return observed

        h_range = np.linspace(0.0, max(5.0 * s, observed + s), n_grid)
        phi_range = self._mean(h_range, s)
        return float(np.interp(observed, phi_range, h_range))


FOLDED_NORMAL = FoldedNormalMAE()


def analytical_mae(model: UncertaintyModel, true_difference: float = 0.0) -> float:
    """
    Expected |x - y| for two observations of quantities ``true_difference``
    apart, each carrying independent error from ``model``.

    The difference of the two errors is Normal(0, √2·σ), so for equal true
    values this reduces to 2σ/√π.
    """
    return FOLDED_NORMAL.mean(true_difference, np.sqrt(2.0) * model.sigma)


def mae_sensitivity(model: UncertaintyModel, true_difference: float = 0.0) -> float:
    """d(analytical MAE)/dσ; equals 2/√π for equal true values."""
    return float(np.sqrt(2.0)) * FOLDED_NORMAL.sensitivity(
        true_difference, np.sqrt(2.0) * model.sigma
    )


def clean_mae(observed_mae: float, sigma_x: float, sigma_y: float,
              n_grid: int = 10_000) -> float:
    """
    Remove the measurement uncertainty of both compared series from a
    naively computed MAE.
    """
    sigma_x = _check_sigma(sigma_x, "sigma_x")
    sigma_y = _check_sigma(sigma_y, "sigma_y")
    sigma = np.sqrt(sigma_x**2 + sigma_y**2)
    return FOLDED_NORMAL.inverse(observed_mae, sigma, n_grid)


def model_std_from_mae(mae: float) -> float:
    """Std of a zero-mean normal error whose mean absolute value is ``mae``."""
    return float(np.sqrt(np.pi / 2.0) * mae)


# ═══════════════════════════════════════════════════════════════════════
# §4  VALIDATION EXPERIMENT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValidationConfig:
    sigma_model: float = 0.07      # model's own error: what validation should recover
    sigma_x: float = 0.18          # error propagated into the model from its inputs
    sigma_y: float = 0.20          # uncertainty of every test measurement
    sampling_size: int = 1_000
    true_range: tuple = (8.0, 12.0)
    narrow_range: tuple = (9.0, 11.0)
    spread_sigma: float = 0.2


@dataclass
class ValidationResult:
    real_mae: float         # model output vs true values
    wrong_mae: float        # noisy model output vs noisy test data
    clean_mae: float        # wrong_mae with measurement uncertainty removed
    model_std: float

    @property
    def improvement(self) -> float:
        """|WrongMAE - MAE| / |CleanMAE - MAE|."""
        denominator = abs(self.clean_mae - self.real_mae)
        if denominator == 0:
            return float('inf')
        return abs(self.wrong_mae - self.real_mae) / denominator


@dataclass
class SpreadComparison:
    real_std: tuple
    observed_std: tuple

    @property
    def real_diff(self) -> float:
        return self.real_std[0] - self.real_std[1]

    @property
    def observed_diff(self) -> float:
        return self.observed_std[0] - self.observed_std[1]


def _measure(rng, size, true_range):
    low, high = _check_range(true_range)
    return rng.uniform(low, high, size)


def _simulate(values, sigma, rng):
    return values + rng.normal(0.0, sigma, values.shape)


def run_validation(config: ValidationConfig, rng: np.random.Generator) -> ValidationResult:
    """
    Compare the usual MAE of noisy data with the clean MAE.

    True values b are observed as test data y = b + e_y. The model output
    a = b + e_model carries only the model's own error; fed with uncertain
    inputs it yields x = a + e_x.
    """
    n = _check_trials(config.sampling_size)
    sigma_model = _check_sigma(config.sigma_model, "sigma_model")

    b = _measure(rng, n, config.true_range)
    y = _simulate(b, _check_sigma(config.sigma_y, "sigma_y"), rng)
    a = _simulate(b, sigma_model, rng)
    x = _simulate(a, _check_sigma(config.sigma_x, "sigma_x"), rng)

    real = mean_difference(a, b)
    wrong = mean_difference(x, y)
    clean = clean_mae(wrong, config.sigma_x, config.sigma_y)

    result = ValidationResult(
        real_mae=real,
        wrong_mae=wrong,
        clean_mae=clean,
        model_std=model_std_from_mae(clean),
    )
    logger.info("Validation: MAE=%.4g WrongMAE=%.4g CleanMAE=%.4g", real, wrong, clean)
    return result


def spread_comparison(config: ValidationConfig, rng: np.random.Generator) -> SpreadComparison:
    """Change in population std between two samples, real vs observed."""
    n = _check_trials(config.sampling_size)
    sigma = _check_sigma(config.spread_sigma, "spread_sigma")

    a0 = _measure(rng, n, config.true_range)
    a1 = _measure(rng, n, config.narrow_range)
    x0 = _simulate(a0, sigma, rng)
    x1 = _simulate(a1, sigma, rng)

    return SpreadComparison(
        real_std=(float(np.std(a0)), float(np.std(a1))),
        observed_std=(float(np.std(x0)), float(np.std(x1))),
    )


# ═══════════════════════════════════════════════════════════════════════
# §5  REPORT GENERATOR
# ═══════════════════════════════════════════════════════════════════════

class MAEReport:
    """Generates formatted summary reports for MAE simulations."""

    @staticmethod
    def _hline(width=72):
        return "─" * width

    @staticmethod
    def _dline(width=72):
        return "═" * width

    @classmethod
    def comparison(cls, result: TrialResult, analytical: float,
                   title: str = "") -> str:
        """Empirical vs analytical MAE for one model."""
        w = 72
        lines = [
            cls._dline(w),
            f"  {title or 'MAE UNDER MEASUREMENT UNCERTAINTY'}",
            cls._dline(w),
            "",
            "  MODEL EQUATION",
            cls._hline(w),
            f"    E|x - y| = {FOLDED_NORMAL.expr}",
            "    with h = 0, s = √2·σ",
            "",
            "  SENSITIVITY COEFFICIENTS (symbolic)",
            cls._hline(w),
        ]
        for var_name, partial in FOLDED_NORMAL.partials.items():
            lines.append(f"    ∂F/∂{var_name} = {partial}")
        lines += [
            "",
            "  RESULTS",
            cls._hline(w),
            f"    Uncertainty model:   {result.model!r}",
            f"    Trials:              n = {result.n}",
            f"    Empirical MAE:       {result.mae:.6g}",
            f"    Analytical MAE:      {analytical:.6g}",
            f"    Relative error:      {result.relative_error(analytical) * 100:.3f}%",
            f"    dMAE/dσ:             {mae_sensitivity(result.model):.6g}",
        ]
        if result.differences is not None:
            lines.append(f"    Standard error:      {result.std_error:.4g}")
        lines.append(cls._dline(w))
        return "\n".join(lines)

    @classmethod
    def validation(cls, vresult: ValidationResult, config: ValidationConfig) -> str:
        w = 72
        lines = [
            cls._dline(w),
            "  VALIDATION WITH UNCERTAIN MEASUREMENTS",
            cls._dline(w),
            f"    σ_model = {config.sigma_model}, σ_x = {config.sigma_x}, "
            f"σ_y = {config.sigma_y}, n = {config.sampling_size}",
            cls._hline(w),
            f"    MAE (real):                      {vresult.real_mae:.6g}",
            f"    WrongMAE (usual way):            {vresult.wrong_mae:.6g}",
            f"    CleanMAE (inverted):             {vresult.clean_mae:.6g}",
            f"    |WrongMAE - MAE| / |CleanMAE - MAE| = {vresult.improvement:.4g}",
            f"    Model STD:                       {vresult.model_std:.6g}",
            cls._dline(w),
        ]
        return "\n".join(lines)

    @classmethod
    def spread(cls, spread: SpreadComparison) -> str:
        real0, real1 = spread.real_std
        obs0, obs1 = spread.observed_std
        return "\n".join([
            "  Delta Sigma (obs) VS. Delta Sigma (real)",
            cls._hline(),
            f"    STD (real): {real0:.6g} -> {real1:.6g}, diff: {spread.real_diff:.6g}",
            f"    STD (obs):  {obs0:.6g} -> {obs1:.6g}, diff: {spread.observed_diff:.6g}",
        ])
