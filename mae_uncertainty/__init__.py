from mae_uncertainty.mae_engine import (
    InvalidParameterError,
    UncertaintyModel,
    TrialResult,
    FoldedNormalMAE,
    ValidationConfig,
    ValidationResult,
    SpreadComparison,
    MAEReport,
    sample_pair,
    sample_pairs,
    run_trials,
    mean_difference,
    analytical_mae,
    mae_sensitivity,
    clean_mae,
    model_std_from_mae,
    run_validation,
    spread_comparison,
)

__version__ = "0.1.0"
