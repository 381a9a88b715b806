"""
Model Evaluation Module
=======================

Compares the trained techniques on the holdout rows and on their
cross-validated resampling results.

Features:
    - Holdout Pearson correlation, RMSE and R² per model
    - Resampling summary (min, quartiles, mean, max) of RMSE and R²
    - Advisory comparison against a stored reference run
    - Dot plot and box plot of resampling metrics
    - Predicted vs actual holdout plots
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats
from sklearn.metrics import mean_squared_error

from .models import TrainedModel

logger = logging.getLogger(__name__)

METRICS = ['RMSE', 'Rsquared']


def holdout_correlation(y_true: np.ndarray, y_pred: np.ndarray) -> Tuple[float, float]:
    """
    Pearson correlation between actual and predicted outcome.

    Args:
        y_true: Actual outcome
        y_pred: Predicted outcome

    Returns:
        Tuple of (r, p-value); both NaN when either input is constant
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    if np.ptp(y_true) == 0 or np.ptp(y_pred) == 0:
        logger.warning("Constant input; holdout correlation is undefined")
        return float('nan'), float('nan')

    r, p_value = stats.pearsonr(y_true, y_pred)
    return float(r), float(p_value)


def evaluate_holdout(
    models: Dict[str, TrainedModel],
    X_holdout: pd.DataFrame,
    y_holdout: np.ndarray
) -> pd.DataFrame:
    """
    Score every model on the holdout rows.

    Args:
        models: Trained models keyed by technique
        X_holdout: Raw holdout predictors
        y_holdout: Holdout outcome

    Returns:
        DataFrame indexed by model with correlation, p_value, RMSE, Rsquared
    """
    rows = []
    for name, model in models.items():
        y_pred = model.predict(X_holdout)
        r, p_value = holdout_correlation(y_holdout, y_pred)
        rows.append({
            'model': name,
            'correlation': r,
            'p_value': p_value,
            'RMSE': float(np.sqrt(mean_squared_error(y_holdout, y_pred))),
            'Rsquared': r ** 2,
        })
        logger.info(f"{name}: holdout r = {r:.4f}")

    return pd.DataFrame(rows).set_index('model')


def collect_resamples(models: Dict[str, TrainedModel]) -> pd.DataFrame:
    """Per-fold RMSE and R² of every model in long format."""
    return pd.concat(
        [model.fold_scores for model in models.values()],
        ignore_index=True
    )


def summarize_resamples(resamples: pd.DataFrame) -> pd.DataFrame:
    """
    Distribution summary of the resampling metrics.

    Args:
        resamples: Output of collect_resamples

    Returns:
        DataFrame indexed by (metric, model) with Min, 1st Qu., Median,
        Mean, 3rd Qu., Max and NA's columns
    """
    order = list(dict.fromkeys(resamples['model']))
    tables = {}
    for metric in METRICS:
        grouped = resamples.groupby('model', sort=False)[metric]
        tables[metric] = pd.DataFrame({
            'Min.': grouped.min(),
            '1st Qu.': grouped.quantile(0.25),
            'Median': grouped.median(),
            'Mean': grouped.mean(),
            '3rd Qu.': grouped.quantile(0.75),
            'Max.': grouped.max(),
            "NA's": grouped.apply(lambda s: int(s.isna().sum())),
        }).reindex(order)

    return pd.concat(tables, names=['metric', 'model'])


def compare_to_reference(
    correlations: Dict[str, float],
    reference: Dict[str, float],
    tolerance: float = 0.05
) -> pd.DataFrame:
    """
    Compare holdout correlations with those of a reference run.

    Only models present in both mappings are compared. The result is
    advisory and never raises.

    Args:
        correlations: Current holdout correlation per model
        reference: Reference correlation per model
        tolerance: Maximum absolute difference considered a match

    Returns:
        DataFrame indexed by model with current, reference, difference
        and within_tolerance columns
    """
    rows = []
    for name, ref in reference.items():
        if name not in correlations:
            continue
        current = correlations[name]
        diff = current - ref
        within = bool(np.isfinite(diff) and abs(diff) <= tolerance)
        if not within:
            logger.warning(f"{name}: holdout r {current:.4f} differs from reference {ref:.4f}")
        rows.append({
            'model': name,
            'current': current,
            'reference': ref,
            'difference': diff,
            'within_tolerance': within,
        })

    columns = ['model', 'current', 'reference', 'difference', 'within_tolerance']
    return pd.DataFrame(rows, columns=columns).set_index('model')


def _confidence_interval(values: pd.Series, level: float = 0.95) -> Tuple[float, float, float]:
    values = values.dropna()
    mean = float(values.mean())
    if len(values) < 2:
        return mean, mean, mean
    half = stats.t.ppf(0.5 + level / 2, len(values) - 1) * values.std(ddof=1) / np.sqrt(len(values))
    return mean, mean - half, mean + half


def plot_resample_dotplot(
    resamples: pd.DataFrame,
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Dot plot of mean resampling metrics with 95% confidence intervals.

    Args:
        resamples: Output of collect_resamples
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    models = list(dict.fromkeys(resamples['model']))
    fig, axes = plt.subplots(1, len(METRICS), figsize=figsize, sharey=True)

    for ax, metric in zip(axes, METRICS):
        y = np.arange(len(models))
        for i, name in enumerate(models):
            mean, low, high = _confidence_interval(resamples.loc[resamples['model'] == name, metric])
            ax.errorbar(mean, i, xerr=[[mean - low], [high - mean]], fmt='o',
                        color='steelblue', capsize=4, markersize=7)
        ax.set_yticks(y)
        ax.set_yticklabels(models)
        ax.set_xlabel(metric)
        ax.set_title(f'{metric} (mean, 95% CI)', fontweight='bold')
        ax.grid(axis='x', alpha=0.3)

    plt.suptitle('Cross-Validated Resampling Comparison', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Resampling dot plot saved to {save_path}")

    return fig


def plot_resample_boxplot(
    resamples: pd.DataFrame,
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Box plots of per-fold resampling metrics for each model.

    Args:
        resamples: Output of collect_resamples
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, axes = plt.subplots(1, len(METRICS), figsize=figsize)

    for ax, metric in zip(axes, METRICS):
        sns.boxplot(data=resamples, x=metric, y='model', ax=ax, color='lightsteelblue')
        sns.stripplot(data=resamples, x=metric, y='model', ax=ax, color='black', size=3, alpha=0.6)
        ax.set_title(metric, fontweight='bold')
        ax.set_ylabel('')

    plt.suptitle('Resampling Distributions', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Resampling box plot saved to {save_path}")

    return fig


def plot_holdout_predictions(
    predictions: Dict[str, np.ndarray],
    y_true: np.ndarray,
    figsize: Tuple[int, int] = (12, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Predicted vs actual outcome on the holdout rows for each model.

    Args:
        predictions: Holdout predictions keyed by model
        y_true: Holdout outcome
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    names = list(predictions)
    n_rows = (len(names) + 1) // 2
    fig, axes = plt.subplots(n_rows, 2, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for ax, name in zip(axes, names):
        y_pred = predictions[name]
        # discrete outcome; jitter so overlapping responses stay visible
        jitter = np.random.default_rng(0).uniform(-0.15, 0.15, len(y_true))
        ax.scatter(y_true + jitter, y_pred, alpha=0.4, s=15)
        r, _ = holdout_correlation(y_true, y_pred)
        ax.set_xlabel('Actual')
        ax.set_ylabel('Predicted')
        ax.set_title(f'{name}\nr={r:.3f}', fontsize=10, fontweight='bold')

    for idx in range(len(names), len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Holdout: Actual vs Predicted', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Holdout prediction plot saved to {save_path}")

    return fig


def evaluate_models(
    models: Dict[str, TrainedModel],
    X_holdout: pd.DataFrame,
    y_holdout: np.ndarray,
    reference: Optional[Dict[str, float]] = None,
    tolerance: float = 0.05,
    output_dir: str = "reports/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Run the full comparison and write figures and metrics.

    Args:
        models: Trained models keyed by technique
        X_holdout: Raw holdout predictors
        y_holdout: Holdout outcome
        reference: Reference holdout correlations (optional)
        tolerance: Allowed deviation from the reference
        output_dir: Directory for output files
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing holdout table, resamples, summary,
        reference comparison, figure names and metrics file path
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    metrics_dir = output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION")
    logger.info("=" * 60)

    holdout = evaluate_holdout(models, X_holdout, y_holdout)
    resamples = collect_resamples(models)
    summary = summarize_resamples(resamples)

    comparison = None
    if reference:
        comparison = compare_to_reference(holdout['correlation'].to_dict(), reference, tolerance)

    metrics = {
        'holdout': holdout.reset_index().to_dict(orient='records'),
        'resampling_mean': resamples.groupby('model', sort=False)[METRICS].mean().reset_index().to_dict(orient='records'),
        'best_params': {name: model.best_params for name, model in models.items()},
    }
    if comparison is not None:
        metrics['reference'] = comparison.reset_index().to_dict(orient='records')

    metrics_file = metrics_dir / "model_comparison.json"
    with open(metrics_file, 'w') as f:
        json.dump(metrics, f, indent=2, default=str)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []

    logger.info("Generating resampling dot plot...")
    plot_resample_dotplot(resamples, save_path=str(figures_dir / "resample_dotplot.png"))
    figures.append("resample_dotplot.png")

    logger.info("Generating resampling box plot...")
    plot_resample_boxplot(resamples, save_path=str(figures_dir / "resample_boxplot.png"))
    figures.append("resample_boxplot.png")

    logger.info("Generating holdout prediction plots...")
    predictions = {name: model.predict(X_holdout) for name, model in models.items()}
    plot_holdout_predictions(
        predictions, np.asarray(y_holdout, dtype=float),
        save_path=str(figures_dir / "holdout_predictions.png")
    )
    figures.append("holdout_predictions.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    for name, row in holdout.iterrows():
        logger.info(f"  {name}: r={row['correlation']:.4f}, RMSE={row['RMSE']:.4f}")
    logger.info("=" * 60)

    return {
        'holdout': holdout,
        'resamples': resamples,
        'summary': summary,
        'reference': comparison,
        'figures': figures,
        'metrics_file': str(metrics_file),
    }


def print_evaluation_report(result: Dict[str, Any]) -> None:
    """
    Print the model comparison to console.

    Args:
        result: Dictionary from evaluate_models
    """
    holdout = result['holdout']

    print("\n" + "=" * 70)
    print("MODEL COMPARISON REPORT")
    print("=" * 70)

    print("\nHoldout performance:")
    print("-" * 70)
    print(f"{'Model':<15} {'r':<12} {'p-value':<12} {'RMSE':<12} {'R²':<12}")
    print("-" * 70)
    for name, row in holdout.iterrows():
        print(f"{name:<15} {row['correlation']:<12.4f} {row['p_value']:<12.4g} "
              f"{row['RMSE']:<12.4f} {row['Rsquared']:<12.4f}")

    print("\nCross-validated resampling summary:")
    print("-" * 70)
    for metric in METRICS:
        print(f"\n{metric}")
        print(result['summary'].loc[metric].round(4).to_string())

    comparison = result.get('reference')
    if comparison is not None and not comparison.empty:
        print("\nReference run comparison:")
        print("-" * 70)
        for name, row in comparison.iterrows():
            mark = "✓" if row['within_tolerance'] else "✗"
            print(f"  {mark} {name:<13} current {row['current']:.4f} | "
                  f"reference {row['reference']:.4f} | diff {row['difference']:+.4f}")

    print("\nNo model is selected automatically; compare the figures above.")
    print("=" * 70 + "\n")
