#!/usr/bin/env python3
"""
Trait/Health Model Comparison - Main Pipeline
==============================================

Orchestrates the comparison of four regression techniques predicting
self-rated health from ten personality items.

Phases:
    1. Load & clean - read the survey file, select and clean columns
    2. Split - seeded holdout partition and cross-validation folds
    3. Train - OLS, elastic net, polynomial SVR, DART boosting
    4. Evaluate - holdout correlation and resampling comparison

Usage:
    # Run complete pipeline
    python main.py --data data/raw/survey.sav

    # Stop after a phase
    python main.py --data data/raw/survey.sav --phase split

    # Run with custom config
    python main.py --data data/raw/survey.sav --config config/custom.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent))

from trait_health.data_loader import load_config, load_data, missingness_report, print_data_summary
from trait_health.cleaning import clean_data
from trait_health.splitting import make_rng, split_holdout, make_folds
from trait_health.preprocessing import SurveyPreprocessor, preprocess_split, print_preprocessing_summary
from trait_health.models import train_models, print_model_summary
from trait_health.evaluation import evaluate_models, print_evaluation_report

logger = logging.getLogger(__name__)

PHASES = ['clean', 'split', 'train', 'all']


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """Configure logging for the pipeline."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(
            Path(log_dir) / f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        ))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def run_cleaning(data_path: str, config: Dict[str, Any]) -> pd.DataFrame:
    """
    Execute Phase 1: load the survey file and build the clean table.

    Args:
        data_path: Path to the dataset file
        config: Configuration dictionary

    Returns:
        Clean table
    """
    print("\n" + "=" * 70)
    print("PHASE 1: LOAD & CLEAN")
    print("=" * 70)

    data_config = config.get('data', {})

    raw = load_data(data_path)
    clean = clean_data(
        raw,
        prefix=data_config.get('predictor_prefix', 'TIPI'),
        outcome=data_config.get('outcome', 'health'),
        n_predictors=data_config.get('n_predictors', 10)
    )

    outcome = data_config.get('outcome', 'health')
    missingness_report(
        clean,
        columns=[col for col in clean.columns if col != outcome],
        threshold=data_config.get('max_missing_fraction', 0.25)
    )
    print_data_summary(clean)

    return clean


def run_split(clean: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 2: holdout split, folds and the shared recipe.

    Args:
        clean: Clean table
        config: Configuration dictionary

    Returns:
        Preprocessing result dictionary extended with 'split' and 'folds'
    """
    print("\n" + "=" * 70)
    print("PHASE 2: SPLIT & PREPROCESS")
    print("=" * 70)

    split_config = config.get('split', {})
    prep_config = config.get('preprocessing', {})
    outcome = config.get('data', {}).get('outcome', 'health')

    rng = make_rng(split_config.get('seed', 123))
    split = split_holdout(clean, rng, holdout_size=split_config.get('holdout_size', 250))
    folds = make_folds(split.train[outcome].to_numpy(), rng, n_folds=split_config.get('n_folds', 10))

    preprocessor = SurveyPreprocessor(
        n_neighbors=prep_config.get('knn_neighbors', 5),
        center=prep_config.get('center', True),
        scale=prep_config.get('scale', True),
        zero_variance=prep_config.get('zero_variance', True)
    )
    result = preprocess_split(split, outcome, preprocessor)
    result['split'] = split
    result['folds'] = folds

    print_preprocessing_summary(result)

    return result


def run_training(prep_result: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 3: fit all four techniques on the shared folds.

    Args:
        prep_result: Result of run_split
        config: Configuration dictionary

    Returns:
        Trained models keyed by technique
    """
    print("\n" + "=" * 70)
    print("PHASE 3: MODEL TRAINING")
    print("=" * 70)

    models = train_models(
        prep_result['X_train'],
        prep_result['y_train'],
        prep_result['preprocessor'],
        prep_result['folds'],
        config
    )

    for model in models.values():
        print_model_summary(model)

    return models


def run_evaluation(
    models: Dict[str, Any],
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 4: holdout and resampling comparison.

    Args:
        models: Trained models
        prep_result: Result of run_split
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 4: MODEL EVALUATION")
    print("=" * 70)

    eval_config = config.get('evaluation', {})

    result = evaluate_models(
        models,
        prep_result['X_holdout'],
        prep_result['y_holdout'],
        reference=eval_config.get('reference_correlations'),
        tolerance=eval_config.get('tolerance', 0.05),
        output_dir=config.get('output', {}).get('reports_path', 'reports/'),
        show_plots=False
    )

    print_evaluation_report(result)

    return result


def run_pipeline(
    data_path: str,
    config: Dict[str, Any],
    phase: str = 'all'
) -> Dict[str, Any]:
    """
    Execute the pipeline up to and including ``phase``.

    Args:
        data_path: Path to the dataset file
        config: Configuration dictionary
        phase: Last phase to run ('clean', 'split', 'train', 'all')

    Returns:
        Dictionary containing all phase results
    """
    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {phase}. Choose from: {', '.join(PHASES)}")

    print("\n" + "=" * 70)
    print("TRAIT/HEALTH MODEL COMPARISON")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    results = {'config': config}

    results['clean'] = run_cleaning(data_path, config)
    if phase == 'clean':
        return results

    results['preprocessing'] = run_split(results['clean'], config)
    if phase == 'split':
        return results

    results['models'] = run_training(results['preprocessing'], config)
    if phase == 'train':
        return results

    results['evaluation'] = run_evaluation(results['models'], results['preprocessing'], config)

    holdout = results['evaluation']['holdout']
    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Clean data: {results['clean'].shape[0]} rows × {results['clean'].shape[1]} columns")
    for name, r in holdout['correlation'].items():
        print(f"  • {name} holdout r: {r:.4f}")
    print(f"  • Metrics: {results['evaluation']['metrics_file']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Compare regression techniques predicting self-rated health from personality items",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data data/raw/survey.sav
  python main.py --data data/raw/survey.sav --phase split
  python main.py --data data/raw/survey.sav --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        default=None,
        help='Path to the survey dataset (default: data.path from config)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=PHASES,
        default='all',
        help='Last phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    config = load_config(args.config)
    level = 'DEBUG' if args.verbose else config.get('logging', {}).get('level', 'INFO')
    setup_logging(level, config.get('logging', {}).get('log_dir'))

    data_path = args.data or config.get('data', {}).get('path')
    if not data_path or not Path(data_path).exists():
        print(f"Error: Data file not found: {data_path}")
        print("\nExpected an SPSS (.sav), Stata (.dta) or SAS (.sas7bdat/.xpt) survey file.")
        return 1

    try:
        run_pipeline(data_path, config, phase=args.phase)
        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
