"""
Trait/Health Model Comparison
=============================

Compares four regression techniques predicting self-rated health from
ten personality scale items of a survey dataset.

Modules:
    - data_loader: Survey file ingestion and configuration
    - cleaning: Column selection and row completeness rules
    - splitting: Seeded holdout split and cross-validation folds
    - preprocessing: KNN imputation, zero-variance filter, centering/scaling
    - models: OLS, elastic net, polynomial SVR and DART boosting trainers
    - evaluation: Holdout correlation and resampling comparison
"""

__version__ = "1.0.0"
__author__ = "Predictive Analytics Team"
