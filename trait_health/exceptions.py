"""Error types raised by the pipeline stages."""


class FormatError(ValueError):
    """Input file is not a readable statistical-software dataset."""


class SchemaError(ValueError):
    """Selected table does not have the expected columns."""


class TrainingError(RuntimeError):
    """A technique's fit or hyperparameter search failed."""

    def __init__(self, technique: str, message: str):
        self.technique = technique
        super().__init__(f"Training failed for '{technique}': {message}")
