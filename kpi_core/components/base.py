"""Base class for metric scoring components."""

from abc import ABC, abstractmethod

import pandas as pd

from ..errors import InvalidInputError


class BaseScorer(ABC):
    """
    Abstract base class for scoring components.

    Each component turns one input column into a per-row score
    using vectorized pandas operations.
    """

    name: str = "base"

    @abstractmethod
    def score(self, df: pd.DataFrame) -> pd.Series:
        """
        Calculate component score for all rows.

        Args:
            df: DataFrame with required columns

        Returns:
            Series of float scores (NaN where no score applies)
        """

    @property
    @abstractmethod
    def required_columns(self) -> list[str]:
        """List of columns required by this scorer."""

    def validate(self, df: pd.DataFrame) -> None:
        """Validate required columns exist."""
        missing = set(self.required_columns) - set(df.columns)
        if missing:
            raise InvalidInputError(
                f"{self.__class__.__name__}({self.name}) requires columns: {missing}"
            )
