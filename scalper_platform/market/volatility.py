"""
Volatility source adapters.

The range measure R is computed elsewhere (a study, an indicator service,
a research pipeline). The strategy only reads one scalar per update index;
0 or a negative value means "unavailable".
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Sequence, Union

import pandas as pd

from scalper_platform.domain.business_models import VolatilityReading

logger = logging.getLogger(__name__)


class VolatilitySource(ABC):

    @abstractmethod
    def get_reading(self, update_index: int) -> float:
        ...

    def reading(self, update_index: int) -> VolatilityReading:
        try:
            value = float(self.get_reading(update_index))
        except (TypeError, ValueError):
            logger.warning("Volatility source returned a non-numeric value | index=%s", update_index)
            value = 0.0
        if math.isnan(value):
            value = 0.0
        return VolatilityReading(value=value, valid_at=update_index)


class SeriesVolatilitySource(VolatilitySource):
    """
    R values held in a pandas Series indexed by update index, the way a
    charting host exposes a study subgraph array.

    Missing indices and NaN values read as 0.0 (unavailable).
    """

    def __init__(self, values: Union[pd.Series, Sequence[float]]):
        if not isinstance(values, pd.Series):
            values = pd.Series(list(values), dtype="float64")
        self.series = values.astype("float64")

    def get_reading(self, update_index: int) -> float:
        value = self.series.get(update_index)
        if value is None or pd.isna(value):
            return 0.0
        return float(value)

    def set_reading(self, update_index: int, value: float) -> None:
        """Append / overwrite R for an update index (live hosts)."""
        self.series.loc[update_index] = float(value)
