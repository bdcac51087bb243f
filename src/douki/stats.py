"""
Outlier filtering and dispersion helpers for delay samples.
"""
import math
import statistics
from typing import List, Sequence


def filter_outliers( samples: Sequence[float], factor: float = 0.25, multiplier: float = 1.5 ) -> List[float]:
    """
    Drop samples lying outside a generous interquartile range.

    The quartiles are taken by rank without interpolation: ``q1`` at
    ``floor(n * factor)`` and ``q3`` at ``ceil(n * (1 - factor))``, so a
    larger factor narrows the central band that defines the range.

    Args:
        samples: Values to filter (not modified)
        factor: Quartile rank factor (0.25 gives the usual quartiles)
        multiplier: How many IQRs beyond the quartiles are still kept

    Returns:
        New ascending list with the surviving samples
    """
    values = sorted( samples );
    if not values:
        return [];

    last = len( values ) - 1;
    q1 = values[min( last, math.floor( len( values ) * factor ) )];
    q3 = values[min( last, math.ceil( len( values ) * ( 1 - factor ) ) )];
    iqr = q3 - q1;

    lower_bound = q1 - iqr * multiplier;
    upper_bound = q3 + iqr * multiplier;

    return [ value for value in values if lower_bound <= value <= upper_bound ];


def standard_deviation( samples: Sequence[float] ) -> float:
    """Population standard deviation; ``nan`` for an empty sequence."""
    if not samples:
        return math.nan;
    return statistics.pstdev( samples );


def mean( samples: Sequence[float] ) -> float:
    return statistics.fmean( samples );
