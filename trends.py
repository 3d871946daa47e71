import datetime as dt
import math

import numpy as np

from entries import WeightUnit


TREND_WINDOW = 7


def field_value(entry, field, unit):
    if field == "weight":
        return entry.weight_in(unit)
    return getattr(entry, field)


def build_series(entries, field, unit=WeightUnit.KG):
    """Daily series from the first to the last entry, None on missing days.

    When a day has more than one entry the first one in ``entries`` is used,
    matching what the calendar shows for that day.
    """
    if not entries:
        return [], []

    date_to_value = {}
    for entry in entries:
        date_to_value.setdefault(entry.date, field_value(entry, field, unit))

    min_date = min(date_to_value)
    max_date = max(date_to_value)
    full_dates = []
    full_values = []

    current = min_date
    while current <= max_date:
        full_dates.append(current)
        full_values.append(date_to_value.get(current))
        current += dt.timedelta(days=1)

    return full_dates, full_values


def interpolate_series(values):
    if not values:
        return []

    indexed = [
        (i, v)
        for i, v in enumerate(values)
        if v is not None and not (isinstance(v, float) and math.isnan(v))
    ]
    if not indexed:
        return [np.nan for _ in values]

    x_known = np.array([i for i, _ in indexed], dtype=float)
    y_known = np.array([v for _, v in indexed], dtype=float)
    x_all = np.arange(len(values), dtype=float)

    if len(x_known) == 1:
        return [float(y_known[0]) for _ in values]

    interpolated = np.interp(x_all, x_known, y_known)
    return interpolated.tolist()


def moving_average(values, window=TREND_WINDOW):
    if len(values) < window:
        return [np.nan for _ in values]

    kernel = np.ones(window) / window
    conv = np.convolve(values, kernel, mode="valid")
    prefix = [np.nan] * (window - 1)
    return prefix + conv.tolist()
