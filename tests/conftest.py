from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from bikeshare.data import load_dataset


def make_day_frame(start: str = "2011-01-01", end: str = "2012-12-31", seed: int = 42) -> pd.DataFrame:
    """Synthetic table in the UCI day.csv layout (one row per day)."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range(start, end, freq="D")
    n = len(dates)
    doy = dates.dayofyear.to_numpy()
    month = dates.month.to_numpy()

    temp = np.clip(0.5 - 0.3 * np.cos(2 * np.pi * (doy - 15) / 365) + rng.normal(0, 0.05, n), 0.05, 0.95)
    hum = np.clip(rng.normal(0.62, 0.14, n), 0.0, 1.0)
    windspeed = np.clip(rng.normal(0.19, 0.07, n), 0.02, 0.5)
    weathersit = rng.choice([1, 2, 3], size=n, p=[0.63, 0.33, 0.04])
    weekday = ((dates.dayofweek.to_numpy() + 1) % 7).astype(int)
    holiday = (rng.random(n) < 0.03).astype(int)
    workingday = ((weekday >= 1) & (weekday <= 5) & (holiday == 0)).astype(int)
    yr = (dates.year.to_numpy() - 2011).astype(int)

    casual = np.maximum(2, (temp * 1500 + rng.normal(0, 200, n))).astype(int)
    registered = np.maximum(20, (temp * 4000 + yr * 1500 + workingday * 600 + rng.normal(0, 400, n))).astype(int)

    return pd.DataFrame(
        {
            "instant": np.arange(1, n + 1),
            "dteday": dates.strftime("%Y-%m-%d"),
            "season": (month % 12) // 3 + 1,
            "yr": yr,
            "mnth": month,
            "holiday": holiday,
            "weekday": weekday,
            "workingday": workingday,
            "weathersit": weathersit,
            "temp": temp.round(6),
            "atemp": (temp * 0.95).round(6),
            "hum": hum.round(6),
            "windspeed": windspeed.round(6),
            "casual": casual,
            "registered": registered,
            "cnt": casual + registered,
        }
    )


@pytest.fixture(scope="session")
def day_frame() -> pd.DataFrame:
    return make_day_frame()


@pytest.fixture(scope="session")
def day_csv(tmp_path_factory, day_frame):
    path = tmp_path_factory.mktemp("inputs") / "day.csv"
    day_frame.to_csv(path, index=False)
    return path


@pytest.fixture(scope="session")
def dataset(day_csv):
    return load_dataset(day_csv)
