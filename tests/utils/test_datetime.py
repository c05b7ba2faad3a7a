import datetime

import pytest

from wstore.utils import *


def test_utc_now() -> None:
    now = utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == datetime.timedelta(0)


def test_ensure_utc() -> None:
    tz = datetime.timezone(datetime.timedelta(hours=2))
    value = datetime.datetime(2020, 5, 1, 14, 0, 0, tzinfo=tz)
    expected = datetime.datetime(2020, 5, 1, 12, 0, 0, tzinfo=datetime.UTC)
    result = ensure_utc(value)
    assert result == expected
    assert result.utcoffset() == datetime.timedelta(0)


def test_ensure_utc_naive() -> None:
    with pytest.raises(ValueError) as excinfo:
        ensure_utc(datetime.datetime(2020, 5, 1, 14, 0, 0))
    assert "naive datetime" in str(excinfo.value)
