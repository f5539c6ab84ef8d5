from datetime import datetime, timezone

import pytest

from build_orchestrator.core.exceptions import ProviderError, TimestampParseError
from build_orchestrator.utils.timestamps import from_unix_seconds, parse_gitlab_timestamp

EXPECTED = datetime(2025, 12, 17, 9, 49, 2, 891000, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [
        "2025-12-17T17:49:02.891+08:00",
        "2025-12-17T09:49:02.891Z",
    ],
)
def test_parses_millisecond_forms(value):
    assert parse_gitlab_timestamp(value) == EXPECTED


@pytest.mark.parametrize(
    "value",
    [
        "2025-12-17T17:49:02+08:00",
        "2025-12-17T09:49:02Z",
    ],
)
def test_parses_forms_without_milliseconds(value):
    assert parse_gitlab_timestamp(value) == EXPECTED.replace(microsecond=0)


def test_result_is_timezone_aware():
    parsed = parse_gitlab_timestamp("2025-12-17T09:49:02.891Z")
    assert parsed.tzinfo is not None
    assert parsed.utcoffset().total_seconds() == 0


@pytest.mark.parametrize("value", ["", "yesterday", "2025-12-17 09:49", "17/12/2025T09:49:02Z"])
def test_unparsable_value_raises_provider_error(value):
    with pytest.raises(TimestampParseError) as excinfo:
        parse_gitlab_timestamp(value)

    assert isinstance(excinfo.value, ProviderError)
    assert excinfo.value.value == value


def test_from_unix_seconds_is_utc():
    assert from_unix_seconds(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
