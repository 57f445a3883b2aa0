"""
Property-based tests for filename broadcast date/time extraction and
timestamp display formatting.

Property: a recorder filename carrying ``_YYYY-MM-DD-HHMM`` or
``_YYYYMMDDHHMM`` yields that date and time; anything else yields
``(None, None)`` without raising.
"""

from hypothesis import given, strategies as st, settings

from radiocheck.services.utils import extract_broadcast_datetime, format_timestamp


@st.composite
def broadcast_moment(draw):
    year = draw(st.integers(min_value=2000, max_value=2099))
    month = draw(st.integers(min_value=1, max_value=12))
    day = draw(st.integers(min_value=1, max_value=28))
    hour = draw(st.integers(min_value=0, max_value=23))
    minute = draw(st.integers(min_value=0, max_value=59))
    return year, month, day, hour, minute


prefix_strategy = st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-", min_size=0, max_size=20)
extension_strategy = st.sampled_from([".mp3", ".aac", ".wav", ".m4a"])


def test_documented_examples():
    assert extract_broadcast_datetime("02-RADIO-X_2026-01-30-0644.mp3") == ("2026-01-30", "06:44")
    assert extract_broadcast_datetime("x_20260131064221304.aac") == ("2026-01-31", "06:42")
    assert extract_broadcast_datetime("grabacion-sin-fecha.mp3") == (None, None)
    assert extract_broadcast_datetime("") == (None, None)


@settings(max_examples=100)
@given(prefix=prefix_strategy, moment=broadcast_moment(), ext=extension_strategy)
def test_dashed_pattern_extracts_date_and_time(prefix, moment, ext):
    year, month, day, hour, minute = moment
    filename = f"{prefix}_{year:04d}-{month:02d}-{day:02d}-{hour:02d}{minute:02d}{ext}"

    date, time = extract_broadcast_datetime(filename)

    assert date == f"{year:04d}-{month:02d}-{day:02d}"
    assert time == f"{hour:02d}:{minute:02d}"


@settings(max_examples=100)
@given(
    prefix=prefix_strategy,
    moment=broadcast_moment(),
    trailing=st.text(alphabet="0123456789", max_size=8),
    ext=extension_strategy,
)
def test_compact_pattern_extracts_date_and_time(prefix, moment, trailing, ext):
    year, month, day, hour, minute = moment
    filename = f"{prefix}_{year:04d}{month:02d}{day:02d}{hour:02d}{minute:02d}{trailing}{ext}"

    assert extract_broadcast_datetime(filename) == (
        f"{year:04d}-{month:02d}-{day:02d}",
        f"{hour:02d}:{minute:02d}",
    )


@settings(max_examples=100)
@given(name=st.text(alphabet="abcdefghijklmnopqrstuvwxyz-. ", max_size=40))
def test_names_without_digits_have_no_broadcast_metadata(name):
    assert extract_broadcast_datetime(name) == (None, None)


def test_format_timestamp_switches_to_hours_past_sixty_minutes():
    assert format_timestamp(None) == ""
    assert format_timestamp(0) == ""
    assert format_timestamp(5.9) == "00:05"
    assert format_timestamp(125.5) == "02:05"
    assert format_timestamp(3599) == "59:59"
    assert format_timestamp(3600) == "1:00:00"
    assert format_timestamp(1395.5) == "23:15"
    assert format_timestamp(7384) == "2:03:04"


@settings(max_examples=100)
@given(seconds=st.floats(min_value=1, max_value=86400, allow_nan=False))
def test_format_timestamp_roundtrips_whole_seconds(seconds):
    parts = [int(p) for p in format_timestamp(seconds).split(":")]
    if len(parts) == 3:
        total = parts[0] * 3600 + parts[1] * 60 + parts[2]
    else:
        total = parts[0] * 60 + parts[1]
    assert total == int(seconds)
