import pytest

from racestats.timecodec import seconds_to_time, time_to_seconds


def test_time_to_seconds_known_value():
    assert time_to_seconds("01:02:03") == 3723
    assert time_to_seconds("00:45:10") == 2710
    assert time_to_seconds(" 00:00:00 ") == 0


def test_components_are_not_range_checked():
    assert time_to_seconds("00:75:00") == 4500
    assert time_to_seconds("25:00:00") == 90000


@pytest.mark.parametrize(
    "value",
    ["", "1:02", "01:02:03:04", "aa:bb:cc", "01:-2:03", None, "00:4_5:10", "+1:00:00", "00:45:1\u0660", "00: 45:10"],
)
def test_malformed_times_raise_value_error(value):
    with pytest.raises(ValueError):
        time_to_seconds(value)


def test_seconds_to_time_pads_and_truncates():
    assert seconds_to_time(3723) == "01:02:03"
    assert seconds_to_time(59.9) == "00:00:59"
    assert seconds_to_time(0) == "00:00:00"
    assert seconds_to_time(None) is None


def test_seconds_to_time_wraps_at_day_boundary():
    assert seconds_to_time(86400 + 61) == "00:01:01"


@pytest.mark.parametrize("value", ["00:00:00", "01:02:03", "23:59:59", "09:30:05"])
def test_well_formed_times_survive_conversion(value):
    assert seconds_to_time(time_to_seconds(value)) == value
