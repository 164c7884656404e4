import pytest

from patclient.forms.position import GPSStyle, grid_square, position_fmt
from patclient.gpsd import Position

POS = Position(lat=59.41378, lon=5.268)


@pytest.mark.parametrize(
    "style, expect",
    [
        (GPSStyle.DEGREE_MINUTE, "59-24.83N 005-16.08E"),
        (GPSStyle.DECIMAL, "59.4138N 5.2680E"),
        (GPSStyle.SIGNED_DECIMAL, "59.4138 5.2680"),
        (GPSStyle.GRID_SQUARE, "JO29PJ"),
    ],
)
def test_position_fmt(style, expect):
    assert position_fmt(style, POS) == expect


@pytest.mark.parametrize("style", list(GPSStyle))
def test_no_position(style):
    assert position_fmt(style, Position()) == "(Not available)"


def test_south_west_hemispheres():
    south_west = Position(lat=-59.41378, lon=-5.268)
    assert position_fmt(GPSStyle.DECIMAL, south_west) == "59.4138S 5.2680W"
    assert position_fmt(GPSStyle.DEGREE_MINUTE, south_west) == "59-24.83S 005-16.08W"
    assert position_fmt(GPSStyle.SIGNED_DECIMAL, south_west) == "-59.4138 -5.2680"


def test_grid_square_out_of_range():
    with pytest.raises(ValueError):
        grid_square(91.0, 0.0)
    assert position_fmt(GPSStyle.GRID_SQUARE, Position(lat=0.0, lon=200.0)) == "(Not available)"


def test_grid_square_shape_at_extremes():
    for lat, lon in [(90.0, 180.0), (-90.0, -180.0)]:
        locator = grid_square(lat, lon)
        assert len(locator) == 6
        assert "A" <= locator[0] <= "R" and "A" <= locator[1] <= "R"
        assert locator[2:4].isdigit()
        assert "A" <= locator[4] <= "X" and "A" <= locator[5] <= "X"


def test_invalid_style():
    with pytest.raises(ValueError):
        position_fmt(99, POS)