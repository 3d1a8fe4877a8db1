import pytest

from haulplan.services.geospatial import haversine_km, parse_coordinates


def test_haversine_known_distance():
    # One degree of latitude is about 111.2 km.
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)
    assert haversine_km(-23.55, -46.63, -23.55, -46.63) == 0.0


@pytest.mark.parametrize(
    "text, expected",
    [
        ("-23.5505, -46.6333", (-23.5505, -46.6333)),
        ("https://maps.google.com/?q=-23.5505,-46.6333", (-23.5505, -46.6333)),
        ("https://www.google.com/maps/place/Obra/@-23.5612,-46.6559,17z", (-23.5612, -46.6559)),
        ("https://maps.example.com/view?ll=-22.9068,-43.1729&z=12", (-22.9068, -43.1729)),
        ("Rua das Flores, 100", None),
        ("", None),
    ],
)
def test_parse_coordinates(text, expected):
    assert parse_coordinates(text) == expected
