import pytest

from gis_core.core.util import has_data, normalize_name, unique

gpd = pytest.importorskip("geopandas")


def test_has_data_none():
    assert has_data(None) is False


def test_has_data_empty_gdf():
    gdf = gpd.GeoDataFrame(geometry=[])
    assert has_data(gdf) is False


def test_has_data_nonempty_gdf():
    gdf = gpd.GeoDataFrame(geometry=[None])
    # Non-empty length, even if geometry is None; function only checks emptiness
    assert has_data(gdf) is True


def test_normalize_name_strips_emoji_and_case():
    assert normalize_name("🏠 Address Points") == "address points"


def test_normalize_name_strips_diacritics_and_underscores():
    assert normalize_name("Café_Parcels") == "cafe parcels"


def test_normalize_name_collapses_whitespace():
    assert normalize_name("  Road \t Centerlines  ") == "road centerlines"


def test_unique_keeps_first_occurrence_order():
    assert unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
