"""Unit tests for building layer registries."""
import pytest

from conftest import DELTA_URL
from config.schemas import GeometryType, SourceConfig
from config.schemas.source_config import FallbackLayer
from gis_core.core.client import LayerDescriptor, ServiceDescriptor
from gis_core.core.registry import LayerConfig, LayerKind, LayerRegistry, RegistryBuilder


def service(*layers):
    return ServiceDescriptor(url=DELTA_URL, layers=list(layers))


class TestRegistryBuilder:
    def test_one_config_per_layer_with_visibility(self, delta_source, viewer_config):
        registry = RegistryBuilder(delta_source, viewer_config).from_service(service(
            LayerDescriptor(7, "Townships", GeometryType.POLYGON),
            LayerDescriptor(1, "Road_Centerlines", GeometryType.POLYLINE),
        ))
        townships, roads = registry.layers
        assert townships.id == "delta_7"
        assert townships.display_name == "🏘️ Townships"
        assert townships.visible_by_default and townships.currently_visible
        assert roads.display_name == "📍 Road Centerlines"
        assert not roads.visible_by_default
        assert roads.source_url == f"{DELTA_URL}/1"
        assert roads.kind == LayerKind.LIVE

    def test_unrecognized_geometry_gets_polyline_style(self, delta_source, viewer_config):
        registry = RegistryBuilder(delta_source, viewer_config).from_service(
            service(LayerDescriptor(5, "Mystery", GeometryType.UNKNOWN))
        )
        assert registry.layers[0].style == viewer_config.geometry_defaults.polyline

    def test_duplicate_names_get_distinct_ids(self, delta_source, viewer_config):
        registry = RegistryBuilder(delta_source, viewer_config).from_service(service(
            LayerDescriptor(3, "Address_Points", GeometryType.POINT),
            LayerDescriptor(4, "Address_Points", GeometryType.POINT),
        ))
        assert [layer.id for layer in registry] == ["delta_3", "delta_4"]

    def test_visible_first_n(self):
        source = SourceConfig(key="uw", name="UW", visible_first_n=2, control_label_prefix="🏛️ ")
        registry = RegistryBuilder(source).from_service(service(
            *[LayerDescriptor(i, f"L{i}", GeometryType.POLYGON) for i in range(4)]
        ))
        assert [layer.visible_by_default for layer in registry] == [True, True, False, False]
        assert registry.layers[0].control_label == "🏛️ 📍 L0"

    def test_static_layer(self, delta_source, townships_collection):
        fallback = FallbackLayer(layer_id=7, name="Townships", style_key="Townships", visible=True)
        layer = RegistryBuilder(delta_source).static_layer(fallback, DELTA_URL, townships_collection)
        assert layer.id == "delta_fallback_7"
        assert layer.display_name == "📄 Townships (GeoJSON)"
        assert layer.kind == LayerKind.STATIC_GEOJSON
        assert layer.geometry_type == GeometryType.POLYGON
        assert layer.style.color == "#ff7800"
        assert layer.features is townships_collection

    def test_placeholder_per_item(self):
        source = SourceConfig(key="uw", name="UW", item_ids=["a", "b"], placeholder_kind="access_required")
        registry = RegistryBuilder(source).placeholders()
        assert [layer.id for layer in registry] == ["uw_placeholder_a", "uw_placeholder_b"]
        assert all(layer.is_placeholder for layer in registry)
        assert registry.summary() == {"total": 2, "active": 0, "placeholder": 2, "visible": 0}

    def test_source_without_items_has_one_placeholder(self):
        registry = RegistryBuilder(SourceConfig(key="x", name="X")).placeholders()
        assert len(registry) == 1

    def test_repeated_item_ids_give_one_placeholder_each(self):
        source = SourceConfig(key="uw", name="UW", item_ids=["a", "a", "b"])
        registry = RegistryBuilder(source).placeholders()
        assert [layer.id for layer in registry] == ["uw_placeholder_a", "uw_placeholder_b"]

    def test_repeated_layer_id_in_metadata_is_skipped(self, delta_source, viewer_config):
        registry = RegistryBuilder(delta_source, viewer_config).from_service(service(
            LayerDescriptor(3, "A", GeometryType.POLYGON),
            LayerDescriptor(3, "B", GeometryType.POLYGON),
        ))
        assert [layer.name for layer in registry] == ["A"]


class TestLayerRegistry:
    def test_rejects_duplicate_ids(self):
        registry = LayerRegistry("delta")
        registry.add(LayerConfig(id="delta_1", name="a", display_name="a", kind=LayerKind.LIVE, source="delta"))
        with pytest.raises(ValueError):
            registry.add(LayerConfig(id="delta_1", name="b", display_name="b", kind=LayerKind.LIVE, source="delta"))

    def test_describe_lists_layers(self, delta_source):
        registry = RegistryBuilder(delta_source).from_service(
            service(LayerDescriptor(7, "Townships", GeometryType.POLYGON))
        )
        text = registry.describe()
        assert "total layers: 1" in text
        assert "🏘️ Townships" in text
