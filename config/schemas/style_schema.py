from typing import Dict, Any, Optional
from dataclasses import dataclass, field, replace
from enum import Enum


class GeometryType(str, Enum):
    POINT = "Point"
    POLYLINE = "Polyline"
    POLYGON = "Polygon"
    UNKNOWN = "Unknown"

    @classmethod
    def from_service(cls, value: Optional[str]) -> "GeometryType":
        """Map a feature-service geometry string (e.g. ``esriGeometryPolygon``)."""
        mapping = {
            "esriGeometryPoint": cls.POINT,
            "esriGeometryMultipoint": cls.POINT,
            "esriGeometryPolyline": cls.POLYLINE,
            "esriGeometryPolygon": cls.POLYGON,
        }
        if value in mapping:
            return mapping[value]
        for member in cls:
            if value == member.value:
                return member
        return cls.UNKNOWN


# Leaflet path option names, keyed by dataclass attribute
_LEAFLET_KEYS = {
    "color": "color",
    "weight": "weight",
    "opacity": "opacity",
    "fill_color": "fillColor",
    "fill_opacity": "fillOpacity",
    "radius": "radius",
}


@dataclass
class LayerStyle:
    color: Optional[str] = None
    weight: Optional[float] = None
    opacity: Optional[float] = None
    fill_color: Optional[str] = None
    fill_opacity: Optional[float] = None
    radius: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LayerStyle':
        """Create a LayerStyle from either snake_case or Leaflet-style keys."""
        kwargs = {}
        for attr, leaflet_key in _LEAFLET_KEYS.items():
            if attr in data:
                kwargs[attr] = data[attr]
            elif leaflet_key in data:
                kwargs[attr] = data[leaflet_key]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Return the Leaflet path options, omitting unset attributes."""
        return {
            leaflet_key: getattr(self, attr)
            for attr, leaflet_key in _LEAFLET_KEYS.items()
            if getattr(self, attr) is not None
        }

    def emphasized(self) -> 'LayerStyle':
        """Hover emphasis: one step heavier, fully opaque, slightly denser fill."""
        return replace(
            self,
            weight=(self.weight or 1) + 1,
            opacity=1,
            fill_opacity=round((self.fill_opacity or 0.2) + 0.1, 3),
        )


@dataclass
class PopupTemplate:
    title: str = ""
    body: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PopupTemplate':
        return cls(
            title=data.get('title', ''),
            body=data.get('body', data.get('content', '')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'title': self.title, 'body': self.body}


@dataclass
class NamedLayerStyle:
    """Per-layer overrides keyed by the layer's raw service name."""
    display_name: Optional[str] = None
    style: Optional[LayerStyle] = None
    popup: Optional[PopupTemplate] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NamedLayerStyle':
        return cls(
            display_name=data.get('display_name'),
            style=LayerStyle.from_dict(data['style']) if data.get('style') else None,
            popup=PopupTemplate.from_dict(data['popup']) if data.get('popup') else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.display_name is not None:
            result['display_name'] = self.display_name
        if self.style is not None:
            result['style'] = self.style.to_dict()
        if self.popup is not None:
            result['popup'] = self.popup.to_dict()
        return result


@dataclass
class GeometryDefaults:
    point: LayerStyle = field(default_factory=lambda: LayerStyle(
        radius=6, fill_color="#ff7800", color="#000", weight=1, opacity=1, fill_opacity=0.8))
    polyline: LayerStyle = field(default_factory=lambda: LayerStyle(
        color="#3388ff", weight=3, opacity=0.8))
    polygon: LayerStyle = field(default_factory=lambda: LayerStyle(
        fill_color="#fe57a1", weight=2, opacity=1, color="white", fill_opacity=0.3))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GeometryDefaults':
        defaults = cls()
        for key in ('point', 'polyline', 'polygon'):
            if data.get(key):
                setattr(defaults, key, LayerStyle.from_dict(data[key]))
        return defaults

    def to_dict(self) -> Dict[str, Any]:
        return {
            'point': self.point.to_dict(),
            'polyline': self.polyline.to_dict(),
            'polygon': self.polygon.to_dict(),
        }

    def for_geometry(self, geometry_type: GeometryType) -> LayerStyle:
        if geometry_type == GeometryType.POINT:
            return replace(self.point)
        if geometry_type == GeometryType.POLYGON:
            return replace(self.polygon)
        # Polyline and anything unrecognized
        return replace(self.polyline)
