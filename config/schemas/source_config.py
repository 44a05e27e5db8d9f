from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .style_schema import GeometryDefaults, LayerStyle, NamedLayerStyle


@dataclass
class ContactInfo:
    """Who to ask for service access when a source cannot be reached."""

    email: str = ""
    department: str = ""
    website: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContactInfo":
        return cls(
            email=data.get("email", ""),
            department=data.get("department", ""),
            website=data.get("website", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"email": self.email, "department": self.department, "website": self.website}


@dataclass
class ManualService:
    """A service endpoint entered by hand once an administrator provides it.

    Attributes:
        item_id: Portal item the service belongs to.
        name: Human readable label.
        service_url: FeatureServer URL, None until known.
        enabled: Only enabled entries with a URL are probed.
    """

    item_id: str
    name: str = ""
    service_url: Optional[str] = None
    enabled: bool = False
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualService":
        return cls(
            item_id=data["item_id"],
            name=data.get("name", ""),
            service_url=data.get("service_url"),
            enabled=data.get("enabled", False),
            description=data.get("description", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "service_url": self.service_url,
            "enabled": self.enabled,
            "description": self.description,
        }


@dataclass
class FallbackLayer:
    """One layer fetched as a static GeoJSON collection when live loading fails.

    Attributes:
        layer_id: Numeric layer id on the fallback service.
        name: Display name ("Townships").
        style_key: Raw service name whose named style this layer borrows.
        visible: Default visibility of the fallback layer.
    """

    layer_id: int
    name: str
    style_key: Optional[str] = None
    visible: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FallbackLayer":
        return cls(
            layer_id=int(data["layer_id"]),
            name=data["name"],
            style_key=data.get("style_key"),
            visible=data.get("visible", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer_id": self.layer_id,
            "name": self.name,
            "style_key": self.style_key,
            "visible": self.visible,
        }


@dataclass
class SourceConfig:
    """Everything needed to discover one feature service and fall back from it.

    Attributes:
        key: Short identifier, used as the prefix of every layer id.
        name: Human readable source name used in logs and notices.
        service_urls: Candidate FeatureServer URLs tried first, in order.
        servers: Base REST directories combined with ``service_names``.
        service_names: Service names tried under every server.
        item_ids: Portal items behind this source; one placeholder each.
        portal_url: Portal root used to resolve item ids to service URLs.
        item_url_patterns: Candidate URL patterns containing ``{item_id}``.
        manual_services: Hand-entered endpoints.
        fallback_service_url: Service used for the GeoJSON fallback.
        fallback_layers: Layers fetched during the GeoJSON fallback.
        default_visible: Raw layer names shown when first materialized.
        visible_first_n: Show the first N discovered layers instead.
        display_names: Known raw name to display name lookup.
        layer_styles: Named style/popup overrides by raw layer name.
        color_by_index: Colour un-styled layers from the palette by position.
        control_label_prefix: Prefix added to layer-control labels.
        placeholder_kind: ``connection_failed`` or ``access_required``.
        contact: Administrator contact shown on placeholders.
    """

    key: str
    name: str
    service_urls: List[str] = field(default_factory=list)
    servers: List[str] = field(default_factory=list)
    service_names: List[str] = field(default_factory=list)
    item_ids: List[str] = field(default_factory=list)
    portal_url: Optional[str] = None
    item_url_patterns: List[str] = field(default_factory=list)
    manual_services: List[ManualService] = field(default_factory=list)
    fallback_service_url: Optional[str] = None
    fallback_layers: List[FallbackLayer] = field(default_factory=list)
    default_visible: List[str] = field(default_factory=list)
    visible_first_n: Optional[int] = None
    display_names: Dict[str, str] = field(default_factory=dict)
    layer_styles: Dict[str, NamedLayerStyle] = field(default_factory=dict)
    color_by_index: bool = False
    control_label_prefix: str = ""
    placeholder_kind: str = "connection_failed"
    contact: ContactInfo = field(default_factory=ContactInfo)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConfig":
        return cls(
            key=data["key"],
            name=data.get("name", data["key"]),
            service_urls=list(data.get("service_urls", [])),
            servers=list(data.get("servers", [])),
            service_names=list(data.get("service_names", [])),
            item_ids=list(data.get("item_ids", [])),
            portal_url=data.get("portal_url"),
            item_url_patterns=list(data.get("item_url_patterns", [])),
            manual_services=[ManualService.from_dict(m) for m in data.get("manual_services", [])],
            fallback_service_url=data.get("fallback_service_url"),
            fallback_layers=[FallbackLayer.from_dict(f) for f in data.get("fallback_layers", [])],
            default_visible=list(data.get("default_visible", [])),
            visible_first_n=data.get("visible_first_n"),
            display_names=dict(data.get("display_names", {})),
            layer_styles={
                name: NamedLayerStyle.from_dict(entry)
                for name, entry in data.get("layer_styles", {}).items()
            },
            color_by_index=data.get("color_by_index", False),
            control_label_prefix=data.get("control_label_prefix", ""),
            placeholder_kind=data.get("placeholder_kind", "connection_failed"),
            contact=ContactInfo.from_dict(data.get("contact", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "service_urls": self.service_urls,
            "servers": self.servers,
            "service_names": self.service_names,
            "item_ids": self.item_ids,
            "portal_url": self.portal_url,
            "item_url_patterns": self.item_url_patterns,
            "manual_services": [m.to_dict() for m in self.manual_services],
            "fallback_service_url": self.fallback_service_url,
            "fallback_layers": [f.to_dict() for f in self.fallback_layers],
            "default_visible": self.default_visible,
            "visible_first_n": self.visible_first_n,
            "display_names": self.display_names,
            "layer_styles": {k: v.to_dict() for k, v in self.layer_styles.items()},
            "color_by_index": self.color_by_index,
            "control_label_prefix": self.control_label_prefix,
            "placeholder_kind": self.placeholder_kind,
            "contact": self.contact.to_dict(),
        }

    @property
    def geojson_service_url(self) -> Optional[str]:
        if self.fallback_service_url:
            return self.fallback_service_url
        return self.service_urls[0] if self.service_urls else None


@dataclass
class MapSettings:
    center: Tuple[float, float] = (45.87, -87.0)
    zoom: int = 9
    min_zoom: int = 8
    max_zoom: int = 18

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MapSettings":
        center = data.get("center", (45.87, -87.0))
        return cls(
            center=(float(center[0]), float(center[1])),
            zoom=data.get("zoom", 9),
            min_zoom=data.get("min_zoom", 8),
            max_zoom=data.get("max_zoom", 18),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": list(self.center),
            "zoom": self.zoom,
            "min_zoom": self.min_zoom,
            "max_zoom": self.max_zoom,
        }


@dataclass
class BaseMapConfig:
    """A basemap; either a named folium tileset or an explicit tile URL."""

    name: str
    tiles: str
    attribution: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseMapConfig":
        return cls(name=data["name"], tiles=data["tiles"], attribution=data.get("attribution"))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "tiles": self.tiles, "attribution": self.attribution}


@dataclass
class InteractionConfig:
    enable_popups: bool = True
    enable_selection: bool = True
    highlight_on_hover: bool = True
    selected_style: LayerStyle = field(
        default_factory=lambda: LayerStyle(color="#00FFFB", weight=3, fill_opacity=0.5)
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InteractionConfig":
        result = cls(
            enable_popups=data.get("enable_popups", True),
            enable_selection=data.get("enable_selection", True),
            highlight_on_hover=data.get("highlight_on_hover", True),
        )
        if data.get("selected_style"):
            result.selected_style = LayerStyle.from_dict(data["selected_style"])
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enable_popups": self.enable_popups,
            "enable_selection": self.enable_selection,
            "highlight_on_hover": self.highlight_on_hover,
            "selected_style": self.selected_style.to_dict(),
        }


@dataclass
class UISettings:
    show_loading_spinner: bool = True
    show_layer_control: bool = True
    show_legend: bool = True
    show_township_selector: bool = True
    show_info_panel: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UISettings":
        defaults = cls()
        return cls(**{k: data.get(k, getattr(defaults, k)) for k in defaults.__dict__})

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class ViewerConfig:
    """Top level viewer configuration (``viewer.json``)."""

    map: MapSettings = field(default_factory=MapSettings)
    base_maps: List[BaseMapConfig] = field(default_factory=list)
    sources: List[SourceConfig] = field(default_factory=list)
    townships: List[str] = field(default_factory=lambda: ["Choose a Township"])
    region_keyword: str = "township"
    region_name_fields: List[str] = field(
        default_factory=lambda: ["NAME", "TOWNSHIP", "TWP_NAME", "Name", "name"]
    )
    duplicate_markers: List[str] = field(default_factory=lambda: ["address points"])
    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    ui: UISettings = field(default_factory=UISettings)
    geometry_defaults: GeometryDefaults = field(default_factory=GeometryDefaults)
    palette: str = "Flat_8"
    capability_wait_seconds: float = 2.0
    http_timeout: float = 10.0

    @property
    def township_sentinel(self) -> str:
        return self.townships[0] if self.townships else "Choose a Township"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewerConfig":
        defaults = cls()
        return cls(
            map=MapSettings.from_dict(data.get("map", {})),
            base_maps=[BaseMapConfig.from_dict(b) for b in data.get("base_maps", [])],
            sources=[SourceConfig.from_dict(s) for s in data.get("sources", [])],
            townships=list(data.get("townships", defaults.townships)),
            region_keyword=data.get("region_keyword", defaults.region_keyword),
            region_name_fields=list(data.get("region_name_fields", defaults.region_name_fields)),
            duplicate_markers=list(data.get("duplicate_markers", defaults.duplicate_markers)),
            interaction=InteractionConfig.from_dict(data.get("interaction", {})),
            ui=UISettings.from_dict(data.get("ui", {})),
            geometry_defaults=GeometryDefaults.from_dict(data.get("geometry_defaults", {})),
            palette=data.get("palette", defaults.palette),
            capability_wait_seconds=float(
                data.get("capability_wait_seconds", defaults.capability_wait_seconds)
            ),
            http_timeout=float(data.get("http_timeout", defaults.http_timeout)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "map": self.map.to_dict(),
            "base_maps": [b.to_dict() for b in self.base_maps],
            "sources": [s.to_dict() for s in self.sources],
            "townships": self.townships,
            "region_keyword": self.region_keyword,
            "region_name_fields": self.region_name_fields,
            "duplicate_markers": self.duplicate_markers,
            "interaction": self.interaction.to_dict(),
            "ui": self.ui.to_dict(),
            "geometry_defaults": self.geometry_defaults.to_dict(),
            "palette": self.palette,
            "capability_wait_seconds": self.capability_wait_seconds,
            "http_timeout": self.http_timeout,
        }
