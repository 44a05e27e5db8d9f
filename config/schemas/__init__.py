from .source_config import (BaseMapConfig, ContactInfo, FallbackLayer,
                            InteractionConfig, ManualService, MapSettings,
                            SourceConfig, UISettings, ViewerConfig)
from .style_schema import (GeometryDefaults, GeometryType, LayerStyle,
                           NamedLayerStyle, PopupTemplate)

__all__ = [
    "GeometryType",
    "LayerStyle",
    "PopupTemplate",
    "NamedLayerStyle",
    "GeometryDefaults",
    "ContactInfo",
    "ManualService",
    "FallbackLayer",
    "SourceConfig",
    "MapSettings",
    "BaseMapConfig",
    "InteractionConfig",
    "UISettings",
    "ViewerConfig",
]
