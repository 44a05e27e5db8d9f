"""Layer style and popup resolution.

Pure functions: given a layer's raw service name, geometry type and the
source configuration, decide the display name, the Leaflet style and the
popup template. Templates carry ``{FIELD}`` placeholders that are filled from
feature attributes by :func:`render_template`.
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from markupsafe import escape

from config.schemas import GeometryType, LayerStyle, PopupTemplate, SourceConfig
from config.schemas.style_schema import GeometryDefaults

from gis_core.core.palettes import color_for_index

# Only simple field names are substituted; anything else is left as literal text.
PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
MISSING_VALUE = "N/A"
GENERIC_NAME_MARKER = "📍 "

FALLBACK_STYLE = LayerStyle(color="#3388ff", weight=2, opacity=0.8)
CONNECTION_FAILED_STYLE = LayerStyle(color="#dc3545", weight=2, opacity=0.8, fill_opacity=0.3)
ACCESS_REQUIRED_STYLE = LayerStyle(color="#c5050c", weight=2, opacity=0.8, fill_opacity=0.3)

FALLBACK_POPUP_FIELDS = 5


def render_template(template: str, attributes: Optional[Mapping[str, Any]], html: bool = True) -> str:
    """Substitute ``{FIELD}`` placeholders from ``attributes``.

    Missing fields, None and empty strings render as ``N/A``; a placeholder is
    never left unresolved. Values are HTML-escaped unless ``html`` is False.
    """
    attributes = attributes or {}

    def _value(match: "re.Match[str]") -> str:
        value = attributes.get(match.group(1))
        if value is None or value == "":
            return MISSING_VALUE
        return str(escape(value)) if html else str(value)

    return PLACEHOLDER_RE.sub(_value, template or "")


def render_popup(template: PopupTemplate, attributes: Optional[Mapping[str, Any]]) -> Tuple[str, str]:
    """Return the rendered (title, body) pair for one feature."""
    return render_template(template.title, attributes), render_template(template.body, attributes)


def popup_html(template: PopupTemplate, attributes: Optional[Mapping[str, Any]]) -> str:
    title, body = render_popup(template, attributes)
    if not title:
        return body
    return f'<h3 class="popup-title">{title}</h3>{body}'


def template_fields(template: PopupTemplate) -> list:
    """Field names referenced by a template, in order of appearance."""
    seen = []
    for text in (template.title, template.body):
        for name in PLACEHOLDER_RE.findall(text or ""):
            if name not in seen:
                seen.append(name)
    return seen


def resolve_display_name(name: str, source: SourceConfig) -> str:
    """Known-name lookup first, else ``📍`` + name with underscores as spaces."""
    if name in source.display_names:
        return source.display_names[name]
    named = source.layer_styles.get(name)
    if named is not None and named.display_name:
        return named.display_name
    return f"{GENERIC_NAME_MARKER}{name.replace('_', ' ')}"


def resolve_style(
    name: str,
    geometry_type: GeometryType,
    source: SourceConfig,
    defaults: GeometryDefaults,
    index: int = 0,
    palette: str = "Flat_8",
) -> LayerStyle:
    named = source.layer_styles.get(name)
    if named is not None and named.style is not None:
        return replace(named.style)

    style = defaults.for_geometry(geometry_type)
    if source.color_by_index:
        color = color_for_index(index, palette)
        style.color = color
        if geometry_type == GeometryType.POINT or style.fill_color is not None:
            style.fill_color = color
    return style


def resolve_popup(
    name: str,
    geometry_type: GeometryType,
    source: SourceConfig,
    display_field: Optional[str] = None,
) -> PopupTemplate:
    named = source.layer_styles.get(name)
    if named is not None and named.popup is not None:
        return PopupTemplate(title=named.popup.title, body=named.popup.body)
    return generic_popup(name, geometry_type, display_field)


def generic_popup(name: str, geometry_type: GeometryType, display_field: Optional[str] = None) -> PopupTemplate:
    field = display_field or "OBJECTID"
    safe_name = escape(name)
    return PopupTemplate(
        title=f"{safe_name}: {{{field}}}",
        body=(
            '<div class="popup-content">'
            f"<p><strong>Layer:</strong> {safe_name}</p>"
            "<p><strong>Object ID:</strong> {OBJECTID}</p>"
            f"<p><strong>Geometry:</strong> {geometry_type.value}</p>"
            "</div>"
        ),
    )


def fallback_style(style_key: Optional[str], source: SourceConfig) -> LayerStyle:
    """Style for a GeoJSON fallback layer: the named style it borrows, else plain blue."""
    if style_key:
        named = source.layer_styles.get(style_key)
        if named is not None and named.style is not None:
            return replace(named.style)
    return replace(FALLBACK_STYLE)


def fallback_popup(name: str, property_keys: Iterable[str]) -> PopupTemplate:
    """Popup listing the first few attributes of a statically loaded layer."""
    rows = []
    for key in list(property_keys)[:FALLBACK_POPUP_FIELDS]:
        if not PLACEHOLDER_RE.fullmatch(f"{{{key}}}"):
            continue
        rows.append(f"<p><strong>{escape(key)}:</strong> {{{key}}}</p>")
    return PopupTemplate(
        title=str(escape(name)),
        body=(
            '<div class="popup-content">'
            + "".join(rows)
            + '<p class="popup-note">⚠️ Loaded via GeoJSON fallback</p></div>'
        ),
    )


def placeholder_name(source: SourceConfig, item_id: Optional[str], index: int) -> str:
    if source.placeholder_kind == "access_required":
        return f"🏛️ {source.name} Service {index + 1} (Access Required)"
    return f"⚠️ {source.name} Service (Connection Failed)"


def placeholder_style(source: SourceConfig) -> LayerStyle:
    if source.placeholder_kind == "access_required":
        return replace(ACCESS_REQUIRED_STYLE)
    return replace(CONNECTION_FAILED_STYLE)


def placeholder_popup(source: SourceConfig, item_id: Optional[str], service_url: Optional[str] = None) -> PopupTemplate:
    """Diagnostic notice shown in place of a layer that could not be loaded.

    Contains no field placeholders; the content is fixed when the layer is built.
    """
    name = escape(source.name)
    contact = source.contact
    if source.placeholder_kind == "access_required":
        lines = [
            f"<h4>🏛️ {name} GIS Service</h4>",
            f"<p><strong>Item ID:</strong> {escape(item_id or 'unknown')}</p>",
            "<p><strong>Status:</strong> 🔒 Access Required</p>",
            "<h5>📞 Contact Information:</h5>",
        ]
        if contact.email:
            lines.append(f"<p><strong>Email:</strong> {escape(contact.email)}</p>")
        if contact.department:
            lines.append(f"<p><strong>Department:</strong> {escape(contact.department)}</p>")
        if contact.website:
            lines.append(f'<p><a href="{escape(contact.website)}" target="_blank">GIS Resources</a></p>')
        lines.append(
            "<h5>📋 Next Steps:</h5><ol>"
            f"<li>Contact the {name} GIS team</li>"
            "<li>Request service endpoint URL</li>"
            "<li>Update configuration file</li></ol>"
        )
        title = f"{name} Data Service"
    else:
        lines = [
            "<h4>⚠️ Service Connection Failed</h4>",
            f"<p><strong>Service URL:</strong> {escape(service_url or 'not configured')}</p>",
            "<p><strong>Status:</strong> Unable to connect</p>",
            "<h5>🔧 Troubleshooting:</h5><ul>"
            "<li>Check your internet connection</li>"
            "<li>Verify service URL is correct</li>"
            "<li>Ensure service is publicly accessible</li></ul>",
        ]
        if contact.email:
            lines.append(f"<p>Contact the administrator: {escape(contact.email)}</p>")
        title = f"{name} Service"
    body = '<div class="popup-content placeholder">' + "".join(lines) + "</div>"
    # Literal braces in URLs or names must not be read as placeholders later on.
    return PopupTemplate(title=str(title).replace("{", "&#123;"), body=body.replace("{", "&#123;"))
