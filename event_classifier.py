"""
Classification of raw tracking events into the session-flow taxonomy.

Producers disagree about how deep they nest payload fields, so every lookup
goes through resolve_field() instead of poking at event.data directly.
"""
from urllib.parse import urlparse

import schemas
import utils

NAVIGATION = "navigation"
FORM = "form"
CONVERSION = "conversion"
INTERACTION = "interaction"

CATEGORIES = (NAVIGATION, FORM, CONVERSION, INTERACTION)

SCROLL_BOTTOM = "scroll_bottom"

NAVIGATION_TYPES = {"scroll", "time_on_page", "exit_intent", "page_visibility", "session_end"}
NAVIGATION_NAME_FRAGMENTS = ("scroll", "time_on_page", "exit_intent")
NAVIGATION_NAMES = {"page_visibility", "session_end"}
NAVIGATION_FIELDS = ("scrollDepth", "scrollPercentage", "depth", "percent",
                     "isVisible", "totalTimeSeconds", "timeOnPage")

FORM_TYPES = {"form_submit"}
FORM_INTERACTIONS = {"typing", "focus", "blur", "submit", "filled",
                     "email_collected", "phone_collected"}

CONVERSION_NAMES = {"lead_generated", "lead_acquisition", "purchase", "conversion"}
CONVERSION_NAME_FRAGMENTS = ("lead", "purchase", "conversion")

PAYLOAD_FALLBACKS = ("metadata", "formData", "raw")

DEPTH_FIELDS = ("scrollDepth", "scrollPercentage", "depth", "percent")


def event_attr(event, name, alias=None):
    """Read an attribute from an ORM row, a pydantic model or a plain dict"""
    if isinstance(event, dict):
        if name in event:
            return event[name]
        return event.get(alias) if alias else None
    return getattr(event, name, None)


def resolve_field(event, key, default=None):
    """First defined value of `key` in data, data.metadata, data.formData, data.raw"""
    data = event_attr(event, "data")
    if not isinstance(data, dict):
        return default

    if data.get(key) is not None:
        return data[key]

    for container in PAYLOAD_FALLBACKS:
        nested = data.get(container)
        if isinstance(nested, dict) and nested.get(key) is not None:
            return nested[key]

    return default


def _text(value):
    if value is None:
        return ""
    return str(value).strip().lower()


def _event_type(event):
    return _text(event_attr(event, "type"))


def is_scroll_bottom(event):
    if _event_type(event) != "scroll":
        return False
    scroll_types = resolve_field(event, "scrollTypes")
    if isinstance(scroll_types, str):
        return scroll_types.lower() == "bottom"
    if isinstance(scroll_types, (list, tuple, set)):
        return "bottom" in {_text(s) for s in scroll_types}
    return False


def is_conversion_name(name):
    name = _text(name)
    if not name:
        return False
    if name in CONVERSION_NAMES:
        return True
    return any(fragment in name for fragment in CONVERSION_NAME_FRAGMENTS)


def classify(event):
    """Map a raw event to navigation/form/conversion/interaction. Never raises."""
    event_type = _event_type(event)
    name = _text(resolve_field(event, "name"))

    if event_type in NAVIGATION_TYPES:
        return NAVIGATION

    if event_type == "event" and name:
        if any(fragment in name for fragment in NAVIGATION_NAME_FRAGMENTS) or name in NAVIGATION_NAMES:
            return NAVIGATION

    if any(resolve_field(event, field) is not None for field in NAVIGATION_FIELDS):
        return NAVIGATION

    interaction_type = _text(resolve_field(event, "interactionType"))
    if event_type in FORM_TYPES or interaction_type in FORM_INTERACTIONS:
        return FORM

    if is_conversion_name(name) or event_type.startswith("conversion") or "lead" in interaction_type:
        return CONVERSION

    return INTERACTION


def classify_variant(event, category=None):
    category = category or classify(event)
    if category == NAVIGATION and is_scroll_bottom(event):
        return SCROLL_BOTTOM
    return None


def scroll_depth(event):
    """Scroll depth in percent (0-100) carried by an event, None when it has none"""
    if is_scroll_bottom(event):
        return 100.0
    for field in DEPTH_FIELDS:
        value = resolve_field(event, field)
        if value is None:
            continue
        try:
            depth = float(value)
        except (TypeError, ValueError):
            continue
        if depth != depth:  # NaN
            continue
        return max(0.0, min(100.0, depth))
    return None


def _truncate(text, size=20):
    text = str(text or "")
    if len(text) > size:
        return text[:size] + "..."
    return text


def _url_path(url):
    try:
        path = urlparse(str(url)).path
    except ValueError:
        return str(url)
    return path or "/"


def node_label(event, category):
    """(label, value) pair shown for an event in the session flow"""
    event_type = _event_type(event)

    if event_type in ("page_view", "pageview"):
        url = resolve_field(event, "url")
        title = resolve_field(event, "title") or (_url_path(url) if url else "Unknown page")
        return f"Page View: {title}", url

    if event_type == "click":
        element_text = (resolve_field(event, "elementText") or resolve_field(event, "text")
                        or resolve_field(event, "buttonName") or "")
        tag_name = resolve_field(event, "tagName") or resolve_field(event, "element") or "element"
        return f"Click on {tag_name}: {_truncate(element_text)}".rstrip(": "), element_text or None

    if category == NAVIGATION:
        if event_type == "scroll" or scroll_depth(event) is not None:
            depth = scroll_depth(event)
            depth = 0 if depth is None else depth
            if is_scroll_bottom(event):
                return "Scroll to Bottom", 100
            return f"Scroll {depth:g}%", depth
        if event_type == "time_on_page":
            seconds = (resolve_field(event, "totalTimeSeconds") or resolve_field(event, "timeOnPage")
                       or resolve_field(event, "seconds") or resolve_field(event, "duration") or 0)
            return f"Time on page {seconds}s", seconds
        if event_type == "page_visibility" or resolve_field(event, "isVisible") is not None:
            visible = bool(resolve_field(event, "isVisible", False))
            return f"Page {'visible' if visible else 'hidden'}", visible
        if event_type == "exit_intent":
            return "Exit intent", None
        if event_type == "session_end":
            status = resolve_field(event, "status")
            return "Session end", status
        return f"Navigation: {resolve_field(event, 'name') or event_type}", None

    if category == FORM:
        interaction_type = resolve_field(event, "interactionType") or ("submit" if event_type == "form_submit" else "interaction")
        form_name = resolve_field(event, "formName") or resolve_field(event, "formId") or "form"
        if interaction_type == "email_collected":
            return "Email collected", resolve_field(event, "email") or resolve_field(event, "fieldName")
        if interaction_type == "phone_collected":
            return "Phone collected", resolve_field(event, "phone") or resolve_field(event, "fieldName")
        if interaction_type == "submit":
            return f"Form submit: {form_name}", form_name
        field_name = resolve_field(event, "fieldName")
        return f"Form {interaction_type}: {field_name or form_name}", field_name or form_name

    if category == CONVERSION:
        name = resolve_field(event, "name") or resolve_field(event, "conversionType") or event_type
        value = resolve_field(event, "value")
        if "lead" in _text(name):
            email = resolve_field(event, "email")
            return f"Lead acquisition{': ' + str(email) if email else ''}", value
        return f"Conversion: {name}", value

    name = resolve_field(event, "name")
    if name:
        return str(name), resolve_field(event, "category")
    return event_type or "Unspecified event", None


def classify_event(event):
    """Build the immutable ClassifiedNode for a raw event"""
    category = classify(event)
    label, value = node_label(event, category)
    data = event_attr(event, "data")
    event_id = event_attr(event, "id")
    event_type = event_attr(event, "type")
    session_id = event_attr(event, "session_id", "sessionId")

    return schemas.ClassifiedNode(
        id=str(event_id) if event_id is not None else "",
        session_id=str(session_id) if session_id is not None else None,
        type=str(event_type) if event_type is not None else None,
        timestamp=utils.to_datetime(event_attr(event, "timestamp")),
        category=category,
        variant=classify_variant(event, category),
        label=label,
        value=value if isinstance(value, (str, int, float, bool)) or value is None else str(value),
        data=data if isinstance(data, dict) else None,
    )
