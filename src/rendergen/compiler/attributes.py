"""HTML attribute knowledge used by the attribute value policy."""

import re
from typing import Dict, FrozenSet

from rendergen.compiler.ir import HTML_NAMESPACE, SVG_NAMESPACE

# attribute -> tags it is boolean on; an empty set means every tag
BOOLEAN_ATTRIBUTES: Dict[str, FrozenSet[str]] = {
    "autofocus": frozenset({"button", "input", "keygen", "select", "textarea"}),
    "autoplay": frozenset({"audio", "video"}),
    "checked": frozenset({"command", "input"}),
    "disabled": frozenset(
        {"button", "command", "fieldset", "input", "keygen", "optgroup", "select", "textarea"}
    ),
    "formnovalidate": frozenset({"button"}),
    "hidden": frozenset(),
    "loop": frozenset({"audio", "bgsound", "marquee", "video"}),
    "multiple": frozenset({"input", "select"}),
    "muted": frozenset({"audio", "video"}),
    "novalidate": frozenset({"form"}),
    "open": frozenset({"details"}),
    "readonly": frozenset({"input", "textarea"}),
    "required": frozenset({"input", "select", "textarea"}),
    "reversed": frozenset({"ol"}),
    "selected": frozenset({"option"}),
}

ID_REFERENCING_ATTRIBUTES = frozenset(
    {
        "aria-activedescendant",
        "aria-controls",
        "aria-describedby",
        "aria-details",
        "aria-errormessage",
        "aria-flowto",
        "aria-labelledby",
        "aria-owns",
        "for",
    }
)

FRAGMENT_URL_TAGS = frozenset({"a", "area"})

_FRAGMENT_ONLY_URL = re.compile(r"^#")


def is_boolean_attribute(name: str, tag: str) -> bool:
    tags = BOOLEAN_ATTRIBUTES.get(name)
    return tags is not None and (not tags or tag in tags)


def is_id_referencing_attribute(name: str) -> bool:
    return name in ID_REFERENCING_ATTRIBUTES


def is_fragment_only_url(url: str) -> bool:
    return len(url) > 1 and _FRAGMENT_ONLY_URL.match(url) is not None


def is_allowed_frag_only_url(tag: str, name: str, namespace: str) -> bool:
    """href on <a>/<area> in the HTML namespace may hold a same-document fragment."""
    return name == "href" and tag in FRAGMENT_URL_TAGS and namespace == HTML_NAMESPACE


def is_svg_use_href(tag: str, name: str, namespace: str) -> bool:
    return tag == "use" and name in ("href", "xlink:href") and namespace == SVG_NAMESPACE
