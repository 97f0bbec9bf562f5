import re

from .errors import InvalidSpecifier

# Optional leading "@scope/", then everything up to the next "@" is the name.
NAME_RE = re.compile(r"^(?P<name>@?[^@]+)(?P<range>@.*)?$")


def strip_version(spec: str) -> str:
    """
    Return the bare package name of a specifier:
        "@scope/pkg@1.2.3" -> "@scope/pkg"
        "pkg@^2.0.0"       -> "pkg"
    Raises InvalidSpecifier when neither form matches.
    """
    m = NAME_RE.match(spec or "")
    if not m:
        raise InvalidSpecifier(f"Invalid package name {spec}")
    return m.group("name")


def split_specifier(spec: str):
    """Split into (name, range); range is None when the specifier is unpinned."""
    name = strip_version(spec)
    rest = spec[len(name):]
    return name, (rest[1:] or None) if rest else None
