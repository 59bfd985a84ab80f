"""
Utility functions for the OpenAPI code generator.
"""

import re

# Split text into words, keeping acronyms together ("HTTPError" -> "HTTP", "Error")
_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")

_IDENTIFIER_PATTERN = re.compile(r"[^a-zA-Z0-9]")


def _normalize_separators(text: str) -> str:
    """Normalize separators (underscores, hyphens, dots, slashes) to spaces."""
    return re.sub(r"[_\-./\s]+", " ", text)


def split_words(text: str) -> list[str]:
    """Split text into words, handling camelCase and acronym boundaries."""
    return _WORD_PATTERN.findall(_normalize_separators(text))


def snake_to_pascal_case(text: str) -> str:
    """Convert snake_case, camelCase, or space-separated text to PascalCase.

    Acronyms keep their capitals so that already-Pascal names survive unchanged.

    Examples:
        "first_name" -> "FirstName"
        "actionTemplate" -> "ActionTemplate"
        "HTTPError" -> "HTTPError"
        "first 3 rows" -> "First3Rows"

    Args:
        text: The text to convert

    Returns:
        PascalCase string
    """
    if not text:
        return ""
    return "".join(word[0].upper() + word[1:] for word in split_words(text))


def to_camel_case(text: str) -> str:
    """Convert text to camelCase ("zip_code" -> "zipCode", "ID" -> "id")."""
    words = split_words(text)
    if not words:
        return ""
    rest = [word.capitalize() if word.isupper() else word[0].upper() + word[1:] for word in words[1:]]
    return words[0].lower() + "".join(rest)


def to_snake_case(text: str) -> str:
    """Convert text to snake_case ("getUserById" -> "get_user_by_id")."""
    return "_".join(word.lower() for word in split_words(text))


def capitalize_first(text: str) -> str:
    """Upper-case the first character only, leaving the rest untouched."""
    return text[:1].upper() + text[1:]


def strip_non_alphanumeric(text: str) -> str:
    """Remove every character that is not an ASCII letter or digit."""
    return _IDENTIFIER_PATTERN.sub("", text)


def to_type_name(text: str, fallback: str = "Anonymous") -> str:
    """Derive a type identifier from an arbitrary schema or field name.

    Args:
        text: Raw name taken from the document
        fallback: Name used when nothing usable remains

    Returns:
        A PascalCase identifier that never starts with a digit
    """
    name = snake_to_pascal_case(text)
    if not name:
        return fallback
    if name[0].isdigit():
        name = "T" + name
    return name


def escape_reserved(identifier: str, reserved: set[str] | frozenset[str], suffix: str = "_") -> str:
    """Append a suffix to identifiers that collide with reserved words."""
    if identifier in reserved:
        return identifier + suffix
    return identifier


def unique_name(candidate: str, taken: set[str]) -> str:
    """Return candidate, or candidate suffixed with 2, 3, ... if already taken.

    The chosen name is added to ``taken``.
    """
    name = candidate
    counter = 2
    while name in taken:
        name = f"{candidate}{counter}"
        counter += 1
    taken.add(name)
    return name
