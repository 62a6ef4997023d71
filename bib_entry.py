"""BibTeX entry records with case-insensitive field access."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


Field = Tuple[str, List[str]]

CANONICAL_TAGS = {
    "Article",
    "Book",
    "Booklet",
    "Conference",
    "InBook",
    "InCollection",
    "InProceedings",
    "Manual",
    "MastersThesis",
    "Misc",
    "PhDThesis",
    "Proceedings",
    "TechReport",
    "Unpublished",
}
MULTI_CAPITAL_TAGS = {
    "Inbook": "InBook",
    "Incollection": "InCollection",
    "Inproceedings": "InProceedings",
    "Mastersthesis": "MastersThesis",
    "Phdthesis": "PhDThesis",
    "Techreport": "TechReport",
}
IMPORTANT_FIELDS = (
    "title",
    "doi",
    "year",
    "volume",
    "pages",
    "author",
    "journal",
    "month",
)


class BibError(Exception):
    """Base class for every error raised by btmanip."""


class FieldNotFound(BibError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class MultipleValues(BibError):
    pass


class EmptyValue(BibError):
    pass


class MalformedField(BibError):
    pass


class KeylessEntry(BibError):
    pass


class KeyNotFound(BibError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class DuplicateKey(BibError):
    pass


class AmbiguousKeys(BibError):
    pass


class MissingRequiredField(BibError):
    pass


class JournalListError(BibError):
    pass


class InvalidCriteria(BibError, ValueError):
    pass


def describe_key(key: Optional[str]) -> str:
    return f"key {key}" if key else "no key"


def normalize_tag(tag: str) -> str:
    """Capitalize the first letter, lowercase the rest, then restore the
    tags which conventionally carry more than one capital."""
    if not tag:
        return tag
    recased = tag[:1].upper() + tag[1:].lower()
    return MULTI_CAPITAL_TAGS.get(recased, recased)


def thin_whitespace(text: str) -> str:
    """Separate each word by exactly one space.

    A value made only of whitespace collapses to a single space rather than
    to the empty string, so the placeholder title survives repeated passes.
    """
    thinned = " ".join(text.split())
    if not thinned and text:
        return " "
    return thinned


def first_page(pages: str) -> str:
    return pages.split("-", 1)[0]


@dataclass
class Entry:
    tag: str
    key: Optional[str]
    fields: List[Field] = field(default_factory=list)

    @classmethod
    def from_pairs(
        cls, tag: str, key: Optional[str], pairs: List[Tuple[str, str]]
    ) -> "Entry":
        return cls(tag=tag, key=key, fields=[(name, [value]) for name, value in pairs])

    def copy(self) -> "Entry":
        return copy.deepcopy(self)

    def _matches(self, name: str, wanted: str) -> bool:
        return name.lower() == wanted.lower()

    def get_field(self, name: str) -> str:
        for field_name, values in self.fields:
            if not self._matches(field_name, name):
                continue
            if len(values) > 1:
                raise MultipleValues(
                    f"Field {field_name} has more than one value in entry with "
                    f"{describe_key(self.key)}."
                )
            if not values:
                raise EmptyValue(
                    f"Field {field_name} found but has no value in entry with "
                    f"{describe_key(self.key)}."
                )
            return values[0]
        raise FieldNotFound(
            f"Field {name} not found in entry with {describe_key(self.key)}."
        )

    def is_field_present(self, name: str) -> bool:
        return any(
            self._matches(field_name, name) and values
            for field_name, values in self.fields
        )

    def is_field_present_either(self, first: str, second: str) -> bool:
        return self.is_field_present(first) or self.is_field_present(second)

    def count_field_occurrences(self, name: str) -> int:
        return sum(
            1
            for field_name, values in self.fields
            if self._matches(field_name, name) and values
        )

    def set_field_value(self, name: str, value: str) -> None:
        """Set ``name`` to ``value``.

        The existence check compares stored names exactly, so setting
        ``Author`` on an entry holding ``author`` appends a second field.
        """
        found = False
        for field_name, values in self.fields:
            if field_name == name:
                if values:
                    values[0] = value
                else:
                    values.append(value)
                found = True
        if not found:
            self.fields.append((name, [value]))

    def get_field_all(self, name: str) -> List[str]:
        return [
            values[0]
            for field_name, values in self.fields
            if self._matches(field_name, name) and len(values) == 1
        ]

    def field_names(self) -> List[str]:
        return [field_name for field_name, values in self.fields if values]


def repeated_important_fields(entry: Entry) -> List[str]:
    return [name for name in IMPORTANT_FIELDS if entry.count_field_occurrences(name) > 1]
