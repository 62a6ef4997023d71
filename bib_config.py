"""Cleaning options and logging setup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple


DEFAULT_REMOVE_FIELDS = (
    "adsnote",
    "date-added",
    "annote",
    "bdsk-url-1",
    "bdsk-url-2",
    "date-modified",
    "archiveprefix",
    "primaryclass",
    "abstract",
)


@dataclass(frozen=True)
class CleanConfig:
    normalize_tags: bool = True
    lowercase_fields: bool = True
    reformat_journal: bool = True
    remove_extra_whitespace: bool = False
    remove_vol_letters: bool = False
    autoformat_urls: bool = True
    add_empty_titles: bool = True
    remove_author_tildes: bool = True
    # Only honoured when normalize_tags and lowercase_fields are both set
    check_required: bool = False
    natbib_journals: bool = False
    verbose: int = 1
    remove_fields: Tuple[str, ...] = DEFAULT_REMOVE_FIELDS

    @property
    def checks_required(self) -> bool:
        return self.normalize_tags and self.lowercase_fields and self.check_required

    def with_removed_field(self, name: str) -> "CleanConfig":
        if name in self.remove_fields:
            raise ValueError(f"Field {name} already present in remove list.")
        return replace(self, remove_fields=self.remove_fields + (name,))

    def with_kept_field(self, name: str) -> "CleanConfig":
        if name not in self.remove_fields:
            raise ValueError(f"Field {name} not present in remove list.")
        return replace(
            self,
            remove_fields=tuple(item for item in self.remove_fields if item != name),
        )

    def describe(self) -> list[str]:
        return [
            f"normalize_tags: {self.normalize_tags}",
            f"lowercase_fields: {self.lowercase_fields}",
            f"reformat_journal: {self.reformat_journal}",
            f"check_required: {self.check_required}",
            f"remove_extra_whitespace: {self.remove_extra_whitespace}",
            f"remove_vol_letters: {self.remove_vol_letters}",
            f"natbib_journals: {self.natbib_journals}",
            f"autoformat_urls: {self.autoformat_urls}",
            f"add_empty_titles: {self.add_empty_titles}",
            f"remove_author_tildes: {self.remove_author_tildes}",
            f"remove_fields: {', '.join(self.remove_fields)}",
        ]


def verbosity_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def init_logging(config: Optional[CleanConfig] = None) -> logging.Logger:
    verbose = CleanConfig().verbose if config is None else config.verbose
    logging.basicConfig(level=verbosity_level(verbose), format="%(levelname)s: %(message)s")
    return logging.getLogger("btmanip")
