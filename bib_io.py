"""Read and write .bib files, using bibtexparser for parsing."""

from __future__ import annotations

import logging
from typing import Iterable, List

from bib_entry import Entry, KeylessEntry


logger = logging.getLogger(__name__)

UNBRACED_NUMERIC_FIELDS = {
    "pages",
    "numpages",
    "volume",
    "issue",
    "isbn",
    "citations",
    "adscites",
    "number",
}
FIELD_COLUMN = 16


def load_bibtexparser(text: str) -> List[Entry]:
    try:
        import bibtexparser
        from bibtexparser.bparser import BibTexParser
    except ImportError as exc:
        raise RuntimeError(
            "bibtexparser is required. Install with: pip install bibtexparser"
        ) from exc

    parser = BibTexParser(common_strings=True)
    parser.ignore_nonstandard_types = False
    parser.homogenize_fields = False

    bib_db = bibtexparser.loads(text, parser=parser)

    entries: List[Entry] = []
    for raw in bib_db.entries:
        tag = (raw.get("ENTRYTYPE") or "").strip()
        key = (raw.get("ID") or "").strip()
        if not key:
            raise KeylessEntry(f"Entry of type {tag or '(none)'} has no key.")
        fields = []
        for name, value in raw.items():
            if name in {"ENTRYTYPE", "ID"} or value is None:
                continue
            fields.append((name, [str(value)]))
        entries.append(Entry(tag=tag, key=key, fields=fields))
    return entries


def parse_bib_file(path: str) -> List[Entry]:
    with open(path, "r", encoding="utf-8") as handle:
        text = handle.read()
    entries = load_bibtexparser(text)
    logger.info("Read %d entries from file %s", len(entries), path)
    return entries


def needs_braces(name: str, value: str) -> bool:
    if name == "year":
        return False
    if value.startswith("{") and value.endswith("}") and "{" not in value[1:]:
        return False
    if name in UNBRACED_NUMERIC_FIELDS and value and value[0] != "0" and value.isdigit():
        return False
    return True


def format_entry(entry: Entry) -> str:
    lines = [f"@{entry.tag}{{{entry.key or ''},"]
    present = [(name, values[0]) for name, values in entry.fields if values]
    for idx, (name, value) in enumerate(present):
        label = f"  {name} =".ljust(FIELD_COLUMN)
        text = f"{{{value}}}" if needs_braces(name, value) else value
        comma = "" if idx + 1 == len(present) else ","
        lines.append(f"{label}{text}{comma}")
    lines.append("}")
    return "\n".join(lines)


def write_bib(path: str, entries: Iterable[Entry]) -> int:
    blocks = [format_entry(entry) for entry in entries]
    content = "\n\n".join(blocks).strip()
    if content:
        content += "\n"
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)
    logger.info("Wrote %d entries to file %s", len(blocks), path)
    return len(blocks)
