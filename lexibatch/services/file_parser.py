"""Parse uploaded localization files into import rows.

Supports delimited text (comma, semicolon, tab or pipe, auto-detected) and XML documents whose
records are ``translation``, ``item`` or ``row`` elements.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

from lxml import etree

from lexibatch.schemas.translation import ImportRow

# Order doubles as the tie-break when two delimiters split the sample equally well.
DELIMITER_CANDIDATES: tuple[str, ...] = (",", ";", "\t", "|")
SAMPLE_LINES = 5
XML_RECORD_TAGS = ("translation", "item", "row")
TEXT_COLUMNS = ("source_text", "translated_text")


class FormatError(ValueError):
    """Raised when an uploaded file cannot be mapped to import rows."""


def detect_delimiter(text: str) -> str:
    """Pick the candidate that maximizes the minimum field count over the first non-blank lines."""
    sample = [line for line in text.splitlines() if line.strip()][:SAMPLE_LINES]
    if not sample:
        return DELIMITER_CANDIDATES[0]

    best = DELIMITER_CANDIDATES[0]
    best_score = 0
    for candidate in DELIMITER_CANDIDATES:
        reader = csv.reader(sample, delimiter=candidate)
        score = min(len(fields) for fields in reader)
        if score > best_score:
            best, best_score = candidate, score
    return best


def parse_delimited(text: str, *, delimiter: str | None = None) -> list[ImportRow]:
    text = text.lstrip("\ufeff")
    delimiter = delimiter or detect_delimiter(text)
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)

    header: list[str] | None = None
    rows: list[ImportRow] = []
    for fields in reader:
        if not any(field.strip() for field in fields):
            continue
        if header is None:
            header = [_normalize_column(field) for field in fields]
            _require_columns(header)
            continue
        record = {
            column: fields[index].strip() if index < len(fields) else ""
            for index, column in enumerate(header)
            if column
        }
        rows.append(_to_row(record))

    if header is None:
        raise FormatError("File is empty; expected a header row with translation_key and source_text.")
    return rows


def _xml_parser() -> etree.XMLParser:
    # Entities stay unexpanded and nothing is fetched over the network.
    return etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)


def parse_xml(text: str) -> list[ImportRow]:
    try:
        root = etree.fromstring(text.lstrip("\ufeff").strip().encode("utf-8"), parser=_xml_parser())
    except etree.XMLSyntaxError as exc:
        raise FormatError(f"Invalid XML: {exc}") from exc

    records = list(root.iter(*XML_RECORD_TAGS))
    if not records:
        raise FormatError(
            "No <translation>, <item> or <row> elements found in XML document."
        )

    rows: list[ImportRow] = []
    seen_columns: set[str] = set()
    for element in records:
        record = {_normalize_column(name): value.strip() for name, value in element.attrib.items()}
        for child in element:
            if not isinstance(child.tag, str):
                continue
            record[_normalize_column(child.tag)] = (child.text or "").strip()
        seen_columns.update(record)
        rows.append(_to_row(record))

    _require_columns(sorted(seen_columns))
    return rows


def parse_upload(content: bytes | str, filename: str | None = None) -> list[ImportRow]:
    """Dispatch on extension (or a leading '<') and return parsed rows."""
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FormatError("File must be UTF-8 encoded.") from exc
    else:
        text = content

    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix == ".xml" or (not suffix and text.lstrip().startswith("<")):
        return parse_xml(text)
    if suffix == ".tsv":
        return parse_delimited(text, delimiter="\t")
    return parse_delimited(text)


def _normalize_column(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


def _require_columns(columns: list[str]) -> None:
    present = [column for column in columns if column]
    if "translation_key" not in present or not any(column in present for column in TEXT_COLUMNS):
        found = ", ".join(present) or "none"
        raise FormatError(
            "Missing required columns: translation_key and source_text (or translated_text). "
            f"Found: {found}."
        )


def _to_row(record: dict[str, str]) -> ImportRow:
    text = record.get("source_text") or record.get("translated_text") or None
    return ImportRow(
        translation_key=record.get("translation_key") or None,
        source_text=text,
        category=record.get("category") or None,
    )
