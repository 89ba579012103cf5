from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from lexibatch.schemas.translation import SourceEntry


@dataclass(frozen=True, slots=True)
class EntryMeta:
    category: str | None
    source_text: str


@dataclass(frozen=True, slots=True)
class Batch:
    """Ordered slice of source entries sent to the engine in a single request."""

    number: int
    offset: int
    entries: tuple[SourceEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def lookup(self) -> dict[str, EntryMeta]:
        return {
            entry.translation_key: EntryMeta(category=entry.category, source_text=entry.source_text)
            for entry in self.entries
        }

    @property
    def input_map(self) -> dict[str, str]:
        return {entry.translation_key: entry.source_text for entry in self.entries}


def chunk(
    entries: Sequence[SourceEntry],
    size: int,
    *,
    start_offset: int = 0,
) -> Iterator[Batch]:
    """Yield consecutive batches of at most ``size`` entries, preserving input order.

    ``start_offset`` is the position of ``entries[0]`` within the whole job so that batch numbers
    and offsets stay stable across resumed invocations.
    """
    if size < 1:
        raise ValueError("Batch size must be a positive integer.")

    first_number = start_offset // size + 1
    for index, position in enumerate(range(0, len(entries), size)):
        yield Batch(
            number=first_number + index,
            offset=start_offset + position,
            entries=tuple(entries[position : position + size]),
        )


def batch_count(total: int, size: int) -> int:
    if size < 1:
        raise ValueError("Batch size must be a positive integer.")
    return -(-total // size)
