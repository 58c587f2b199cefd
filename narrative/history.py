"""
History ledger - append-only log of presented dialogue.

Provides:
- Ordered snapshot access to presented entries
- Speaker filtering and keyword search
- Aggregate statistics (entries per speaker, word counts)
- JSON and plain-text export
- The log of choice decisions made during playback
"""

from __future__ import annotations

import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from narrative.models import (
    ChoiceRecord,
    DialogueEntry,
    ExportFormat,
    HistoryRecord,
    HistoryStats,
)

logger = logging.getLogger(__name__)

SpeakerPredicate = Callable[[Optional[str]], bool]


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def count_words(text: str) -> int:
    """Number of whitespace-separated words in text."""
    return len(text.split())


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class HistoryLedger:
    """
    Append-only record of presented entries.

    Reads always return copies; callers can never mutate the backing
    store.

    Usage:
        ledger = HistoryLedger()
        ledger.record(entry)
        ledger.stats().total_words
        ledger.export("txt")
    """

    def __init__(
        self,
        clock: Callable[[], int] = _epoch_millis,
        narration_label: str = "Narration",
    ):
        self._clock = clock
        self.narration_label = narration_label
        self._records: list[HistoryRecord] = []
        self._decisions: list[ChoiceRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    # Recording

    def record(self, entry: DialogueEntry) -> HistoryRecord:
        """Append an entry as presented now."""
        record = HistoryRecord(entry=entry, presented_at_epoch_millis=self._clock())
        self._records.append(record)
        return record

    def record_choice(
        self,
        scene_id: str,
        entry_index: int,
        choice_index: int,
        label: str,
        speaker: Optional[str] = None,
    ) -> ChoiceRecord:
        """Append a choice decision."""
        decision = ChoiceRecord(
            scene_id=scene_id,
            entry_index=entry_index,
            choice_index=choice_index,
            label=label,
            speaker=speaker,
            decided_at_epoch_millis=self._clock(),
        )
        self._decisions.append(decision)
        return decision

    def clear(self) -> None:
        self._records.clear()
        self._decisions.clear()

    # Queries

    def all(self) -> list[HistoryRecord]:
        """Every record in presentation order (a copy)."""
        return list(self._records)

    def decisions(self) -> list[ChoiceRecord]:
        """Every choice decision in order (a copy)."""
        return list(self._decisions)

    def stats_for(self, predicate: SpeakerPredicate) -> list[HistoryRecord]:
        """Records whose speaker satisfies predicate."""
        return [r for r in self._records if predicate(r.speaker)]

    def for_speaker(self, speaker: Optional[str]) -> list[HistoryRecord]:
        """Records spoken by one speaker (None selects narration)."""
        return self.stats_for(lambda name: name == speaker)

    def search(self, keyword: str) -> list[HistoryRecord]:
        """Records whose text or speaker contains keyword, case-insensitively."""
        needle = keyword.lower()
        return [
            r for r in self._records
            if needle in r.text.lower()
            or (r.speaker and needle in r.speaker.lower())
        ]

    def stats(self) -> HistoryStats:
        """Aggregate statistics over every record."""
        per_speaker: dict[str, int] = {}
        total_words = 0

        for record in self._records:
            if record.speaker:
                per_speaker[record.speaker] = per_speaker.get(record.speaker, 0) + 1
            total_words += count_words(record.text)

        total = len(self._records)
        average = round_half_up(total_words / total) if total else 0

        return HistoryStats(
            total_entries=total,
            per_speaker_counts=per_speaker,
            total_words=total_words,
            average_words_per_entry=average,
        )

    # Export

    def export(self, format: ExportFormat | str = ExportFormat.JSON) -> str:
        """
        Serialize the ledger.

        Args:
            format: "json" or "txt"

        Raises:
            ValueError: for an unknown format
        """
        fmt = ExportFormat.parse(format)
        export_date = datetime.now(timezone.utc).isoformat()

        if fmt is ExportFormat.JSON:
            return self._export_json(export_date)
        return self._export_text(export_date)

    def _export_json(self, export_date: str) -> str:
        data = {
            "exportDate": export_date,
            "totalEntries": len(self._records),
            "history": [r.to_json_dict() for r in self._records],
            "stats": self.stats().to_json_dict(),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _export_text(self, export_date: str) -> str:
        lines = [
            "Dialogue History Export",
            f"Export date: {export_date}",
            f"Total entries: {len(self._records)}",
            "",
            "",
        ]
        text = "\n".join(lines)

        for index, record in enumerate(self._records, start=1):
            speaker = record.speaker or self.narration_label
            text += f"[{index}] {speaker}\n{record.text}\n\n"

        return text
