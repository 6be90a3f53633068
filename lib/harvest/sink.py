"""CSV sink and screenshot paths."""

import csv
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol, Sequence, Union, runtime_checkable

from loguru import logger

from lib.harvest.errors import SinkFailure
from lib.harvest.models import CSV_HEADER, HotelRecord, Query


@runtime_checkable
class ISink(Protocol):
    """Persists the records of one query."""
    def write(self, query: Query, records: Sequence[HotelRecord]) -> Path: ...


class CsvSink(ISink):
    """Writes ``<output_dir>/<YYYY-MM-DD>/<City>_hotels_<HH-MM-SS>.csv``."""

    def __init__(
        self,
        output_dir: Union[str, Path] = "data",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.output_dir = Path(output_dir)
        self._clock = clock

    def path_for(self, query: Query) -> Path:
        now = self._clock()
        filename = f"{query.slug}_hotels_{now.strftime('%H-%M-%S')}.csv"
        return self.output_dir / now.strftime("%Y-%m-%d") / filename

    def write(self, query: Query, records: Sequence[HotelRecord]) -> Path:
        path = self.path_for(query)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(CSV_HEADER)
                for record in records:
                    writer.writerow(record.to_row())
        except (OSError, csv.Error) as e:
            raise SinkFailure(f"could not write {path}: {e}", query=query.name) from e

        logger.info(f"[{query.name}] Saved {len(records)} hotels to {path}")
        return path


def screenshot_path(
    root: Union[str, Path],
    query: Query,
    label: str,
    now: datetime,
) -> Path:
    """``<root>/<YYYY-MM-DD>/<HH-MM-SS>/<City>_<label>.png``; creates the directory."""
    directory = Path(root) / now.strftime("%Y-%m-%d") / now.strftime("%H-%M-%S")
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{query.slug}_{label}.png"
