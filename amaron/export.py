"""
CSV output for extracted battery records.

Rows are written one at a time and flushed immediately, so the file is a complete CSV after
every append even when the run is interrupted.
"""
import csv
import io
import logging
import re
from pathlib import Path

from amaron.config import MAX_FIELD_LENGTH, MAX_RETRIES, RETRY_DELAY_SEC
from amaron.models import CSV_HEADERS, RECORD_FIELDS
from amaron.retry import retry_async

logger = logging.getLogger("amaron.export")

_WHITESPACE = re.compile(r"\s+")


class SinkError(RuntimeError):
    """Output file could not be created or a row could not be written."""


def sanitize_value(value, max_length: int = MAX_FIELD_LENGTH) -> str:
    if value is None:
        return ""
    text = _WHITESPACE.sub(" ", str(value)).strip()
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _is_io_error(exc: BaseException) -> bool:
    return isinstance(exc, OSError)


class CsvSink:
    def __init__(
        self,
        path: Path,
        headers: list[str] = CSV_HEADERS,
        fields: list[str] = RECORD_FIELDS,
        max_field_length: int = MAX_FIELD_LENGTH,
        write_attempts: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SEC,
    ):
        if len(headers) != len(fields):
            raise ValueError("headers and fields must have the same length")
        if len(set(headers)) != len(headers):
            raise ValueError("duplicate CSV headers")
        self.path = Path(path)
        self.headers = list(headers)
        self.fields = list(fields)
        self.max_field_length = max_field_length
        self.write_attempts = write_attempts
        self.retry_delay = retry_delay
        self.rows = 0
        self._file = None

    def initialize(self) -> None:
        """Create the output directory, truncate the file and write the header row."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", newline="", encoding="utf-8")
            self._file.write(self._format_row(self.headers))
            self._file.flush()
        except OSError as e:
            self._file = None
            raise SinkError(f"Cannot initialize CSV output {self.path}: {e}") from e
        self.rows = 0
        logger.info("CSV output initialized: %s", self.path)

    def _format_row(self, values) -> str:
        buf = io.StringIO()
        csv.writer(buf).writerow(values)
        return buf.getvalue()

    def format_record(self, record: dict) -> list[str]:
        return [sanitize_value(record.get(name), self.max_field_length) for name in self.fields]

    async def append(self, record: dict) -> None:
        """Write one row and flush. Raises SinkError when the row could not be written."""
        if self._file is None:
            raise SinkError("CSV output is not initialized")
        line = self._format_row(self.format_record(record))

        # Only the flush is retried; the line is already buffered after the first write.
        async def _flush():
            self._file.flush()

        try:
            self._file.write(line)
            await retry_async(
                _flush,
                attempts=self.write_attempts,
                base_delay=self.retry_delay,
                retry_if=_is_io_error,
                operation="CSV flush",
            )
        except (OSError, ValueError) as e:
            raise SinkError(f"Failed to write row to {self.path}: {e}") from e
        self.rows += 1

    def finalize(self) -> dict:
        """Close the file and report {"path", "rows", "bytes"}."""
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None
        size = self.path.stat().st_size if self.path.exists() else 0
        logger.info("CSV output finalized: %d rows, %.2f KB in %s", self.rows, size / 1024, self.path)
        return {"path": str(self.path), "rows": self.rows, "bytes": size}
