"""Concurrent streaming parser for large CSV files.

A single reader thread reads records sequentially and dispatches them to a
bounded pool of worker threads. Results are handed back through a bounded
queue, so memory stays flat regardless of file size. Result order is not
guaranteed to follow row order.
"""

import csv
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Optional

from ingestkit.config import DEFAULT_BATCH_SIZE
from ingestkit.domain.entities import (
    ColumnMapping,
    ParsedTransaction,
    ParseError,
    StreamResult,
    StreamStats,
)
from ingestkit.domain.errors import RowParseError
from ingestkit.domain.parsing import RowParser, Source, first_data_row, open_source, read_records
from ingestkit.logging_setup import get_logger

logger = get_logger(__name__)

_DONE = object()


class ParseStream:
    """Iterable of StreamResult produced by a running parse.

    ``stats`` is final once iteration has finished. Breaking out of the loop
    early cancels the parse and drains in-flight work.
    """

    def __init__(self, results: queue.Queue, stats: StreamStats, cancel: threading.Event):
        self._results = results
        self._cancel = cancel
        self._finished = False
        self.stats = stats

    def __iter__(self) -> Iterator[StreamResult]:
        try:
            while True:
                item = self._results.get()
                if item is _DONE:
                    self._finished = True
                    return
                yield item
        finally:
            if not self._finished:
                self.close()

    def close(self) -> None:
        """Cancel the parse and wait for the reader thread to wind down."""
        if self._finished:
            return
        self._cancel.set()
        while self._results.get() is not _DONE:
            pass
        self._finished = True


class StreamingParser:
    """Parses CSV rows with a pool of worker threads."""

    def __init__(self, mapping: ColumnMapping, workers: Optional[int] = None):
        """Initialize streaming parser.

        Args:
            mapping: Resolved column mapping (delimiter and skip_lines included)
            workers: Worker thread count, defaults to the CPU count
        """
        self.mapping = mapping
        self.workers = workers if workers and workers > 0 else (os.cpu_count() or 1)

    def parse_stream(self, source: Source, cancel: Optional[threading.Event] = None) -> ParseStream:
        """Start parsing in the background and return the result stream.

        Args:
            source: Raw bytes, text, or an open text stream
            cancel: Optional event; once set, no new rows are dispatched and
                no further results are emitted

        Returns:
            ParseStream yielding one StreamResult per data row
        """
        cancel = cancel if cancel is not None else threading.Event()
        results: queue.Queue = queue.Queue(maxsize=self.workers * 100)
        stats = StreamStats()

        thread = threading.Thread(
            target=self._run,
            args=(source, cancel, results, stats),
            name="ingestkit-csv-reader",
            daemon=True,
        )
        thread.start()
        return ParseStream(results, stats, cancel)

    def _run(
        self,
        source: Source,
        cancel: threading.Event,
        results: queue.Queue,
        stats: StreamStats,
    ) -> None:
        try:
            self._read_and_dispatch(source, cancel, results, stats)
        except Exception:
            logger.exception("streaming parse aborted")
            stats.error_rows += 1
            results.put(StreamResult(row_num=0, error=ParseError(row=0, message="parse aborted")))
        finally:
            results.put(_DONE)

    def _read_and_dispatch(
        self,
        source: Source,
        cancel: threading.Event,
        results: queue.Queue,
        stats: StreamStats,
    ) -> None:
        header, records = read_records(open_source(source), self.mapping)
        if header is None:
            stats.error_rows += 1
            results.put(
                StreamResult(row_num=1, error=ParseError(row=1, message="failed to read header: no data"))
            )
            return

        row_parser = RowParser(self.mapping)
        stats_lock = threading.Lock()
        in_flight = threading.BoundedSemaphore(self.workers * 10)

        def work(record: list[str], row_num: int) -> None:
            try:
                if cancel.is_set():
                    return
                try:
                    txn = row_parser.process_record(record, row_num)
                except RowParseError as e:
                    result = StreamResult(row_num=row_num, error=e.parse_error)
                else:
                    result = StreamResult(row_num=row_num, transaction=txn)

                with stats_lock:
                    if result.error is not None:
                        stats.error_rows += 1
                    elif result.transaction is None:
                        stats.skipped_rows += 1
                    else:
                        stats.parsed_rows += 1

                if not cancel.is_set():
                    results.put(result)
            finally:
                in_flight.release()

        row_num = first_data_row(self.mapping)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="ingestkit-parse") as pool:
            while not cancel.is_set():
                try:
                    record = next(records)
                except StopIteration:
                    break
                except csv.Error as e:
                    with stats_lock:
                        stats.error_rows += 1
                    results.put(StreamResult(row_num=row_num, error=ParseError(row=row_num, message=str(e))))
                    row_num += 1
                    continue

                stats.total_rows += 1
                in_flight.acquire()
                pool.submit(work, record, row_num)
                row_num += 1

        if cancel.is_set():
            logger.debug("streaming parse cancelled after %d rows", stats.total_rows)


class BatchedParse:
    """Iterable of transaction batches; ``errors`` is complete after iteration."""

    def __init__(self, mapping: ColumnMapping, source: Source, batch_size: int, cancel: Optional[threading.Event]):
        self._mapping = mapping
        self._source = source
        self._batch_size = batch_size
        self._cancel = cancel
        self.errors: list[ParseError] = []

    def __iter__(self) -> Iterator[list[ParsedTransaction]]:
        row_parser = RowParser(self._mapping)
        header, records = read_records(open_source(self._source), self._mapping)
        if header is None:
            self.errors.append(ParseError(row=1, message="failed to read header: no data"))
            return

        batch: list[ParsedTransaction] = []
        row_num = first_data_row(self._mapping)
        while self._cancel is None or not self._cancel.is_set():
            try:
                record = next(records)
            except StopIteration:
                break
            except csv.Error as e:
                self.errors.append(ParseError(row=row_num, message=str(e)))
                row_num += 1
                continue

            try:
                txn = row_parser.process_record(record, row_num)
            except RowParseError as e:
                self.errors.append(e.parse_error)
            else:
                if txn is not None:
                    batch.append(txn)

            if len(batch) >= self._batch_size:
                yield batch
                batch = []
            row_num += 1

        if batch:
            yield batch


def parse_batched(
    mapping: ColumnMapping,
    source: Source,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel: Optional[threading.Event] = None,
) -> BatchedParse:
    """Parse sequentially, yielding lists of up to ``batch_size`` transactions.

    Row errors are collected on the returned object's ``errors`` list.
    """
    if batch_size <= 0:
        batch_size = DEFAULT_BATCH_SIZE
    return BatchedParse(mapping, source, batch_size, cancel)
