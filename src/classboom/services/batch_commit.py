"""Commit validated student records in fixed-size batches with per-row failure isolation"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Tuple

from src.classboom.schemas.student_import import StudentRecord, CommitError, ImportResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_FAILURE_MESSAGE = "Failed to import student"

CreateEntity = Callable[[StudentRecord], Any]
ProgressCallback = Callable[[int, int], None]


def chunk_records(records: List[StudentRecord], batch_size: int) -> List[List[StudentRecord]]:
    return [records[i:i + batch_size] for i in range(0, len(records), batch_size)]


class BatchCommitExecutor:
    """Submit records to an entity-creation callable in batches.

    Every record gets exactly one create call. A failing call is recorded as a
    CommitError against the record's own source row and never stops the rest of
    the batch or later batches. Within a batch up to ``max_workers`` calls run
    at once; batches themselves run one after another, and the cancel event is
    only honoured between batches.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE, max_workers: int = 1):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.batch_size = batch_size
        self.max_workers = max_workers

    def _commit_one(self, record: StudentRecord, create_entity: CreateEntity) -> Tuple[StudentRecord, Optional[str]]:
        try:
            create_entity(record)
            return record, None
        except Exception as e:
            message = str(e) or DEFAULT_FAILURE_MESSAGE
            logger.exception(f"Row {record.source_row} failed to import: {message}")
            return record, message

    def _run_batch(
        self,
        batch: List[StudentRecord],
        create_entity: CreateEntity,
        pool: Optional[ThreadPoolExecutor],
    ) -> List[Tuple[StudentRecord, Optional[str]]]:
        if pool is None:
            return [self._commit_one(record, create_entity) for record in batch]
        futures = [pool.submit(self._commit_one, record, create_entity) for record in batch]
        return [future.result() for future in futures]

    def _report_progress(self, on_progress: Optional[ProgressCallback], processed: int, total: int) -> None:
        if on_progress is None:
            return
        try:
            on_progress(processed, total)
        except Exception:
            logger.exception("Progress callback failed; continuing import")

    def run(
        self,
        records: List[StudentRecord],
        create_entity: CreateEntity,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ImportResult:
        total = len(records)
        batches = chunk_records(records, self.batch_size)
        successful = 0
        failed = 0
        errors: List[CommitError] = []
        processed = 0
        cancelled = False

        pool = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            for batch_num, batch in enumerate(batches, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.info(f"Import cancelled after {processed}/{total} rows")
                    break

                logger.debug(f"Committing batch {batch_num}/{len(batches)} ({len(batch)} rows)")
                for record, error_message in self._run_batch(batch, create_entity, pool):
                    if error_message is None:
                        successful += 1
                    else:
                        failed += 1
                        errors.append(CommitError(
                            row=record.source_row,
                            message=error_message,
                            data=record.to_data()
                        ))
                processed += len(batch)
                self._report_progress(on_progress, processed, total)
        finally:
            if pool is not None:
                pool.shutdown(wait=True)

        errors.sort(key=lambda e: e.row)
        logger.info(f"Commit finished: {successful} succeeded, {failed} failed of {processed} attempted")

        return ImportResult(
            success=failed == 0 and not cancelled,
            total_rows=processed,
            successful_rows=successful,
            failed_rows=failed,
            errors=errors,
            cancelled=cancelled
        )
