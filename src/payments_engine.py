import logging
import threading
from typing import Dict, Iterable, List, Optional, TextIO

from account import Account
from csv_reader import read_activities
from message_queue import PartitionedQueue
from models import AccountActivity, AccountActivityError, ActivityResult, ClientID, ProcessingReport
from state_manager import StateManager

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Folds a stream of account activities into per-client accounts.
    Every process_* call is an independent run starting from no accounts.

    With num_workers == 1 everything runs on the calling thread. With more
    workers one publisher thread routes activities into a PartitionedQueue
    keyed by client id and one consumer thread drains each partition, so an
    account is only ever mutated by a single thread and per-client order holds.
    """

    def __init__(self, num_workers: int = 1):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._num_workers = num_workers
        self._state = StateManager()
        self.report = ProcessingReport()

    def process_file(self, filepath: str, report: Optional[ProcessingReport] = None) -> Dict[ClientID, Account]:
        """Process CSV file and return final account states."""
        with open(filepath, "r", newline="") as f:
            return self.process_stream(f, report)

    def process_stream(self, stream: TextIO, report: Optional[ProcessingReport] = None) -> Dict[ClientID, Account]:
        """Process CSV text stream and return final account states."""
        return self.process_activities(read_activities(stream), report)

    def process_activities(
        self, activities: Iterable[ActivityResult], report: Optional[ProcessingReport] = None
    ) -> Dict[ClientID, Account]:
        """
        Apply every parsed activity in order and return all accounts seen.

        Items that are exceptions are parse failures: they are logged, reported
        and skipped without touching any account. Rejected activities are
        logged and reported too; nothing here aborts the run.
        """
        self.report = report if report is not None else ProcessingReport()
        self._state = StateManager()

        if self._num_workers == 1:
            logger.info("Starting single-threaded processing")
            for item in activities:
                activity = self._accept(item)
                if activity is not None:
                    self._apply(activity)
        else:
            self._process_partitioned(activities)

        logger.info(
            f"Processed: {self.report.processed}, "
            f"Rejected: {self.report.rejected}, "
            f"Unparseable: {self.report.unparseable}"
        )
        return self._state.get_all_accounts()

    def _process_partitioned(self, activities: Iterable[ActivityResult]) -> None:
        logger.info(f"Starting partitioned processing with {self._num_workers} workers")
        queue = PartitionedQueue(self._num_workers)

        errors: List[Exception] = []

        consumer_threads = []
        for partition in range(self._num_workers):
            consumer_thread = threading.Thread(target=self._consume_activities, args=(queue, partition, errors))
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        publisher_thread = threading.Thread(target=self._publish_activities, args=(queue, activities, errors))
        publisher_thread.start()
        publisher_thread.join()

        for consumer_thread in consumer_threads:
            consumer_thread.join()

        # A failing source (e.g. missing CSV header) or a dead worker must surface on the caller's thread.
        if errors:
            raise errors[0]

        logger.info("Partitioned processing complete")

    def _publish_activities(
        self, queue: PartitionedQueue, activities: Iterable[ActivityResult], errors: List[Exception]
    ) -> None:
        """Route parsed activities to their client's partition."""
        try:
            for item in activities:
                activity = self._accept(item)
                if activity is not None:
                    queue.publish_message(activity)
        except Exception as e:
            errors.append(e)
        finally:
            queue.shutdown()

    def _consume_activities(self, queue: PartitionedQueue, partition: int, errors: List[Exception]) -> None:
        """Consumer loop: drain one partition until the publisher is done."""
        try:
            while True:
                activity = queue.consume_message(partition)
                if activity is None:
                    if queue.is_shutdown() and queue.is_empty(partition):
                        break
                    continue
                self._apply(activity)
        except Exception as e:
            logger.error(f"Worker for partition {partition} stopped: {e}")
            errors.append(e)

    def _accept(self, item: ActivityResult) -> Optional[AccountActivity]:
        if isinstance(item, AccountActivity):
            return item
        logger.error(f"Skipping unparseable record: {item}")
        self.report.record_parse_failure(item)
        return None

    def _apply(self, activity: AccountActivity) -> None:
        account = self._state.get_or_create_account(activity.client_id)
        try:
            account.apply(activity)
        except AccountActivityError as e:
            logger.warning(
                f"Error processing {activity} tx {activity.transaction_id} "
                f"for client {activity.client_id}: {e}"
            )
            self.report.record_rejection(activity, e)
        else:
            self.report.record_success()
