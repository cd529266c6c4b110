import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from message_queue import PartitionedQueue
from models import AccountActivity


def make_activity(client_id: int, transaction_id: int) -> AccountActivity:
    return AccountActivity.deposit(transaction_id, client_id, Decimal("100"))


class TestPartitionedQueue:
    def test_publish_consume(self):
        queue = PartitionedQueue(1)
        activity = make_activity(1, 1)
        queue.publish_message(activity)
        result = queue.consume_message(0)
        assert result == activity

    def test_consume_empty_returns_none(self):
        queue = PartitionedQueue(2)
        assert queue.consume_message(0) is None
        assert queue.consume_message(1) is None

    def test_routes_by_client_id(self):
        queue = PartitionedQueue(3)
        queue.publish_message(make_activity(4, 1))

        assert queue.partition_for(4) == 1
        assert queue.is_empty(0)
        assert not queue.is_empty(1)
        assert queue.is_empty(2)

    def test_client_order_preserved(self):
        queue = PartitionedQueue(2)
        activities = [make_activity(3, tx) for tx in range(1, 6)]
        for activity in activities:
            queue.publish_message(activity)

        partition = queue.partition_for(3)
        consumed = [queue.consume_message(partition) for _ in activities]
        assert consumed == activities

    def test_is_empty(self):
        queue = PartitionedQueue(1)
        assert queue.is_empty(0)
        queue.publish_message(make_activity(1, 1))
        assert not queue.is_empty(0)
        queue.consume_message(0)
        assert queue.is_empty(0)

    def test_shutdown(self):
        queue = PartitionedQueue(1)
        assert not queue.is_shutdown()
        queue.shutdown()
        assert queue.is_shutdown()

    def test_requires_a_partition(self):
        with pytest.raises(ValueError):
            PartitionedQueue(0)

    def test_num_partitions(self):
        assert PartitionedQueue(4).num_partitions == 4
