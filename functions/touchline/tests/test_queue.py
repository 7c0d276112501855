import unittest
from unittest.mock import MagicMock

from redis import exceptions as redis_exceptions

from touchline.errors import StorageUnavailableError
from touchline.queue import InMemoryJobQueue, RedisJobQueue


class InMemoryJobQueueTests(unittest.TestCase):
    def test_waiting_user_is_not_queued_twice(self):
        queue = InMemoryJobQueue()
        queue.enqueue("coach")
        queue.enqueue("coach")
        queue.enqueue("assistant")
        self.assertEqual(queue.dequeue(block=False), "coach")
        self.assertEqual(queue.dequeue(block=False), "assistant")
        self.assertIsNone(queue.dequeue(block=False))


class RedisJobQueueTests(unittest.TestCase):
    def setUp(self):
        self.queue = RedisJobQueue("redis://localhost:6379/0")
        self.queue.client = MagicMock()

    def test_enqueue_pushes_user_id(self):
        self.queue.enqueue("coach")
        self.queue.client.rpush.assert_called_once_with(self.queue.queue_key, "coach")

    def test_enqueue_timeout_is_storage_unavailable(self):
        self.queue.client.rpush.side_effect = redis_exceptions.TimeoutError("timed out")
        with self.assertRaises(StorageUnavailableError):
            self.queue.enqueue("coach")

    def test_enqueue_response_error_is_storage_unavailable(self):
        self.queue.client.rpush.side_effect = redis_exceptions.ResponseError("OOM")
        with self.assertRaises(StorageUnavailableError):
            self.queue.enqueue("coach")

    def test_dequeue_decodes_user_id(self):
        self.queue.client.lpop.return_value = b"coach"
        self.assertEqual(self.queue.dequeue(block=False), "coach")


if __name__ == "__main__":
    unittest.main()
