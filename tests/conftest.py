"""In-memory stand-ins for the google-cloud-pubsub publisher and subscriber clients.

They share one FakeBroker and raise the same google.api_core exceptions as
the real service, so PubSubClient runs unmodified against them.
"""

import itertools
import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from google.api_core import exceptions

from pubsub_wrapper.pubsub import PubSubClient

PROJECT_ID = "test-project"


class FakeBroker:
    def __init__(self):
        self.lock = threading.Lock()
        self.topics = {}  # topic path -> list of subscription paths
        self.subscriptions = {}  # subscription path -> {"topic", "queue", "outstanding"}
        self.failing_payloads = {}  # payload bytes -> exception raised by publish
        self.publish_calls = []
        self._ids = itertools.count(1)

    def next_id(self) -> str:
        return str(next(self._ids))


class FakePublisherClient:
    def __init__(self, broker: FakeBroker):
        self.broker = broker

    @staticmethod
    def topic_path(project, topic):
        return f"projects/{project}/topics/{topic}"

    def create_topic(self, request):
        path = request["name"]
        with self.broker.lock:
            if path in self.broker.topics:
                raise exceptions.AlreadyExists(f"Topic already exists: {path}")
            self.broker.topics[path] = []
        return SimpleNamespace(name=path)

    def get_topic(self, request):
        path = request["topic"]
        if path not in self.broker.topics:
            raise exceptions.NotFound(f"Topic not found: {path}")
        return SimpleNamespace(name=path)

    def delete_topic(self, request):
        path = request["topic"]
        with self.broker.lock:
            if path not in self.broker.topics:
                raise exceptions.NotFound(f"Topic not found: {path}")
            del self.broker.topics[path]

    def list_topics(self, request):
        prefix = request["project"] + "/topics/"
        return [
            SimpleNamespace(name=path)
            for path in list(self.broker.topics)
            if path.startswith(prefix)
        ]

    def publish(self, topic, data, ordering_key="", **attrs):
        self.broker.publish_calls.append((topic, data, attrs))
        future = Future()
        if data in self.broker.failing_payloads:
            future.set_exception(self.broker.failing_payloads[data])
            return future
        with self.broker.lock:
            if topic not in self.broker.topics:
                future.set_exception(exceptions.NotFound(f"Topic not found: {topic}"))
                return future
            message_id = self.broker.next_id()
            message = SimpleNamespace(
                data=data,
                attributes=dict(attrs),
                message_id=message_id,
                publish_time=datetime.now(timezone.utc),
                ordering_key=ordering_key,
            )
            for subscription_path in self.broker.topics[topic]:
                self.broker.subscriptions[subscription_path]["queue"].append(message)
        future.set_result(message_id)
        return future


class FakeSubscriberClient:
    def __init__(self, broker: FakeBroker):
        self.broker = broker

    @staticmethod
    def subscription_path(project, subscription):
        return f"projects/{project}/subscriptions/{subscription}"

    def create_subscription(self, request):
        path, topic = request["name"], request["topic"]
        with self.broker.lock:
            if topic not in self.broker.topics:
                raise exceptions.NotFound(f"Topic not found: {topic}")
            if path in self.broker.subscriptions:
                raise exceptions.AlreadyExists(f"Subscription already exists: {path}")
            self.broker.subscriptions[path] = {
                "topic": topic,
                "queue": [],
                "outstanding": {},
                "options": {
                    k: v for k, v in request.items() if k not in ("name", "topic")
                },
            }
            self.broker.topics[topic].append(path)
        return SimpleNamespace(name=path)

    def delete_subscription(self, request):
        path = request["subscription"]
        with self.broker.lock:
            if path not in self.broker.subscriptions:
                raise exceptions.NotFound(f"Subscription not found: {path}")
            subscription = self.broker.subscriptions.pop(path)
            attached = self.broker.topics.get(subscription["topic"], [])
            if path in attached:
                attached.remove(path)

    def list_subscriptions(self, request):
        prefix = request["project"] + "/subscriptions/"
        return [
            SimpleNamespace(name=path)
            for path in list(self.broker.subscriptions)
            if path.startswith(prefix)
        ]

    def pull(self, request, timeout=None):
        path = request["subscription"]
        with self.broker.lock:
            if path not in self.broker.subscriptions:
                raise exceptions.NotFound(f"Subscription not found: {path}")
            subscription = self.broker.subscriptions[path]
            received = []
            while subscription["queue"] and len(received) < request["max_messages"]:
                message = subscription["queue"].pop(0)
                ack_id = f"ack-{self.broker.next_id()}"
                # Leased until acknowledged
                subscription["outstanding"][ack_id] = message
                received.append(
                    SimpleNamespace(ack_id=ack_id, message=message, delivery_attempt=0)
                )
        return SimpleNamespace(received_messages=received)

    def acknowledge(self, request):
        path = request["subscription"]
        with self.broker.lock:
            if path not in self.broker.subscriptions:
                raise exceptions.NotFound(f"Subscription not found: {path}")
            outstanding = self.broker.subscriptions[path]["outstanding"]
            for ack_id in request["ack_ids"]:
                outstanding.pop(ack_id, None)


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def client(broker):
    return PubSubClient(
        project_id=PROJECT_ID,
        publisher=FakePublisherClient(broker),
        subscriber=FakeSubscriberClient(broker),
    )
