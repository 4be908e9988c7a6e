"""
Google Cloud Pub/Sub client wrapper.

Every operation returns a Result (Success/Failure) instead of raising.
Supports both Pub/Sub (production) and the Pub/Sub emulator (when
PUBSUB_EMULATOR_HOST is set, the client library connects to it).
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from google.api_core import exceptions
from google.cloud import pubsub_v1

from pubsub_wrapper.config import Config
from pubsub_wrapper.logging import log_debug, log_info, log_warning
from pubsub_wrapper.models import Envelope, JsonMessage, PubSubMessage
from pubsub_wrapper.result import Result, failable, first_failure, is_failure, success

MessageInput = Union[PubSubMessage, Mapping[str, Any], bytes, str]

_has_warned_credentials = False


def _warn_missing_credentials() -> None:
    # Auth may also come from application defaults or GCP scopes, so warn once instead of failing
    global _has_warned_credentials

    if Config.GOOGLE_APPLICATION_CREDENTIALS or Config.PUBSUB_EMULATOR_HOST:
        return
    if not _has_warned_credentials:
        log_warning(
            "GOOGLE_APPLICATION_CREDENTIALS is not set; relying on application "
            "default credentials or GCP scopes"
        )
        _has_warned_credentials = True


def _coerce_message(message: MessageInput) -> PubSubMessage:
    if isinstance(message, PubSubMessage):
        return message
    if isinstance(message, (bytes, str)):
        return PubSubMessage(data=message)
    if isinstance(message, Mapping):
        return PubSubMessage(**message)
    raise TypeError(
        f"Unsupported message type {type(message).__name__}; "
        "expected PubSubMessage, mapping, bytes or str"
    )


def _coerce_json_message(message: Union[JsonMessage, Mapping[str, Any]]) -> JsonMessage:
    if isinstance(message, JsonMessage):
        return message
    return JsonMessage(**message)


class PubSubClient:
    """
    Pub/Sub context: project id, publisher and subscriber clients, and the
    name -> path lookup tables for topics and subscriptions created through it.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        publisher: Optional[pubsub_v1.PublisherClient] = None,
        subscriber: Optional[pubsub_v1.SubscriberClient] = None,
    ):
        """
        Initialize the Pub/Sub client.

        Args:
            project_id: GCP project ID. If None, uses Config.GCP_PROJECT_ID,
                       then GOOGLE_CLOUD_PROJECT / GCP_PROJECT.
            publisher: Publisher client to use instead of creating one.
            subscriber: Subscriber client to use instead of creating one.

        Raises:
            ValueError: If no project id can be resolved.
        """
        self._project_id = project_id or Config.get_project_id()
        if not self._project_id:
            raise ValueError(
                "GCP_PROJECT_ID must be set in environment or passed to PubSubClient"
            )

        if publisher is None or subscriber is None:
            _warn_missing_credentials()

        self._publisher = publisher or pubsub_v1.PublisherClient()
        self._subscriber = subscriber or pubsub_v1.SubscriberClient()

        self._topics: Dict[str, str] = {}
        self._subscriptions: Dict[str, str] = {}
        # Topics already confirmed by ensure_topic
        self._verified_topics: set = set()

        if Config.PUBSUB_EMULATOR_HOST:
            log_info(
                f"Initialized PubSubClient for project {self._project_id} "
                f"(emulator mode: {Config.PUBSUB_EMULATOR_HOST})"
            )
        else:
            log_info(f"Initialized PubSubClient for project {self._project_id}")

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def publisher(self) -> pubsub_v1.PublisherClient:
        return self._publisher

    @property
    def subscriber(self) -> pubsub_v1.SubscriberClient:
        return self._subscriber

    @property
    def project_path(self) -> str:
        return f"projects/{self._project_id}"

    def topic_path(self, topic_name: str) -> str:
        """Registered path for a topic, or the conventional path for unknown names."""
        if topic_name in self._topics:
            return self._topics[topic_name]
        return self._publisher.topic_path(self._project_id, topic_name)

    def subscription_path(self, subscription_name: str) -> str:
        """Registered path for a subscription, or the conventional path for unknown names."""
        if subscription_name in self._subscriptions:
            return self._subscriptions[subscription_name]
        return self._subscriber.subscription_path(self._project_id, subscription_name)

    # Topics

    @failable
    async def create_topic(self, topic_name: str) -> str:
        """
        Create a topic. Fails if the topic already exists (see ensure_topic).

        Returns:
            Success(topic_name)
        """
        if not topic_name:
            raise ValueError("topic_name required")
        topic = await asyncio.to_thread(
            self._publisher.create_topic,
            request={"name": self._publisher.topic_path(self._project_id, topic_name)},
        )
        self._topics[topic_name] = topic.name
        log_info("Created topic", topic=topic_name)
        return topic_name

    @failable
    async def ensure_topic(self, topic_name: str) -> str:
        """
        Ensure a topic exists, creating it if necessary.
        Verified topics are cached to avoid repeated existence checks.

        Returns:
            Success(topic path)
        """
        if not topic_name:
            raise ValueError("topic_name required")
        topic_path = self.topic_path(topic_name)
        if topic_name in self._verified_topics:
            return topic_path

        try:
            await asyncio.to_thread(
                self._publisher.get_topic, request={"topic": topic_path}
            )
            log_debug("Topic already exists", topic=topic_name)
        except exceptions.NotFound:
            try:
                await asyncio.to_thread(
                    self._publisher.create_topic, request={"name": topic_path}
                )
                log_info("Created topic", topic=topic_name)
            except exceptions.AlreadyExists:
                # Created concurrently between the check and the create
                log_debug("Topic created concurrently", topic=topic_name)

        self._topics[topic_name] = topic_path
        self._verified_topics.add(topic_name)
        return topic_path

    @failable
    async def delete_topic(self, topic_name: str) -> str:
        """Delete a topic. Returns Success(topic_name)."""
        topic_path = self.topic_path(topic_name)
        await asyncio.to_thread(
            self._publisher.delete_topic, request={"topic": topic_path}
        )
        self._topics.pop(topic_name, None)
        self._verified_topics.discard(topic_name)
        log_info("Deleted topic", topic=topic_name)
        return topic_name

    @failable
    async def list_topics(self) -> List[str]:
        """List the paths of all topics in the project."""

        def _list() -> List[str]:
            pager = self._publisher.list_topics(request={"project": self.project_path})
            return [topic.name for topic in pager]

        return await asyncio.to_thread(_list)

    @failable
    async def topic_exists(self, topic_name: str) -> Result:
        """Whether the topic exists; scans the full topic listing."""
        topics = await self.list_topics()
        return _membership(topics, self.topic_path(topic_name))

    # Subscriptions

    @failable
    async def create_subscription(
        self, topic_name: str, subscription_name: str, **options
    ) -> Result:
        """
        Create a subscription attached to an existing topic. Idempotent.

        The topic is never created on the fly; a missing topic is a failure.

        Args:
            topic_name: Name of the topic the subscription attaches to
            subscription_name: Name of the subscription to create
            **options: Extra Subscription fields merged into the request
                       (e.g. ack_deadline_seconds)

        Returns:
            Success(subscription_name)
        """
        if not topic_name:
            raise ValueError("topic_name required")
        if not subscription_name:
            raise ValueError("subscription_name required")

        exists = await self.subscription_exists(subscription_name)
        if is_failure(exists):
            return exists
        if exists.payload:
            log_info("Subscription already exists", subscription=subscription_name)
            self._subscriptions[subscription_name] = self.subscription_path(
                subscription_name
            )
            return success(subscription_name)

        request = {
            "name": self._subscriber.subscription_path(
                self._project_id, subscription_name
            ),
            "topic": self.topic_path(topic_name),
            **options,
        }
        subscription = await asyncio.to_thread(
            self._subscriber.create_subscription, request=request
        )
        self._subscriptions[subscription_name] = subscription.name
        log_info(
            "Created subscription", topic=topic_name, subscription=subscription_name
        )
        return success(subscription_name)

    @failable
    async def delete_subscription(self, subscription_name: str) -> str:
        """Delete a subscription. Returns Success(subscription_name)."""
        subscription_path = self.subscription_path(subscription_name)
        await asyncio.to_thread(
            self._subscriber.delete_subscription,
            request={"subscription": subscription_path},
        )
        self._subscriptions.pop(subscription_name, None)
        log_info("Deleted subscription", subscription=subscription_name)
        return subscription_name

    @failable
    async def list_subscriptions(self) -> List[str]:
        """List the paths of all subscriptions in the project."""

        def _list() -> List[str]:
            pager = self._subscriber.list_subscriptions(
                request={"project": self.project_path}
            )
            return [subscription.name for subscription in pager]

        return await asyncio.to_thread(_list)

    @failable
    async def subscription_exists(self, subscription_name: str) -> Result:
        """Whether the subscription exists; scans the full subscription listing."""
        subscriptions = await self.list_subscriptions()
        return _membership(subscriptions, self.subscription_path(subscription_name))

    # Publishing

    @failable
    async def publish(self, topic_name: str, message: MessageInput) -> str:
        """
        Publish a message to a topic.

        Args:
            topic_name: Name of the topic
            message: PubSubMessage, a mapping with "data" and optional
                     "attributes"/"ordering_key", or raw bytes/str data

        Returns:
            Success(message id from Pub/Sub)
        """
        pubsub_message = _coerce_message(message)
        publish_kwargs: Dict[str, str] = dict(pubsub_message.attributes)
        if pubsub_message.ordering_key is not None:
            publish_kwargs["ordering_key"] = pubsub_message.ordering_key

        future = self._publisher.publish(
            self.topic_path(topic_name),
            pubsub_message.to_bytes(),
            **publish_kwargs,
        )
        message_id = await asyncio.to_thread(
            future.result, timeout=Config.PUBLISH_TIMEOUT
        )
        log_debug("Published message", topic=topic_name, message_id=message_id)
        return message_id

    @failable
    async def publish_json(
        self,
        topic_name: str,
        data: Any,
        attributes: Optional[Dict[str, str]] = None,
    ) -> Result:
        """JSON-encode data (dict, list, pydantic model, ...) and publish it."""
        message = JsonMessage(data=data, attributes=attributes or {})
        return await self.publish(topic_name, message.to_pubsub_message())

    @failable
    async def publish_many(
        self, topic_name: str, messages: Sequence[MessageInput]
    ) -> Result:
        """
        Publish many messages to a topic concurrently.

        Every publish is attempted. Returns the first failure in message order
        if any publish failed, otherwise Success(number of messages published).
        The client library batches internally, so this does not necessarily
        mean one request per message.
        """
        results = await asyncio.gather(
            *(self.publish(topic_name, message) for message in messages)
        )
        failed = first_failure(results)
        if failed is not None:
            return failed
        log_info(f"Published {len(results)} messages", topic=topic_name)
        return success(len(results))

    @failable
    async def publish_many_json(
        self,
        topic_name: str,
        messages: Sequence[Union[JsonMessage, Mapping[str, Any]]],
    ) -> Result:
        """
        JSON-encode each message's data and publish them with publish_many.

        Messages are mappings (or JsonMessage) with "data" and optional
        "attributes". Nothing is published if any data fails to encode.
        """
        pubsub_messages = [
            _coerce_json_message(message).to_pubsub_message() for message in messages
        ]
        return await self.publish_many(topic_name, pubsub_messages)

    # Consuming

    @failable
    async def pull(
        self,
        subscription_name: str,
        max_messages: int = 1,
        return_immediately: bool = True,
    ) -> List[Envelope]:
        """
        Pull messages from a subscription.

        Args:
            subscription_name: Name of the subscription
            max_messages: Maximum number of messages to pull
            return_immediately: Return at once when no messages are available

        Returns:
            Success(list of Envelope), possibly empty
        """
        response = await asyncio.to_thread(
            self._subscriber.pull,
            request={
                "subscription": self.subscription_path(subscription_name),
                "max_messages": max_messages,
                "return_immediately": return_immediately,
            },
            timeout=Config.PULL_TIMEOUT,
        )
        envelopes = [
            Envelope.from_received_message(received)
            for received in response.received_messages
        ]
        log_debug(
            f"Pulled {len(envelopes)} messages", subscription=subscription_name
        )
        return envelopes

    @failable
    async def acknowledge(
        self, subscription_name: str, ack_ids: Union[str, Sequence[str]]
    ) -> int:
        """
        Acknowledge pulled messages.

        Args:
            subscription_name: Name of the subscription
            ack_ids: One ack id or a list of them; must not be empty

        Returns:
            Success(number of ack ids acknowledged)
        """
        if isinstance(ack_ids, str):
            ack_ids = [ack_ids]
        ack_ids = list(ack_ids)
        if not ack_ids:
            raise ValueError("ack_ids must not be empty")

        await asyncio.to_thread(
            self._subscriber.acknowledge,
            request={
                "subscription": self.subscription_path(subscription_name),
                "ack_ids": ack_ids,
            },
        )
        log_debug(
            f"Acknowledged {len(ack_ids)} messages", subscription=subscription_name
        )
        return len(ack_ids)


def _membership(listing: Result, path: str) -> Result:
    if is_failure(listing):
        return listing
    return success(path in listing.payload)


@failable
def create_client(
    project_id: Optional[str] = None,
    publisher: Optional[pubsub_v1.PublisherClient] = None,
    subscriber: Optional[pubsub_v1.SubscriberClient] = None,
) -> PubSubClient:
    """Create a PubSubClient, returning Success(client) or Failure(reason)."""
    return PubSubClient(
        project_id=project_id, publisher=publisher, subscriber=subscriber
    )


# Default instance
_pubsub_client: Optional[PubSubClient] = None


def get_pubsub_client() -> PubSubClient:
    """Get the process-wide default PubSubClient, creating it on first use."""
    global _pubsub_client
    if _pubsub_client is None:
        _pubsub_client = PubSubClient()
    return _pubsub_client
