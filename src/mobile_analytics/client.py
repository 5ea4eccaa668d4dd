"""Mobile analytics client: the caller-facing surface of the submission engine.

This is the object applications hold. It wires together:
- Persistent storage and the client identity kept in it
- Event creation with global attributes and metrics
- The submission engine and its transport
"""

from __future__ import annotations

import random
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from loguru import logger

from .batcher import BatcherConfig
from .config import ClientConfig, get_current_config
from .core import ConfigurationError, EventFactory, MonetizationDetails, build_client_context
from .core.event_factory import SessionLike
from .core.events import Event
from .orchestrator import EngineConfig, SubmissionEngine
from .scheduler import SchedulerConfig, now_ms
from .sender import HTTPTransport, SenderConfig, SubmitCallback, Transport
from .storage import StorageBackend, StorageKeys, create_storage


class AnalyticsClient:
    """Records application events and delivers them in batches."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        storage: Optional[StorageBackend] = None,
        transport: Optional[Transport] = None,
        clock: Callable[[], float] = now_ms,
        rng: Optional[random.Random] = None,
        start: bool = True,
    ):
        """Initialize the analytics client.

        Args:
            config: Client configuration (the one loaded through the config manager when omitted)
            storage: Persistence collaborator (built from config.storage_path when omitted)
            transport: Delivers batch payloads (HTTP to config.endpoint_url when omitted)
            clock: Returns the current time in milliseconds
            rng: Random source for throttle suppression
            start: Start the engine immediately

        Raises:
            ConfigurationError: The configuration is not usable
        """
        config = config or get_current_config()
        if config is None:
            raise ConfigurationError("No configuration loaded")

        is_valid, errors = config.validate()
        if not is_valid:
            for error in errors:
                logger.error(error)
            raise ConfigurationError("; ".join(errors))

        self.config = config
        self.storage = storage or create_storage(config.storage_path, namespace=config.app_id)
        self.storage.reload()
        self.client_id = self._init_storage()

        self.client_context = build_client_context(config, self.client_id).to_wire()
        self.event_factory = EventFactory(
            global_attributes=self.storage.get(StorageKeys.GLOBAL_ATTRIBUTES),
            global_metrics=self.storage.get(StorageKeys.GLOBAL_METRICS),
        )

        self.transport = transport or HTTPTransport(
            SenderConfig(
                endpoint_url=config.endpoint_url,
                api_key=config.api_key,
                client_id=self.client_id,
                timeout_seconds=config.request_timeout_seconds,
                max_retries=config.max_retries,
                retry_backoff_base=config.retry_backoff_base,
            )
        )

        engine_config = EngineConfig(
            scheduler_config=SchedulerConfig(
                auto_submit_events=config.auto_submit_events,
                auto_submit_interval=config.auto_submit_interval,
                in_flight_timeout=config.in_flight_timeout,
            ),
            batcher_config=BatcherConfig(batch_size_limit=config.batch_size_limit),
            submit_callback=config.submit_callback,
        )
        self.engine = SubmissionEngine(self.storage, self.transport, self.client_context, engine_config, clock=clock, rng=rng)

        logger.info(f"Initialized analytics client {self.client_id} for app {config.app_id}")

        if start:
            self.engine.start()

    def _init_storage(self) -> str:
        """Merge configured globals with persisted ones and resolve the client id."""
        stored_attributes = self.storage.get(StorageKeys.GLOBAL_ATTRIBUTES) or {}
        self.storage.set(StorageKeys.GLOBAL_ATTRIBUTES, {**stored_attributes, **self.config.global_attributes})

        stored_metrics = self.storage.get(StorageKeys.GLOBAL_METRICS) or {}
        self.storage.set(StorageKeys.GLOBAL_METRICS, {**stored_metrics, **self.config.global_metrics})

        client_id = self.config.client_id or self.storage.get(StorageKeys.CLIENT_ID) or str(uuid.uuid4())
        self.storage.set(StorageKeys.CLIENT_ID, client_id)
        return client_id

    def record_event(
        self,
        event_type: str,
        session: SessionLike,
        attributes: Optional[Mapping[str, Any]] = None,
        metrics: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Event]:
        """Record an event, submitting early if the queue exceeds the batch size limit.

        Returns:
            The recorded event, or None if it failed validation
        """
        logger.debug(f"record_event {event_type}")
        event = self.event_factory.create_event(event_type, session, attributes, metrics)
        return self.engine.record(event)

    def record_monetization_event(
        self,
        session: SessionLike,
        details: Union[MonetizationDetails, Mapping[str, Any]],
        attributes: Optional[Mapping[str, Any]] = None,
        metrics: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Event]:
        """Record a purchase with currency, product id, quantity and price."""
        event = self.event_factory.create_monetization_event(session, details, attributes, metrics)
        return self.engine.record(event)

    def submit_events(self, client_context: Optional[Dict[str, Any]] = None, submit_callback: Optional[SubmitCallback] = None) -> List[str]:
        """Submit pending events now if the submission gate allows it.

        Returns:
            Ids of the batches dispatched
        """
        return self.engine.submit_events(client_context=client_context, submit_callback=submit_callback)

    def get_stats(self) -> Dict[str, Any]:
        return {"client_id": self.client_id, **self.engine.get_stats()}

    def close(self) -> None:
        """Stop submitting. Pending events and batches remain in storage."""
        self.engine.stop()
        self.transport.close()
        logger.info("Analytics client closed")

    def __enter__(self) -> AnalyticsClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
