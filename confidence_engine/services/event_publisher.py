"""
Kafka event publisher — fire-and-forget.

Publishes a CONFIDENCE_SCORE_CALCULATED event for every persisted snapshot
(dashboards, notifications, data warehouse sync).
Gracefully degrades if Kafka is unavailable.
"""
from __future__ import annotations

import json

import structlog

from confidence_engine.core.config import get_settings
from confidence_engine.models.confidence_score import ConfidenceScore

logger = structlog.get_logger()

_producer = None


async def _get_producer():
    global _producer
    settings = get_settings()
    if not settings.kafka_enabled:
        return None
    if _producer is None:
        from aiokafka import AIOKafkaProducer
        _producer = AIOKafkaProducer(bootstrap_servers=settings.kafka_bootstrap)
        await _producer.start()
    return _producer


def build_score_event(snapshot: ConfidenceScore) -> dict:
    return {
        "event_type": "CONFIDENCE_SCORE_CALCULATED",
        "score_id": snapshot.score_id,
        "property_id": snapshot.property_id,
        "insurance_score": snapshot.insurance_score,
        "buyer_score": snapshot.buyer_score,
        "is_partial": snapshot.is_partial,
        "calculation_date": snapshot.calculation_date.isoformat(),
    }


async def publish_score_event(snapshot: ConfidenceScore) -> None:
    settings = get_settings()
    if not settings.kafka_enabled:
        return

    try:
        producer = await _get_producer()
        if producer:
            await producer.send_and_wait(
                settings.kafka_topic_score_events,
                json.dumps(build_score_event(snapshot)).encode("utf-8"),
                key=snapshot.property_id.encode("utf-8"),
            )
            logger.info("kafka_event_published", score_id=snapshot.score_id, property_id=snapshot.property_id)
    except Exception as e:
        # Fire-and-forget: log but don't fail the batch
        logger.warning("kafka_publish_failed", property_id=snapshot.property_id, error=str(e))


async def close_producer() -> None:
    global _producer
    if _producer is not None:
        await _producer.stop()
        _producer = None
