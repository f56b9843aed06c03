"""Notification Repository - Outbox of rule events awaiting delivery"""
from typing import List
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection
from ..domain.models import RuleEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationRepository:
    """Repository for notification outbox operations"""

    def __init__(self):
        self._outbox: Collection = get_collection("notification_outbox")

    def create_notifications_bulk(self, events: List[RuleEvent]) -> List[RuleEvent]:
        """Queue rule events for delivery"""
        if not events:
            return []

        docs = []
        for event in events:
            doc = event.model_dump(mode="json")
            doc["_id"] = event.event_id
            docs.append(doc)

        self._outbox.insert_many(docs)
        logger.info(
            f"Queued {len(events)} rule event(s)",
            extra={"instance_id": events[0].instance_id}
        )
        return events

    def list_for_instance(self, instance_id: str) -> List[RuleEvent]:
        """Events of one instance, oldest first"""
        cursor = self._outbox.find({"instance_id": instance_id}).sort("created_at", ASCENDING)
        events = []
        for doc in cursor:
            doc.pop("_id", None)
            events.append(RuleEvent.model_validate(doc))
        return events

    def delete_notifications(self, event_ids: List[str]) -> int:
        """Withdraw queued events whose submission was not saved"""
        if not event_ids:
            return 0
        result = self._outbox.delete_many({"event_id": {"$in": event_ids}})
        return result.deleted_count
