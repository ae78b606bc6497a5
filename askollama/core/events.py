"""Event Bus component for publishing pipeline results."""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

OCR_TOPIC = "screenshot:ocr"
EXPLANATION_TOPIC = "screenshot:explanation"

Subscriber = Callable[[Any], None]


class EventBus:
    """Best-effort publish/subscribe.
    
    Payloads published while a topic has no subscriber are dropped.
    """
    
    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()
    
    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for a topic.
        
        Args:
            topic: Topic name, e.g. ``screenshot:ocr``.
            callback: Called with each payload published on the topic.
        
        Returns:
            Function that removes the subscription.
        """
        with self._lock:
            self._subscribers[topic].append(callback)
        
        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[topic]:
                    self._subscribers[topic].remove(callback)
        
        return unsubscribe
    
    def publish(self, topic: str, payload: Any) -> int:
        """Deliver a payload to the current subscribers of a topic.
        
        Returns:
            Number of subscribers that received the payload.
        """
        with self._lock:
            subscribers = list(self._subscribers.get(topic, ()))
        
        if not subscribers:
            logger.debug(f"No subscribers for {topic}, dropping payload")
            return 0
        
        delivered = 0
        for callback in subscribers:
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Subscriber for {topic} failed: {e}")
        return delivered
