from __future__ import annotations

import random
from typing import Any, Callable, Dict, Iterable, List, Optional

from .builder import EventPayloadBuilder
from .config import TrackerSettings
from .logger import PayloadLogger
from .models import EventKind, TrackedPayload


class Tracker:
    """Builds one payload per tracking call and keeps an in-memory record.

    Nothing is transmitted; a transport can send ``builder.prepare_request``
    for any returned builder.
    """

    def __init__(
        self,
        settings: TrackerSettings | None = None,
        *,
        logger: PayloadLogger | None = None,
        rng: Optional[random.Random] = None,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        self.settings = settings or TrackerSettings()
        self.logger = logger or PayloadLogger()
        self._rng = rng or random.Random()
        self._time_fn = time_fn
        self._events: List[TrackedPayload] = []

    def new_builder(self) -> EventPayloadBuilder:
        builder = EventPayloadBuilder(
            logger=self.logger, rng=self._rng, time_fn=self._time_fn
        )
        return self.settings.apply(builder)

    def track_page_view(
        self,
        page_url: str,
        page_title: Optional[str] = None,
        referrer: Optional[str] = None,
        *,
        context: Any = None,
        timestamp: float = 0,
    ) -> EventPayloadBuilder:
        builder = self.new_builder().track_page_view_config(
            page_url, page_title, referrer, context, timestamp
        )
        return self._record(EventKind.PAGE_VIEW, builder)

    def track_structured_event(
        self,
        category: str,
        action: str,
        label: Optional[str] = None,
        property_: Optional[str] = None,
        value: Any = None,
        *,
        context: Any = None,
        timestamp: float = 0,
    ) -> EventPayloadBuilder:
        builder = self.new_builder().track_structured_event_config(
            category, action, label, property_, value, context, timestamp
        )
        return self._record(EventKind.STRUCTURED, builder)

    def track_unstructured_event(
        self,
        event_vendor: str,
        event_name: str,
        payload: Any,
        *,
        context: Any = None,
        timestamp: float = 0,
    ) -> EventPayloadBuilder:
        builder = self.new_builder().track_unstructured_event_config(
            event_vendor, event_name, payload, context, timestamp
        )
        return self._record(EventKind.UNSTRUCTURED, builder)

    def track_ecommerce_transaction_item(
        self,
        order_id: str,
        sku: str,
        price: Any,
        quantity: Any,
        name: Optional[str] = None,
        category: Optional[str] = None,
        currency: Optional[str] = None,
        *,
        context: Any = None,
        transaction_id: Optional[str] = None,
        timestamp: float = 0,
    ) -> EventPayloadBuilder:
        builder = self.new_builder().track_ecommerce_transaction_item_config(
            order_id,
            sku,
            price,
            quantity,
            name,
            category,
            currency,
            context,
            transaction_id,
            timestamp,
        )
        return self._record(EventKind.TRANSACTION_ITEM, builder)

    def track_ecommerce_transaction(
        self,
        order_id: str,
        total_value: Any,
        affiliation: Optional[str] = None,
        tax_value: Any = None,
        shipping: Any = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        currency: Optional[str] = None,
        *,
        context: Any = None,
        timestamp: float = 0,
    ) -> EventPayloadBuilder:
        builder = self.new_builder().track_ecommerce_transaction_config(
            order_id,
            total_value,
            affiliation,
            tax_value,
            shipping,
            city,
            state,
            country,
            currency,
            context,
            timestamp,
        )
        return self._record(EventKind.TRANSACTION, builder)

    def track_ecommerce_transaction_with_items(
        self,
        order_id: str,
        total_value: Any,
        items: Iterable[Dict[str, Any]],
        *,
        currency: Optional[str] = None,
        context: Any = None,
        timestamp: float = 0,
        **transaction_fields: Any,
    ) -> List[EventPayloadBuilder]:
        transaction = self.track_ecommerce_transaction(
            order_id,
            total_value,
            currency=currency,
            context=context,
            timestamp=timestamp,
            **transaction_fields,
        )
        # Items share the transaction's generated tid.
        transaction_id = transaction.get_param("tid")
        builders = [transaction]
        for item in items:
            builders.append(
                self.track_ecommerce_transaction_item(
                    order_id,
                    item["sku"],
                    item["price"],
                    item["quantity"],
                    item.get("name"),
                    item.get("category"),
                    item.get("currency", currency),
                    context=item.get("context"),
                    transaction_id=transaction_id,
                    timestamp=timestamp,
                )
            )
        return builders

    def _record(self, kind: EventKind, builder: EventPayloadBuilder) -> EventPayloadBuilder:
        self._events.append(
            TrackedPayload(
                kind=kind,
                parameters=dict(builder.params),
                query_string=builder.to_query_string(),
            )
        )
        self.logger.log("tracker", f"built {kind.display_label} payload")
        return builder

    def flush(self) -> List[TrackedPayload]:
        events = list(self._events)
        self._events.clear()
        return events

    @property
    def events(self) -> List[TrackedPayload]:
        return list(self._events)
