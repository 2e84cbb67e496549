"""FastAPI service previewing the GET payloads built for each event kind."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .builder import EventPayloadBuilder
from .config import TrackerSettings
from .errors import EncodingError, MissingConfigError, SerializationError
from .tracker import Tracker

app = FastAPI(
    title="Event Payload API",
    version="0.2.0",
    description="Builds analytics GET payloads without sending them.",
)

tracker = Tracker(TrackerSettings.from_env())


class PageViewPayload(BaseModel):
    page_url: str = Field(..., min_length=1)
    page_title: Optional[str] = None
    referrer: Optional[str] = None
    context: Any = None
    timestamp: Union[int, float] = 0


class StructuredEventPayload(BaseModel):
    category: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)
    label: Optional[str] = None
    property: Optional[str] = None
    value: Optional[str] = None
    context: Any = None
    timestamp: Union[int, float] = 0


class UnstructuredEventPayload(BaseModel):
    event_vendor: str = Field(..., min_length=1)
    event_name: str = Field(..., min_length=1)
    payload: Any = None
    context: Any = None
    timestamp: Union[int, float] = 0


class TransactionItemPayload(BaseModel):
    order_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    price: str
    quantity: str
    name: Optional[str] = None
    category: Optional[str] = None
    currency: Optional[str] = None
    transaction_id: Optional[str] = None
    context: Any = None
    timestamp: Union[int, float] = 0


class TransactionPayload(BaseModel):
    order_id: str = Field(..., min_length=1)
    total_value: str
    affiliation: Optional[str] = None
    tax_value: Optional[str] = None
    shipping: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    context: Any = None
    timestamp: Union[int, float] = 0


class BuiltPayloadResponse(BaseModel):
    event: str
    parameters: Dict[str, Optional[str]]
    configurations: Dict[str, bool]
    url: str


class TrackedPayloadResponse(BaseModel):
    event: str
    query_string: str
    recorded_at: float


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/payloads/page-view", response_model=BuiltPayloadResponse)
def build_page_view(payload: PageViewPayload) -> BuiltPayloadResponse:
    return _build(
        lambda: tracker.track_page_view(
            payload.page_url,
            payload.page_title,
            payload.referrer,
            context=payload.context,
            timestamp=payload.timestamp,
        )
    )


@app.post("/payloads/structured-event", response_model=BuiltPayloadResponse)
def build_structured_event(payload: StructuredEventPayload) -> BuiltPayloadResponse:
    return _build(
        lambda: tracker.track_structured_event(
            payload.category,
            payload.action,
            payload.label,
            payload.property,
            payload.value,
            context=payload.context,
            timestamp=payload.timestamp,
        )
    )


@app.post("/payloads/unstructured-event", response_model=BuiltPayloadResponse)
def build_unstructured_event(payload: UnstructuredEventPayload) -> BuiltPayloadResponse:
    return _build(
        lambda: tracker.track_unstructured_event(
            payload.event_vendor,
            payload.event_name,
            payload.payload,
            context=payload.context,
            timestamp=payload.timestamp,
        )
    )


@app.post("/payloads/transaction-item", response_model=BuiltPayloadResponse)
def build_transaction_item(payload: TransactionItemPayload) -> BuiltPayloadResponse:
    return _build(
        lambda: tracker.track_ecommerce_transaction_item(
            payload.order_id,
            payload.sku,
            payload.price,
            payload.quantity,
            payload.name,
            payload.category,
            payload.currency,
            context=payload.context,
            transaction_id=payload.transaction_id,
            timestamp=payload.timestamp,
        )
    )


@app.post("/payloads/transaction", response_model=BuiltPayloadResponse)
def build_transaction(payload: TransactionPayload) -> BuiltPayloadResponse:
    return _build(
        lambda: tracker.track_ecommerce_transaction(
            payload.order_id,
            payload.total_value,
            payload.affiliation,
            payload.tax_value,
            payload.shipping,
            payload.city,
            payload.state,
            payload.country,
            payload.currency,
            context=payload.context,
            timestamp=payload.timestamp,
        )
    )


@app.get("/payloads", response_model=List[TrackedPayloadResponse])
def list_payloads() -> List[TrackedPayloadResponse]:
    # Reading drains the record so the module-level tracker stays bounded.
    events = tracker.flush()
    tracker.logger.clear()
    return [
        TrackedPayloadResponse(
            event=event.kind.value,
            query_string=event.query_string,
            recorded_at=event.recorded_at.timestamp(),
        )
        for event in events
    ]


def _build(track: Callable[[], EventPayloadBuilder]) -> BuiltPayloadResponse:
    try:
        builder = track()
    except (SerializationError, EncodingError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except MissingConfigError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return BuiltPayloadResponse(
        event=builder.get_param("e"),
        parameters=dict(builder.params),
        configurations=dict(builder.configs),
        url=builder.prepare_request(tracker.settings.endpoint).url,
    )
