from __future__ import annotations

import base64
import json
import random
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, KeysView, Mapping, Optional
from urllib.parse import urlencode

import requests

from .errors import (
    EncodingError,
    KeyNotFoundError,
    MissingConfigError,
    SerializationError,
)
from .logger import PayloadLogger
from .models import DEFAULT_VENDOR, ENCODE_BASE64, EventKind


def _stringify(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class EventPayloadBuilder:
    """Accumulates the wire parameters and configuration flags of one event.

    The builder is mutable and every mutator returns the builder itself, so
    calls chain without ever producing a copy. It is not thread-safe: each
    event path owns its own instance.
    """

    def __init__(
        self,
        parameters: Optional[Mapping[str, Optional[str]]] = None,
        configurations: Optional[Mapping[str, bool]] = None,
        *,
        logger: PayloadLogger | None = None,
        rng: Optional[random.Random] = None,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        self._parameters: Dict[str, Optional[str]] = dict(parameters or {})
        self._configurations: Dict[str, bool] = dict(configurations or {})
        self.logger = logger or PayloadLogger()
        self._rng = rng or random.Random()
        self._time = time_fn or time.time

    # Transaction id and timestamp

    def set_transaction_id(self) -> "EventPayloadBuilder":
        self._parameters["tid"] = self._make_transaction_id()
        return self

    def set_timestamp(self, timestamp: float = 0) -> "EventPayloadBuilder":
        if not timestamp:
            self._parameters["dtm"] = str(int(self._time() * 1000))
        else:
            self._parameters["dtm"] = str(timestamp)
        return self

    def _make_transaction_id(self) -> str:
        transaction_id = str(self._rng.randint(100000, 999999))
        self.logger.log("tid", f"generated transaction id {transaction_id}")
        return transaction_id

    # Additions

    def add(self, key: str, value: Optional[str]) -> "EventPayloadBuilder":
        self._parameters[key] = value
        return self

    def add_unstructured(self, payload: Any, encode_base64: bool) -> "EventPayloadBuilder":
        if payload is None:
            return self
        if encode_base64:
            self._embed("ue_px", self._base64_encode(self._serialize(payload)))
        else:
            self._embed("ue_pr", self._serialize(payload))
        return self

    def add_json(self, payload: Any, encode_base64: bool) -> "EventPayloadBuilder":
        if payload is None:
            return self
        if encode_base64:
            self._embed("cx", self._base64_encode(self._serialize(payload)))
        else:
            self._embed("co", self._serialize(payload))
        return self

    def add_standard_nv_pairs(
        self,
        platform: str,
        tracker_version: str,
        namespace: Optional[str],
        app_id: Optional[str],
    ) -> "EventPayloadBuilder":
        self._parameters["p"] = platform
        self._parameters["tv"] = tracker_version
        self._parameters["tna"] = namespace
        self._parameters["aid"] = app_id
        return self

    def add_config(self, name: str, value: bool) -> "EventPayloadBuilder":
        self._configurations[name] = value
        return self

    def _embed(self, key: str, value: str) -> None:
        self._parameters[key] = value
        self.logger.log("json", f"embedded {len(value)} chars under {key}")

    def _serialize(self, payload: Any) -> str:
        try:
            return json.dumps(payload, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as exc:
            self.logger.error("json", f"cannot serialize payload: {exc}")
            raise SerializationError(f"Payload is not JSON serializable: {exc}") from exc

    @staticmethod
    def _base64_encode(text: str) -> str:
        try:
            raw = text.encode("ascii")
        except UnicodeEncodeError as exc:
            raise EncodingError("Serialized payload is not ASCII") from exc
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    # Event tracking

    def track_page_view_config(
        self,
        page_url: Optional[str],
        page_title: Optional[str] = None,
        referrer: Optional[str] = None,
        context: Any = None,
        timestamp: float = 0,
    ) -> "EventPayloadBuilder":
        self._parameters["e"] = EventKind.PAGE_VIEW.value
        self._parameters["url"] = _stringify(page_url)
        self._parameters["page"] = _stringify(page_title)
        self._parameters["refr"] = _stringify(referrer)
        return self._finish(EventKind.PAGE_VIEW, context, timestamp)

    def track_structured_event_config(
        self,
        category: Optional[str],
        action: Optional[str],
        label: Optional[str] = None,
        property_: Optional[str] = None,
        value: Any = None,
        context: Any = None,
        timestamp: float = 0,
    ) -> "EventPayloadBuilder":
        self._parameters["e"] = EventKind.STRUCTURED.value
        self._parameters["se_ca"] = _stringify(category)
        self._parameters["se_ac"] = _stringify(action)
        self._parameters["se_la"] = _stringify(label)
        self._parameters["se_pr"] = _stringify(property_)
        self._parameters["se_va"] = _stringify(value)
        return self._finish(EventKind.STRUCTURED, context, timestamp)

    def track_unstructured_event_config(
        self,
        event_vendor: Optional[str],
        event_name: Optional[str],
        payload: Any,
        context: Any = None,
        timestamp: float = 0,
    ) -> "EventPayloadBuilder":
        # event_vendor and event_name are accepted but not written to the wire.
        self._parameters["e"] = EventKind.UNSTRUCTURED.value
        self.set_timestamp(timestamp)
        encode_base64 = self.get_config(ENCODE_BASE64)
        self.add_unstructured(payload, encode_base64)
        return self.add_json(context, encode_base64)

    def track_ecommerce_transaction_item_config(
        self,
        order_id: Optional[str],
        sku: Optional[str],
        price: Any,
        quantity: Any,
        name: Optional[str] = None,
        category: Optional[str] = None,
        currency: Optional[str] = None,
        context: Any = None,
        transaction_id: Optional[str] = None,
        timestamp: float = 0,
    ) -> "EventPayloadBuilder":
        self._parameters["e"] = EventKind.TRANSACTION_ITEM.value
        self._parameters["tid"] = (
            self._make_transaction_id() if transaction_id is None else str(transaction_id)
        )
        self._parameters["ti_id"] = _stringify(order_id)
        self._parameters["ti_sk"] = _stringify(sku)
        self._parameters["ti_nm"] = _stringify(name)
        self._parameters["ti_ca"] = _stringify(category)
        self._parameters["ti_pr"] = _stringify(price)
        self._parameters["ti_qu"] = _stringify(quantity)
        self._parameters["ti_cu"] = _stringify(currency)
        return self._finish(EventKind.TRANSACTION_ITEM, context, timestamp)

    def track_ecommerce_transaction_config(
        self,
        order_id: Optional[str],
        total_value: Any,
        affiliation: Optional[str] = None,
        tax_value: Any = None,
        shipping: Any = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        currency: Optional[str] = None,
        context: Any = None,
        timestamp: float = 0,
    ) -> "EventPayloadBuilder":
        # tid is regenerated on every transaction, unlike transaction items.
        self.set_transaction_id()
        self._parameters["e"] = EventKind.TRANSACTION.value
        self._parameters["tr_id"] = _stringify(order_id)
        self._parameters["tr_tt"] = _stringify(total_value)
        self._parameters["tr_af"] = _stringify(affiliation)
        self._parameters["tr_tx"] = _stringify(tax_value)
        self._parameters["tr_sh"] = _stringify(shipping)
        self._parameters["tr_ci"] = _stringify(city)
        self._parameters["tr_st"] = _stringify(state)
        self._parameters["tr_co"] = _stringify(country)
        self._parameters["tr_cu"] = _stringify(currency)
        return self._finish(EventKind.TRANSACTION, context, timestamp)

    def _finish(self, kind: EventKind, context: Any, timestamp: float) -> "EventPayloadBuilder":
        if kind.stamps_vendor:
            self._parameters["evn"] = DEFAULT_VENDOR
        self.set_timestamp(timestamp)
        if context is None:
            return self
        return self.add_json(context, self.get_config(ENCODE_BASE64))

    # Getters

    def param_keys(self) -> KeysView[str]:
        return self._parameters.keys()

    def config_keys(self) -> KeysView[str]:
        return self._configurations.keys()

    def get_param(self, key: str) -> Optional[str]:
        if key not in self._parameters:
            raise KeyNotFoundError(f"Parameter '{key}' not found")
        return self._parameters[key]

    def get_config(self, key: str) -> bool:
        if key not in self._configurations:
            raise MissingConfigError(f"Configuration '{key}' was never set")
        return self._configurations[key]

    def find_param(self, key: str) -> Optional[str]:
        return self._parameters.get(key)

    def find_config(self, key: str) -> Optional[bool]:
        return self._configurations.get(key)

    @property
    def params(self) -> Mapping[str, Optional[str]]:
        return MappingProxyType(self._parameters)

    @property
    def configs(self) -> Mapping[str, bool]:
        return MappingProxyType(self._configurations)

    # Serialization

    def _query_pairs(self):
        return [(key, value) for key, value in self._parameters.items() if value is not None]

    def to_query_string(self) -> str:
        return urlencode(self._query_pairs())

    def prepare_request(self, collector_url: str) -> requests.PreparedRequest:
        """Prepare, but never send, the GET request carrying this payload."""
        return requests.Request("GET", collector_url, params=self._query_pairs()).prepare()

    def __str__(self) -> str:
        return (
            f"Parameters: {self._parameters}\n"
            f"Configurations: {self._configurations}"
        )
