import base64
import json
import re

import pytest

from event_payload import (
    DEFAULT_VENDOR,
    ENCODE_BASE64,
    EventPayloadBuilder,
    KeyNotFoundError,
    MissingConfigError,
    PayloadLogger,
    SerializationError,
)

pytestmark = pytest.mark.unit

TID_RE = re.compile(r"^[1-9][0-9]{5}$")


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def randint(self, low, high):
        assert (low, high) == (100000, 999999)
        return self.value


def build_builder(encode_base64=False, **kwargs):
    return EventPayloadBuilder(**kwargs).add_config(ENCODE_BASE64, encode_base64)


def b64decode(value):
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4)).decode("ascii")


def test_mutators_return_the_same_builder():
    builder = EventPayloadBuilder()
    assert builder.add("e", "pv") is builder
    assert builder.add_config(ENCODE_BASE64, True) is builder
    assert builder.add_json(None, True) is builder
    assert builder.set_timestamp(5) is builder


def test_initial_maps_are_copied_on_construction():
    parameters = {"e": "pv"}
    builder = EventPayloadBuilder(parameters, {ENCODE_BASE64: True})
    builder.add("url", "http://x")
    assert parameters == {"e": "pv"}
    assert list(builder.param_keys()) == ["e", "url"]
    assert builder.get_config(ENCODE_BASE64) is True


def test_transaction_id_is_six_digits():
    builder = EventPayloadBuilder()
    for _ in range(200):
        builder.set_transaction_id()
        tid = builder.get_param("tid")
        assert TID_RE.match(tid)
        assert 100000 <= int(tid) <= 999999


def test_timestamp_defaults_to_clock_in_milliseconds():
    builder = EventPayloadBuilder(time_fn=lambda: 1700000000.5)
    builder.set_timestamp()
    assert builder.get_param("dtm") == "1700000000500"
    builder.set_timestamp(0)
    assert builder.get_param("dtm") == "1700000000500"


def test_explicit_timestamp_is_stored_verbatim():
    builder = EventPayloadBuilder(time_fn=lambda: 1.0)
    builder.set_timestamp(1000)
    assert builder.get_param("dtm") == "1000"
    builder.set_timestamp(1234.5)
    assert builder.get_param("dtm") == "1234.5"


def test_null_json_payloads_leave_parameters_unchanged():
    builder = build_builder().add("e", "ue")
    before = dict(builder.params)
    builder.add_json(None, True).add_json(None, False)
    builder.add_unstructured(None, True).add_unstructured(None, False)
    assert dict(builder.params) == before


def test_add_json_raw_and_encoded_keys():
    context = {"user": "abc", "n": 1}
    raw = EventPayloadBuilder().add_json(context, False)
    assert raw.get_param("co") == '{"user":"abc","n":1}'
    assert "cx" not in raw.param_keys()

    encoded = EventPayloadBuilder().add_json(context, True)
    assert "co" not in encoded.param_keys()
    assert b64decode(encoded.get_param("cx")) == json.dumps(context, separators=(",", ":"))


def test_add_unstructured_round_trips_through_base64():
    payload = {"product_id": "ASO01043", "price": 49.95, "tags": ["a", "b?"], "é": "ü"}
    builder = EventPayloadBuilder().add_unstructured(payload, True)
    value = builder.get_param("ue_px")
    assert "=" not in value and "+" not in value and "/" not in value
    assert json.loads(b64decode(value)) == payload

    raw = EventPayloadBuilder().add_unstructured(payload, False)
    assert json.loads(raw.get_param("ue_pr")) == payload
    assert b64decode(value) == raw.get_param("ue_pr")


def test_unserializable_context_raises_and_is_logged():
    logger = PayloadLogger()
    builder = EventPayloadBuilder(logger=logger).add("e", "pv")
    with pytest.raises(SerializationError):
        builder.add_json({"when": object()}, False)
    with pytest.raises(SerializationError):
        builder.add_json({"ratio": float("nan")}, True)
    assert "co" not in builder.param_keys()
    assert "cx" not in builder.param_keys()
    assert any("ERROR" in entry for entry in logger.entries)


def test_standard_nv_pairs():
    builder = EventPayloadBuilder().add_standard_nv_pairs("pc", "py-0.2.0", "cf", "shop")
    assert dict(builder.params) == {"p": "pc", "tv": "py-0.2.0", "tna": "cf", "aid": "shop"}


def test_page_view_example_params():
    builder = build_builder().track_page_view_config(
        "http://x", "T", "http://y", None, 1000
    )
    assert dict(builder.params) == {
        "e": "pv",
        "url": "http://x",
        "page": "T",
        "refr": "http://y",
        "evn": DEFAULT_VENDOR,
        "dtm": "1000",
    }


def test_page_view_without_context_does_not_need_config():
    builder = EventPayloadBuilder().track_page_view_config("http://x", timestamp=1)
    assert builder.get_param("e") == "pv"


def test_context_without_config_raises_missing_config():
    with pytest.raises(MissingConfigError):
        EventPayloadBuilder().track_page_view_config("http://x", context={"a": 1})


def test_structured_event_with_raw_context():
    context = {"schema": "iglu:com.acme/ctx/1-0-0", "data": {"id": 7}}
    builder = build_builder(encode_base64=False).track_structured_event_config(
        "shop", "add-to-basket", "ASO01043", "pcs", 2, context, 1000
    )
    assert builder.get_param("e") == "se"
    assert builder.get_param("se_ca") == "shop"
    assert builder.get_param("se_ac") == "add-to-basket"
    assert builder.get_param("se_la") == "ASO01043"
    assert builder.get_param("se_pr") == "pcs"
    assert builder.get_param("se_va") == "2"
    assert builder.get_param("evn") == DEFAULT_VENDOR
    assert builder.get_param("co") == json.dumps(context, separators=(",", ":"))
    assert "cx" not in builder.param_keys()


def test_unstructured_event_omits_vendor_and_reads_config():
    builder = build_builder(encode_base64=True).track_unstructured_event_config(
        "com.acme", "viewed_product", {"id": 1}, {"page": "home"}, 1000
    )
    assert builder.get_param("e") == "ue"
    assert "evn" not in builder.param_keys()
    assert json.loads(b64decode(builder.get_param("ue_px"))) == {"id": 1}
    assert json.loads(b64decode(builder.get_param("cx"))) == {"page": "home"}
    assert list(builder.param_keys()) == ["e", "dtm", "ue_px", "cx"]

    with pytest.raises(MissingConfigError):
        EventPayloadBuilder().track_unstructured_event_config("com.acme", "x", None)


def test_transaction_item_reuses_supplied_transaction_id():
    builder = build_builder().track_ecommerce_transaction_item_config(
        "order-1", "sku-9", 19.99, 2, "Shoe", "apparel", "EUR",
        transaction_id="424242", timestamp=1000,
    )
    assert builder.get_param("e") == "ti"
    assert builder.get_param("tid") == "424242"
    assert builder.get_param("ti_id") == "order-1"
    assert builder.get_param("ti_sk") == "sku-9"
    assert builder.get_param("ti_nm") == "Shoe"
    assert builder.get_param("ti_ca") == "apparel"
    assert builder.get_param("ti_pr") == "19.99"
    assert builder.get_param("ti_qu") == "2"
    assert builder.get_param("ti_cu") == "EUR"
    assert builder.get_param("evn") == DEFAULT_VENDOR


def test_transaction_item_generates_missing_transaction_id():
    builder = build_builder().track_ecommerce_transaction_item_config(
        "order-1", "sku-9", "5", "1", timestamp=1000
    )
    assert TID_RE.match(builder.get_param("tid"))


def test_transaction_always_regenerates_transaction_id():
    builder = build_builder(rng=FixedRandom(654321)).add("tid", "123")
    builder.track_ecommerce_transaction_config(
        "order-1", "99.50", "web", "9.95", "4.00", "Paris", "IDF", "FR", "EUR",
        timestamp=1000,
    )
    assert builder.get_param("e") == "tr"
    assert builder.get_param("tid") == "654321"
    assert builder.get_param("tr_id") == "order-1"
    assert builder.get_param("tr_tt") == "99.50"
    assert builder.get_param("tr_af") == "web"
    assert builder.get_param("tr_tx") == "9.95"
    assert builder.get_param("tr_sh") == "4.00"
    assert builder.get_param("tr_ci") == "Paris"
    assert builder.get_param("tr_st") == "IDF"
    assert builder.get_param("tr_co") == "FR"
    assert builder.get_param("tr_cu") == "EUR"


def test_getters_and_views():
    builder = build_builder(encode_base64=True).add("e", "pv")
    assert builder.find_param("missing") is None
    assert builder.find_config("missing") is None
    with pytest.raises(KeyNotFoundError):
        builder.get_param("missing")
    with pytest.raises(MissingConfigError):
        builder.get_config("missing")
    with pytest.raises(TypeError):
        builder.params["e"] = "se"
    builder.add("url", "http://x")
    assert list(builder.params) == ["e", "url"]
    assert list(builder.config_keys()) == [ENCODE_BASE64]


def test_string_form_has_two_lines():
    builder = build_builder(encode_base64=True).add("e", "pv")
    lines = str(builder).splitlines()
    assert lines == [
        "Parameters: {'e': 'pv'}",
        "Configurations: {'encode_base64': True}",
    ]


def test_query_string_skips_missing_values():
    builder = build_builder().track_page_view_config("http://x", "T", None, timestamp=1000)
    assert builder.to_query_string() == (
        f"e=pv&url=http%3A%2F%2Fx&page=T&evn={DEFAULT_VENDOR}&dtm=1000"
    )


def test_prepare_request_builds_get_url_without_sending():
    builder = build_builder().track_page_view_config("http://x", "T", timestamp=1000)
    prepared = builder.prepare_request("http://collector.test/i")
    assert prepared.method == "GET"
    assert prepared.url.startswith("http://collector.test/i?e=pv&")
    assert "dtm=1000" in prepared.url
