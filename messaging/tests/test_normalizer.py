from datetime import datetime, timezone as dt_timezone

import pytest

from messaging.exceptions import EventValidationError
from messaging.normalizer import KIND_RULES, normalize, to_instant, to_opaque_id
from messaging.schemas import EventKind

MINIMAL_EXTRAS = {
    EventKind.OPEN: {"type": "BUY", "volume": 0.1, "price": 1.1},
    EventKind.CLOSE: {"type": "SELL", "volume": 0.1, "price": 1.2, "profit": -3},
    EventKind.PARTIAL_CLOSE: {"volume": 0.05, "price": 1.2, "profit": 1.5},
    EventKind.PENDING: {"order_type": "BUY_LIMIT", "order_volume": 0.2, "order_price": 1.05},
    EventKind.ACTIVATED: {"price": 1.05},
    EventKind.ORDER_STATE_CHANGE: {},
    EventKind.ORDER_SLTP_UPDATE: {},
    EventKind.POSITION_SLTP_UPDATE: {},
    EventKind.TEST: {},
}


def _payload(kind, **extra):
    data = {
        "event": kind.value if isinstance(kind, EventKind) else kind,
        "ticket": "7001",
        "timestamp": "2024-03-01T10:15:00Z",
        "account": "5001",
        "broker": "ICMarkets",
        "symbol": "EURUSD",
    }
    data.update(extra)
    return data


def test_every_kind_has_a_rule():
    assert set(KIND_RULES) == set(EventKind)


@pytest.mark.parametrize("kind", list(EventKind))
def test_minimal_payload_is_accepted_for_every_kind(kind):
    event = normalize(_payload(kind, **MINIMAL_EXTRAS[kind]))
    assert event.kind == kind
    assert event.ticket == "7001"


@pytest.mark.parametrize("kind", [k for k in EventKind if KIND_RULES[k].required])
def test_missing_required_field_is_rejected(kind):
    for name in KIND_RULES[kind].required:
        extras = dict(MINIMAL_EXTRAS[kind])
        for alias in {"order_type": ("type", "order_type"), "volume": ("volume", "order_volume"),
                      "price": ("price", "order_price"), "profit": ("profit",)}[name]:
            extras.pop(alias, None)
        with pytest.raises(EventValidationError) as exc_info:
            normalize(_payload(kind, **extras))
        assert name in str(exc_info.value.detail)


@pytest.mark.parametrize("field", ["ticket", "timestamp", "account", "broker", "symbol"])
def test_base_fields_are_required(field):
    payload = _payload(EventKind.TEST)
    del payload[field]
    with pytest.raises(EventValidationError):
        normalize(payload)


def test_missing_or_unknown_kind():
    payload = _payload(EventKind.TEST)
    del payload["event"]
    with pytest.raises(EventValidationError, match="Event type is required"):
        normalize(payload)
    with pytest.raises(EventValidationError, match="Unsupported event type"):
        normalize(_payload("EXPLODE"))


def test_kind_is_case_insensitive_and_accepts_kind_alias():
    payload = _payload(EventKind.TEST)
    payload.pop("event")
    payload["kind"] = "test"
    assert normalize(payload).kind == EventKind.TEST


def test_non_mapping_payload_is_rejected():
    with pytest.raises(EventValidationError):
        normalize([1, 2, 3])


def test_non_numeric_required_number_is_rejected():
    with pytest.raises(EventValidationError, match="price"):
        normalize(_payload(EventKind.OPEN, type="BUY", volume=0.1, price="abc"))


@pytest.mark.parametrize("bad", [True, "nan", "inf", float("inf")])
def test_booleans_and_non_finite_numbers_are_rejected(bad):
    with pytest.raises(EventValidationError):
        normalize(_payload(EventKind.OPEN, type="BUY", volume=bad, price=1.1))


def test_numeric_strings_are_coerced():
    event = normalize(_payload(EventKind.OPEN, type="buy", volume="0.25", price=" 1.0712 "))
    assert event.volume == 0.25
    assert event.price == 1.0712
    assert event.order_type == "BUY"


def test_unknown_order_type_is_rejected():
    with pytest.raises(EventValidationError, match="order_type"):
        normalize(_payload(EventKind.OPEN, type="HODL", volume=0.1, price=1.1))


def test_sltp_default_to_zero_but_profit_defaults_to_none():
    event = normalize(_payload(EventKind.OPEN, type="BUY", volume=0.1, price=1.1))
    assert event.sl == 0
    assert event.tp == 0
    assert event.profit is None
    assert event.swap is None
    assert not event.has("sl")
    assert not event.has("tp")


def test_explicit_sltp_is_recorded_as_provided():
    event = normalize(_payload(EventKind.POSITION_SLTP_UPDATE, sl="1.065", tp=0))
    assert event.sl == 1.065
    assert event.tp == 0
    assert event.has("sl") and event.has("tp")


def test_non_numeric_sl_is_rejected():
    with pytest.raises(EventValidationError, match="sl"):
        normalize(_payload(EventKind.ORDER_SLTP_UPDATE, sl="n/a"))


def test_non_sltp_kind_leaves_sltp_unset():
    event = normalize(_payload(EventKind.CLOSE, **MINIMAL_EXTRAS[EventKind.CLOSE], sl=1.0))
    assert event.sl is None
    assert not event.has("sl")


def test_pending_aliases():
    event = normalize(_payload(
        EventKind.PENDING,
        order_type="SELL_STOP", order_volume=0.3, order_price=1.09, order_sl=1.1, order_tp=1.05,
    ))
    assert (event.order_type, event.volume, event.price, event.sl, event.tp) == ("SELL_STOP", 0.3, 1.09, 1.1, 1.05)


def test_total_profit_wins_over_profit_and_deal_price_is_accepted():
    event = normalize(_payload(
        EventKind.PARTIAL_CLOSE, volume=0.05, deal_price=1.2, profit=10, total_profit=9.3, commission="-0.7",
    ))
    assert event.price == 1.2
    assert event.profit == 9.3
    assert event.commission == -0.7
    assert event.close_price == 1.2


def test_close_price_prefers_deal_price_over_order_price():
    event = normalize(_payload(EventKind.CLOSE, type="BUY", volume=0.1, price=1.07, deal_price=1.075, profit=5))

    assert event.close_price == 1.075
    assert event.price == 1.07
    assert event.has("close_price")


def test_close_price_is_only_set_for_close_kinds():
    event = normalize(_payload(EventKind.OPEN, type="BUY", volume=0.1, price=1.07, deal_price=1.075))

    assert event.close_price is None
    assert event.price == 1.07


def test_opaque_ids_keep_leading_zeros_and_suffixes():
    event = normalize(_payload(EventKind.TEST, ticket=" 000123 ", position_id="98765A"))
    assert event.ticket == "000123"
    assert event.position_id == "98765A"
    assert event.lookup_ref == "98765A"


def test_integer_ticket_is_rendered_as_text():
    assert to_opaque_id(123456789012) == "123456789012"
    assert to_opaque_id(42.0) == "42"
    with pytest.raises(ValueError):
        to_opaque_id(42.5)
    with pytest.raises(ValueError):
        to_opaque_id(True)


def test_lookup_ref_falls_back_to_ticket():
    event = normalize(_payload(EventKind.TEST))
    assert event.position_id is None
    assert event.lookup_ref == "7001"


def test_epoch_seconds_and_iso_timestamps():
    expected = datetime(2024, 6, 10, 6, 13, 20, tzinfo=dt_timezone.utc)
    assert to_instant(1718000000) == expected
    assert to_instant("1718000000") == expected
    assert to_instant("2024-06-10T06:13:20Z") == expected
    assert to_instant("2024-06-10T08:13:20+02:00") == expected


def test_naive_iso_timestamp_is_read_as_utc():
    assert to_instant("2024-06-10 06:13:20") == datetime(2024, 6, 10, 6, 13, 20, tzinfo=dt_timezone.utc)


@pytest.mark.parametrize("bad", ["yesterday", True, None, [], "2024-13-45T00:00:00"])
def test_invalid_timestamps_are_rejected(bad):
    with pytest.raises(EventValidationError, match="timestamp"):
        normalize(_payload(EventKind.TEST, timestamp=bad))


def test_all_errors_are_reported_together():
    with pytest.raises(EventValidationError) as exc_info:
        normalize(_payload(EventKind.OPEN, account="", volume="x"))
    message = str(exc_info.value.detail)
    assert "account is required" in message
    assert "volume" in message
    assert "order_type is required" in message
