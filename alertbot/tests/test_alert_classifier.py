import pytest

from alertbot.alerts.classifier import classify
from alertbot.alerts.models import AlertKind, DominationType, SmartVolType
from alertbot.core.errors import InvalidField, MissingField, UnknownAlertType, ValidationError


def test_missing_discriminator_is_unknown_type():
    with pytest.raises(UnknownAlertType):
        classify({"symbol": "BTCUSDT", "price": "100"})


def test_unknown_type_is_rejected():
    with pytest.raises(UnknownAlertType) as ei:
        classify({"alertName": "MoonSignal", "symbol": "BTCUSDT", "price": "1"})
    assert "MoonSignal" in str(ei.value)


@pytest.mark.parametrize("payload", [None, "SmartOpen", 42, ["alertName"]])
def test_non_mapping_payload_is_invalid(payload):
    with pytest.raises(ValidationError):
        classify(payload)


@pytest.mark.parametrize(
    "name",
    [
        "SmartOpen",
        "SmartVolAdd",
        "SmartClose",
        "SmartBigClose",
        "SmartBigAdd",
        "SmartVolumeOpen",
        "BullishVolume",
        "Fixed Short Synchronization",
        "Live Short Synchronization",
    ],
)
@pytest.mark.parametrize("missing", ["symbol", "price"])
def test_smartvol_requires_symbol_and_price(name, missing):
    payload = {"alertName": name, "symbol": "BTCUSDT", "price": "100.5"}
    del payload[missing]
    with pytest.raises(MissingField) as ei:
        classify(payload)
    assert ei.value.field == missing


def test_empty_symbol_counts_as_missing():
    with pytest.raises(MissingField):
        classify({"alertName": "SmartOpen", "symbol": "  ", "price": "1"})


def test_smartvol_alert_is_typed():
    a = classify(
        {"alertName": "SmartOpen", "symbol": "ETHUSDT", "price": 2500.25, "timeframe": "1h"}
    )
    assert a.kind == AlertKind.SMARTVOL
    assert a.type == SmartVolType.SMART_OPEN
    assert a.symbol == "ETHUSDT"
    assert a.price == "2500.25"
    assert a.timeframe == "1h"
    assert a.volume is None


def test_timeframe_is_optional_for_smartvol():
    a = classify({"alertName": "SmartClose", "symbol": "ETHUSDT", "price": "1"})
    assert a.timeframe is None
    assert a.timeframe_or("1h") == "1h"


def test_volume_up_requires_volume():
    with pytest.raises(MissingField) as ei:
        classify({"alertName": "VolumeUp", "symbol": "X", "price": "1", "timeframe": "1h"})
    assert ei.value.field == "volume"


def test_volume_up_requires_timeframe():
    with pytest.raises(MissingField) as ei:
        classify({"alertName": "VolumeUp", "symbol": "X", "price": "1", "volume": 10})
    assert ei.value.field == "timeframe"


def test_volume_up_carries_volume():
    a = classify(
        {"alertName": "VolumeUp", "symbol": "X", "price": "1", "volume": "1234.5", "timeframe": "15m"}
    )
    assert a.type == SmartVolType.VOLUME_UP
    assert a.volume == 1234.5
    assert a.timeframe == "15m"


@pytest.mark.parametrize("price", ["abc", "", "NaN", "inf"])
def test_non_numeric_price_is_invalid(price):
    with pytest.raises(InvalidField):
        classify({"alertName": "SmartOpen", "symbol": "BTCUSDT", "price": price})


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Buyer domination", DominationType.BUYER_DOMINATION),
        ("Seller domination", DominationType.SELLER_DOMINATION),
        ("Continuation of buyer dominance", DominationType.BUYER_CONTINUATION),
        ("Continuation of seller dominance", DominationType.SELLER_CONTINUATION),
    ],
)
def test_domination_types(name, expected):
    a = classify({"alertName": name, "symbol": "SOLUSDT", "price": "150"})
    assert a.kind == AlertKind.DOMINATION
    assert a.type == expected


def test_domination_requires_price():
    with pytest.raises(MissingField):
        classify({"alertName": "Buyer domination", "symbol": "SOLUSDT"})


def test_alert_is_immutable():
    a = classify({"alertName": "SmartOpen", "symbol": "BTCUSDT", "price": "1"})
    with pytest.raises(Exception):
        a.symbol = "ETHUSDT"


@pytest.mark.parametrize("price", ["0", "-1", "0.000", -5])
def test_non_positive_price_is_invalid(price):
    with pytest.raises(InvalidField) as e:
        classify({"alertName": "SmartOpen", "symbol": "BTCUSDT", "price": price})
    assert e.value.field == "price"


@pytest.mark.parametrize("raw", ["BTCUSDT", "btcusdt", "BINANCE:BTCUSDT.P", "BTCUSDT.PERP", "BTC/USDT"])
def test_symbol_is_normalized_to_exchange_id(raw):
    a = classify({"alertName": "SmartOpen", "symbol": raw, "price": "1"})
    assert a.symbol == "BTCUSDT"

    d = classify({"alertName": "Seller domination", "symbol": raw, "price": "1"})
    assert d.symbol == "BTCUSDT"


def test_symbol_empty_after_normalization_is_invalid():
    with pytest.raises(InvalidField):
        classify({"alertName": "SmartOpen", "symbol": "BINANCE:", "price": "1"})
