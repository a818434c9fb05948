import pytest

from livescan.core.decoders.base import DecoderUnavailableError
from livescan.core.decoders.registry import (
    DECODER_DEFINITIONS,
    Availability,
    DetectorRegistry,
)


class FakeDecoder:
    def __init__(self, available=True):
        self.available = available

    def probe(self):
        return self.available

    def decode(self, frame):
        return []


class CountingFactory:
    def __init__(self, decoder=None, error=None):
        self.decoder = decoder if decoder is not None else FakeDecoder()
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.decoder


def _registry(native=None, zxing=None):
    return DetectorRegistry(
        {
            "native": native or CountingFactory(),
            "zxing": zxing or CountingFactory(),
        }
    )


def test_definitions_priority_order():
    assert [i for i, _ in DECODER_DEFINITIONS] == ["native", "zxing"]


def test_states_start_unprobed_and_nothing_is_active():
    registry = _registry()
    assert registry.availability("native") is Availability.UNPROBED
    assert registry.get_active() is None
    assert registry.select_active("native") is None


def test_select_active_falls_back_to_b_when_a_unavailable():
    registry = _registry(native=CountingFactory(error=DecoderUnavailableError("no module")))
    assert registry.probe_all() == {"native": False, "zxing": True}

    assert registry.select_active("native") == "zxing"
    assert registry.select_active(None) == "zxing"
    assert registry.select_active("zxing") == "zxing"


def test_one_construction_failure_does_not_abort_probing():
    zxing = CountingFactory()
    registry = _registry(native=CountingFactory(error=RuntimeError("boom")), zxing=zxing)
    registry.probe_all()
    assert zxing.calls == 1
    assert registry.availability("native") is Availability.UNAVAILABLE
    assert registry.availability("zxing") is Availability.AVAILABLE
    assert registry.active_id == "zxing"


def test_probe_false_marks_unavailable():
    registry = _registry(native=CountingFactory(decoder=FakeDecoder(available=False)))
    registry.probe_all()
    assert registry.is_available("native") is False
    assert registry.select_active("native") == "zxing"


def test_adapters_are_constructed_at_most_once():
    native = CountingFactory()
    registry = _registry(native=native)
    registry.probe_all()
    assert registry.select_active("native") == "native"
    first = registry.get_active()
    second = registry.get_active()
    assert first is second is native.decoder
    assert native.calls == 1


def test_no_engine_usable_is_reportable():
    err = DecoderUnavailableError("missing")
    registry = _registry(native=CountingFactory(error=err), zxing=CountingFactory(error=err))
    assert registry.probe_all() == {"native": False, "zxing": False}
    assert registry.select_active("native") is None
    assert registry.get_active() is None


def test_demote_makes_active_unavailable():
    registry = _registry()
    registry.probe_all()
    registry.select_active("native")
    registry.demote("native", RuntimeError("decode fault"))

    assert registry.get_active() is None
    assert registry.availability("native") is Availability.UNAVAILABLE
    assert registry.select_active("native") == "zxing"


def test_get_active_construction_failure_demotes():
    native = CountingFactory()
    registry = _registry(native=native)
    registry.probe_all()
    registry.select_active("native")

    # Cached instance gone and the engine now refuses to start.
    registry._instances.clear()
    native.error = RuntimeError("driver lost")

    assert registry.get_active() is None
    assert registry.is_available("native") is False


def test_options_label_unavailable_entries():
    registry = _registry(native=CountingFactory(error=DecoderUnavailableError("x")))
    registry.probe_all()
    assert registry.options() == [
        ("native", "OpenCV BarcodeDetector (unsupported)", False),
        ("zxing", "ZXing", True),
    ]
    assert registry.label_for("zxing") == "ZXing"
    assert registry.label_for("other") == "other"


def test_probe_all_keeps_available_selection():
    registry = _registry()
    registry.probe_all()
    registry.select_active("zxing")
    registry.probe_all()
    assert registry.active_id == "zxing"


@pytest.mark.parametrize("preferred", [None, "native", "unknown"])
def test_select_active_defaults_to_priority_order(preferred):
    registry = _registry()
    registry.probe_all()
    assert registry.select_active(preferred) == "native"
