"""
Dead Drop — Test Suite

Full create / describe / retrieve pipeline: carrier planning, encryption,
embedding, lifecycle policy and the public metadata view.

Author: Ava Shakil
Date: 2026-10-17
"""

import io
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

from PIL import Image

import dead_drop as dd
from dead_drop import capacity, crypto, stego
from dead_drop.config import Settings
from dead_drop.errors import (
    Burned, CapacityExceeded, DeadDropError, Expired, InvalidCodename,
    InvalidPassword, NotFound, UnsupportedCarrierFormat,
)
from dead_drop.store import DropLifecycleStore
from fakes import FAST_ITERATIONS, FakeClock, ManualScheduler


def _store(clock=None):
    return DropLifecycleStore(scheduler=ManualScheduler(), clock=clock or FakeClock())


def _png(width, height, fmt='PNG'):
    buf = io.BytesIO()
    Image.new('RGB', (width, height), (30, 60, 90)).save(buf, format=fmt)
    return buf.getvalue()


# ==========================================================================
# Create
# ==========================================================================

def test_pipeline_basic():
    """Create and retrieve a dead drop with a generated cover."""
    message = b"The truth is in building 7, third floor, locked cabinet."
    store = _store()

    drop, report = dd.create(store, message, "pw", filename="note.txt",
                             mime_type="text/plain", iterations=FAST_ITERATIONS)

    assert report['codename'] == drop.codename
    assert report['drop_id'] == drop.drop_id
    assert report['ttl'] == {'seconds': 86400, 'hours': 24, 'formatted': '24h'}
    assert report['max_retrievals'] == 0
    assert report['burn_after_reading'] is False
    steg = report['steganography']
    assert steg['payload_size'] == len(message)
    assert steg['capacity'] >= len(message)
    assert steg['utilization'].endswith('%')

    assert drop.cover_image_type == 'generated'
    assert drop.encrypted is True
    assert drop.payload_size == len(message)

    payload, got = dd.retrieve(store, drop.codename, "pw")
    assert payload == message
    assert got is drop


def test_pipeline_carrier_holds_envelope_not_plaintext():
    message = b"plaintext must never sit in the carrier"
    store = _store()
    drop, _ = dd.create(store, message, "pw", iterations=FAST_ITERATIONS)

    hidden = stego.extract(drop.cover_image, drop.bits_per_channel)
    assert message not in hidden
    assert len(hidden) == len(message) + crypto.ENVELOPE_OVERHEAD
    assert crypto.decrypt(hidden, "pw") == message


def test_pipeline_uploaded_cover_and_density():
    payload = os.urandom(2000)
    store = _store()
    cover = _png(64, 48, fmt='BMP')

    drop, report = dd.create(store, payload, "pw", cover_image=cover,
                             bits_per_channel=3, iterations=FAST_ITERATIONS)
    assert drop.cover_image_type == 'uploaded'
    assert drop.bits_per_channel == 3
    assert report['steganography']['image_size'] == '64x48'
    assert report['steganography']['capacity'] == \
        capacity.compute_capacity(64, 48, 3) - crypto.ENVELOPE_OVERHEAD

    got, _ = dd.retrieve(store, drop.codename, "pw")
    assert got == payload


def test_pipeline_capacity_exceeded_stores_nothing():
    store = _store()
    try:
        dd.create(store, os.urandom(5000), "pw", cover_image=_png(40, 30),
                  iterations=FAST_ITERATIONS)
        assert False, "Should have raised CapacityExceeded"
    except CapacityExceeded as e:
        assert e.required == 5000
        assert e.capacity == capacity.compute_capacity(40, 30, 1) - crypto.ENVELOPE_OVERHEAD
    assert store.stats()['total'] == 0


def test_pipeline_lossy_cover_rejected():
    store = _store()
    try:
        dd.create(store, b"data", "pw", cover_image=_png(64, 64, fmt='JPEG'),
                  iterations=FAST_ITERATIONS)
        assert False, "Should have raised UnsupportedCarrierFormat"
    except UnsupportedCarrierFormat:
        pass
    assert store.stats()['total'] == 0


def test_pipeline_requires_password():
    try:
        dd.create(_store(), b"data", "", iterations=FAST_ITERATIONS)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


# ==========================================================================
# Retrieve
# ==========================================================================

def test_pipeline_wrong_password():
    store = _store()
    drop, _ = dd.create(store, b"secret", "pw", iterations=FAST_ITERATIONS)
    try:
        dd.retrieve(store, drop.codename, "not-pw")
        assert False, "Should have raised InvalidPassword"
    except InvalidPassword as e:
        assert e.status == 401
        assert "secret" not in str(e)


def test_pipeline_burn_then_gone():
    store = _store()
    drop, _ = dd.create(store, b"once", "pw", burn_after_reading=True,
                        iterations=FAST_ITERATIONS)

    payload, got = dd.retrieve(store, drop.codename.lower(), "pw")
    assert payload == b"once"
    assert got.status == 'burned'

    try:
        dd.retrieve(store, drop.codename, "pw")
        assert False, "Should have raised Burned"
    except Burned:
        pass

    store.scheduler.run_pending()
    try:
        dd.retrieve(store, drop.codename, "pw")
        assert False, "Should have raised NotFound"
    except NotFound:
        pass


def test_pipeline_expired():
    clock = FakeClock()
    store = _store(clock)
    drop, _ = dd.create(store, b"late", "pw", ttl=1, iterations=FAST_ITERATIONS)
    clock.advance(2)
    try:
        dd.retrieve(store, drop.codename, "pw")
        assert False, "Should have raised Expired"
    except Expired:
        pass


# ==========================================================================
# Describe
# ==========================================================================

def test_describe_metadata_only():
    store = _store()
    drop, _ = dd.create(store, b"x" * 100, "pw", password_hint="our dog",
                        filename="plans.pdf", mime_type="application/pdf",
                        tags=["urgent", "eyes-only"], max_retrievals=5,
                        iterations=FAST_ITERATIONS)

    info = dd.describe(store, drop.codename)
    assert info['codename'] == drop.codename
    assert info['status'] == 'active'
    assert info['password_hint'] == "our dog"
    assert info['payload_size'] == 100
    assert info['original_filename'] == "plans.pdf"
    assert info['mime_type'] == "application/pdf"
    assert info['tags'] == ["urgent", "eyes-only"]
    assert info['remaining'] == 5
    assert info['time_remaining']['hours'] == 24

    blob = json.dumps(info)
    assert 'cover_image"' not in blob
    assert 'password"' not in blob
    assert 'drop_id' not in info


def test_describe_warnings():
    store = _store()
    drop, _ = dd.create(store, b"x", "pw", ttl=1800, max_retrievals=1,
                        burn_after_reading=True, iterations=FAST_ITERATIONS)
    warnings = dd.describe(store, drop.codename)['warnings']
    assert any('less than 1 hour' in w for w in warnings)
    assert any('Only 1 retrieval remaining' in w for w in warnings)
    assert any('BURN AFTER READING' in w for w in warnings)

    drop, _ = dd.create(store, b"x", "pw", ttl=4 * 3600, max_retrievals=3,
                        iterations=FAST_ITERATIONS)
    warnings = dd.describe(store, drop.codename)['warnings']
    assert any('expires soon' in w for w in warnings)
    assert any('Only 3 retrievals remaining' in w for w in warnings)
    assert not any('BURN AFTER READING' in w for w in warnings)


def test_describe_unknown_and_unlimited():
    store = _store()
    try:
        dd.describe(store, "SILENT-OCEAN-1234")
        assert False, "Should have raised NotFound"
    except NotFound as e:
        assert e.status == 404

    drop, _ = dd.create(store, b"x", "pw", iterations=FAST_ITERATIONS)
    assert dd.describe(store, drop.codename)['remaining'] == 'unlimited'


# ==========================================================================
# Model, codenames, errors, config
# ==========================================================================

def test_normalize_codename():
    assert dd.normalize_codename("  dark-wolf-0042 ") == "DARK-WOLF-0042"
    for bad in ("DARK-WOLF-42", "DARKWOLF-0042", "DARK-W0LF-0042", "", "DARK-WOLF-00423"):
        try:
            dd.normalize_codename(bad)
            assert False, f"Accepted {bad!r}"
        except InvalidCodename:
            pass


def test_drop_json_serialization():
    store = _store()
    drop, _ = dd.create(store, b"JSON test", "pw", filename="a.txt",
                        iterations=FAST_ITERATIONS)
    data = json.loads(drop.to_json())
    assert data['version'] == 'dead_drop_v2'
    assert data['codename'] == drop.codename
    assert data['original_filename'] == 'a.txt'
    assert data['uploads'][0]['event_type'] == 'upload'
    assert 'password' not in data
    assert data['cover_image_size'] == len(drop.cover_image)


def test_errors_are_value_errors():
    for exc in (NotFound(), Expired(), Burned(), InvalidPassword(),
                UnsupportedCarrierFormat(), CapacityExceeded(10, 20)):
        assert isinstance(exc, DeadDropError)
        assert isinstance(exc, ValueError)
        assert exc.reason
    assert "20 bytes" in str(CapacityExceeded(10, 20))


def test_settings_from_env():
    keys = {
        'DEAD_DROP_DEFAULT_TTL': '600',
        'DEAD_DROP_BITS_PER_CHANNEL': '2',
        'DEAD_DROP_KDF_ITERATIONS': '5000',
        'DEAD_DROP_LOG_LEVEL': 'debug',
    }
    saved = {k: os.environ.get(k) for k in keys}
    os.environ.update(keys)
    try:
        settings = Settings.from_env()
        assert settings.default_ttl == 600
        assert settings.bits_per_channel == 2
        assert settings.kdf_iterations == 5000
        assert settings.log_level == 'DEBUG'
        assert settings.port == 8787

        os.environ['DEAD_DROP_BITS_PER_CHANNEL'] = '9'
        try:
            Settings.from_env()
            assert False, "Should have rejected 9 bits per channel"
        except ValueError:
            pass
    finally:
        for k, v in saved.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


def test_settings_fractional_intervals_and_kdf_bounds():
    keys = {
        'DEAD_DROP_BURN_GRACE': '0.5',
        'DEAD_DROP_SWEEP_INTERVAL': '2.5',
        'DEAD_DROP_KDF_ITERATIONS': '5000',
    }
    saved = {k: os.environ.get(k) for k in keys}
    os.environ.update(keys)
    try:
        settings = Settings.from_env()
        assert settings.burn_grace_seconds == 0.5
        assert settings.sweep_interval == 2.5

        for bad in ('500', str(crypto.MAX_ITERATIONS + 1)):
            os.environ['DEAD_DROP_KDF_ITERATIONS'] = bad
            try:
                Settings.from_env()
                assert False, f"Should have rejected {bad} KDF iterations"
            except ValueError:
                pass
    finally:
        for k, v in saved.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


# ==========================================================================
# Runner
# ==========================================================================

def run_all():
    tests = [
        # Create
        test_pipeline_basic,
        test_pipeline_carrier_holds_envelope_not_plaintext,
        test_pipeline_uploaded_cover_and_density,
        test_pipeline_capacity_exceeded_stores_nothing,
        test_pipeline_lossy_cover_rejected,
        test_pipeline_requires_password,
        # Retrieve
        test_pipeline_wrong_password,
        test_pipeline_burn_then_gone,
        test_pipeline_expired,
        # Describe
        test_describe_metadata_only,
        test_describe_warnings,
        test_describe_unknown_and_unlimited,
        # Misc
        test_normalize_codename,
        test_drop_json_serialization,
        test_errors_are_value_errors,
        test_settings_from_env,
        test_settings_fractional_intervals_and_kdf_bounds,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            print(f"[PASS] {t.__name__}")
            passed += 1
        except Exception as e:
            print(f"[FAIL] {t.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n--- Dead Drop tests: {passed} passed, {failed} failed ---")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all() else 1)
