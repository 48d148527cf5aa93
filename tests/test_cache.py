from project_controls.utils import cache as cache_module
from project_controls.utils.cache import Cache, key_fingerprint


def test_entries_expire_after_ttl(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(cache_module.time, 'monotonic', lambda: now[0])
    reference = Cache(ttl_seconds=60)

    reference.set('crafts', ['pf'])
    now[0] += 59
    assert reference.get('crafts') == ['pf']

    now[0] += 1
    assert reference.get('crafts') is None


def test_clear_and_missing_keys():
    reference = Cache()
    reference.set('crafts', ['pf'])
    reference.clear()

    assert reference.get('crafts') is None
    assert reference.get('never-set') is None


def test_key_fingerprint_hides_secret():
    fingerprint = key_fingerprint('test-key-0123456789abcdef')

    assert len(fingerprint) == 12
    assert 'test-key' not in fingerprint
    assert fingerprint == key_fingerprint('test-key-0123456789abcdef')
