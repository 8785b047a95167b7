import threading

import pytest

from securelink.exceptions import HandshakeError
from securelink.services.keyagreement import DHParameters, KeyAgreementParty
from securelink.services.sessions import InMemorySessionStore, get_session_store, reset_session_store

DEMO = DHParameters(prime=23, generator=5)
LARGE = DHParameters(prime=2 ** 127 - 1, generator=3)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_or_create_reuses_session_per_id():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    a = store.get_or_create('abc')
    assert store.get_or_create('abc') is a
    assert store.get_or_create('other') is not a
    assert len(store) == 2
    assert a.shared_secret is None


def test_empty_session_id_maps_to_default():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    assert store.get_or_create('').session_id == 'default'


def test_public_value_for_matches_server_party():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    pub = store.public_value_for('s1')
    assert pub == str(store.get_or_create('s1').server_party.public_value)


def test_establish_records_and_returns_secret():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    server_pub = store.public_value_for('s1')
    client = KeyAgreementParty.from_private_scalar(5, DEMO)
    secret = store.establish('s1', str(client.public_value))
    assert secret == client.derive_shared_secret(server_pub)
    assert store.get_or_create('s1').shared_secret == secret


def test_establish_rejects_bad_public_value():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    with pytest.raises(HandshakeError):
        store.establish('s1', 'garbage')


def test_ttl_eviction_on_access():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=60, params=LARGE, clock=clock)
    first = store.get_or_create('s1')
    clock.now += 30
    assert store.get_or_create('s1') is first
    clock.now += 61
    replaced = store.get_or_create('s1')
    assert replaced is not first
    assert replaced.server_party.public_value != first.server_party.public_value


def test_access_refreshes_ttl():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=60, params=DEMO, clock=clock)
    first = store.get_or_create('s1')
    for _ in range(5):
        clock.now += 50
        assert store.get_or_create('s1') is first


def test_purge_expired():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=60, params=DEMO, clock=clock)
    store.get_or_create('old')
    clock.now += 45
    store.get_or_create('young')
    clock.now += 30
    assert store.purge_expired() == 1
    assert len(store) == 1


def test_new_sessions_sweep_expired_ones():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=10, params=DEMO, clock=clock)
    for i in range(1000):
        store.get_or_create(f'burst-{i}')
    assert len(store) == 1000
    clock.now += 1000
    for i in range(10):
        store.get_or_create(f'later-{i}')
    assert len(store) == 10


def test_sweep_spares_live_sessions():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=10, params=DEMO, clock=clock)
    live = store.get_or_create('live')
    store.get_or_create('idle')
    clock.now += 8
    store.get_or_create('live')
    clock.now += 8
    store.get_or_create('fresh')
    assert len(store) == 2
    assert store.get_or_create('live') is live


def test_no_ttl_keeps_sessions():
    clock = FakeClock()
    store = InMemorySessionStore(ttl=0, params=DEMO, clock=clock)
    first = store.get_or_create('s1')
    clock.now += 10 ** 9
    assert store.purge_expired() == 0
    assert store.get_or_create('s1') is first


def test_evict_and_close():
    store = InMemorySessionStore(ttl=0, params=DEMO)
    store.get_or_create('a')
    store.get_or_create('b')
    assert store.evict('a') is True
    assert store.evict('a') is False
    store.close()
    assert len(store) == 0


def test_store_resolved_from_settings():
    store = get_session_store()
    assert isinstance(store, InMemorySessionStore)
    assert get_session_store() is store
    store.get_or_create('x')
    reset_session_store()
    assert len(store) == 0
    assert get_session_store() is not store


def test_concurrent_get_or_create_yields_single_session():
    store = InMemorySessionStore(ttl=0, params=LARGE)
    barrier = threading.Barrier(8)
    seen = []

    def worker():
        barrier.wait()
        seen.append(store.get_or_create('shared'))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len({id(s) for s in seen}) == 1
    assert len(store) == 1


def test_concurrent_establish_returns_each_callers_secret():
    store = InMemorySessionStore(ttl=0, params=LARGE)
    server_pub = store.public_value_for('shared')
    clients = [KeyAgreementParty.generate(LARGE) for _ in range(8)]
    barrier = threading.Barrier(len(clients))
    results = {}

    def worker(i, client):
        barrier.wait()
        results[i] = store.establish('shared', client.public_key())

    threads = [threading.Thread(target=worker, args=(i, c)) for i, c in enumerate(clients)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    for i, client in enumerate(clients):
        assert results[i] == client.derive_shared_secret(server_pub)
    # the record holds one of the derived secrets, never a mix
    assert store.get_or_create('shared').shared_secret in results.values()
