import itertools

import pytest

from securelink.exceptions import HandshakeError
from securelink.services.keyagreement import DHParameters, KeyAgreementParty, modpow

DEMO = DHParameters(prime=23, generator=5)
MERSENNE_127 = DHParameters(prime=2 ** 127 - 1, generator=3)


@pytest.mark.parametrize('base,exp,mod', [
    (5, 0, 23), (5, 1, 23), (5, 6, 23), (22, 22, 23), (0, 5, 7), (7, 0, 7),
    (123456789, 987654321, 1000000007), (3, 2 ** 100 + 7, 2 ** 127 - 1),
])
def test_modpow_matches_builtin(base, exp, mod):
    assert modpow(base, exp, mod) == pow(base, exp, mod)


def test_modpow_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        modpow(2, 3, 1)
    with pytest.raises(ValueError):
        modpow(2, -1, 23)


def test_generate_picks_scalar_in_range_and_consistent_public_value():
    for _ in range(200):
        party = KeyAgreementParty.generate(DEMO)
        assert 1 <= party.private_scalar <= DEMO.prime - 1
        assert party.public_value == pow(DEMO.generator, party.private_scalar, DEMO.prime)


def test_shared_secret_agrees_for_every_scalar_pair():
    for a, b in itertools.product(range(1, DEMO.prime), repeat=2):
        pa = KeyAgreementParty.from_private_scalar(a, DEMO)
        pb = KeyAgreementParty.from_private_scalar(b, DEMO)
        assert pa.derive_shared_secret(pb.public_value) == pb.derive_shared_secret(pa.public_value)


def test_shared_secret_agrees_on_large_group():
    for _ in range(20):
        a = KeyAgreementParty.generate(MERSENNE_127)
        b = KeyAgreementParty.generate(MERSENNE_127)
        assert a.derive_shared_secret(b.public_key()) == b.derive_shared_secret(a.public_key())


def test_scalar_five_scenario():
    server = KeyAgreementParty.generate(DEMO)
    client = KeyAgreementParty.from_private_scalar(5, DEMO)
    assert client.public_value == pow(5, 5, 23) == 20
    client_secret = client.derive_shared_secret(server.public_key())
    assert client_secret == pow(server.public_value, 5, 23)
    assert server.derive_shared_secret(str(client.public_value)) == client_secret


@pytest.mark.parametrize('bad', ['', 'abc', '-3', '0', '23', '1e3', True, 99, '²', '1' * 5000])
def test_peer_public_value_validation(bad):
    party = KeyAgreementParty.generate(DEMO)
    with pytest.raises(HandshakeError):
        party.derive_shared_secret(bad)


def test_parameters_validation():
    with pytest.raises(ValueError):
        DHParameters(prime=2, generator=1)
    with pytest.raises(ValueError):
        DHParameters(prime=23, generator=23)


def test_parameters_from_settings(settings):
    settings.SECURE_CHANNEL = {**settings.SECURE_CHANNEL, 'DH_PRIME': 47, 'DH_GENERATOR': 5}
    assert DHParameters.from_settings() == DHParameters(prime=47, generator=5)


def test_private_scalar_not_in_repr():
    party = KeyAgreementParty.from_private_scalar(7, DEMO)
    assert 'private_scalar' not in repr(party)
