import jwt
import pytest

from bridge.errors import ConfigurationError, InvalidSignature, InvalidToken, ValidationError
from bridge.services.tokens import TOKEN_SCOPE, CapabilityTokenIssuer
from conftest import OTHER_WALLET_KEY, WALLET_KEY, wallet_address, wallet_sign

SECRET = "test-secret"


@pytest.fixture
def issuer():
    return CapabilityTokenIssuer(SECRET, token_ttl_secs=120)


class TestChallenge:
    def test_challenge_embeds_address_and_is_fresh(self, issuer):
        address = wallet_address()
        first = issuer.challenge(address.lower())
        second = issuer.challenge(address)
        assert address in first
        assert "Nonce:" in first and "Issued At:" in first
        assert first != second

    def test_invalid_address_rejected(self, issuer):
        with pytest.raises(ValidationError):
            issuer.challenge("0xabc")

    def test_missing_secret(self):
        with pytest.raises(ConfigurationError):
            CapabilityTokenIssuer(None)

    def test_outstanding_challenges_are_capped(self):
        issuer = CapabilityTokenIssuer(SECRET, max_challenges=2)
        keys = ["0x" + "11" * 32, OTHER_WALLET_KEY, WALLET_KEY]
        addresses = [wallet_address(k) for k in keys]
        messages = [issuer.challenge(a) for a in addresses]

        assert len(issuer._challenges) == 2
        with pytest.raises(InvalidSignature):
            issuer.issue(addresses[0], wallet_sign(messages[0], key=keys[0]))
        token = issuer.issue(addresses[2], wallet_sign(messages[2], key=keys[2]))
        assert issuer.verify(token) == addresses[2]


class TestIssue:
    def test_issue_and_verify(self, issuer):
        address = wallet_address()
        message = issuer.challenge(address)
        token = issuer.issue(address, wallet_sign(message))

        assert issuer.verify(token) == address
        claims = jwt.decode(token, SECRET, algorithms=["HS256"])
        assert claims["sub"] == address
        assert claims["scope"] == TOKEN_SCOPE
        assert claims["exp"] - claims["iat"] == 120

    def test_any_flipped_byte_is_rejected(self, issuer):
        address = wallet_address()
        message = issuer.challenge(address)
        good = bytes.fromhex(wallet_sign(message)[2:])

        for i in range(len(good)):
            tampered = bytearray(good)
            tampered[i] ^= 0x01
            with pytest.raises(InvalidSignature):
                issuer.issue(address, "0x" + tampered.hex())

        # Failed attempts do not burn the challenge
        assert issuer.issue(address, "0x" + good.hex())

    def test_signature_is_single_use(self, issuer):
        address = wallet_address()
        sig = wallet_sign(issuer.challenge(address))
        issuer.issue(address, sig)
        with pytest.raises(InvalidSignature):
            issuer.issue(address, sig)

    def test_signature_over_stale_challenge_rejected(self, issuer):
        address = wallet_address()
        old_sig = wallet_sign(issuer.challenge(address))
        issuer.challenge(address)
        with pytest.raises(InvalidSignature):
            issuer.issue(address, old_sig)

    def test_other_key_rejected(self, issuer):
        address = wallet_address()
        message = issuer.challenge(address)
        with pytest.raises(InvalidSignature):
            issuer.issue(address, wallet_sign(message, key=OTHER_WALLET_KEY))

    def test_no_challenge(self, issuer):
        with pytest.raises(InvalidSignature):
            issuer.issue(wallet_address(), "0x" + "00" * 65)

    def test_expired_challenge(self):
        issuer = CapabilityTokenIssuer(SECRET, challenge_ttl_secs=0)
        address = wallet_address()
        message = issuer.challenge(address)
        with pytest.raises(InvalidSignature):
            issuer.issue(address, wallet_sign(message))


class TestVerify:
    def test_expired_token(self):
        issuer = CapabilityTokenIssuer(SECRET, token_ttl_secs=-10)
        address = wallet_address()
        token = issuer.issue(address, wallet_sign(issuer.challenge(address)))
        with pytest.raises(InvalidToken):
            issuer.verify(token)

    def test_foreign_secret(self, issuer):
        other = CapabilityTokenIssuer("another-secret")
        address = wallet_address()
        token = other.issue(address, wallet_sign(other.challenge(address)))
        with pytest.raises(InvalidToken):
            issuer.verify(token)

    def test_garbage(self, issuer):
        with pytest.raises(InvalidToken):
            issuer.verify("not.a.token")
