from eth_account import Account
from eth_account.messages import encode_defunct
import pytest

from bridge.lib import crypto
from conftest import ATTESTOR_KEY, WALLET_KEY, wallet_address, wallet_sign


class TestEncoding:
    def test_keccak_empty_vector(self):
        assert crypto.keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_uint256_array_is_fixed_width_big_endian(self):
        encoded = crypto.encode_uint256_array([1, 256])
        assert len(encoded) == 64
        assert encoded[:32] == b"\x00" * 31 + b"\x01"
        assert encoded[32:] == b"\x00" * 30 + b"\x01\x00"

    @pytest.mark.parametrize("value", [-1, 2**256, True, "7", 1.5])
    def test_uint256_array_rejects_non_uint(self, value):
        with pytest.raises(ValueError):
            crypto.encode_uint256_array([value])


class TestSignAndRecover:
    def test_address_matches_eth_account(self):
        key = crypto.parse_private_key(ATTESTOR_KEY)
        assert crypto.public_key_to_address(key.public_key) == Account.from_key(ATTESTOR_KEY).address

    def test_personal_signature_accepted_by_eth_account(self):
        key = crypto.parse_private_key(WALLET_KEY)
        sig = crypto.sign_personal_message(key, b"hello")
        assert sig[64] in (27, 28)
        recovered = Account.recover_message(encode_defunct(primitive=b"hello"), signature=sig)
        assert recovered == wallet_address()

    def test_recovers_wallet_signature(self):
        sig = wallet_sign("log me in")
        assert crypto.recover_personal_signer(b"log me in", sig) == wallet_address()
        # Without 0x prefix too
        assert crypto.recover_personal_signer(b"log me in", sig[2:]) == wallet_address()

    @pytest.mark.parametrize("bad", ["", "0x", "zz" * 65, "00" * 64, "00" * 66])
    def test_malformed_signature_fails_closed(self, bad):
        assert crypto.recover_personal_signer(b"msg", bad) is None

    def test_normalize_address(self):
        addr = wallet_address()
        assert crypto.normalize_address(addr.lower()) == addr
        with pytest.raises(ValueError):
            crypto.normalize_address("0xabc")
