"""
Cryptographic utilities for the bridge.

Ethereum-compatible secp256k1 signing and address recovery:
- Keccak-256 over fixed-width uint256 arrays (abi.encodePacked(uint256[]))
- EIP-191 "personal message" wrapper
- 65-byte r || s || v signatures with v in {27, 28}

SECURITY: recovery FAILS CLOSED. Any malformed input yields None,
never a partially trusted address.
"""
import hashlib
import logging
from typing import Iterable, Optional

from coincurve import PrivateKey, PublicKey
from eth_hash.auto import keccak
from eth_utils import is_address, to_checksum_address

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1
PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"


def sha256_hex(data: str | bytes) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def encode_uint256_array(values: Iterable[int]) -> bytes:
    """
    Tightly packed uint256[] encoding: each element as 32 big-endian bytes,
    no length prefix. Order is preserved.
    """
    out = bytearray()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Not an integer: {value!r}")
        if value < 0 or value > UINT256_MAX:
            raise ValueError(f"Out of uint256 range: {value}")
        out += value.to_bytes(32, "big")
    return bytes(out)


def personal_message_hash(message: bytes) -> bytes:
    """EIP-191 version 0x45 digest of a message."""
    return keccak(PERSONAL_MESSAGE_PREFIX + str(len(message)).encode("ascii") + message)


def parse_private_key(key_hex: str) -> PrivateKey:
    """Parse a 32-byte hex private key (with or without 0x)."""
    raw = key_hex.strip()
    if raw.startswith(("0x", "0X")):
        raw = raw[2:]
    key_bytes = bytes.fromhex(raw)
    if len(key_bytes) != 32:
        raise ValueError(f"Invalid private key length: {len(key_bytes)} (expected 32)")
    return PrivateKey(key_bytes)


def public_key_to_address(public_key: PublicKey) -> str:
    """Checksummed Ethereum address of a secp256k1 public key."""
    uncompressed = public_key.format(compressed=False)
    return to_checksum_address("0x" + keccak(uncompressed[1:])[-20:].hex())


def sign_digest(private_key: PrivateKey, digest: bytes) -> bytes:
    """
    Sign a 32-byte digest. Deterministic (RFC 6979), so the same digest and
    key always produce the same bytes.
    """
    if len(digest) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
    sig = private_key.sign_recoverable(digest, hasher=None)
    # coincurve yields recovery id 0/1; Ethereum expects 27/28
    return sig[:64] + bytes([sig[64] + 27])


def sign_personal_message(private_key: PrivateKey, message: bytes) -> bytes:
    return sign_digest(private_key, personal_message_hash(message))


def decode_signature(signature_hex: str) -> Optional[bytes]:
    """Decode a 65-byte hex signature, normalising v to a 0/1 recovery id."""
    raw = signature_hex.strip()
    if raw.startswith(("0x", "0X")):
        raw = raw[2:]
    try:
        sig = bytes.fromhex(raw)
    except ValueError:
        return None
    if len(sig) != 65:
        return None
    v = sig[64]
    if v in (27, 28):
        v -= 27
    if v not in (0, 1):
        return None
    return sig[:64] + bytes([v])


def recover_digest_signer(digest: bytes, signature_hex: str) -> Optional[str]:
    """Recover the checksummed address that signed a 32-byte digest."""
    sig = decode_signature(signature_hex)
    if sig is None:
        return None
    try:
        public_key = PublicKey.from_signature_and_message(sig, digest, hasher=None)
    except ValueError as e:
        logger.debug(f"Signature recovery failed: {e}")
        return None
    return public_key_to_address(public_key)


def recover_personal_signer(message: bytes, signature_hex: str) -> Optional[str]:
    """Recover the address that signed `message` with an EIP-191 wrapper."""
    return recover_digest_signer(personal_message_hash(message), signature_hex)


def normalize_address(address: str) -> str:
    """Checksum an address, raising ValueError if it is not one."""
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)
