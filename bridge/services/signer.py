"""
Attestation Signer

Signs an ordered list of resource ids on behalf of the trusted authority.
The verifying contract recomputes the same digest and checks the signer:

    digest    = keccak256(abi.encodePacked(uint256[] ids))
    signature = personal_sign(digest)        # EIP-191 wrapper

Order matters: [1, 2] and [2, 1] produce different digests. Callers and
the contract must agree on order; ids are never sorted here.

SECURITY: the key is loaded once, held privately and never logged or
returned. Compromise of this key invalidates every attestation ever issued.
"""
import logging
from typing import Optional, Sequence

from ..errors import ConfigurationError, ValidationError
from ..lib.crypto import (
    UINT256_MAX,
    encode_uint256_array,
    keccak256,
    parse_private_key,
    public_key_to_address,
    recover_personal_signer,
    sign_personal_message,
)

logger = logging.getLogger(__name__)


def validate_resource_ids(resource_ids: Sequence[int]) -> list[int]:
    ids = list(resource_ids)
    if not ids:
        raise ValidationError("resourceIds must be a non-empty list")
    for value in ids:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
            raise ValidationError(f"Invalid resource id: {value!r}")
    if len(set(ids)) != len(ids):
        raise ValidationError("resourceIds must not contain duplicates")
    return ids


def attestation_digest(resource_ids: Sequence[int]) -> bytes:
    """Canonical hash of an ordered id list, before the EIP-191 wrapper."""
    try:
        return keccak256(encode_uint256_array(resource_ids))
    except ValueError as e:
        raise ValidationError(str(e)) from e


def recover_attestor(resource_ids: Sequence[int], signature_hex: str) -> Optional[str]:
    """What a verifier does: recompute the digest and recover the signer."""
    return recover_personal_signer(attestation_digest(resource_ids), signature_hex)


class AttestationSigner:
    def __init__(self, private_key_hex: Optional[str]):
        if not private_key_hex:
            raise ConfigurationError("Attestation signing key not configured")
        try:
            self._key = parse_private_key(private_key_hex)
        except ValueError:
            # Don't echo the value
            raise ConfigurationError("Attestation signing key is malformed") from None
        self.address = public_key_to_address(self._key.public_key)
        logger.info(f"Attestation signer loaded: {self.address}")

    def __repr__(self) -> str:
        return f"AttestationSigner(address={self.address!r})"

    def sign(self, resource_ids: Sequence[int]) -> str:
        """0x-prefixed 65-byte signature over the ordered id list."""
        ids = validate_resource_ids(resource_ids)
        signature = sign_personal_message(self._key, attestation_digest(ids))
        logger.info(f"Signed attestation for {len(ids)} resource(s)")
        return "0x" + signature.hex()
