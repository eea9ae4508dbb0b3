"""Off-chain attestation and settlement bridge."""

__version__ = "0.1.0"
