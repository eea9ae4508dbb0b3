"""
Capability Token Issuer

Flow:
1. challenge(principal) -> message with a fresh nonce and timestamp
2. wallet signs the message (EIP-191 personal_sign)
3. issue(principal, signature) -> short-lived HS256 JWT scoped to principal

INVARIANT: a token is only issued when the signature recovers to the
claimed principal. Each challenge is single-use, so a signature that
already bought a token cannot buy another.

Issued tokens are not tracked. Their only protection after issuance is the
short expiry, which the consuming storage API enforces via verify().
"""
import logging
import secrets
import threading
import time
from datetime import datetime, timezone
from typing import Optional

import jwt

from ..errors import ConfigurationError, InvalidSignature, InvalidToken, ValidationError
from ..lib.crypto import normalize_address, recover_personal_signer

logger = logging.getLogger(__name__)

TOKEN_SCOPE = "storage:upload"

# Upper bound on unanswered challenges held in memory
MAX_OUTSTANDING_CHALLENGES = 10_000


class CapabilityTokenIssuer:
    def __init__(
        self,
        api_secret: Optional[str],
        token_ttl_secs: int = 300,
        challenge_ttl_secs: int = 300,
        max_challenges: int = MAX_OUTSTANDING_CHALLENGES,
    ):
        if not api_secret:
            raise ConfigurationError("API_SECRET not configured - cannot sign tokens")
        self._secret = api_secret
        self.token_ttl_secs = token_ttl_secs
        self.challenge_ttl_secs = challenge_ttl_secs
        self.max_challenges = max(1, max_challenges)
        # principal -> (message, expires_at) in issue order; the latest challenge wins
        self._challenges: dict[str, tuple[str, int]] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"CapabilityTokenIssuer(token_ttl_secs={self.token_ttl_secs})"

    @staticmethod
    def _principal(principal: str) -> str:
        try:
            return normalize_address(principal)
        except ValueError:
            raise ValidationError("A valid Ethereum address is required") from None

    def challenge(self, principal: str) -> str:
        address = self._principal(principal)
        now = int(time.time())
        nonce = secrets.token_hex(16)
        issued_at = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        message = (
            "Please sign this message to prove you own this account.\n\n"
            f"Address: {address}\n"
            f"Nonce: {nonce}\n"
            f"Issued At: {issued_at}"
        )
        with self._lock:
            self._prune(now)
            self._challenges.pop(address, None)
            while len(self._challenges) >= self.max_challenges:
                # Oldest first: dicts keep insertion order and all share one TTL
                del self._challenges[next(iter(self._challenges))]
            self._challenges[address] = (message, now + self.challenge_ttl_secs)
        return message

    def _prune(self, now: int) -> None:
        expired = [p for p, (_, exp) in self._challenges.items() if exp <= now]
        for p in expired:
            del self._challenges[p]

    def issue(self, principal: str, signature: str) -> str:
        address = self._principal(principal)
        now = int(time.time())

        with self._lock:
            self._prune(now)
            pending = self._challenges.get(address)
        if pending is None or pending[1] <= now:
            logger.warning(f"Token request without a live challenge for {address}")
            raise InvalidSignature("No outstanding challenge for this address")
        message = pending[0]

        recovered = recover_personal_signer(message.encode("utf-8"), signature)
        if recovered != address:
            logger.warning(f"Signature mismatch for {address} (recovered {recovered})")
            raise InvalidSignature("Signature does not match address")

        with self._lock:
            # Consume the challenge; a concurrent issue() with the same one loses
            if self._challenges.get(address, (None,))[0] != message:
                raise InvalidSignature("Challenge already used")
            del self._challenges[address]

        body = {
            "sub": address,
            "scope": TOKEN_SCOPE,
            "jti": secrets.token_hex(8),
            "iat": now,
            "exp": now + self.token_ttl_secs,
        }
        logger.info(f"Capability token issued to {address}")
        return jwt.encode(body, self._secret, algorithm="HS256")

    def verify(self, token: str) -> str:
        """Return the principal a still-valid token was issued to."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Capability token expired")
            raise InvalidToken("Token expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid capability token: {e}")
            raise InvalidToken("Invalid token")
        if claims.get("scope") != TOKEN_SCOPE:
            raise InvalidToken("Token scope mismatch")
        return claims["sub"]
