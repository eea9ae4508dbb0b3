"""
Request-scoped access to the components built at startup.

Components live on app.state. A component that failed to configure is
stored as None and every endpoint depending on it answers 503.
"""
from fastapi import Request

from .errors import ConfigurationError
from .services.catalog import InMemoryCatalog
from .services.ledger import ReferenceLedger
from .services.signer import AttestationSigner
from .services.tokens import CapabilityTokenIssuer
from .services.verifier import PaymentVerifier


def _component(request: Request, name: str, label: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise ConfigurationError(f"{label} not configured")
    return component


def get_signer(request: Request) -> AttestationSigner:
    return _component(request, "signer", "Attestation signer")


def get_issuer(request: Request) -> CapabilityTokenIssuer:
    return _component(request, "issuer", "Token issuer")


def get_ledger(request: Request) -> ReferenceLedger:
    return _component(request, "ledger", "Reference ledger")


def get_verifier(request: Request) -> PaymentVerifier:
    return _component(request, "verifier", "Payment verifier")


def get_catalog(request: Request) -> InMemoryCatalog:
    return _component(request, "catalog", "Catalog")


def get_storage(request: Request):
    return _component(request, "storage", "Storage network")


def get_classifier(request: Request):
    return _component(request, "classifier", "Content classifier")


def get_price_per_resource(request: Request) -> int:
    return request.app.state.settings.price_per_resource
