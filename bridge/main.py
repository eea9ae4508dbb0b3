"""
Attestation and settlement bridge API.

Run with:
    uvicorn bridge.main:app

Components are built once here and injected into handlers through
app.state. Anything whose key or credentials are missing is left
unconfigured; its endpoints answer 503 instead of degrading.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .errors import BridgeError, ConfigurationError
from .lib.settlement import SettlementClient
from .lib.storage import StorageClient
from .routes.attest import router as attest_router
from .routes.auth import router as auth_router
from .routes.payments import router as payments_router
from .services.catalog import InMemoryCatalog
from .services.classifier import AcceptAllClassifier
from .services.ledger import InMemoryReferenceStore, ReferenceLedger, ShelveReferenceStore
from .services.signer import AttestationSigner
from .services.tokens import CapabilityTokenIssuer
from .services.verifier import PaymentVerifier

logger = logging.getLogger(__name__)

_UNSET = object()


def _build(label: str, factory):
    try:
        return factory()
    except ConfigurationError as e:
        logger.critical(f"{label} disabled: {e.reason}")
        return None


def create_app(
    settings: Optional[Settings] = None,
    *,
    signer=_UNSET,
    issuer=_UNSET,
    ledger=_UNSET,
    catalog=_UNSET,
    settlement=_UNSET,
    storage=_UNSET,
    classifier=_UNSET,
) -> FastAPI:
    settings = settings or Settings.from_env()

    if signer is _UNSET:
        signer = _build("Attestation signer", lambda: AttestationSigner(settings.attestor_private_key))
    if issuer is _UNSET:
        issuer = _build("Token issuer", lambda: CapabilityTokenIssuer(
            settings.api_secret,
            token_ttl_secs=settings.token_ttl_secs,
            challenge_ttl_secs=settings.challenge_ttl_secs,
        ))
    if ledger is _UNSET:
        store = ShelveReferenceStore(settings.ledger_path) if settings.ledger_path else InMemoryReferenceStore()
        ledger = ReferenceLedger(store)
    if catalog is _UNSET:
        catalog = InMemoryCatalog()
    if settlement is _UNSET:
        settlement = _build("Settlement client", lambda: SettlementClient(
            settings.settlement_app_id,
            settings.settlement_api_key,
            base_url=settings.settlement_api_base,
            timeout=settings.settlement_timeout_secs,
        ))
    if storage is _UNSET:
        storage = _build("Storage client", lambda: StorageClient(
            settings.storage_api_base,
            settings.storage_api_key,
        ))
    if classifier is _UNSET:
        classifier = AcceptAllClassifier()

    app = FastAPI(title="Attestation & Settlement Bridge", version=__version__)
    app.state.settings = settings
    app.state.signer = signer
    app.state.issuer = issuer
    app.state.ledger = ledger
    app.state.catalog = catalog
    app.state.storage = storage
    app.state.classifier = classifier
    app.state.verifier = (
        PaymentVerifier(ledger, settlement) if ledger is not None and settlement is not None else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.__class__.__name__, "detail": exc.reason},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{where}: {first.get('msg', 'invalid')}" if where else first.get("msg", "Invalid request")
        return JSONResponse(status_code=400, content={"error": "ValidationError", "detail": detail})

    app.include_router(auth_router)
    app.include_router(attest_router)
    app.include_router(payments_router)

    @app.get("/healthz")
    def health():
        return {
            "ok": True,
            "signer": app.state.signer is not None,
            "issuer": app.state.issuer is not None,
            "verifier": app.state.verifier is not None,
            "storage": app.state.storage is not None,
        }

    return app


app = create_app()
