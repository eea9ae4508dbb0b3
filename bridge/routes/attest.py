"""
Dataset attestation and catalog endpoints.

POST /v1/attest {resourceIds}   -> {resourceIds, totalCost, signature, signer}
GET  /v1/resources?label=cat    -> active resources carrying a label
POST /v1/content (multipart)    -> upload with a capability token, register resource
"""
import logging

from fastapi import APIRouter, Depends, File, Form, Header, UploadFile

from ..deps import (
    get_catalog,
    get_classifier,
    get_issuer,
    get_price_per_resource,
    get_signer,
    get_storage,
)
from ..errors import InvalidToken, ValidationError
from ..lib.crypto import sha256_hex
from ..lib.storage import StorageClient
from ..models.attest import (
    AttestRequest,
    AttestResponse,
    ContentUploadResponse,
    ResourceListResponse,
    ResourceOut,
)
from ..services.catalog import InMemoryCatalog, parse_labels
from ..services.signer import AttestationSigner, validate_resource_ids
from ..services.tokens import CapabilityTokenIssuer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["attest"])


@router.post("/attest", response_model=AttestResponse)
def attest_dataset(
    body: AttestRequest,
    signer: AttestationSigner = Depends(get_signer),
    catalog: InMemoryCatalog = Depends(get_catalog),
    price_per_resource: int = Depends(get_price_per_resource),
):
    """
    Sign an ordered set of resource ids for the dataset contract.

    Every id must be in the catalog; the signature is never issued for an
    unknown or inactive resource.
    """
    ids = validate_resource_ids(body.resource_ids)
    catalog.resolve(ids)
    signature = signer.sign(ids)
    return AttestResponse(
        resource_ids=ids,
        total_cost=str(len(ids) * price_per_resource),
        signature=signature,
        signer=signer.address,
    )


@router.get("/resources", response_model=ResourceListResponse)
def list_resources(label: str, catalog: InMemoryCatalog = Depends(get_catalog)):
    if not label.strip():
        raise ValidationError("Label parameter is required")
    return ResourceListResponse(resources=[
        ResourceOut(
            resource_id=r.resource_id,
            owner=r.owner,
            content_hash=r.content_hash,
            labels=list(r.labels),
        )
        for r in catalog.find_by_label(label)
    ])


def _bearer(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise InvalidToken("Missing bearer token")
    return authorization[7:].strip()


@router.post("/content", response_model=ContentUploadResponse, status_code=201)
async def upload_content(
    file: UploadFile = File(...),
    labels: str = Form(...),
    authorization: str | None = Header(None),
    issuer: CapabilityTokenIssuer = Depends(get_issuer),
    storage: StorageClient = Depends(get_storage),
    classifier=Depends(get_classifier),
    catalog: InMemoryCatalog = Depends(get_catalog),
):
    token = _bearer(authorization)
    principal = issuer.verify(token)

    label_set = parse_labels(labels)
    if not label_set:
        raise ValidationError("At least one label is required")
    data = await file.read()
    if not data:
        raise ValidationError("Empty file")

    if not await classifier.classify(data, label_set):
        raise ValidationError("Content does not match provided labels")

    content_id = await storage.upload(data, file.filename or "upload", principal, token)
    resource = catalog.add(
        owner=principal,
        content_hash=sha256_hex(data),
        labels=label_set,
        content_id=content_id,
    )
    logger.info(f"Content {content_id} stored as resource {resource.resource_id}")
    return ContentUploadResponse(
        resource_id=resource.resource_id,
        content_hash=resource.content_hash,
        content_id=content_id,
    )
