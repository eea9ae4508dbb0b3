from typing import Optional

from pydantic import Field, StrictInt

from .common import CamelModel


class AttestRequest(CamelModel):
    # Order is significant and preserved
    resource_ids: list[StrictInt] = Field(..., alias="resourceIds")


class AttestResponse(CamelModel):
    resource_ids: list[int] = Field(..., alias="resourceIds")
    total_cost: str = Field(..., alias="totalCost", description="Base units, decimal string")
    signature: str
    signer: str


class ResourceOut(CamelModel):
    resource_id: int = Field(..., alias="resourceId")
    owner: str
    content_hash: str = Field(..., alias="contentHash")
    labels: list[str]


class ResourceListResponse(CamelModel):
    resources: list[ResourceOut]


class ContentUploadResponse(CamelModel):
    resource_id: int = Field(..., alias="resourceId")
    content_hash: str = Field(..., alias="contentHash")
    content_id: Optional[str] = Field(None, alias="contentId")
