"""
Resource catalog: keyed read/write over accepted content.

Resources are created when content is accepted into storage and only ever
deactivated afterwards. Inactive resources are treated as unknown.
"""
import itertools
import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resource:
    resource_id: int
    owner: str
    content_hash: str
    labels: tuple[str, ...] = ()
    active: bool = True
    content_id: Optional[str] = None


def parse_labels(labels: str | Iterable[str]) -> tuple[str, ...]:
    """'cat, Animal' -> ('cat', 'animal')"""
    if isinstance(labels, str):
        labels = labels.split(",")
    return tuple(dict.fromkeys(l.strip().lower() for l in labels if l.strip()))


class InMemoryCatalog:
    def __init__(self, resources: Iterable[Resource] = ()):
        self._resources: dict[int, Resource] = {}
        self._lock = threading.Lock()
        for resource in resources:
            self._resources[resource.resource_id] = resource
        start = max(self._resources, default=0) + 1
        self._ids = itertools.count(start)

    def add(
        self,
        owner: str,
        content_hash: str,
        labels: str | Iterable[str] = (),
        content_id: Optional[str] = None,
    ) -> Resource:
        with self._lock:
            resource_id = next(self._ids)
            while resource_id in self._resources:
                resource_id = next(self._ids)
            resource = Resource(
                resource_id=resource_id,
                owner=owner,
                content_hash=content_hash,
                labels=parse_labels(labels),
                content_id=content_id,
            )
            self._resources[resource_id] = resource
        logger.info(f"Resource {resource_id} registered for {owner}")
        return resource

    def get(self, resource_id: int) -> Optional[Resource]:
        resource = self._resources.get(resource_id)
        if resource is None or not resource.active:
            return None
        return resource

    def resolve(self, resource_ids: Iterable[int]) -> list[Resource]:
        """All requested resources, in order. NotFoundError names any unknown id."""
        found, missing = [], []
        for resource_id in resource_ids:
            resource = self.get(resource_id)
            if resource is None:
                missing.append(resource_id)
            else:
                found.append(resource)
        if missing:
            raise NotFoundError(f"Unknown resource id(s): {', '.join(map(str, missing))}")
        return found

    def find_by_label(self, label: str) -> list[Resource]:
        wanted = label.strip().lower()
        return sorted(
            (r for r in self._resources.values() if r.active and wanted in r.labels),
            key=lambda r: r.resource_id,
        )

    def deactivate(self, resource_id: int) -> Resource:
        with self._lock:
            resource = self._resources.get(resource_id)
            if resource is None:
                raise NotFoundError(f"Unknown resource id: {resource_id}")
            resource = replace(resource, active=False)
            self._resources[resource_id] = resource
        logger.info(f"Resource {resource_id} deactivated")
        return resource
