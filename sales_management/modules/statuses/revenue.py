from __future__ import annotations

from typing import Any, Mapping, Union

from .registry import RegistrySnapshot

DocumentLike = Union[Mapping[str, Any], Any]


def is_revenue_recognized(document: DocumentLike, snapshot: RegistrySnapshot) -> bool:
    """
    True iff the document sits in its registry's completion status.

    The only place the completion flag is interpreted. Delivery order and
    invoice registries have no completion status, so their documents never
    count.
    """
    if snapshot.completed_key is None:
        return False
    if isinstance(document, Mapping):
        status = document.get("status")
    else:
        status = getattr(document, "status", None)
    return status == snapshot.completed_key
