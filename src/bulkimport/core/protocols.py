"""Protocol interfaces for the bulk import engine.

The engine talks to the outside world only through these Protocols:
structural typing, no inheritance required, easy to fake in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from bulkimport.models.records import CommitPayload, SubmitResponse


# ---------------------------------------------------------------------------
# Commit boundary
# ---------------------------------------------------------------------------

@runtime_checkable
class ISubmitter(Protocol):
    """External bulk endpoint. Raises on whole-batch failure."""

    async def __call__(self, payload: CommitPayload) -> SubmitResponse | dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Schema catalog
# ---------------------------------------------------------------------------

@runtime_checkable
class ISchemaCatalog(Protocol):
    """Lookup of import schemas by kind name."""

    def get(self, kind: str, **params: Any) -> Any: ...

    def kinds(self) -> list[str]: ...
