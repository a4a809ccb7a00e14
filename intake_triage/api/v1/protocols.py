"""Crisis protocol configuration endpoints."""

from fastapi import APIRouter, HTTPException, status

from intake_triage.api.deps import Registry
from intake_triage.core.logging import audit_logger
from intake_triage.protocols.models import ProtocolSnapshot
from intake_triage.schemas.alert import ProtocolRead, ProtocolSnapshotRead

router = APIRouter(prefix="/protocols", tags=["protocols"])


def _snapshot_read(snapshot: ProtocolSnapshot) -> ProtocolSnapshotRead:
    return ProtocolSnapshotRead(
        version=snapshot.version,
        content_hash=snapshot.content_hash,
        loaded_at=snapshot.loaded_at,
        source=snapshot.source,
        protocols=[ProtocolRead.model_validate(r) for r in snapshot.records.values()],
    )


@router.get("", response_model=ProtocolSnapshotRead)
def get_protocols(registry: Registry) -> ProtocolSnapshotRead:
    """Get the currently loaded protocol table."""
    return _snapshot_read(registry.snapshot)


@router.post("/reload", response_model=ProtocolSnapshotRead)
def reload_protocols(registry: Registry) -> ProtocolSnapshotRead:
    """Reload the protocol table from disk without a restart.

    A file that fails to load leaves the current table in place.
    """
    try:
        snapshot = registry.reload()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Protocol table not reloaded: {e}",
        )

    audit_logger.log(
        action="protocols.reloaded",
        actor_type="system",
        actor_id="api",
        entity_type="protocol_table",
        entity_id=snapshot.version,
        metadata={"content_hash": snapshot.content_hash, "records": len(snapshot.records)},
    )
    return _snapshot_read(snapshot)
