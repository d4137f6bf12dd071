"""Concrete Snapshot Store Service implementation."""

from __future__ import annotations

import asyncio
import difflib
import re
from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    utc_now,
    validate_meta,
)
from packages.guard_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    exception_to_error,
    internal_error,
    not_found_error,
    validation_error,
)
from packages.guard_shared.ids import generate_prefixed_id
from packages.guard_shared.logging import get_logger, public_api_instrumented
from packages.guard_shared.tree_ops import TreeStats
from resources.substrates.durable_store import (
    DurableStoreSubstrate,
    LocalDurableStoreSubstrate,
    resolve_durable_store_settings,
)
from resources.substrates.workspace import (
    LocalWorkspaceSubstrate,
    TrackedGroup,
    WorkspaceSubstrate,
    resolve_workspace_settings,
)
from services.state.snapshot_store.completeness import (
    StateStats,
    parse_config_text,
    score_completeness,
)
from services.state.snapshot_store.component import SERVICE_COMPONENT_ID
from services.state.snapshot_store.config import (
    SnapshotStoreSettings,
    resolve_snapshot_store_settings,
)
from services.state.snapshot_store.domain import (
    SNAPSHOT_ID_PREFIX,
    SNAPSHOT_INDEX_CORRUPT,
    SNAPSHOT_NOT_FOUND,
    HealthStatus,
    RestoreResult,
    SnapshotComparison,
    SnapshotContent,
    SnapshotFiles,
    SnapshotIndex,
    SnapshotMetadata,
    SnapshotSizes,
    SnapshotTrigger,
)
from services.state.snapshot_store.service import SnapshotStoreService

_LOGGER = get_logger(__name__)
_SNAPSHOT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")
_CURRENT = "current"


class SnapshotNotFoundError(LookupError):
    """Raised internally when a snapshot id has no stored metadata."""


class SnapshotIndexError(ValueError):
    """Raised internally when the persisted index cannot be decoded."""


class DefaultSnapshotStoreService(SnapshotStoreService):
    """Default snapshot store over the durable store and live workspace.

    Mutations (create, restore, delete) hold one ``asyncio.Lock`` per instance;
    the runtime builds exactly one instance per durable store root.
    """

    def __init__(
        self,
        *,
        settings: SnapshotStoreSettings,
        durable_store: DurableStoreSubstrate,
        workspace: WorkspaceSubstrate,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._durable = durable_store
        self._workspace = workspace
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: GuardSettings) -> "DefaultSnapshotStoreService":
        """Build snapshot store and its substrates from typed root settings."""
        return cls(
            settings=resolve_snapshot_store_settings(settings),
            durable_store=LocalDurableStoreSubstrate(
                settings=resolve_durable_store_settings(settings)
            ),
            workspace=LocalWorkspaceSubstrate(
                settings=resolve_workspace_settings(settings)
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("trigger",),
    )
    async def create(
        self,
        *,
        meta: EnvelopeMeta,
        trigger: SnapshotTrigger = SnapshotTrigger.MANUAL,
        description: str | None = None,
    ) -> Envelope[SnapshotMetadata]:
        """Capture every tracked group into a new snapshot."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            async with self._lock:
                created = await self._create_locked(
                    trigger=SnapshotTrigger(trigger), description=description
                )
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="create", exc=exc)
        return success(meta=meta, payload=created)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def list_snapshots(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[SnapshotMetadata]]:
        """List retained snapshots, newest first."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            index = await self._load_index()
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(
                meta=meta, operation="list_snapshots", exc=exc
            )
        return success(meta=meta, payload=list(index.snapshots))

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def get_index(self, *, meta: EnvelopeMeta) -> Envelope[SnapshotIndex]:
        """Return the full snapshot index document."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            index = await self._load_index()
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="get_index", exc=exc)
        return success(meta=meta, payload=index)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("snapshot_id",),
    )
    async def get_snapshot(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[SnapshotContent]:
        """Return one snapshot's metadata, configuration text, and skill names."""
        errors = await self._preflight(meta, snapshot_id)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            metadata = await self._load_metadata(snapshot_id)
            content = SnapshotContent(
                metadata=metadata,
                config_text=await self._durable.read_text(
                    *self._group_parts(snapshot_id, TrackedGroup.CONFIG)
                ),
                skills=tuple(
                    await self._durable.list_names(
                        *self._group_parts(snapshot_id, TrackedGroup.SKILLS)
                    )
                ),
            )
        except SnapshotNotFoundError:
            return failure(meta=meta, errors=[_not_found(snapshot_id)])
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="get_snapshot", exc=exc)
        return success(meta=meta, payload=content)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("snapshot_id",),
    )
    async def restore(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[RestoreResult]:
        """Replace every live tracked group with one snapshot's copy.

        A ``pre-restore`` snapshot of the current state is taken first; its
        failure is logged and does not block the restore.
        """
        errors = await self._preflight(meta, snapshot_id)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            async with self._lock:
                result = await self._restore_locked(snapshot_id)
        except SnapshotNotFoundError:
            return failure(meta=meta, errors=[_not_found(snapshot_id)])
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="restore", exc=exc)
        return success(meta=meta, payload=result)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("snapshot_id",),
    )
    async def delete(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[SnapshotMetadata]:
        """Remove one snapshot from the index and the store."""
        errors = await self._preflight(meta, snapshot_id)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            async with self._lock:
                index = await self._load_index()
                removed = next(
                    (item for item in index.snapshots if item.id == snapshot_id), None
                )
                if removed is None:
                    raise SnapshotNotFoundError(snapshot_id)
                await self._save_index(
                    index.model_copy(
                        update={
                            "snapshots": tuple(
                                item for item in index.snapshots if item.id != snapshot_id
                            )
                        }
                    )
                )
                await self._durable.remove(*self._snapshot_parts(snapshot_id))
        except SnapshotNotFoundError:
            return failure(meta=meta, errors=[_not_found(snapshot_id)])
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="delete", exc=exc)
        _LOGGER.info("snapshot deleted: snapshot_id=%s", snapshot_id)
        return success(meta=meta, payload=removed)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("snapshot_id", "compare_to"),
    )
    async def compare(
        self,
        *,
        meta: EnvelopeMeta,
        snapshot_id: str,
        compare_to: str | None = None,
    ) -> Envelope[SnapshotComparison]:
        """Compare one snapshot against another snapshot or the live state.

        Only the configuration file content and skill file names are compared.
        """
        target = compare_to or _CURRENT
        ids = [snapshot_id] if target == _CURRENT else [snapshot_id, target]
        errors = await self._preflight(meta, *ids)
        if errors:
            return failure(meta=meta, errors=errors)

        missing = snapshot_id
        try:
            await self._load_metadata(snapshot_id)
            config_a = await self._durable.read_text(
                *self._group_parts(snapshot_id, TrackedGroup.CONFIG)
            )
            skills_a = await self._durable.list_names(
                *self._group_parts(snapshot_id, TrackedGroup.SKILLS)
            )
            if target == _CURRENT:
                config_b = await self._workspace.read_config_text()
                skills_b = await self._workspace.list_names(TrackedGroup.SKILLS)
            else:
                missing = target
                await self._load_metadata(target)
                config_b = await self._durable.read_text(
                    *self._group_parts(target, TrackedGroup.CONFIG)
                )
                skills_b = await self._durable.list_names(
                    *self._group_parts(target, TrackedGroup.SKILLS)
                )
        except SnapshotNotFoundError:
            return failure(meta=meta, errors=[_not_found(missing)])
        except Exception as exc:  # noqa: BLE001
            return self._operation_failure(meta=meta, operation="compare", exc=exc)

        changed = config_a != config_b
        return success(
            meta=meta,
            payload=SnapshotComparison(
                snapshot_id=snapshot_id,
                compare_to=target,
                config_changed=changed,
                config_diff=(
                    _unified_diff(config_a, config_b, snapshot_id, target)
                    if changed
                    else None
                ),
                skills_added=tuple(sorted(set(skills_b) - set(skills_a))),
                skills_removed=tuple(sorted(set(skills_a) - set(skills_b))),
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return snapshot store and substrate readiness."""
        durable = self._durable.health()
        workspace = self._workspace.health()
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                durable_store_ready=durable.ready,
                workspace_ready=workspace.ready,
                detail=(
                    "ok"
                    if durable.ready and workspace.ready
                    else f"durable_store={durable.detail}; workspace={workspace.detail}"
                ),
            ),
        )

    async def _create_locked(
        self,
        *,
        trigger: SnapshotTrigger,
        description: str | None,
        evict: bool = True,
    ) -> SnapshotMetadata:
        """Create one snapshot and evict beyond retention; caller holds the lock.

        The index is persisted last, so a failed copy leaves it untouched.
        """
        index = await self._load_index()
        snapshot_id = generate_prefixed_id(SNAPSHOT_ID_PREFIX)
        try:
            stats: dict[TrackedGroup, TreeStats] = {}
            for group in TrackedGroup:
                stats[group] = await self._durable.copy_in(
                    self._workspace.group_path(group),
                    *self._group_parts(snapshot_id, group),
                    directory=group.is_directory,
                )
            try:
                config_text = await self._durable.read_text(
                    *self._group_parts(snapshot_id, TrackedGroup.CONFIG)
                )
            except UnicodeDecodeError:
                _LOGGER.warning(
                    "snapshot config is not valid UTF-8; scoring as malformed: "
                    "snapshot_id=%s",
                    snapshot_id,
                )
                config_text = None
            metadata = SnapshotMetadata(
                id=snapshot_id,
                timestamp=self._clock(),
                description=description or f"{trigger.value} snapshot",
                trigger=trigger,
                version=index.current_version + 1,
                files=SnapshotFiles(
                    has_config=stats[TrackedGroup.CONFIG].count > 0,
                    skills_count=stats[TrackedGroup.SKILLS].count,
                    conversations_count=stats[TrackedGroup.CONVERSATIONS].count,
                    devices_count=stats[TrackedGroup.DEVICES].count,
                    data_count=stats[TrackedGroup.DATA].count,
                ),
                metadata=SnapshotSizes(
                    config_size=stats[TrackedGroup.CONFIG].size,
                    skills_size=stats[TrackedGroup.SKILLS].size,
                    conversations_size=stats[TrackedGroup.CONVERSATIONS].size,
                    devices_size=stats[TrackedGroup.DEVICES].size,
                    data_size=stats[TrackedGroup.DATA].size,
                ),
                completeness_score=score_completeness(
                    parse_config_text(config_text),
                    StateStats(
                        devices_count=stats[TrackedGroup.DEVICES].count,
                        conversations_count=stats[TrackedGroup.CONVERSATIONS].count,
                    ),
                ),
            )
            await self._durable.write_json(
                *self._snapshot_parts(snapshot_id),
                self._settings.metadata_filename,
                value=metadata.to_json(),
            )
        except Exception:
            await self._discard_partial(snapshot_id)
            raise

        updated = SnapshotIndex(
            snapshots=(metadata, *index.snapshots),
            current_version=metadata.version,
            max_snapshots=self._settings.max_snapshots,
        )
        if evict:
            updated = await self._evict(updated)
        try:
            await self._save_index(updated)
        except Exception:
            await self._discard_partial(snapshot_id)
            raise
        _LOGGER.info(
            "snapshot created: snapshot_id=%s trigger=%s version=%d score=%d",
            snapshot_id,
            trigger.value,
            metadata.version,
            metadata.completeness_score.score if metadata.completeness_score else 0,
        )
        return metadata

    async def _restore_locked(self, snapshot_id: str) -> RestoreResult:
        """Restore one snapshot into the live state; caller holds the lock."""
        metadata = await self._load_metadata(snapshot_id)

        pre_restore_id: str | None = None
        if self._settings.pre_restore_snapshot:
            try:
                backup = await self._create_locked(
                    trigger=SnapshotTrigger.PRE_RESTORE,
                    description=f"Pre-restore backup (before restoring {snapshot_id})",
                    evict=False,
                )
                pre_restore_id = backup.id
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning(
                    "pre-restore snapshot failed; continuing restore: snapshot_id=%s",
                    snapshot_id,
                    exc_info=exc,
                )

        restored = False
        try:
            for group in TrackedGroup:
                await self._durable.copy_out(
                    self._workspace.group_path(group),
                    *self._group_parts(snapshot_id, group),
                    directory=group.is_directory,
                )
            restored = True
        finally:
            if pre_restore_id is not None:
                # Retention waits until the copy-out so the restored snapshot
                # cannot be evicted by its own backup. A failed copy-out keeps
                # the target around for a retry.
                index = await self._load_index()
                trimmed = await self._evict(
                    index, spare=None if restored else snapshot_id
                )
                if trimmed != index:
                    await self._save_index(trimmed)
        _LOGGER.info(
            "snapshot restored: snapshot_id=%s pre_restore_snapshot_id=%s",
            snapshot_id,
            pre_restore_id,
        )
        return RestoreResult(restored=metadata, pre_restore_snapshot_id=pre_restore_id)

    async def _preflight(
        self, meta: EnvelopeMeta, *snapshot_ids: str
    ) -> list[ErrorDetail]:
        """Validate metadata and ids, then require a mounted durable store."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return [validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
        for snapshot_id in snapshot_ids:
            if not _SNAPSHOT_ID_RE.match(snapshot_id or ""):
                return [
                    validation_error(
                        "snapshot_id: must be a non-empty snapshot identifier",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"snapshot_id": snapshot_id},
                    )
                ]
        if not await self._durable.ensure_mounted():
            return [
                dependency_error(
                    "durable store is not available",
                    code=codes.DEPENDENCY_UNAVAILABLE,
                    metadata={"resource": "substrate_durable_store"},
                )
            ]
        return []

    async def _load_index(self) -> SnapshotIndex:
        """Load the persisted index; a missing index is an empty one."""
        raw = await self._durable.read_json(*self._index_parts())
        if raw is None:
            return SnapshotIndex(max_snapshots=self._settings.max_snapshots)
        try:
            return SnapshotIndex.model_validate(raw)
        except ValidationError as exc:
            raise SnapshotIndexError(f"snapshot index is malformed: {exc}") from exc

    async def _evict(
        self, index: SnapshotIndex, *, spare: str | None = None
    ) -> SnapshotIndex:
        """Drop the oldest snapshots beyond ``max_snapshots`` and their directories.

        ``spare`` is skipped while any other snapshot except the newest can go
        instead; the newest entry is only evicted when nothing else remains.
        """
        retained = list(index.snapshots)
        while len(retained) > self._settings.max_snapshots:
            position = next(
                (
                    candidate
                    for candidate in range(len(retained) - 1, 0, -1)
                    if retained[candidate].id != spare
                ),
                len(retained) - 1,
            )
            evicted = retained.pop(position)
            await self._durable.remove(*self._snapshot_parts(evicted.id))
            _LOGGER.info("snapshot evicted: snapshot_id=%s", evicted.id)
        return index.model_copy(
            update={
                "snapshots": tuple(retained),
                "max_snapshots": self._settings.max_snapshots,
            }
        )

    async def _save_index(self, index: SnapshotIndex) -> None:
        await self._durable.write_json(*self._index_parts(), value=index.to_json())

    async def _load_metadata(self, snapshot_id: str) -> SnapshotMetadata:
        """Load one snapshot's metadata document or raise ``SnapshotNotFoundError``."""
        raw = await self._durable.read_json(
            *self._snapshot_parts(snapshot_id), self._settings.metadata_filename
        )
        if raw is None:
            raise SnapshotNotFoundError(snapshot_id)
        return SnapshotMetadata.model_validate(raw)

    async def _discard_partial(self, snapshot_id: str) -> None:
        """Remove a partially written snapshot directory, logging cleanup errors."""
        try:
            await self._durable.remove(*self._snapshot_parts(snapshot_id))
        except OSError as exc:
            _LOGGER.error(
                "failed to remove partial snapshot: snapshot_id=%s",
                snapshot_id,
                exc_info=exc,
            )

    def _index_parts(self) -> tuple[str, ...]:
        return (self._settings.snapshots_dirname, self._settings.index_filename)

    def _snapshot_parts(self, snapshot_id: str) -> tuple[str, ...]:
        return (self._settings.snapshots_dirname, snapshot_id)

    def _group_parts(self, snapshot_id: str, group: TrackedGroup) -> tuple[str, ...]:
        """Return the stored path of one tracked group inside a snapshot."""
        parts = (*self._snapshot_parts(snapshot_id), group.value)
        if group is TrackedGroup.CONFIG:
            return (*parts, self._workspace.config_filename)
        return parts

    def _operation_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[object]:
        """Map unexpected store errors into operation-failure envelope errors."""
        _LOGGER.warning(
            "snapshot store operation failed: operation=%s exception_type=%s",
            operation,
            type(exc).__name__,
            exc_info=exc,
        )
        if isinstance(exc, SnapshotIndexError):
            detail = internal_error(
                str(exc),
                code=SNAPSHOT_INDEX_CORRUPT,
                metadata={"operation": operation},
            )
        elif isinstance(exc, (OSError, ValueError)):
            detail = internal_error(
                f"{operation} failed: {exc}",
                code=codes.OPERATION_FAILED,
                metadata={"operation": operation, "exception_type": type(exc).__name__},
            )
        else:
            detail = exception_to_error(exc, operation=operation)
        return failure(meta=meta, errors=[detail])


def _not_found(snapshot_id: str) -> ErrorDetail:
    return not_found_error(
        f"snapshot not found: {snapshot_id}",
        code=SNAPSHOT_NOT_FOUND,
        metadata={"snapshot_id": snapshot_id},
    )


def _unified_diff(before: str | None, after: str | None, name_a: str, name_b: str) -> str:
    """Render a unified diff between two optional configuration texts."""
    return "".join(
        difflib.unified_diff(
            (before or "").splitlines(keepends=True),
            (after or "").splitlines(keepends=True),
            fromfile=name_a,
            tofile=name_b,
        )
    )
