"""
IRD Inventory - IRD / Equipment Linking

Keeps every IRD paired with at most one Equipment row whose ``ird_ref`` points
back at it. Create, update and delete run through the OptionalTransactionRunner:
atomic where the deployment supports transactions, sequential otherwise.

Without a transaction, a failed create deletes the IRD it just inserted (and
the Equipment it inserted, if any). Cleanup failures are logged and never
replace the original error.

Usage:
    linker = IrdEquipmentLinker(store, delete_policy="detach")
    linked = await linker.create({"name": "IRD-1", "admin_ip": "10.0.0.5"})
    linked.ird["id"], linked.equipment["equipment_type_ref"]["name"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic.alias_generators import to_camel

from ..core.errors import (
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    PersistenceError,
)
from ..core.logging import LogContext
from ..core.models import EquipmentInfo
from ..core.transactions import ExecutionContext, OptionalTransactionRunner
from ..store.base import Collection, Document, DocumentStore, DuplicateKeyError, StoreError
from .equipment_type_service import IRD_EQUIPMENT_TYPE, EquipmentTypeResolver
from .normalization import (
    build_equipment_payload,
    clean_ird_input,
    clean_ird_patch,
    store_failure,
)

logger = logging.getLogger(__name__)

DeletePolicy = Literal["detach", "delete"]

EQUIPMENT_REFS = {
    "equipment_type_ref": Collection.EQUIPMENT_TYPE,
    "ird_ref": Collection.IRD,
}


@dataclass
class LinkedIrd:
    """An IRD with its populated Equipment."""

    ird: Document
    equipment: Optional[Document]
    equipment_info: Optional[EquipmentInfo] = None

    def as_response(self) -> Dict[str, Any]:
        return {
            "ird": self.ird,
            "equipment": self.equipment,
            "equipment_info": self.equipment_info,
        }


@dataclass
class DeletedIrd:
    ird: Document
    policy: DeletePolicy
    equipment_affected: int = 0

    @property
    def message(self) -> str:
        verb = "detached" if self.policy == "detach" else "deleted"
        return f"IRD deleted; {self.equipment_affected} linked equipment {verb}"


@dataclass
class _CreateState:
    """Ids written by one create attempt, for compensation."""

    ird_id: Optional[str] = None
    equipment_id: Optional[str] = None
    written: List[str] = field(default_factory=list)


class IrdEquipmentLinker:
    def __init__(self, store: DocumentStore, delete_policy: DeletePolicy = "detach"):
        self.store = store
        self.delete_policy = delete_policy
        self.resolver = EquipmentTypeResolver(store)
        self.runner = OptionalTransactionRunner(store)

    async def _run(self, work, *, operation: str):
        try:
            return await self.runner.run(work, operation=operation)
        except StoreError as exc:
            logger.warning(f"{operation} failed in storage: {exc}")
            raise store_failure(exc) from exc

    # ------------------------------------------------------------------
    # Equipment helpers
    # ------------------------------------------------------------------

    async def _insert_or_adopt(
        self, ird: Document, type_id: str, ctx: ExecutionContext
    ) -> Tuple[Document, EquipmentInfo, bool]:
        """
        Insert the Equipment for ``ird``, adopting a colliding row if allowed.

        Returns (equipment, info, inserted). A colliding row is adopted when it
        is unclaimed or already points at this IRD; a row owned by another IRD
        is a ConflictError.
        """
        payload = build_equipment_payload(ird, type_id)
        try:
            equipment = await self.store.insert_one(
                Collection.EQUIPMENT, payload, session=ctx.session
            )
            return equipment, EquipmentInfo(created=True, reason="created"), True
        except DuplicateKeyError as exc:
            if not exc.key_value:
                raise
            existing = await self.store.find_one(
                Collection.EQUIPMENT, exc.key_value, session=ctx.session
            )
            if existing is None:
                raise

            owner = existing.get("ird_ref")
            if owner and owner != ird["id"]:
                detail = {to_camel(k): v for k, v in exc.key_value.items()}
                raise ConflictError(
                    f"Equipment {existing['id']} ({', '.join(detail)}) is already "
                    f"claimed by IRD {owner}",
                    fields=list(detail),
                    detail={**detail, "claimedBy": owner},
                ) from exc

            adopted = await self.store.find_one_and_update(
                Collection.EQUIPMENT, {"id": existing["id"]}, payload, session=ctx.session
            )
            if adopted is None:
                raise PersistenceError(f"Equipment {existing['id']} vanished during adoption")
            logger.info(
                f"Adopted existing equipment via {exc.index}",
                extra={"equipment_id": adopted["id"]},
            )
            info = EquipmentInfo(created=False, adopted=True, reason=f"adopted existing equipment ({exc.index})")
            return adopted, info, False

    async def _assert_single_link(self, ird_id: str, ctx: ExecutionContext) -> None:
        linked = await self.store.count(Collection.EQUIPMENT, {"ird_ref": ird_id}, session=ctx.session)
        if linked != 1:
            raise InvariantViolationError(
                f"Expected exactly one equipment linked to IRD {ird_id}, found {linked}"
            )

    async def _populated(
        self,
        ird: Document,
        equipment: Optional[Document],
        info: Optional[EquipmentInfo],
        ctx: ExecutionContext,
    ) -> LinkedIrd:
        populated = await self.store.populate(equipment, EQUIPMENT_REFS, session=ctx.session)
        return LinkedIrd(ird=ird, equipment=populated, equipment_info=info)

    async def _compensate(self, state: _CreateState) -> None:
        """Best-effort removal of what a non-transactional create wrote."""
        try:
            if state.equipment_id:
                await self.store.delete_one(Collection.EQUIPMENT, state.equipment_id)
            if state.ird_id:
                await self.store.update_many(
                    Collection.EQUIPMENT, {"ird_ref": state.ird_id}, {"ird_ref": None}
                )
                await self.store.delete_one(Collection.IRD, state.ird_id)
            logger.warning(f"Compensated partial create: removed {', '.join(state.written)}")
        except Exception as cleanup_exc:
            logger.error(
                f"Compensation failed for IRD {state.ird_id}: {cleanup_exc}",
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> LinkedIrd:
        """Insert an IRD and its linked Equipment as one unit."""
        cleaned = clean_ird_input(data)

        async def work(ctx: ExecutionContext) -> LinkedIrd:
            state = _CreateState()
            ird = await self.store.insert_one(Collection.IRD, cleaned, session=ctx.session)
            if not ird.get("id"):
                raise PersistenceError("IRD insert returned no id")
            state.ird_id = ird["id"]
            state.written.append(f"ird {ird['id']}")

            with LogContext(ird_id=ird["id"]):
                try:
                    type_id = await self.resolver.resolve(IRD_EQUIPMENT_TYPE, ctx)
                    equipment, info, inserted = await self._insert_or_adopt(ird, type_id, ctx)
                    if inserted:
                        state.equipment_id = equipment["id"]
                        state.written.append(f"equipment {equipment['id']}")
                    await self._assert_single_link(ird["id"], ctx)
                except Exception:
                    if not ctx.in_transaction:
                        await self._compensate(state)
                    raise

                logger.info(
                    f"IRD {ird['name']} ({ird['admin_ip']}) linked to equipment",
                    extra={"equipment_id": equipment["id"]},
                )
                return await self._populated(ird, equipment, info, ctx)

        return await self._run(work, operation="ird.create")

    async def update(
        self,
        ird_id: str,
        patch: Mapping[str, Any],
        equipment_id: Optional[str] = None,
    ) -> LinkedIrd:
        """
        Merge ``patch`` into the IRD and re-sync its Equipment.

        With ``equipment_id`` the named Equipment is retargeted to this IRD
        (any other Equipment linked to it is detached first). Otherwise the
        currently linked Equipment is updated, or created when missing.
        """
        cleaned = clean_ird_patch(patch)

        async def work(ctx: ExecutionContext) -> LinkedIrd:
            session = ctx.session
            target = None
            if equipment_id:
                target = await self.store.find_by_id(Collection.EQUIPMENT, equipment_id, session=session)
                if target is None:
                    raise NotFoundError(f"Equipment {equipment_id} not found")

            if cleaned:
                ird = await self.store.find_one_and_update(
                    Collection.IRD, {"id": ird_id}, cleaned, session=session
                )
            else:
                ird = await self.store.find_by_id(Collection.IRD, ird_id, session=session)
            if ird is None:
                raise NotFoundError(f"IRD {ird_id} not found")

            type_id = await self.resolver.resolve(IRD_EQUIPMENT_TYPE, ctx)
            payload = build_equipment_payload(ird, type_id)

            if target is not None:
                if target.get("ird_ref") and target["ird_ref"] != ird_id:
                    logger.warning(
                        f"Equipment {equipment_id} moves from IRD {target['ird_ref']} to {ird_id}"
                    )
                await self.store.update_many(
                    Collection.EQUIPMENT, {"ird_ref": ird_id}, {"ird_ref": None}, session=session
                )
                equipment = await self.store.find_one_and_update(
                    Collection.EQUIPMENT, {"id": equipment_id}, payload, session=session
                )
                if equipment is None:
                    raise NotFoundError(f"Equipment {equipment_id} not found")
                info = EquipmentInfo(created=False, reason="explicit equipment target")
            else:
                linked = await self.store.find_one(
                    Collection.EQUIPMENT, {"ird_ref": ird_id}, session=session
                )
                if linked is not None:
                    equipment = await self.store.find_one_and_update(
                        Collection.EQUIPMENT, {"id": linked["id"]}, payload, session=session
                    )
                    info = EquipmentInfo(created=False, reason="updated linked equipment")
                else:
                    logger.warning(f"IRD {ird_id} had no linked equipment, creating one")
                    equipment, info, _ = await self._insert_or_adopt(ird, type_id, ctx)

            return await self._populated(ird, equipment, info, ctx)

        with LogContext(ird_id=ird_id):
            return await self._run(work, operation="ird.update")

    async def delete(self, ird_id: str) -> DeletedIrd:
        """Delete the IRD and detach (or delete) its Equipment, per policy."""

        async def work(ctx: ExecutionContext) -> DeletedIrd:
            deleted = await self.store.delete_one(Collection.IRD, ird_id, session=ctx.session)
            if deleted is None:
                raise NotFoundError(f"IRD {ird_id} not found")

            if self.delete_policy == "delete":
                affected = await self.store.delete_many(
                    Collection.EQUIPMENT, {"ird_ref": ird_id}, session=ctx.session
                )
            else:
                affected = await self.store.update_many(
                    Collection.EQUIPMENT, {"ird_ref": ird_id}, {"ird_ref": None}, session=ctx.session
                )
            outcome = DeletedIrd(ird=deleted, policy=self.delete_policy, equipment_affected=affected)
            logger.info(outcome.message, extra={"count": affected})
            return outcome

        with LogContext(ird_id=ird_id):
            return await self._run(work, operation="ird.delete")


# =============================================================================
# Reads
# =============================================================================


async def list_irds(store: DocumentStore) -> List[Document]:
    try:
        return await store.find_many(Collection.IRD, sort=["admin_ip"])
    except StoreError as exc:
        raise store_failure(exc) from exc


async def get_ird(store: DocumentStore, ird_id: str) -> Document:
    try:
        ird = await store.find_by_id(Collection.IRD, ird_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if ird is None:
        raise NotFoundError(f"IRD {ird_id} not found")
    return ird
