"""Firestore persistence for projects, scope items, pricing and estimates.

Layout:
    /projects/{projectId}                          project (userId, province, ...)
    /projects/{projectId}/scopeItems/{id}          scope items
    /projects/{projectId}/estimates/{id}           estimates (draft or sealed)
    /projects/{projectId}/estimates/{id}/lines/{n} priced lines
    /projects/{projectId}/drafts/current           draft pointer {estimateId, version}
    /users/{userId}/pricing/{key}                  saved user rates

The draft pointer is the project's concurrency token: replacing a draft
writes the pointer with a last-update-time precondition, so two concurrent
regenerations cannot both win.
"""

from typing import Any, Dict, List, Optional
import inspect
import structlog

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from config.errors import (
    DraftConflictError,
    ErrorCode,
    NotFoundError,
    PricingError,
)
from models.estimate import Estimate, EstimateStatus

logger = structlog.get_logger()

_CONFLICT_ERRORS = (
    gcp_exceptions.FailedPrecondition,
    gcp_exceptions.AlreadyExists,
    gcp_exceptions.Conflict,
    gcp_exceptions.Aborted,
)


class EstimateStore:
    """Service for Firestore operations used by estimate generation and sealing.

    Note: Firebase Admin SDK for Python is synchronous. Methods are
    marked async for interface compatibility but operations are sync.
    """

    COLLECTION_PROJECTS = "projects"
    COLLECTION_USERS = "users"
    SUBCOLLECTION_SCOPE_ITEMS = "scopeItems"
    SUBCOLLECTION_ESTIMATES = "estimates"
    SUBCOLLECTION_LINES = "lines"
    SUBCOLLECTION_DRAFTS = "drafts"
    SUBCOLLECTION_PRICING = "pricing"
    DRAFT_POINTER_ID = "current"

    def __init__(self, db=None):
        """Initialize EstimateStore.

        Args:
            db: Optional Firestore client. If not provided, uses default.
        """
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    def _project_ref(self, project_id: str):
        return self.db.collection(self.COLLECTION_PROJECTS).document(project_id)

    def _estimates(self, project_id: str):
        return self._project_ref(project_id).collection(self.SUBCOLLECTION_ESTIMATES)

    def _draft_pointer_ref(self, project_id: str):
        return (
            self._project_ref(project_id)
            .collection(self.SUBCOLLECTION_DRAFTS)
            .document(self.DRAFT_POINTER_ID)
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_project(self, project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a project owned by user_id.

        Returns:
            Project data, or None when missing or owned by someone else.

        Raises:
            PricingError: If Firestore operation fails.
        """
        try:
            doc = await self._maybe_await(self._project_ref(project_id).get())
        except Exception as e:
            logger.error("firestore_get_failed", project_id=project_id, error=str(e))
            raise PricingError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get project: {str(e)}",
                details={"project_id": project_id}
            )

        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        if data.get("userId") != user_id:
            logger.warning("project_owner_mismatch", project_id=project_id, user_id=user_id)
            return None
        return {"id": doc.id, **data}

    async def list_scope_items(self, project_id: str) -> List[Dict[str, Any]]:
        """List a project's scope items in creation order."""
        return await self._list(
            self._project_ref(project_id).collection(self.SUBCOLLECTION_SCOPE_ITEMS),
            "scope_items_list_failed",
            {"project_id": project_id},
        )

    async def list_user_pricing(self, user_id: str) -> List[Dict[str, Any]]:
        """List a user's saved rates."""
        coll_ref = (
            self.db
            .collection(self.COLLECTION_USERS)
            .document(user_id)
            .collection(self.SUBCOLLECTION_PRICING)
        )
        items = await self._list(coll_ref, "user_pricing_list_failed", {"user_id": user_id})
        for item in items:
            item.setdefault("key", item["id"])
        return items

    async def _list(self, coll_ref, event: str, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            docs = await self._maybe_await(coll_ref.stream())
            return [{"id": doc.id, **(doc.to_dict() or {})} for doc in docs]
        except Exception as e:
            logger.error(event, error=str(e), **context)
            raise PricingError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to read {event.replace('_list_failed', '').replace('_', ' ')}: {str(e)}",
                details=context
            )

    async def get_estimate(self, project_id: str, estimate_id: str, include_lines: bool = True) -> Optional[Dict[str, Any]]:
        """Fetch an estimate document (and its lines).

        Raises:
            PricingError: If Firestore operation fails.
        """
        try:
            doc_ref = self._estimates(project_id).document(estimate_id)
            doc = await self._maybe_await(doc_ref.get())
            if not doc.exists:
                return None
            data = {"id": doc.id, **(doc.to_dict() or {})}
            if include_lines:
                lines = await self._maybe_await(
                    doc_ref.collection(self.SUBCOLLECTION_LINES).order_by("position").stream()
                )
                data["lines"] = [line.to_dict() or {} for line in lines]
            return data
        except Exception as e:
            logger.error("estimate_get_failed", project_id=project_id, estimate_id=estimate_id, error=str(e))
            raise PricingError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to get estimate: {str(e)}",
                details={"project_id": project_id, "estimate_id": estimate_id}
            )

    async def get_draft_pointer(self, project_id: str) -> Dict[str, Any]:
        """Current draft pointer; version 0 and no estimate when none exists."""
        try:
            snapshot = await self._maybe_await(self._draft_pointer_ref(project_id).get())
        except Exception as e:
            logger.error("draft_pointer_get_failed", project_id=project_id, error=str(e))
            raise PricingError(
                code=ErrorCode.FIRESTORE_ERROR,
                message=f"Failed to read draft pointer: {str(e)}",
                details={"project_id": project_id}
            )
        data = (snapshot.to_dict() or {}) if snapshot.exists else {}
        return {
            "estimateId": data.get("estimateId"),
            "version": int(data.get("version", 0) or 0),
            "snapshot": snapshot,
        }

    async def get_draft(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Current draft estimate with lines and draftVersion, or None."""
        pointer = await self.get_draft_pointer(project_id)
        if not pointer["estimateId"]:
            return None
        estimate = await self.get_estimate(project_id, pointer["estimateId"])
        if not estimate or estimate.get("status") != EstimateStatus.DRAFT.value:
            return None
        estimate["draftVersion"] = pointer["version"]
        return estimate

    # =========================================================================
    # Writes
    # =========================================================================

    async def replace_draft(
        self,
        project_id: str,
        estimate: Estimate,
        expected_version: Optional[int] = None,
    ) -> Estimate:
        """Atomically replace the project's draft with a new estimate.

        The new estimate, its lines and the bumped draft pointer are written
        in one batch guarded by the pointer's last update time. The previous
        draft (never a sealed estimate) is deleted afterwards.

        Args:
            project_id: Project whose draft is replaced.
            estimate: Freshly assembled draft.
            expected_version: Draft version the caller priced against.

        Returns:
            The estimate with id and draftVersion set.

        Raises:
            DraftConflictError: If another regeneration replaced the draft first.
            PricingError: If Firestore operation fails.
        """
        pointer = await self.get_draft_pointer(project_id)
        current_version = pointer["version"]
        if expected_version is not None and expected_version != current_version:
            logger.warning(
                "draft_version_conflict",
                project_id=project_id,
                expected_version=expected_version,
                actual_version=current_version,
            )
            raise DraftConflictError(project_id, expected_version, current_version)

        new_version = current_version + 1
        snapshot = pointer["snapshot"]

        try:
            estimate_ref = self._estimates(project_id).document()
            batch = self.db.batch()

            estimate_data = estimate.to_firestore_dict()
            estimate_data.update({
                "status": EstimateStatus.DRAFT.value,
                "draftVersion": new_version,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            })
            batch.set(estimate_ref, estimate_data)

            lines_ref = estimate_ref.collection(self.SUBCOLLECTION_LINES)
            for position, line in enumerate(estimate.lines):
                batch.set(lines_ref.document(), {**line.to_firestore_dict(), "position": position})

            pointer_data = {
                "estimateId": estimate_ref.id,
                "version": new_version,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
            pointer_ref = self._draft_pointer_ref(project_id)
            if snapshot.exists:
                batch.update(
                    pointer_ref,
                    pointer_data,
                    option=self.db.write_option(last_update_time=snapshot.update_time),
                )
            else:
                batch.create(pointer_ref, pointer_data)

            await self._maybe_await(batch.commit())

        except _CONFLICT_ERRORS as e:
            logger.warning("draft_replace_conflict", project_id=project_id, error=str(e))
            raise DraftConflictError(project_id, expected_version, current_version, {"original_error": str(e)})
        except Exception as e:
            logger.error("draft_replace_failed", project_id=project_id, error=str(e))
            raise PricingError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to save draft estimate: {str(e)}",
                details={"project_id": project_id}
            )

        logger.info(
            "draft_replaced",
            project_id=project_id,
            estimate_id=estimate_ref.id,
            draft_version=new_version,
            previous_estimate_id=pointer["estimateId"],
            lines=len(estimate.lines),
        )

        previous_id = pointer["estimateId"]
        if previous_id and previous_id != estimate_ref.id:
            await self._delete_previous_draft(project_id, previous_id)

        return estimate.model_copy(update={"id": estimate_ref.id, "draft_version": new_version})

    async def _delete_previous_draft(self, project_id: str, estimate_id: str) -> None:
        """Delete a superseded draft and its lines; sealed estimates are kept."""
        try:
            estimate_ref = self._estimates(project_id).document(estimate_id)
            doc = await self._maybe_await(estimate_ref.get())
            if not doc.exists:
                return
            if (doc.to_dict() or {}).get("status") != EstimateStatus.DRAFT.value:
                logger.info("previous_draft_kept", project_id=project_id, estimate_id=estimate_id)
                return

            lines = await self._maybe_await(estimate_ref.collection(self.SUBCOLLECTION_LINES).stream())
            for line in lines:
                await self._maybe_await(line.reference.delete())
            await self._maybe_await(estimate_ref.delete())
            logger.info("previous_draft_deleted", project_id=project_id, estimate_id=estimate_id)

        except Exception as e:
            # The new draft is already committed; an orphaned old draft is only clutter
            logger.warning(
                "previous_draft_delete_failed",
                project_id=project_id,
                estimate_id=estimate_id,
                error=str(e),
            )

    async def seal_estimate(
        self,
        project_id: str,
        estimate_id: str,
        user_id: str,
        confirmed_amount: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Seal an estimate so regeneration never touches it again.

        Raises:
            NotFoundError: If the project or estimate is missing or not the user's.
            PricingError: ESTIMATE_SEALED if already sealed, or on Firestore failure.
        """
        project = await self.get_project(project_id, user_id)
        if not project:
            raise NotFoundError(ErrorCode.PROJECT_NOT_FOUND, "Project not found", project_id)

        estimate = await self.get_estimate(project_id, estimate_id, include_lines=False)
        if not estimate:
            raise NotFoundError(ErrorCode.ESTIMATE_NOT_FOUND, "Estimate not found", estimate_id)
        if estimate.get("status") == EstimateStatus.SEALED.value:
            raise PricingError(
                code=ErrorCode.ESTIMATE_SEALED,
                message="Estimate already sealed",
                details={"estimate_id": estimate_id}
            )

        pointer = await self.get_draft_pointer(project_id)
        update = {
            "status": EstimateStatus.SEALED.value,
            "sealedAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if confirmed_amount is not None:
            update["confirmedAmount"] = confirmed_amount

        try:
            batch = self.db.batch()
            batch.update(self._estimates(project_id).document(estimate_id), update)
            if pointer["estimateId"] == estimate_id:
                # Next regeneration starts a fresh draft; the version keeps counting
                batch.update(
                    self._draft_pointer_ref(project_id),
                    {
                        "estimateId": None,
                        "version": pointer["version"] + 1,
                        "updatedAt": firestore.SERVER_TIMESTAMP,
                    },
                    option=self.db.write_option(last_update_time=pointer["snapshot"].update_time),
                )
            await self._maybe_await(batch.commit())
        except _CONFLICT_ERRORS as e:
            logger.warning("seal_conflict", project_id=project_id, estimate_id=estimate_id, error=str(e))
            raise DraftConflictError(project_id, pointer["version"], None, {"original_error": str(e)})
        except Exception as e:
            logger.error("estimate_seal_failed", project_id=project_id, estimate_id=estimate_id, error=str(e))
            raise PricingError(
                code=ErrorCode.FIRESTORE_WRITE_FAILED,
                message=f"Failed to seal estimate: {str(e)}",
                details={"project_id": project_id, "estimate_id": estimate_id}
            )

        logger.info(
            "estimate_sealed",
            project_id=project_id,
            estimate_id=estimate_id,
            confirmed_amount=confirmed_amount,
        )
        return {
            "estimateId": estimate_id,
            "status": EstimateStatus.SEALED.value,
            "confirmedAmount": confirmed_amount,
        }
