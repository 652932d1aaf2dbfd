"""
Draft and published test plan collections backed by the key-value store.

Drafts are one row per plan name: saving under an existing name overwrites
that row in place, keeping its id and created_at. Published plans are
append-only: every publish adds a new row, so earlier versions remain.
Every mutation writes the whole collection back to the store.
"""
import logging
import uuid
from typing import List, Optional, Type, TypeVar, Union
from pydantic import ValidationError
from testplan_manager.constants import STORAGE_KEYS
from testplan_manager.models.enums import PlanCollection
from testplan_manager.models.plan import DraftPlan, PlanContent, PublishedPlan, utcnow
from testplan_manager.services.storage import KeyValueStore
from testplan_manager.services.versioning import published_versions

logger = logging.getLogger(__name__)

PlanT = TypeVar("PlanT", DraftPlan, PublishedPlan)


class PlanValidationError(ValueError):
    """Raised when a plan cannot be saved or published as given."""
    pass


def new_plan_id() -> str:
    return str(uuid.uuid4())


class TestPlanRepository:
    """CRUD over the drafts and published plan collections."""

    __test__ = False  # not a pytest test class

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load(self, key: str, model: Type[PlanT]) -> List[PlanT]:
        raw = self.store.get(key, [])
        if not isinstance(raw, list):
            logger.error(f'Stored collection "{key}" is not a list; treating as empty')
            return []

        plans: List[PlanT] = []
        for item in raw:
            try:
                plans.append(model.model_validate(item))
            except ValidationError as e:
                logger.error(f'Skipping unreadable plan in "{key}": {e}')
        return plans

    def _persist(self, key: str, plans: List[Union[DraftPlan, PublishedPlan]]) -> None:
        self.store.set(key, [p.model_dump(mode="json", by_alias=True) for p in plans])

    def list_drafts(self) -> List[DraftPlan]:
        """All drafts in insertion order."""
        return self._load(STORAGE_KEYS["SAVED_TEST_PLANS"], DraftPlan)

    def list_published(self) -> List[PublishedPlan]:
        """All published plans in insertion order."""
        return self._load(STORAGE_KEYS["PUBLISHED_TEST_PLANS"], PublishedPlan)

    def save_draft(self, plan: PlanContent) -> DraftPlan:
        """
        Save a draft, replacing any draft with the same name.

        Args:
            plan: Plan content; test_plan_name identifies the draft

        Returns:
            DraftPlan: The stored record

        Raises:
            PlanValidationError: If the plan name is blank
        """
        name = plan.test_plan_name.strip()
        if not name:
            raise PlanValidationError("Test plan name is required")

        drafts = self.list_drafts()
        now = utcnow()
        content = plan.content().model_dump()
        content["test_plan_name"] = name

        existing_index = next(
            (i for i, d in enumerate(drafts) if d.test_plan_name == name), None
        )

        if existing_index is not None:
            existing = drafts[existing_index]
            record = DraftPlan(
                **content,
                id=existing.id,
                created_at=existing.created_at,
                updated_at=max(now, existing.updated_at),
            )
            drafts[existing_index] = record
            logger.info(f'Test plan "{name}" updated (id={record.id})')
        else:
            record = DraftPlan(**content, id=new_plan_id(), created_at=now, updated_at=now)
            drafts.append(record)
            logger.info(f'Test plan "{name}" saved (id={record.id})')

        self._persist(STORAGE_KEYS["SAVED_TEST_PLANS"], drafts)
        return record

    def delete_draft(self, plan_id: str) -> None:
        """Remove a draft by id. No-op if absent."""
        drafts = self.list_drafts()
        remaining = [d for d in drafts if d.id != plan_id]
        if len(remaining) != len(drafts):
            logger.info(f"Deleted draft {plan_id}")
        self._persist(STORAGE_KEYS["SAVED_TEST_PLANS"], remaining)

    def publish(self, plan: PlanContent) -> PublishedPlan:
        """
        Append a new published snapshot, regardless of existing versions.

        Raises:
            PlanValidationError: If the plan name is blank
        """
        name = plan.test_plan_name.strip()
        if not name:
            raise PlanValidationError("Test plan name is required")

        published = self.list_published()
        now = utcnow()
        content = plan.content().model_dump()
        content["test_plan_name"] = name

        record = PublishedPlan(
            **content,
            id=new_plan_id(),
            created_at=now,
            updated_at=now,
            published_at=now,
        )
        published.append(record)
        self._persist(STORAGE_KEYS["PUBLISHED_TEST_PLANS"], published)
        logger.info(f'Published test plan "{name}" (id={record.id}, version {len(published_versions(published, name))})')
        return record

    def find_by_id(
        self,
        collection: Union[PlanCollection, str],
        plan_id: str
    ) -> Optional[Union[DraftPlan, PublishedPlan]]:
        """Look up a plan by id in the given collection; None if absent."""
        if PlanCollection(collection) == PlanCollection.DRAFTS:
            plans = self.list_drafts()
        else:
            plans = self.list_published()
        return next((p for p in plans if p.id == plan_id), None)

    def list_versions(self, plan_name: str) -> List[PublishedPlan]:
        """All published versions of a plan name, oldest first."""
        return published_versions(self.list_published(), plan_name)
