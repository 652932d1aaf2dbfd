"""
Tests for draft and published plan persistence.
"""
import pytest
from datetime import timedelta
from unittest.mock import patch
from testplan_manager.models.enums import PlanCollection
from testplan_manager.models.plan import PlanContent
from testplan_manager.services import plan_repository
from testplan_manager.services.plan_repository import PlanValidationError, TestPlanRepository


def test_release_draft_saved_then_overwritten_by_name(repository):
    first = repository.save_draft(PlanContent(test_plan_name="Release 1.0", introduction="Smoke tests"))

    drafts = repository.list_drafts()
    assert len(drafts) == 1
    assert drafts[0].test_plan_name == "Release 1.0"

    second = repository.save_draft(PlanContent(test_plan_name="Release 1.0", introduction="Full regression"))

    drafts = repository.list_drafts()
    assert len(drafts) == 1
    assert drafts[0].introduction == "Full regression"
    assert drafts[0].created_at == first.created_at
    assert second.id == first.id
    assert second.updated_at >= first.updated_at


def test_resave_never_moves_updated_at_backwards(repository):
    first = repository.save_draft(PlanContent(test_plan_name="Release 1.0"))
    earlier = first.updated_at - timedelta(seconds=30)

    with patch.object(plan_repository, "utcnow", return_value=earlier):
        second = repository.save_draft(PlanContent(test_plan_name="Release 1.0"))

    assert second.updated_at == first.updated_at


def test_drafts_keep_insertion_order_and_replace_in_place(repository):
    repository.save_draft(PlanContent(test_plan_name="A"))
    repository.save_draft(PlanContent(test_plan_name="B"))
    repository.save_draft(PlanContent(test_plan_name="A", introduction="edited"))

    assert [d.test_plan_name for d in repository.list_drafts()] == ["A", "B"]
    assert repository.list_drafts()[0].introduction == "edited"


def test_blank_name_is_rejected(repository):
    with pytest.raises(PlanValidationError):
        repository.save_draft(PlanContent(test_plan_name="   "))
    with pytest.raises(PlanValidationError):
        repository.publish(PlanContent())


def test_delete_draft_removes_record_and_ignores_unknown_id(repository):
    draft = repository.save_draft(PlanContent(test_plan_name="A"))

    repository.delete_draft("does-not-exist")
    assert len(repository.list_drafts()) == 1

    repository.delete_draft(draft.id)
    assert repository.list_drafts() == []


def test_publish_twice_appends_distinct_versions(repository, sample_plan):
    first = repository.publish(sample_plan)
    second = repository.publish(sample_plan)

    assert first.id != second.id
    assert repository.find_by_id(PlanCollection.PUBLISHED, first.id) == first
    assert repository.find_by_id("published", second.id) == second
    versions = repository.list_versions("Release 1.0")
    assert [v.id for v in versions] == [first.id, second.id]
    assert versions[0].published_at <= versions[1].published_at


def test_publish_sets_all_timestamps_and_copies_content(repository, sample_plan):
    record = repository.publish(sample_plan)

    assert record.created_at == record.updated_at == record.published_at
    assert record.jira_results == sample_plan.jira_results
    assert record.test_approach[0].details == "Business sign-off"


def test_find_by_id_returns_none_when_absent(repository):
    assert repository.find_by_id(PlanCollection.DRAFTS, "nope") is None
    assert repository.find_by_id(PlanCollection.PUBLISHED, "nope") is None


def test_persisted_records_use_camel_case_keys(repository, store):
    repository.save_draft(PlanContent(test_plan_name="A", project_name="PROJ"))

    [raw] = store.get("savedTestPlans")
    assert raw["testPlanName"] == "A"
    assert raw["projectName"] == "PROJ"
    assert "createdAt" in raw and "updatedAt" in raw


def test_unreadable_rows_are_skipped(store, caplog):
    store.set("savedTestPlans", [{"testPlanName": "no id"}, {"id": "x", "testPlanName": "ok"}])

    drafts = TestPlanRepository(store).list_drafts()

    assert [d.id for d in drafts] == ["x"]
    assert "Skipping unreadable plan" in caplog.text


def test_non_list_collection_is_treated_as_empty(store):
    store.set("publishedTestPlans", {"oops": True})

    assert TestPlanRepository(store).list_published() == []
