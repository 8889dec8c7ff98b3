"""
Integration tests for deals against a real SQLite database.

Covers registration, listing and deletion, the stage store behind the
kanban boards, and the stage workflow engine.
"""

import pytest

from src.core.database import Transaction
from src.core.deals.board import KanbanBoard, UnknownDealError, move_deal
from src.core.deals.repository import DealFilter, DealRepository, NewDeal
from src.core.deals.stages import BoardContext, SalesStage
from src.core.deals.workflow import DealStageStore, DealWorkflowEngine
from src.core.errors import NotFound, StageCommitError

pytestmark = pytest.mark.integration


@pytest.fixture
async def partner(seed):
    org = await seed.organization(name="Acme Resellers")
    return await seed.partner(organization_id=org["id"], first_name="Pat", last_name="Partner")


def new_deal(partner_id: str, **overrides) -> NewDeal:
    fields = dict(
        partner_id=partner_id,
        customer_name="Initech",
        customer_email="buyer@initech.test",
        customer_company="Initech LLC",
        deal_value=12000,
    )
    fields.update(overrides)
    return NewDeal(**fields)


class TestDealRepository:

    async def test_create_sets_both_stages_and_logs_creation(self, db, partner):
        repo = DealRepository(db)
        deal = await repo.create(new_deal(partner["id"]), actor_id="user-1", actor_name="Pat Partner")

        assert deal["stage"] == "new_deal"
        assert deal["admin_stage"] == "urs"
        assert deal["priority"] == "medium"

        detail = await repo.get_detail(deal["id"])
        assert [a["activity_type"] for a in detail["activities"]] == ["created"]
        assert detail["activities"][0]["description"] == "Deal registered by Pat Partner"
        assert detail["partner"]["organization_name"] == "Acme Resellers"

    async def test_negative_value_rejected(self, db, partner):
        with pytest.raises(ValueError):
            await DealRepository(db).create(new_deal(partner["id"], deal_value=-1))

    async def test_invalid_stage_rejected(self, db, partner):
        with pytest.raises(ValueError):
            await DealRepository(db).create(new_deal(partner["id"], stage="uat"))

    async def test_get_is_scoped_to_partner(self, db, seed, partner):
        other = await seed.partner()
        deal = await seed.deal(partner["id"])
        repo = DealRepository(db)

        assert (await repo.get(deal["id"], partner["id"]))["id"] == deal["id"]
        with pytest.raises(NotFound):
            await repo.get(deal["id"], other["id"])

    async def test_missing_admin_stage_reads_as_urs(self, db, seed, partner):
        deal = await seed.deal(partner["id"], admin_stage=None)
        assert (await DealRepository(db).get(deal["id"]))["admin_stage"] == "urs"

    async def test_list_filters_and_sorts(self, db, seed, partner):
        await seed.deal(partner["id"], customer_name="Globex", deal_value=500, stage="proposal")
        await seed.deal(partner["id"], customer_name="Hooli", deal_value=9000)
        await seed.deal(partner["id"], customer_name="Umbrella", deal_value=None)
        repo = DealRepository(db)

        by_value = await repo.list(DealFilter(partner_id=partner["id"], sort_by="deal_value", descending=False))
        assert [d["customer_name"] for d in by_value] == ["Umbrella", "Globex", "Hooli"]

        proposals = await repo.list(DealFilter(stage="proposal"))
        assert [d["customer_name"] for d in proposals] == ["Globex"]

        by_org = await repo.list(DealFilter(search="acme"))
        assert len(by_org) == 3

        newest_first = await repo.list()
        assert newest_first[0]["customer_name"] == "Umbrella"

    async def test_list_rejects_unknown_sort(self, db):
        with pytest.raises(ValueError):
            await DealRepository(db).list(DealFilter(sort_by="password"))

    async def test_notes(self, db, seed, partner):
        deal = await seed.deal(partner["id"])
        repo = DealRepository(db)

        note = await repo.add_note(deal["id"], "  Customer asked for a demo  ", user_id="user-1")
        assert note["description"] == "Customer asked for a demo"
        with pytest.raises(ValueError):
            await repo.add_note(deal["id"], "   ")

    async def test_delete(self, db, seed, partner):
        deal = await seed.deal(partner["id"])
        repo = DealRepository(db)
        await repo.add_note(deal["id"], "will be removed")

        await repo.delete(deal["id"])

        with pytest.raises(NotFound):
            await repo.get(deal["id"])
        assert await db.fetchval("SELECT COUNT(*) FROM deal_activities WHERE deal_id = $1", deal["id"]) == 0
        with pytest.raises(NotFound):
            await repo.delete(deal["id"])

    async def test_failed_delete_keeps_activity_feed(self, db, seed, partner, monkeypatch):
        deal = await seed.deal(partner["id"])
        repo = DealRepository(db)
        await repo.add_note(deal["id"], "still here")

        async def lost_connection(self, query, *args):
            raise ConnectionError("connection lost")

        monkeypatch.setattr(Transaction, "fetch", lost_connection)
        with pytest.raises(ConnectionError):
            await repo.delete(deal["id"])

        assert (await repo.get(deal["id"]))["id"] == deal["id"]
        assert await db.fetchval("SELECT COUNT(*) FROM deal_activities WHERE deal_id = $1", deal["id"]) == 1

    async def test_stage_filter_matches_older_stage_ids(self, db, seed, partner):
        await seed.deal(partner["id"], customer_name="Globex", stage="lead")
        await seed.deal(partner["id"], customer_name="Hooli", stage="new_deal")
        await seed.deal(partner["id"], customer_name="Umbrella", stage="qualified")
        repo = DealRepository(db)

        new_deals = await repo.list(DealFilter(stage="lead"))
        assert {d["customer_name"] for d in new_deals} == {"Globex", "Hooli"}

        analysis = await repo.list(DealFilter(stage="need_analysis"))
        assert [d["customer_name"] for d in analysis] == ["Umbrella"]


class TestDealStageStore:

    async def test_update_missing_deal_affects_no_rows(self, db):
        store = DealStageStore(db)
        assert await store.update_stage("missing", BoardContext.PARTNER, SalesStage.PROPOSAL) == 0

    async def test_partner_board_only_loads_own_deals(self, db, seed, partner):
        other = await seed.partner()
        mine = await seed.deal(partner["id"])
        await seed.deal(other["id"])

        records = await DealStageStore(db).load_board(BoardContext.PARTNER, partner["id"])
        assert [r["id"] for r in records] == [mine["id"]]

    async def test_partner_board_needs_partner(self, db):
        with pytest.raises(ValueError):
            await DealStageStore(db).load_board(BoardContext.PARTNER)

    async def test_older_stage_ids_load_onto_the_board(self, db, seed, partner):
        lead = await seed.deal(partner["id"], stage="lead")
        qualified = await seed.deal(partner["id"], stage="qualified")

        records = await DealStageStore(db).load_board(BoardContext.PARTNER, partner["id"])
        board = KanbanBoard(BoardContext.PARTNER, records)

        assert board.persisted_stage(lead["id"]) == SalesStage.NEW_DEAL
        assert board.persisted_stage(qualified["id"]) == SalesStage.NEED_ANALYSIS
        counts = {c.definition.stage: len(c.cards) for c in board.columns()}
        assert counts[SalesStage.NEW_DEAL] == 1
        assert counts[SalesStage.NEED_ANALYSIS] == 1

    async def test_admin_board_loads_everything_with_organization(self, db, seed, partner):
        await seed.deal(partner["id"])
        await seed.deal((await seed.partner())["id"])

        records = await DealStageStore(db).load_board(BoardContext.ADMIN)
        assert len(records) == 2
        assert "organization_name" in records[0]

    async def test_move_deal_persists_and_logs(self, db, seed, partner):
        deal = await seed.deal(partner["id"], stage="proposal")
        store = DealStageStore(db)

        board, result = await move_deal(
            store, BoardContext.PARTNER, deal["id"], "negotiation",
            partner_id=partner["id"], actor_id="user-1",
        )

        assert result.committed and result.activity_logged
        assert await db.fetchval("SELECT stage FROM deals WHERE id = $1", deal["id"]) == "negotiation"
        description = await db.fetchval(
            "SELECT description FROM deal_activities WHERE deal_id = $1", deal["id"]
        )
        assert description == "Stage updated from proposal to negotiation"

    async def test_admin_move_changes_admin_stage_only(self, db, seed, partner):
        deal = await seed.deal(partner["id"], stage="closed_won", admin_stage="urs")

        _, result = await move_deal(DealStageStore(db), BoardContext.ADMIN, deal["id"], "development")

        assert result.committed
        row = await db.fetchrow("SELECT stage, admin_stage FROM deals WHERE id = $1", deal["id"])
        assert row == {"stage": "closed_won", "admin_stage": "development"}

    async def test_other_partners_deal_is_not_on_the_board(self, db, seed, partner):
        theirs = await seed.deal((await seed.partner())["id"])
        with pytest.raises(UnknownDealError):
            await move_deal(DealStageStore(db), BoardContext.PARTNER, theirs["id"], "proposal",
                            partner_id=partner["id"])


class VanishingDealStore(DealStageStore):
    """Reports a current stage for a deal whose row is already gone."""

    async def get_stage(self, deal_id, context):
        return SalesStage.NEW_DEAL


class TestDealWorkflowEngine:

    async def test_transition(self, db, seed, partner):
        deal = await seed.deal(partner["id"])
        engine = DealWorkflowEngine(DealStageStore(db))

        transition = await engine.transition_stage(deal["id"], "proposal", transitioned_by="user-1")

        assert transition.from_stage == "new_deal"
        assert transition.to_stage == "proposal"
        assert transition.activity_logged
        history = await engine.get_stage_history(deal["id"])
        assert history[0]["description"] == "Stage updated from new deal to proposal"
        assert history[0]["transitioned_by"] == "user-1"

    async def test_older_stage_ids_are_stored_as_current(self, db, seed, partner):
        deal = await seed.deal(partner["id"], stage="lead")
        engine = DealWorkflowEngine(DealStageStore(db))

        transition = await engine.transition_stage(deal["id"], "qualified")

        assert transition.from_stage == "new_deal"
        assert transition.to_stage == "need_analysis"
        assert await db.fetchval("SELECT stage FROM deals WHERE id = $1", deal["id"]) == "need_analysis"

    async def test_same_stage_is_a_no_op(self, db, seed, partner):
        deal = await seed.deal(partner["id"], stage="proposal")
        engine = DealWorkflowEngine(DealStageStore(db))

        transition = await engine.transition_stage(deal["id"], "proposal")

        assert transition.no_op
        assert await engine.get_stage_history(deal["id"]) == []

    async def test_missing_deal(self, db):
        with pytest.raises(NotFound):
            await DealWorkflowEngine(DealStageStore(db)).transition_stage("missing", "proposal")

    async def test_zero_row_write_is_a_failure(self, db):
        engine = DealWorkflowEngine(VanishingDealStore(db))
        with pytest.raises(StageCommitError) as exc:
            await engine.transition_stage("gone", "proposal")
        assert exc.value.reverted_stage == "new_deal"

    async def test_invalid_stage_for_context(self, db, seed, partner):
        deal = await seed.deal(partner["id"])
        with pytest.raises(ValueError):
            await DealWorkflowEngine(DealStageStore(db)).transition_stage(deal["id"], "uat")

    async def test_admin_context(self, db, seed, partner):
        deal = await seed.deal(partner["id"])
        engine = DealWorkflowEngine(DealStageStore(db))

        await engine.transition_stage(deal["id"], "uat", context=BoardContext.ADMIN)

        history = await engine.get_stage_history(deal["id"])
        assert history[0]["description"] == "Implementation stage updated from urs to uat"

    async def test_stage_summary_lists_every_stage(self, db, seed, partner):
        await seed.deal(partner["id"], stage="proposal")
        await seed.deal(partner["id"], stage="proposal")
        await seed.deal(partner["id"], admin_stage=None)
        engine = DealWorkflowEngine(DealStageStore(db))

        partner_summary = await engine.get_deal_stages_summary(partner_id=partner["id"])
        assert partner_summary["proposal"] == 2
        assert partner_summary["closed_lost"] == 0
        assert len(partner_summary) == 6

        admin_summary = await engine.get_deal_stages_summary(BoardContext.ADMIN)
        assert admin_summary["urs"] == 3
        assert len(admin_summary) == 16
