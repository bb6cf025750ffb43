import asyncio
from datetime import date

import pytest

from trend.domain import Category, IncomeData, Transaction
from trend.events import GOAL_COMPLETED, TRANSACTION_DELETED, TRANSACTION_SAVED, EventBus, register_default_handlers
from trend.repository import GoalRepository, TransactionRepository, UserSetupRepository
from trend.storage import GOALS_KEY, TRANSACTIONS_KEY, MemoryStore
from trend.transforms import transaction_to_dict


def make_tx(id, amount=10, category="food", day=date(2025, 1, 15)):
    return Transaction(id=id, date=day, amount=amount, category=category)


def stored_transactions(*trans):
    return {TRANSACTIONS_KEY: [transaction_to_dict(t) for t in trans]}


def goal_record(id, type="savings", **kw):
    return {"id": id, "title": kw.pop("title", id), "type": type, "target": kw.pop("target", 100), **kw}


class FakeCategoryService:
    def __init__(self, categories):
        self.categories = categories

    async def get_categories(self):
        return self.categories


class SlowStore(MemoryStore):
    async def get_item(self, key):
        await asyncio.sleep(0.05)
        return await super().get_item(key)


@pytest.mark.asyncio
async def test_save_new_transaction_publishes():
    store = MemoryStore()
    bus = EventBus()
    saved = []
    bus.subscribe(TRANSACTION_SAVED, lambda e, p: saved.append(p) or {})
    repo = TransactionRepository(store, bus)

    result = await repo.save(make_tx("t1"))

    assert result.is_new
    assert [t.id for t in result.transactions] == ["t1"]
    assert store.snapshot()[TRANSACTIONS_KEY][0]["id"] == "t1"
    assert saved[0]["original"] is None


@pytest.mark.asyncio
async def test_save_rejects_invalid_transaction():
    repo = TransactionRepository(MemoryStore(), EventBus())
    with pytest.raises(ValueError):
        await repo.save(make_tx("t1", amount=0))
    assert repo.transactions == ()


@pytest.mark.asyncio
async def test_edit_keeps_original_id():
    store = MemoryStore(stored_transactions(make_tx("t1"), make_tx("t2")))
    repo = TransactionRepository(store, EventBus())
    await repo.load()

    editing = await repo.prepare_edit("t2")
    assert editing.id == "t2"
    result = await repo.save(make_tx("new-id", amount=75))

    assert not result.is_new
    assert [(t.id, t.amount) for t in result.transactions] == [("t1", 10), ("t2", 75)]
    assert repo.editing is None


@pytest.mark.asyncio
async def test_prepare_edit_unknown_id():
    repo = TransactionRepository(MemoryStore(stored_transactions(make_tx("t1"))), EventBus())
    assert await repo.prepare_edit("nope") is None
    assert repo.editing is None


@pytest.mark.asyncio
async def test_concurrent_double_delete_removes_once():
    store = MemoryStore(stored_transactions(make_tx("t1"), make_tx("t2"), make_tx("t3")))
    bus = EventBus()
    deleted = []
    bus.subscribe(TRANSACTION_DELETED, lambda e, p: deleted.append(p["transaction"].id) or {})
    repo = TransactionRepository(store, bus)
    await repo.load()

    first, second = await asyncio.gather(repo.delete("t2"), repo.delete("t2"))

    assert first.removed.id == "t2"
    assert [t.id for t in first.transactions] == ["t1", "t3"]
    assert second is None
    assert [t["id"] for t in store.snapshot()[TRANSACTIONS_KEY]] == ["t1", "t3"]
    assert deleted == ["t2"]
    assert repo.deleting_ids == set()


@pytest.mark.asyncio
async def test_delete_unknown_or_empty():
    repo = TransactionRepository(MemoryStore(), EventBus())
    assert await repo.delete("t1") is None

    repo = TransactionRepository(MemoryStore(stored_transactions(make_tx("t1"))), EventBus())
    assert await repo.delete("t9") is None


@pytest.mark.asyncio
async def test_save_appends_to_what_is_stored():
    store = MemoryStore(stored_transactions(make_tx("t1")))
    repo = TransactionRepository(store, EventBus())

    result = await repo.save(make_tx("t2"))

    assert [t.id for t in result.transactions] == ["t1", "t2"]
    assert [t["id"] for t in store.snapshot()[TRANSACTIONS_KEY]] == ["t1", "t2"]


@pytest.mark.asyncio
async def test_load_skips_invalid_records():
    store = MemoryStore({TRANSACTIONS_KEY: [
        {"id": "t1", "date": "2025-01-15", "amount": 5},
        {"id": "t2", "date": "garbage", "amount": 5},
    ]})
    repo = TransactionRepository(store, EventBus())
    assert [t.id for t in await repo.load()] == ["t1"]


@pytest.mark.asyncio
async def test_total_expenses_uses_loaded_transactions():
    repo = TransactionRepository(MemoryStore(stored_transactions(make_tx("t1", 12), make_tx("t2", 8))), EventBus())
    await repo.load()
    assert repo.total_expenses(date(2025, 1, 15)) == 20


@pytest.mark.asyncio
async def test_goal_load_drops_invalid():
    store = MemoryStore({GOALS_KEY: [goal_record("g1"), goal_record("g2", type="debt"), "junk"]})
    repo = GoalRepository(store, bus=EventBus())

    result = await repo.load()

    assert result.success
    assert [g.id for g in repo.goals] == ["g1"]
    assert repo.initially_loaded
    assert not repo.loading


@pytest.mark.asyncio
async def test_goal_loading_flag_times_out():
    store = SlowStore({GOALS_KEY: [goal_record("g1")]})
    repo = GoalRepository(store, bus=EventBus(), loading_timeout=0.01)

    task = asyncio.create_task(repo.load())
    await asyncio.sleep(0.03)
    assert not repo.loading
    assert not task.done()

    await task
    assert [g.id for g in repo.goals] == ["g1"]


@pytest.mark.asyncio
async def test_save_new_goal_and_update():
    store = MemoryStore()
    repo = GoalRepository(store, bus=EventBus())
    await repo.load()

    created = await repo.save({"title": "Holiday", "type": "savings", "target": 2000, "deadline": "2099-01-01"})
    assert created.success
    goal = created.value["goal"]
    assert created.value["is_new"]
    assert goal.id.startswith("goal_")
    assert goal.created_at is not None

    repo.prepare_edit(goal)
    updated = await repo.save({"title": "Big holiday", "type": "savings", "target": 3000, "deadline": "2099-01-01"})
    assert updated.success
    assert not updated.value["is_new"]
    assert [(g.id, g.title, g.target) for g in repo.goals] == [(goal.id, "Big holiday", 3000)]
    assert store.snapshot()[GOALS_KEY][0]["title"] == "Big holiday"


@pytest.mark.asyncio
async def test_save_invalid_goal():
    repo = GoalRepository(MemoryStore(), bus=EventBus())
    result = await repo.save({"title": "", "type": "savings", "target": 5})
    assert not result.success
    assert result.error == "Goal title is required"
    assert not (await repo.save("nope")).success


@pytest.mark.asyncio
async def test_save_goal_form_rules():
    store = MemoryStore()
    repo = GoalRepository(store, bus=EventBus())
    today = date(2025, 1, 15)

    debt = await repo.save({"title": "Card", "type": "debt", "current": 500, "originalAmount": 100,
                            "deadline": "2026-01-01"}, today=today)
    assert not debt.success
    assert debt.error == "Current debt cannot exceed original amount"

    past = await repo.save({"title": "Trip", "type": "savings", "target": 100, "deadline": "2025-01-15"}, today=today)
    assert past.error == "Deadline must be in the future"

    no_deadline = await repo.save({"title": "Trip", "type": "savings", "target": 100}, today=today)
    assert no_deadline.error == "Deadline is required"

    negative = await repo.save({"title": "Trip", "type": "savings", "target": 100, "deadline": "2026-01-01",
                                "autoContribute": -5}, today=today)
    assert negative.error == "Auto-contribution cannot be negative"

    assert GOALS_KEY not in store.snapshot()

    ok = await repo.save({"title": "Card", "type": "debt", "current": 80, "originalAmount": 100,
                          "deadline": "2026-01-01"}, today=today)
    assert ok.success
    assert ok.value["goal"].original_amount == 100


@pytest.mark.asyncio
async def test_save_goal_keeps_goals_already_stored():
    store = MemoryStore({GOALS_KEY: [goal_record("g1")]})
    repo = GoalRepository(store, bus=EventBus())

    result = await repo.save({"title": "Trip", "type": "savings", "target": 100, "deadline": "2099-01-01"})

    assert result.success
    assert [g["id"] for g in store.snapshot()[GOALS_KEY]][0] == "g1"
    assert len(store.snapshot()[GOALS_KEY]) == 2


@pytest.mark.asyncio
async def test_goal_progress_delete_and_toggle():
    repo = GoalRepository(MemoryStore({GOALS_KEY: [goal_record("g1"), goal_record("g2")]}), bus=EventBus())
    await repo.load()

    assert (await repo.update_progress("g1", 40)).value.current == 40
    assert not (await repo.update_progress("g1", -5)).success
    assert (await repo.update_progress("missing", 5)).error == "Goal not found"
    assert (await repo.toggle_balance_display("g2")).value.show_on_balance_card
    assert (await repo.delete("g1")).success
    assert [g.id for g in repo.goals] == ["g2"]
    assert not (await repo.delete("")).success


@pytest.mark.asyncio
async def test_complete_goal_publishes():
    bus = EventBus()
    register_default_handlers(bus)
    messages = []
    bus.subscribe(GOAL_COMPLETED, lambda e, p: messages.append(p["goal"].id) or {})
    record = goal_record("g1", showOnBalanceCard=True)
    repo = GoalRepository(MemoryStore({GOALS_KEY: [record]}), bus=bus)
    await repo.load()

    result = await repo.complete("g1")

    assert result.success
    assert not result.value.is_active
    assert not result.value.show_on_balance_card
    assert messages == ["g1"]


@pytest.mark.asyncio
async def test_update_spending_goals_raises_alert():
    bus = EventBus()
    register_default_handlers(bus)
    store = MemoryStore({GOALS_KEY: [
        goal_record("g1", type="spending", title="Eating out", target=100, current=90, category="Food"),
        goal_record("g2", target=500),
    ]})
    repo = GoalRepository(store, FakeCategoryService([Category(id="food", name="Food")]), bus=bus)
    await repo.load()

    result = await repo.update_spending_goals(new=make_tx("t1", 25))

    assert result.success
    assert len(result.value) == 1
    assert result.value[0]["goal_id"] == "g1"
    assert repo.goals[0].current == 115
    assert store.snapshot()[GOALS_KEY][0]["current"] == 115


@pytest.mark.asyncio
async def test_update_spending_goals_without_change():
    repo = GoalRepository(MemoryStore(), bus=EventBus())
    result = await repo.update_spending_goals()
    assert result.success and result.value == []


@pytest.mark.asyncio
async def test_overdue_and_balance_card():
    store = MemoryStore({GOALS_KEY: [
        goal_record("g1", deadline="2024-01-01", showOnBalanceCard=True, autoContribute=25),
        goal_record("g2", deadline="2030-01-01"),
    ]})
    repo = GoalRepository(store, bus=EventBus())
    await repo.load()
    assert [g.id for g in repo.overdue(date(2025, 1, 1))] == ["g1"]
    assert [g.id for g in repo.balance_card_goals()] == ["g1"]
    assert repo.total_contributions() == 25


@pytest.mark.asyncio
async def test_user_setup_repository():
    store = MemoryStore()
    repo = UserSetupRepository(store)
    assert await repo.load() is None
    assert await repo.save(IncomeData(income=4200, frequency="fortnightly", next_pay_date="01/02/25"))
    loaded = await repo.load()
    assert loaded == IncomeData(income=4200, frequency="fortnightly", next_pay_date="01/02/25")
