import pytest

from agroloop.errors import ValidationError
from agroloop.services.ledger import ActivityLedger, DISEASE_DETECTION, REWARD_REDEMPTION, WASTE_LOG, aggregate
from agroloop.storage import MemoryStore


def test_waste_log_and_reward_update_counters(ledger):
    ledger.append(WASTE_LOG, "Logged Rice Stubble", credits=25)
    ledger.append(REWARD_REDEMPTION, "Redeemed: Soil Kit", credits=-400)

    assert ledger.eco_credits == -375
    assert ledger.waste_logged == 1


def test_entries_are_newest_first_with_date_and_unique_ids(ledger, clock):
    first = ledger.append(WASTE_LOG, "Logged Rice Stubble", credits=25)
    second = ledger.append(DISEASE_DETECTION, "Disease detected: Leaf Blight", severity="high")

    assert [a.id for a in ledger.activities] == [second.id, first.id]
    assert first.id != second.id
    assert second.date == clock.now.date().isoformat()
    assert second.credits is None


@pytest.mark.parametrize("entries", [
    [(WASTE_LOG, 10), (WASTE_LOG, 0), (WASTE_LOG, -5), (DISEASE_DETECTION, None), (REWARD_REDEMPTION, -3)],
    [(REWARD_REDEMPTION, -100), (WASTE_LOG, 40), (WASTE_LOG, 15)],
    [(DISEASE_DETECTION, None), (DISEASE_DETECTION, 7)],
])
def test_counters_match_replayed_aggregation(ledger, entries):
    for activity_type, credits in entries:
        ledger.append(activity_type, "entry", credits=credits)

    assert (ledger.eco_credits, ledger.waste_logged) == ledger.recompute()
    assert ledger.eco_credits == sum(c for _, c in entries if c is not None)
    assert ledger.waste_logged == sum(1 for t, c in entries if t == WASTE_LOG and c is not None and c > 0)


def test_counters_persist_with_the_list(store, clock):
    ledger = ActivityLedger(store.for_user("f1"), clock=clock)
    ledger.append(WASTE_LOG, "Logged Corn Stalks", credits=20, waste_type="stalks", quantity=5)

    assert store.get_json("ecoCredits_f1") == 20
    assert store.get_json("wasteLogged_f1") == 1
    reloaded = ActivityLedger(store.for_user("f1"), clock=clock)
    assert reloaded.activities == ledger.activities
    assert reloaded.activities[0].waste_type == "stalks"


def test_ledgers_are_isolated_per_user(store, clock):
    ActivityLedger(store.for_user("f1"), clock=clock).append(WASTE_LOG, "Logged", credits=10)

    other = ActivityLedger(store.for_user("f2"), clock=clock)
    assert other.activities == []
    assert other.eco_credits == 0


def test_clear_resets_and_next_append_starts_fresh(ledger, store):
    ledger.append(WASTE_LOG, "Logged", credits=10)
    ledger.clear()

    assert (ledger.activities, ledger.eco_credits, ledger.waste_logged) == ([], 0, 0)
    assert store.keys() == []

    ledger.append(WASTE_LOG, "Logged again", credits=5)
    assert (ledger.eco_credits, ledger.waste_logged, ledger.total_entries) == (5, 1, 1)


def test_derived_views(ledger):
    ledger.append(WASTE_LOG, "a", credits=25)
    ledger.append(WASTE_LOG, "b", credits=15)
    ledger.append(DISEASE_DETECTION, "scan")
    ledger.append(REWARD_REDEMPTION, "reward", credits=-30)

    assert ledger.total_entries == 4
    assert len(ledger.by_type(WASTE_LOG)) == 2
    assert ledger.monthly_earnings == 40
    assert ledger.disease_scans == 1
    assert ledger.summary().to_dict() == {
        "totalEntries": 4, "ecoCredits": 10, "wasteLogged": 2, "monthlyEarnings": 40, "diseaseScans": 1,
    }


def test_corrupt_storage_loads_as_empty_ledger(clock):
    store = MemoryStore({"activities_f1": "[{broken", "ecoCredits_f1": "50"})

    ledger = ActivityLedger(store.for_user("f1"), clock=clock)
    assert (ledger.activities, ledger.eco_credits, ledger.waste_logged) == ([], 0, 0)


@pytest.mark.parametrize("kwargs, field", [
    ({"type": "harvest", "title": "x"}, "type"),
    ({"type": WASTE_LOG, "title": ""}, "title"),
    ({"type": WASTE_LOG, "title": "x", "credits": 2.5}, "credits"),
    ({"type": WASTE_LOG, "title": "x", "colour": "red"}, "colour"),
])
def test_append_validates_entries(ledger, kwargs, field):
    with pytest.raises(ValidationError) as exc:
        ledger.append(**kwargs)
    assert exc.value.field == field
    assert ledger.activities == []


def test_aggregate_ignores_non_positive_waste_logs(ledger):
    ledger.append(WASTE_LOG, "refund", credits=-10)
    assert aggregate(ledger.activities) == (-10, 0)
