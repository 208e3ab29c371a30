import pytest

from conftest import create_plant, get_plant, register
from errors import NotFound, ValidationError
from models import CareEvent, Owned, Plant, Unowned, db
from plants import coerce_interval, visible_to


@pytest.fixture
def owner(services):
    return services.credentials.register("a@x.test", "pw123")


@pytest.fixture
def stranger(services):
    return services.credentials.register("b@x.test", "pw123")


def test_create_applies_default_intervals(client):
    register(client)
    plant = get_plant(client, create_plant(client, name="Fern"))
    assert plant["water_interval_days"] == 7
    assert plant["repot_interval_days"] == 365
    assert plant["last_watered"] is None
    assert plant["last_repotted"] is None


def test_create_requires_a_name(client):
    register(client)
    for body in ({}, {"name": ""}, {"name": "   "}, {"species": "Nephrolepis"}):
        r = client.post("/api/plants", json=body)
        assert r.status_code == 400
        assert r.get_json() == {"error": "name required"}
    assert client.get("/api/plants").get_json() == []


def test_create_coerces_numeric_strings(services, owner):
    plant = services.plants.create(owner, {"name": "Ivy", "water_interval_days": "3",
                                           "repot_interval_days": 730.0})
    assert plant.water_interval_days == 3
    assert plant.repot_interval_days == 730


@pytest.mark.parametrize("value", [
    "soon", "3.5", -1, 0, True, [7], 2.5,
    "\u00b2", "9" * 5000, 10**30, 1e300, float("inf"), 36501,
])
def test_bad_intervals_are_rejected(value):
    with pytest.raises(ValidationError):
        coerce_interval("water_interval_days", value)


def test_interval_upper_bound_is_accepted(services, owner):
    plant = services.plants.create(owner, {"name": "Cactus", "repot_interval_days": "36500"})
    assert plant.repot_interval_days == 36500


@pytest.mark.parametrize("value", ["\u00b2", "9" * 5000, 10**30, 1e300])
def test_bad_interval_is_a_client_error(client, value):
    register(client)
    r = client.post("/api/plants", json={"name": "Ivy", "water_interval_days": value})
    assert r.status_code == 400
    assert r.get_json() == {"error": "water_interval_days must be a whole number of days"}
    assert client.get("/api/plants").get_json() == []


def test_bad_interval_does_not_create(services, owner):
    with pytest.raises(ValidationError):
        services.plants.create(owner, {"name": "Ivy", "water_interval_days": "weekly"})
    assert db.session.query(Plant).count() == 0


def test_update_is_a_partial_merge(client):
    register(client)
    plant_id = create_plant(client, name="Fern", species="Nephrolepis", notes="by the window")
    r = client.put(f"/api/plants/{plant_id}", json={"location": "bathroom", "water_interval_days": 4})
    assert r.get_json() == {"ok": True}

    plant = get_plant(client, plant_id)
    assert plant["name"] == "Fern"
    assert plant["species"] == "Nephrolepis"
    assert plant["notes"] == "by the window"
    assert plant["location"] == "bathroom"
    assert plant["water_interval_days"] == 4
    assert plant["repot_interval_days"] == 365


def test_update_rejects_blank_name_without_partial_writes(services, owner):
    plant = services.plants.create(owner, {"name": "Fern"})
    with pytest.raises(ValidationError):
        services.plants.update(plant.id, owner, {"location": "hall", "name": ""})
    db.session.expire_all()
    assert db.session.get(Plant, plant.id).location is None


def test_list_shows_own_and_unowned_newest_first(services, owner, stranger):
    legacy = Plant(name="Legacy")
    db.session.add(legacy)
    db.session.commit()
    mine = services.plants.create(owner, {"name": "Mine"})
    theirs = services.plants.create(stranger, {"name": "Theirs"})

    assert [p.id for p in services.plants.list(owner)] == [mine.id, legacy.id]
    assert [p.id for p in services.plants.list(stranger)] == [theirs.id, legacy.id]


def test_ownership_is_a_sum_type(services, owner):
    legacy = Plant(name="Legacy")
    mine = services.plants.create(owner, {"name": "Mine"})
    assert legacy.ownership == Unowned()
    assert mine.ownership == Owned(owner)
    assert visible_to(legacy, 12345)
    assert visible_to(mine, owner)
    assert not visible_to(mine, owner + 1)


def test_fetch_other_users_record_is_not_found(services, owner, stranger):
    plant = services.plants.create(owner, {"name": "Fern"})
    with pytest.raises(NotFound):
        services.plants.fetch_owned(plant.id, stranger)
    with pytest.raises(NotFound):
        services.plants.fetch_owned(999, owner)


def test_cross_user_access_looks_like_a_missing_record(client, other_client):
    register(client, "a@x.test")
    register(other_client, "b@x.test")
    plant_id = create_plant(client, name="Fern")
    missing_id = plant_id + 100

    for target in (plant_id, missing_id):
        responses = [
            other_client.put(f"/api/plants/{target}", json={"name": "Stolen"}),
            other_client.delete(f"/api/plants/{target}"),
            other_client.post(f"/api/water/{target}", json={"date": "2024-01-01"}),
            other_client.post(f"/api/repot/{target}", json={}),
            other_client.get(f"/api/history/{target}"),
        ]
        assert [r.status_code for r in responses] == [404] * 5
        assert all(r.get_json() == {"error": "not found"} for r in responses)

    assert other_client.get("/api/plants").get_json() == []
    plant = get_plant(client, plant_id)
    assert plant["name"] == "Fern"
    assert plant["last_watered"] is None
    assert client.get(f"/api/history/{plant_id}").get_json() == []


def test_unowned_records_are_shared(app, client, other_client):
    with app.app_context():
        legacy = Plant(name="Legacy")
        db.session.add(legacy)
        db.session.commit()
        legacy_id = legacy.id

    register(client, "a@x.test")
    register(other_client, "b@x.test")
    assert client.post(f"/api/water/{legacy_id}", json={"date": "2024-03-01"}).status_code == 200
    assert get_plant(other_client, legacy_id)["last_watered"] == "2024-03-01T00:00:00.000Z"


def test_delete_cascades_events(client):
    register(client)
    plant_id = create_plant(client)
    client.post(f"/api/water/{plant_id}", json={"date": "2024-01-10"})
    client.post(f"/api/repot/{plant_id}", json={"date": "2024-01-11"})

    assert client.delete(f"/api/plants/{plant_id}").get_json() == {"ok": True}
    assert client.get(f"/api/history/{plant_id}").status_code == 404
    assert get_plant(client, plant_id) is None


def test_delete_leaves_no_orphaned_events(services, owner):
    fern = services.plants.create(owner, {"name": "Fern"})
    ivy = services.plants.create(owner, {"name": "Ivy"})
    services.ledger.append(fern.id, owner, "watered", "2024-01-01")
    services.ledger.append(ivy.id, owner, "watered", "2024-01-02")

    services.plants.delete(fern.id, owner)
    remaining = db.session.query(CareEvent).all()
    assert [e.plant_id for e in remaining] == [ivy.id]
