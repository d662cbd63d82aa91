from datetime import timedelta

from fastapi import status
from fastapi.testclient import TestClient

from foodhub.db_order_cycles import get_exchanges, get_order_cycle
from foodhub.db_schedules import create_schedule, get_schedule_ids_for_order_cycle
from foodhub.db_subscriptions import create_subscription
from foodhub.main import app
from foodhub.routers.order_cycles import (
    BULK_UPDATE_NO_DATA,
    NO_PERMISSION_TO_COORDINATE,
    NO_PERMISSION_TO_CREATE,
    ORDERS_PRESENT_ERROR,
    SCHEDULE_PRESENT_ERROR,
)
from foodhub.tasks import order_cycles as order_cycle_tasks
from foodhub.tasks import subscriptions as subscription_tasks

client = TestClient(app)

BASE = "/api/v1/admin/order_cycles"


def test_order_cycles_require_authentication():
    resp = client.get(BASE)
    assert resp.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_new_returns_single_coordinator(hub, make_user, act_as):
    coordinator = hub("Coop")
    act_as(make_user(manages=[coordinator["id"]]))

    resp = client.get(f"{BASE}/new")
    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["coordinator"] == {"id": coordinator["id"], "name": "Coop"}


def test_new_lists_coordinators_to_choose_from(hub, make_user, act_as):
    first, second = hub("Alpha"), hub("Beta")
    act_as(make_user(manages=[first["id"], second["id"]]))

    body = client.get(f"{BASE}/new").json()
    assert body["coordinator"] is None
    assert [e["name"] for e in body["coordinators"]] == ["Alpha", "Beta"]

    body = client.get(f"{BASE}/new", params={"coordinator_id": second["id"]}).json()
    assert body["coordinator"]["id"] == second["id"]

    body = client.get(f"{BASE}/new", params={"coordinator_id": 9999}).json()
    assert body["error"] == NO_PERMISSION_TO_CREATE


def test_new_without_coordinating_enterprise_is_forbidden(producer, make_user, act_as):
    act_as(make_user(manages=[producer()["id"]]))

    resp = client.get(f"{BASE}/new")
    assert resp.status_code == status.HTTP_403_FORBIDDEN
    assert resp.json()["detail"] == NO_PERMISSION_TO_COORDINATE


def test_create_filters_schedules_and_resyncs_subscriptions(hub, make_user, act_as, make_order_cycle, fake_delay, now):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))

    my_oc = make_order_cycle("Mine weekly", mine["id"])
    their_oc = make_order_cycle("Their weekly", theirs["id"])
    editable = create_schedule("Weekly box", order_cycle_ids=[my_oc])
    foreign = create_schedule("Their box", order_cycle_ids=[their_oc])
    subscription = create_subscription(editable["id"], shop_id=mine["id"], begins_at=now)
    create_subscription(foreign["id"], shop_id=theirs["id"], begins_at=now)
    calls = fake_delay(subscription_tasks.sync_subscriptions_task)

    resp = client.post(BASE, json={
        "name": "Spring",
        "coordinator_id": mine["id"],
        "orders_open_at": (now + timedelta(days=1)).isoformat(),
        "orders_close_at": (now + timedelta(days=8)).isoformat(),
        "schedule_ids": [editable["id"], foreign["id"]],
    })

    assert resp.status_code == status.HTTP_201_CREATED
    body = resp.json()
    assert body["success"] is True
    assert body["notice"] == "Your order cycle has been created."
    assert get_schedule_ids_for_order_cycle(body["order_cycle_id"]) == {editable["id"]}
    assert calls == [([subscription["id"]],)]


def test_create_and_update_succeed_when_broker_is_down(hub, make_user, act_as, make_order_cycle, monkeypatch, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    my_oc = make_order_cycle("Weekly", mine["id"])
    schedule = create_schedule("Weekly box", order_cycle_ids=[my_oc])
    create_subscription(schedule["id"], shop_id=mine["id"], begins_at=now)

    def broker_down(*args, **kwargs):
        raise ConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    monkeypatch.setattr(subscription_tasks.sync_subscriptions_task, "delay", broker_down)

    resp = client.post(BASE, json={"name": "Spring", "coordinator_id": mine["id"], "schedule_ids": [schedule["id"]]})
    assert resp.status_code == status.HTTP_201_CREATED
    assert get_schedule_ids_for_order_cycle(resp.json()["order_cycle_id"]) == {schedule["id"]}

    resp = client.put(f"{BASE}/{my_oc}", json={"schedule_ids": []})
    assert resp.status_code == status.HTTP_200_OK
    assert get_schedule_ids_for_order_cycle(my_oc) == set()


def test_create_with_foreign_coordinator_is_forbidden(hub, make_user, act_as):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))

    resp = client.post(BASE, json={"name": "Spring", "coordinator_id": theirs["id"]})
    assert resp.status_code == status.HTTP_403_FORBIDDEN
    assert resp.json()["detail"] == NO_PERMISSION_TO_CREATE


def test_create_invalid_returns_errors(hub, make_user, act_as, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))

    resp = client.post(BASE, json={
        "name": "",
        "coordinator_id": mine["id"],
        "orders_open_at": now.isoformat(),
        "orders_close_at": (now - timedelta(days=1)).isoformat(),
    })
    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert resp.json()["errors"] == [
        "Name can't be blank",
        "Orders close at must be after orders open at",
    ]


def test_create_with_exchanges(hub, producer, make_user, act_as):
    mine, shop, farm = hub("Mine"), hub("Shop"), producer("Farm")
    act_as(make_user(manages=[mine["id"]]))

    resp = client.post(BASE, json={
        "name": "Spring",
        "coordinator_id": mine["id"],
        "incoming_exchanges": [{"enterprise_id": farm["id"]}],
        "outgoing_exchanges": [{"enterprise_id": shop["id"], "pickup_time": "Fri 5pm"}],
    })
    assert resp.status_code == status.HTTP_201_CREATED

    detail = client.get(f"{BASE}/{resp.json()['order_cycle_id']}").json()
    assert [(e["sender_id"], e["receiver_id"]) for e in detail["incoming_exchanges"]] == [(farm["id"], mine["id"])]
    assert [(e["receiver_id"], e["pickup_time"]) for e in detail["outgoing_exchanges"]] == [(shop["id"], "Fri 5pm")]


def test_update_reconciles_schedules_for_participant(hub, make_user, act_as, make_order_cycle, fake_delay, now):
    """A distributor editing someone else's order cycle only moves schedules it may edit."""
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))

    shared_oc = make_order_cycle("Shared", theirs["id"], distributors=[mine["id"]])
    my_oc = make_order_cycle("Mine weekly", mine["id"])
    s1 = create_schedule("One", order_cycle_ids=[shared_oc])
    s2 = create_schedule("Two", order_cycle_ids=[shared_oc])
    s3 = create_schedule("Three", order_cycle_ids=[shared_oc, my_oc])
    s4 = create_schedule("Four", order_cycle_ids=[my_oc])
    create_schedule("Five", order_cycle_ids=[my_oc])
    subscription = create_subscription(s4["id"], shop_id=mine["id"], begins_at=now)
    calls = fake_delay(subscription_tasks.sync_subscriptions_task)

    resp = client.put(f"{BASE}/{shared_oc}", json={"schedule_ids": [s2["id"], s3["id"], s4["id"]]})

    assert resp.status_code == status.HTTP_200_OK
    assert get_schedule_ids_for_order_cycle(shared_oc) == {s1["id"], s2["id"], s3["id"], s4["id"]}
    assert calls == [([subscription["id"]],)]


def test_update_without_schedule_ids_leaves_schedules(hub, make_user, act_as, make_order_cycle, fake_delay, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"])
    schedule = create_schedule("Box", order_cycle_ids=[oc])
    create_subscription(schedule["id"], shop_id=mine["id"], begins_at=now)
    calls = fake_delay(subscription_tasks.sync_subscriptions_task)

    resp = client.put(f"{BASE}/{oc}", json={"name": "Renamed"}, params={"reloading": "1"})

    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["notice"] == "Your order cycle has been updated."
    assert get_order_cycle(oc)["name"] == "Renamed"
    assert get_schedule_ids_for_order_cycle(oc) == {schedule["id"]}
    assert calls == []


def test_update_empty_schedule_ids_detaches_and_resyncs(hub, make_user, act_as, make_order_cycle, fake_delay, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"])
    schedule = create_schedule("Box", order_cycle_ids=[oc])
    subscription = create_subscription(schedule["id"], shop_id=mine["id"], begins_at=now)
    calls = fake_delay(subscription_tasks.sync_subscriptions_task)

    resp = client.put(f"{BASE}/{oc}", json={"schedule_ids": []})

    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["notice"] is None
    assert get_schedule_ids_for_order_cycle(oc) == set()
    assert calls == [([subscription["id"]],)]


def test_update_drops_protected_attributes(hub, make_user, act_as, make_order_cycle):
    mine, theirs, other = hub("Mine"), hub("Theirs"), hub("Other")
    act_as(make_user(manages=[mine["id"]]))
    shared_oc = make_order_cycle("Shared", theirs["id"], distributors=[mine["id"]])
    my_oc = make_order_cycle("Weekly", mine["id"])

    resp = client.put(f"{BASE}/{shared_oc}", json={"name": "Hijacked", "coordinator_id": mine["id"]})
    assert resp.status_code == status.HTTP_200_OK
    assert get_order_cycle(shared_oc)["name"] == "Shared"
    assert get_order_cycle(shared_oc)["coordinator_id"] == theirs["id"]

    resp = client.put(f"{BASE}/{my_oc}", json={"name": "Fortnightly", "coordinator_id": other["id"]})
    assert resp.status_code == status.HTTP_200_OK
    assert get_order_cycle(my_oc)["name"] == "Fortnightly"
    assert get_order_cycle(my_oc)["coordinator_id"] == mine["id"]


def test_participant_only_changes_own_exchanges(hub, make_user, act_as, make_order_cycle):
    mine, theirs, rival = hub("Mine"), hub("Theirs"), hub("Rival")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Shared", theirs["id"], distributors=[mine["id"], rival["id"]])

    resp = client.put(f"{BASE}/{oc}", json={"outgoing_exchanges": [{"enterprise_id": mine["id"], "pickup_time": "Sat"}]})
    assert resp.status_code == status.HTTP_200_OK

    outgoing = [e for e in get_exchanges([oc])[oc] if not e["incoming"]]
    assert {(e["receiver_id"], e["pickup_time"]) for e in outgoing} == {(mine["id"], "Sat"), (rival["id"], None)}


def test_detail_of_unrelated_order_cycle_is_not_found(hub, make_user, act_as, make_order_cycle):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Theirs", theirs["id"])

    assert client.get(f"{BASE}/{oc}").status_code == status.HTTP_404_NOT_FOUND
    assert client.get(f"{BASE}/99999").status_code == status.HTTP_404_NOT_FOUND


def test_index_orders_and_filters(hub, make_user, act_as, make_order_cycle, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    d = timedelta(days=1)
    make_order_cycle("Closed long ago", mine["id"], now - 60 * d, now - 40 * d)
    make_order_cycle("Closed earlier", mine["id"], now - 10 * d, now - 5 * d)
    make_order_cycle("Upcoming later", mine["id"], now + 2 * d, now + 4 * d)
    make_order_cycle("Open later", mine["id"], now - d, now + 3 * d)
    make_order_cycle("Undated", mine["id"])
    make_order_cycle("Closed recently", mine["id"], now - 3 * d, now - d)
    make_order_cycle("Upcoming sooner", mine["id"], now + d, now + 5 * d)
    make_order_cycle("Open sooner", mine["id"], now - d, now + d)

    resp = client.get(BASE)
    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert [oc["name"] for oc in body] == [
        "Undated",
        "Open sooner",
        "Open later",
        "Upcoming sooner",
        "Upcoming later",
        "Closed recently",
        "Closed earlier",
    ]
    assert [oc["status"] for oc in body] == ["undated", "open", "open", "upcoming", "upcoming", "closed", "closed"]
    assert all(oc["viewing_as_coordinator"] for oc in body)

    body = client.get(BASE, params={"orders_close_at_gt": (now - 100 * d).isoformat()}).json()
    assert body[-1]["name"] == "Closed long ago"

    body = client.get(BASE, params={"name": "UPCOMING"}).json()
    assert [oc["name"] for oc in body] == ["Upcoming sooner", "Upcoming later"]

    body = client.get(BASE, params={"ams_prefix": "basic", "name": "undated"}).json()
    assert body == [{"id": body[0]["id"], "name": "Undated"}]


def test_index_as_producer_and_distributor(hub, producer, make_user, act_as, make_order_cycle):
    coordinator, shop, farm = hub("Coordinator"), hub("Shop"), producer("Farm")
    supplied = make_order_cycle("Supplied", coordinator["id"], suppliers=[farm["id"]])
    make_order_cycle("Distributed", coordinator["id"], distributors=[shop["id"]])

    act_as(make_user(manages=[farm["id"]]))
    assert [oc["name"] for oc in client.get(BASE, params={"as": "producer"}).json()] == ["Supplied"]
    assert client.get(BASE, params={"as": "distributor"}).json() == []

    body = client.get(BASE).json()
    assert [oc["id"] for oc in body] == [supplied]
    assert body[0]["viewing_as_coordinator"] is False
    assert body[0]["coordinator"] == {"id": coordinator["id"], "name": "Coordinator"}


def test_bulk_update_skips_unauthorized_rows(hub, make_user, act_as, make_order_cycle, now):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))
    first = make_order_cycle("First", mine["id"])
    second = make_order_cycle("Second", mine["id"])
    foreign = make_order_cycle("Foreign", theirs["id"], distributors=[mine["id"]])

    resp = client.put(f"{BASE}/bulk_update", json={
        "order_cycle_set": {
            "collection_attributes": {
                "0": {"id": first, "name": "First renamed"},
                "1": {
                    "id": second,
                    "orders_open_at": (now + timedelta(days=1)).isoformat(),
                    "orders_close_at": (now + timedelta(days=2)).isoformat(),
                },
                "2": {"id": foreign, "name": "Foreign renamed"},
            }
        }
    })

    assert resp.status_code == status.HTTP_200_OK
    assert sorted(oc["id"] for oc in resp.json()) == sorted([first, second])
    assert get_order_cycle(first)["name"] == "First renamed"
    assert get_order_cycle(second)["orders_open_at"] is not None
    assert get_order_cycle(foreign)["name"] == "Foreign"


def test_bulk_update_is_all_or_nothing(hub, make_user, act_as, make_order_cycle, now):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    first = make_order_cycle("First", mine["id"])
    second = make_order_cycle("Second", mine["id"])

    resp = client.put(f"{BASE}/bulk_update", json={
        "order_cycle_set": {
            "collection_attributes": {
                "0": {"id": first, "name": "First renamed"},
                "1": {
                    "id": second,
                    "orders_open_at": (now + timedelta(days=2)).isoformat(),
                    "orders_close_at": (now + timedelta(days=1)).isoformat(),
                },
            }
        }
    })

    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert resp.json()["errors"] == ["Orders close at must be after orders open at"]
    assert get_order_cycle(first)["name"] == "First"


def test_bulk_update_without_data(hub, make_user, act_as):
    act_as(make_user(manages=[hub()["id"]]))

    resp = client.put(f"{BASE}/bulk_update", json={})
    assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert resp.json()["errors"] == BULK_UPDATE_NO_DATA


def test_clone_copies_exchanges_without_dates(hub, producer, make_user, act_as, make_order_cycle, now):
    mine, shop, farm = hub("Mine"), hub("Shop"), producer("Farm")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle(
        "Weekly", mine["id"], now - timedelta(days=1), now + timedelta(days=1),
        suppliers=[farm["id"]], distributors=[shop["id"]],
    )
    create_schedule("Box", order_cycle_ids=[oc])

    resp = client.post(f"{BASE}/{oc}/clone")

    assert resp.status_code == status.HTTP_201_CREATED
    body = resp.json()
    assert body["notice"] == "Your order cycle Weekly has been cloned."
    clone = get_order_cycle(body["order_cycle_id"])
    assert clone["name"] == "COPY OF Weekly"
    assert clone["coordinator_id"] == mine["id"]
    assert clone["orders_open_at"] is None and clone["orders_close_at"] is None
    assert len(get_exchanges([clone["id"]])[clone["id"]]) == 2
    assert get_schedule_ids_for_order_cycle(clone["id"]) == set()


def test_clone_requires_coordinator(hub, make_user, act_as, make_order_cycle):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Shared", theirs["id"], distributors=[mine["id"]])

    assert client.post(f"{BASE}/{oc}/clone").status_code == status.HTTP_403_FORBIDDEN


def test_notify_producers_starts_task(hub, make_user, act_as, make_order_cycle, fake_delay):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"])
    calls = fake_delay(order_cycle_tasks.notify_producers_task)

    resp = client.post(f"{BASE}/{oc}/notify_producers")

    assert resp.status_code == status.HTTP_202_ACCEPTED
    body = resp.json()
    assert body["notice"] == "Emails to be sent to producers have been queued for sending."
    assert body["task_id"] == "test-task-1"
    assert calls == [(oc,)]


def test_delete_order_cycle(hub, make_user, act_as, make_order_cycle):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"], distributors=[mine["id"]])

    resp = client.delete(f"{BASE}/{oc}")

    assert resp.status_code == status.HTTP_204_NO_CONTENT
    assert get_order_cycle(oc) is None
    assert client.delete(f"{BASE}/{oc}").status_code == status.HTTP_404_NOT_FOUND


def test_delete_with_schedule_is_refused(hub, make_user, act_as, make_order_cycle):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"])
    create_schedule("Box", order_cycle_ids=[oc])

    resp = client.delete(f"{BASE}/{oc}")

    assert resp.status_code == status.HTTP_409_CONFLICT
    assert resp.json()["detail"] == SCHEDULE_PRESENT_ERROR
    assert get_order_cycle(oc) is not None


def test_delete_with_orders_is_refused(hub, make_user, act_as, make_order_cycle, place_order):
    mine = hub("Mine")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Weekly", mine["id"])
    place_order(oc)

    resp = client.delete(f"{BASE}/{oc}")

    assert resp.status_code == status.HTTP_409_CONFLICT
    assert resp.json()["detail"] == ORDERS_PRESENT_ERROR
    assert get_order_cycle(oc) is not None


def test_delete_requires_coordinator(hub, make_user, act_as, make_order_cycle):
    mine, theirs = hub("Mine"), hub("Theirs")
    act_as(make_user(manages=[mine["id"]]))
    oc = make_order_cycle("Shared", theirs["id"], distributors=[mine["id"]])

    assert client.delete(f"{BASE}/{oc}").status_code == status.HTTP_403_FORBIDDEN
    assert get_order_cycle(oc) is not None
