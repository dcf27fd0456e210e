import pytest
from conftest import register_and_login, set_balance, make_fight, make_user


@pytest.mark.asyncio
async def test_bet_placement_creates_notification(client, test_db, session):
    headers = await register_and_login(client, "reader@example.com")
    me = (await client.get("/api/auth/me", headers=headers)).json()
    await set_balance(test_db, me["id"], 5000)
    fight = await make_fight(session)
    await client.post("/api/bets", headers=headers, json={"fight_id": fight.id, "amount": 1000, "chosen_fighter": "A"})

    items = (await client.get("/api/notifications", headers=headers)).json()
    assert [n["type"] for n in items] == ["BET_PLACED"]
    assert (await client.get("/api/notifications/unread-count", headers=headers)).json()["count"] == 1

    r = await client.post(f"/api/notifications/{items[0]['id']}/read", headers=headers)
    assert r.status_code == 200
    assert (await client.get("/api/notifications/unread-count", headers=headers)).json()["count"] == 0


@pytest.mark.asyncio
async def test_read_all_and_delete(session, services):
    user = await make_user(session, "a@example.com")
    for i in range(3):
        await services.notifications.notify(user.id, "INFO", f"t{i}", "hello")
    assert await services.notifications.mark_all_read(user.id) == 3
    items = await services.notifications.list_for_user(user.id)
    await services.notifications.remove(user.id, items[0].id)
    assert len(await services.notifications.list_for_user(user.id)) == 2


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(client, session, services):
    owner = await make_user(session, "owner@example.com")
    note = await services.notifications.notify(owner.id, "INFO", "private", "hello")
    headers = await register_and_login(client, "other@example.com")
    assert (await client.post(f"/api/notifications/{note.id}/read", headers=headers)).status_code == 404
    assert (await client.delete(f"/api/notifications/{note.id}", headers=headers)).status_code == 404
