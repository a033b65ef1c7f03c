from conftest import raw_question
from game.game_manager import game_manager
from models.trivia import AdData, HauntConfig, LeaderboardEntry


def _add_haunt(fake_fs, haunt_id="sorcererslair", **fields):
    fields.setdefault("name", "Sorcerer's Lair")
    fake_fs.haunts[haunt_id] = HauntConfig(id=haunt_id, **fields)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_trivia_questions_are_never_cached(client, fake_fs):
    fake_fs.custom_questions["sorcererslair"] = [raw_question(i) for i in range(30)]
    response = client.get("/api/trivia-questions/sorcererslair")
    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    body = response.json()
    assert len(body) == 20
    assert {"id", "text", "answers", "correctAnswer"} <= set(body[0])


def test_invalid_haunt_id_is_rejected(client):
    assert client.get("/api/trivia-questions/bad!id").status_code == 400


def test_haunt_config_hides_auth_code(client, fake_fs):
    _add_haunt(fake_fs, auth_code="letmein", tier="Premium")
    response = client.get("/api/haunt-config/sorcererslair")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Sorcerer's Lair"
    assert body["tier"] == "premium"
    assert "authCode" not in body


def test_haunt_config_missing(client):
    assert client.get("/api/haunt-config/nowhere").status_code == 404


def test_haunt_config_backend_error(client, fake_fs):
    fake_fs.failing.add("get_haunt_config")
    assert client.get("/api/haunt-config/sorcererslair").status_code == 500


def test_ads(client, fake_fs):
    fake_fs.ads["sorcererslair"] = [AdData(id="fog", title="Fog Machines", image_url="/fog.png")]
    body = client.get("/api/ads/sorcererslair").json()
    assert body == [{
        "id": "fog", "title": "Fog Machines", "description": "", "imageUrl": "/fog.png",
        "link": None, "duration": 5000,
    }]


def test_list_haunts(client, fake_fs):
    _add_haunt(fake_fs, auth_code="secret")
    _add_haunt(fake_fs, "widowshollow", name="Widow's Hollow")
    body = client.get("/api/haunts").json()
    assert sorted(h["id"] for h in body) == ["sorcererslair", "widowshollow"]
    assert all("authCode" not in h for h in body)


def test_resolve_haunt(client):
    response = client.get("/api/haunt/resolve", params={"url": "https://heinoustrivia.com/h/widowshollow"})
    assert response.json() == {"hauntId": "widowshollow", "isAdminPath": False}
    response = client.get("/api/haunt/resolve", params={"url": "https://heinoustrivia.com/haunt-admin"})
    assert response.json() == {"hauntId": "headquarters", "isAdminPath": True}


def test_check_haunt(client, fake_fs):
    _add_haunt(fake_fs, is_active=False)
    assert client.get("/api/haunt/sorcererslair/check").json() == {"exists": True, "isActive": False}
    assert client.get("/api/haunt/nowhere/check").json() == {"exists": False, "isActive": False}


def test_haunt_urls(client):
    body = client.get("/api/haunt/widowshollow/urls").json()
    assert body["path"].endswith("/h/widowshollow")
    assert body["direct"].endswith("/#widowshollow")


def test_haunt_auth(client, fake_fs):
    _add_haunt(fake_fs, auth_code="letmein")
    _add_haunt(fake_fs, "closed", is_active=False)

    ok = client.post("/api/haunt/sorcererslair/auth", json={"authCode": "letmein"})
    assert ok.status_code == 200
    assert ok.json()["success"] is True
    assert "authCode" not in ok.json()["config"]

    assert client.post("/api/haunt/sorcererslair/auth", json={"authCode": "nope"}).status_code == 401
    assert client.post("/api/haunt/closed/auth", json={}).status_code == 403
    assert client.post("/api/haunt/nowhere/auth", json={}).status_code == 404


def test_leaderboard_save_and_read(client, fake_fs):
    for name, score in [("Mina", 400), ("Van", 1200)]:
        response = client.post("/api/leaderboard/sorcererslair", json={
            "name": name, "score": score, "date": "2024-10-31T00:00:00+00:00", "haunt": "sorcererslair",
        })
        assert response.status_code == 200
        assert response.json()["id"]

    body = client.get("/api/leaderboard/sorcererslair").json()
    assert [e["name"] for e in body] == ["Van", "Mina"]


def test_leaderboard_falls_back_to_local_copy(client, fake_fs, local_store):
    state = game_manager.create_initial_state("sorcererslair").model_copy(update={"score": 300})
    game_manager.save_score("Renfield", state, local_store)
    fake_fs.failing.add("get_leaderboard")

    body = client.get("/api/leaderboard/sorcererslair").json()
    assert [e["name"] for e in body] == ["Renfield"]


def test_moderation_hides_entry(client, fake_fs):
    entry = LeaderboardEntry(name="Rude", score=9999, date="2024-10-31", haunt="sorcererslair")
    fake_fs.leaderboards["sorcererslair"] = [{"id": "e1", "entry": entry, "hidden": False}]

    response = client.post("/api/moderate/sorcererslair/e1", json={"hidden": True})

    assert response.json() == {"success": True}
    assert client.get("/api/leaderboard/sorcererslair").json() == []


def test_haunt_auth_backend_error(client, fake_fs):
    fake_fs.failing.add("get_haunt_config")
    response = client.post("/api/haunt/sorcererslair/auth", json={"authCode": "letmein"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to authenticate"


def test_leaderboard_entry_belongs_to_path_haunt(client, fake_fs):
    response = client.post("/api/leaderboard/sorcererslair", json={
        "name": "Mina", "score": 400, "date": "2024-10-31T00:00:00+00:00", "haunt": "widowshollow",
    })
    assert response.status_code == 200

    assert "widowshollow" not in fake_fs.leaderboards
    [row] = fake_fs.leaderboards["sorcererslair"]
    assert row["entry"].haunt == "sorcererslair"
    assert client.get("/api/leaderboard/sorcererslair").json()[0]["haunt"] == "sorcererslair"


def test_save_haunt_config_by_path_keeps_stored_fields(client, fake_fs):
    _add_haunt(fake_fs, auth_code="letmein", trivia_packs=["horror-pack"])

    response = client.post("/api/haunt-config/sorcererslair", json={"name": "The Lair", "tier": "Pro"})

    assert response.json() == {"success": True}
    saved = fake_fs.haunts["sorcererslair"]
    assert saved.name == "The Lair"
    assert saved.tier.value == "pro"
    assert saved.auth_code == "letmein"
    assert saved.trivia_packs == ["horror-pack"]


def test_save_haunt_config_path_overrides_body_id(client, fake_fs):
    response = client.post("/api/haunt-config/widowshollow", json={"id": "elsewhere", "name": "Widow's Hollow"})
    assert response.status_code == 200
    assert set(fake_fs.haunts) == {"widowshollow"}


def test_save_haunt_config_by_body(client, fake_fs):
    response = client.post("/api/haunt-config", json={"id": "widowshollow", "name": "Widow's Hollow", "mode": "queue"})
    assert response.status_code == 200
    assert fake_fs.haunts["widowshollow"].mode == "queue"


def test_save_haunt_config_rejects_bad_input(client, fake_fs):
    assert client.post("/api/haunt-config/sorcererslair", json={"mode": "chaos"}).status_code == 422
    assert client.post("/api/haunt-config", json={"name": "No id"}).status_code == 422
    assert client.post("/api/haunt-config/bad!id", json={"name": "x"}).status_code == 400
    assert fake_fs.haunts == {}


def test_save_haunt_config_backend_error(client, fake_fs):
    fake_fs.failing.add("save_haunt_config")
    response = client.post("/api/haunt-config/sorcererslair", json={"name": "The Lair"})
    assert response.status_code == 500


def test_custom_questions_replace_and_serve(client, fake_fs):
    fake_fs.custom_questions["sorcererslair"] = [raw_question(99)]
    payload = [raw_question(i) for i in range(25)] + [{"text": "Broken?", "answers": ["only one"]}]

    response = client.post("/api/custom-questions/sorcererslair", json={"questions": payload})

    assert response.json() == {"success": True, "count": 25, "dropped": 1}
    stored = client.get("/api/custom-questions/sorcererslair").json()
    assert len(stored) == 25
    assert "Raw question 99?" not in {q["text"] for q in stored}

    served = client.get("/api/trivia-questions/sorcererslair").json()
    assert all(q["text"].startswith("Raw question") for q in served)


def test_custom_questions_backend_errors(client, fake_fs):
    fake_fs.failing.update({"get_custom_questions", "replace_custom_questions"})
    assert client.get("/api/custom-questions/sorcererslair").status_code == 500
    response = client.post("/api/custom-questions/sorcererslair", json={"questions": [raw_question(1)]})
    assert response.status_code == 500


def test_ad_create_update_delete(client, fake_fs):
    created = client.post("/api/ads/sorcererslair", json={"title": "Fog Machines", "imageUrl": "/fog.png"}).json()
    assert created["success"] is True
    ad_id = created["id"]

    client.post("/api/ads/sorcererslair", json={"id": ad_id, "title": "Fog Machines 2", "imageUrl": "/fog2.png"})
    [ad] = client.get("/api/ads/sorcererslair").json()
    assert ad["id"] == ad_id
    assert ad["title"] == "Fog Machines 2"
    assert ad["imageUrl"] == "/fog2.png"

    assert client.delete(f"/api/ads/sorcererslair/{ad_id}").json() == {"success": True}
    assert client.get("/api/ads/sorcererslair").json() == []


def test_ad_backend_errors(client, fake_fs):
    fake_fs.failing.update({"save_ad", "delete_ad"})
    assert client.post("/api/ads/sorcererslair", json={"title": "Fog"}).status_code == 500
    assert client.delete("/api/ads/sorcererslair/fog").status_code == 500


def test_assign_trivia_pack(client, fake_fs):
    _add_haunt(fake_fs, trivia_packs=["horror-pack"])

    response = client.post("/api/uber/assign-trivia-pack", json={"hauntId": "sorcererslair", "packId": "monster-pack"})

    assert response.json() == {
        "success": True,
        "message": "Pack monster-pack assigned to sorcererslair",
        "triviaPacks": ["horror-pack", "monster-pack"],
    }
    assert fake_fs.haunts["sorcererslair"].trivia_packs == ["horror-pack", "monster-pack"]


def test_assign_trivia_pack_already_assigned(client, fake_fs):
    _add_haunt(fake_fs, trivia_packs=["horror-pack"])
    fake_fs.failing.add("set_trivia_packs")

    response = client.post("/api/uber/assign-trivia-pack", json={"hauntId": "sorcererslair", "packId": "horror-pack"})

    assert response.status_code == 200
    assert response.json()["message"] == "Pack horror-pack already assigned to sorcererslair"
    assert response.json()["triviaPacks"] == ["horror-pack"]


def test_assign_trivia_pack_errors(client, fake_fs):
    url = "/api/uber/assign-trivia-pack"
    assert client.post(url, json={"hauntId": "nowhere", "packId": "horror-pack"}).status_code == 404
    assert client.post(url, json={"hauntId": "sorcererslair"}).status_code == 422
    assert client.post(url, json={"hauntId": "", "packId": "horror-pack"}).status_code == 422

    fake_fs.failing.add("get_haunt_config")
    assert client.post(url, json={"hauntId": "sorcererslair", "packId": "horror-pack"}).status_code == 500
