def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_shows_site_name(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Skin Server" in r.data


def test_unknown_page_is_404(client):
    assert client.get("/no-such-page").status_code == 404
    r = client.get("/user/no-such-page")
    assert r.status_code == 404
    assert r.json["errno"] == 404
