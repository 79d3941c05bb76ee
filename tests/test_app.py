def test_health_and_readiness(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/ready").json() == {"status": "ready", "authCacheTtlSeconds": 1800}


def test_security_headers_are_set(client):
    response = client.get("/")

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


def test_validation_errors_use_the_error_body(client, login):
    login("user_1")

    response = client.post("/api/v1/folders", json={"name": ""})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert body["details"]
