import pytest

from conftest import seed


@pytest.fixture
def users(store):
    seed(store, "accounts", "acc-1", {"email": "uno@clinic.com", "settings": {"centerName": "Centro Uno"}})
    seed(store, "accounts/acc-1/users", "u1", {"firstName": "Ana", "lastName": "Pérez", "role": "doctor"})
    seed(
        store,
        "accounts/acc-1/users",
        "u2",
        {"firstName": "Berta", "lastName": "Cruz", "role": "assistant", "isActive": False},
    )
    seed(store, "users", "u3", {"accountId": "acc-2", "firstName": "Carlos", "email": "carlos@mail.com"})


def test_list_users_with_stats(client, users):
    data = client.get("/users").json()

    assert data["stats"] == {"total": 3, "active": 2, "doctors": 1, "staff": 2, "filtered": 3}
    by_id = {u["id"]: u for u in data["items"]}
    assert by_id["u1"]["accountInfo"]["centerName"] == "Centro Uno"
    assert by_id["u3"]["accountInfo"] is None


def test_filter_users(client, users):
    by_role = client.get("/users", params={"role": "doctor"}).json()
    by_account = client.get("/users", params={"account_id": "acc-1"}).json()
    by_search = client.get("/users", params={"search": "CARLOS@"}).json()
    by_center = client.get("/users", params={"search": "centro"}).json()

    assert [u["id"] for u in by_role["items"]] == ["u1"]
    assert {u["id"] for u in by_account["items"]} == {"u1", "u2"}
    assert [u["id"] for u in by_search["items"]] == ["u3"]
    assert {u["id"] for u in by_center["items"]} == {"u1", "u2"}
    assert by_role["stats"]["filtered"] == 1


def test_sort_users_by_last_name(client, users):
    data = client.get("/users", params={"sort_by": "lastName", "sort_dir": "desc"}).json()

    # Carlos has no last name so he stays last
    assert [u["id"] for u in data["items"]] == ["u1", "u2", "u3"]


def test_create_user(client, store, users):
    response = client.post(
        "/users",
        json={
            "firstName": " Diego ",
            "lastName": "Santos",
            "email": "Diego@Clinic.com",
            "accountId": "acc-1",
            "role": "doctor",
        },
    )

    assert response.status_code == 201
    user = response.json()
    assert user["firstName"] == "Diego"
    assert user["email"] == "diego@clinic.com"
    assert user["isActive"] is True
    assert user["role"] == "doctor"
    assert store.collection("accounts/acc-1/users").count() == 3

    actions = client.get("/accounts/acc-1/actions").json()["items"]
    assert actions[0]["action"] == "create_user"
    assert actions[0]["details"] == {"userId": user["id"], "email": "diego@clinic.com"}


def test_create_user_defaults_to_user_role(client, users):
    user = client.post(
        "/users",
        json={"firstName": "Eva", "lastName": "Mora", "email": "eva@clinic.com", "accountId": "acc-1"},
    ).json()

    assert user["role"] == "user"


def test_create_user_for_unknown_account(client):
    response = client.post(
        "/users",
        json={"firstName": "Eva", "lastName": "Mora", "email": "eva@clinic.com", "accountId": "ghost"},
    )

    assert response.status_code == 404


@pytest.mark.parametrize(
    "overrides",
    [
        {"firstName": "  "},
        {"lastName": ""},
        {"email": "eva"},
        {"accountId": " "},
        {"role": "superuser"},
        {"phone": "12"},
    ],
)
def test_create_user_validation(client, users, overrides):
    body = {"firstName": "Eva", "lastName": "Mora", "email": "eva@clinic.com", "accountId": "acc-1", **overrides}

    assert client.post("/users", json=body).status_code == 422
