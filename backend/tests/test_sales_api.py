from provision_store.extensions import db
from provision_store.models import Sale
from provision_store.services import ledger_service


def test_post_sale_success(client, rice, stock_of):
    response = client.post("/api/sales", json={"items": [{"product_id": rice, "quantity": 3}]})

    assert response.status_code == 201
    body = response.get_json()
    assert body["total"] == 150
    assert body["profit"] == 30
    assert body["total_cents"] == 15000
    assert body["profit_cents"] == 3000
    assert isinstance(body["sale_id"], int)
    assert stock_of(rice) == 7


def test_post_sale_ignores_client_prices(client, rice):
    response = client.post("/api/sales", json={
        "items": [{"product_id": rice, "quantity": 1, "price_cents": 1, "cost_cents": 999999}],
    })

    assert response.status_code == 201
    assert response.get_json()["total_cents"] == 5000
    assert response.get_json()["profit_cents"] == 1000


def test_post_sale_insufficient_stock(client, rice, stock_of):
    response = client.post("/api/sales", json={"items": [{"product_id": rice, "quantity": 11}]})

    assert response.status_code == 400
    body = response.get_json()
    assert "Insufficient stock" in body["error"]
    assert body["details"] == {"product_id": rice, "requested_quantity": 11, "available": 10}
    assert stock_of(rice) == 10


def test_post_sale_unknown_product(client, db_session):
    response = client.post("/api/sales", json={"items": [{"product_id": 999999, "quantity": 1}]})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Product 999999 not found"
    assert response.get_json()["details"] == {"product_id": 999999}


def test_post_sale_product_id_beyond_integer_range(client, rice, stock_of):
    response = client.post("/api/sales", json={"items": [
        {"product_id": rice, "quantity": 1},
        {"product_id": 10**20, "quantity": 1},
    ]})

    assert response.status_code == 400
    assert response.get_json()["error"] == f"Product {10**20} not found"
    assert response.get_json()["details"] == {"product_id": 10**20}
    assert stock_of(rice) == 10


def test_post_sale_empty_cart(client, db_session):
    for payload in ({"items": []}, {}, None):
        response = client.post("/api/sales", json=payload)
        assert response.status_code == 400
        assert response.get_json()["error"] == "No items in cart"


def test_post_sale_malformed_lines(client, rice):
    bad_payloads = [
        {"items": "rice"},
        {"items": [{"product_id": rice}]},
        {"items": [{"product_id": rice, "quantity": 0}]},
        {"items": [{"product_id": rice, "quantity": 1.5}]},
        {"items": [{"product_id": "abc", "quantity": 1}]},
        {"items": [["rice", 1]]},
    ]
    for payload in bad_payloads:
        response = client.post("/api/sales", json=payload)
        assert response.status_code == 400, payload
        assert "error" in response.get_json()

    assert db.session.query(Sale).count() == 0


def test_post_sale_storage_fault_is_server_error(client, rice, stock_of, monkeypatch):
    def _broken(session, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(ledger_service, "create_sale", _broken)

    response = client.post("/api/sales", json={"items": [{"product_id": rice, "quantity": 1}]})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}
    assert stock_of(rice) == 10


def test_list_and_get_sales(client, rice, milk):
    first = client.post("/api/sales", json={"items": [{"product_id": rice, "quantity": 1}]}).get_json()
    second = client.post("/api/sales", json={
        "items": [{"product_id": rice, "quantity": 2}, {"product_id": milk, "quantity": 1}],
    }).get_json()

    listing = client.get("/api/sales")
    assert listing.status_code == 200
    sales = listing.get_json()["items"]
    assert [s["id"] for s in sales] == [second["sale_id"], first["sale_id"]]
    assert [s["item_count"] for s in sales] == [2, 1]

    detail = client.get(f"/api/sales/{second['sale_id']}")
    assert detail.status_code == 200
    sale = detail.get_json()
    assert sale["total_cents"] == 2 * 5000 + 6000
    assert [(i["product_name"], i["quantity"]) for i in sale["items"]] == [("Rice 1kg", 2), ("Milk 1L", 1)]


def test_get_unknown_sale(client, db_session):
    response = client.get("/api/sales/424242")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Sale not found"}

    assert client.get(f"/api/sales/{10**20}").status_code == 404
