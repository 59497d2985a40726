import json

from tests.factories import make_order


def test_home_without_frontend(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "BACKEND SERVER IS RUNNING" in response.text


def test_home_serves_frontend_index(client, data_dir):
    static = data_dir.parent / "public"
    static.mkdir()
    (static / "index.html").write_text("<h1>Storefront</h1>")
    (static / "app.js").write_text("console.log('hi')")

    assert client.get("/").text == "<h1>Storefront</h1>"
    assert client.get("/app.js").text == "console.log('hi')"
    assert client.get("/menu/espresso").text == "<h1>Storefront</h1>"


def test_unknown_page_is_404(client):
    response = client.get("/no/such/page")

    assert response.status_code == 404
    assert "404 - Page Not Found" in response.text


def test_test_page(client):
    response = client.get("/test")

    assert response.status_code == 200
    assert "SERVER IS WORKING PERFECTLY" in response.text
    assert "test" in response.text


def test_admin_dashboard_with_no_orders(client):
    response = client.get("/admin")

    assert response.status_code == 200
    assert "$0.00" in response.text
    assert "nan" not in response.text.lower()
    assert "No orders yet." in response.text


def test_admin_pages_render_orders(client, data_dir):
    orders = [
        make_order(orderId="UC-1-aaa", total=37.98, items=[{"name": "Ethiopian Yirgacheffe", "price": 18.99, "quantity": 2}]),
        make_order(orderId="UC-2-bbb", total=12, items=None, created_at="2026-09-01T08:00:00.000Z"),
        {"orderId": "UC-3-ccc", "total": 5},
    ]
    del orders[1]["items"]
    (data_dir / "orders.json").write_text(json.dumps(orders))

    dashboard = client.get("/admin")
    assert dashboard.status_code == 200
    assert "$54.98" in dashboard.text
    assert "$18.33" in dashboard.text
    assert "Ethiopian Yirgacheffe" in dashboard.text

    report = client.get("/admin/sales-report")
    assert report.status_code == 200
    assert "September 2026" in report.text
    assert "October 2026" in report.text

    listing = client.get("/admin/orders")
    assert listing.status_code == 200
    assert "Orders (3)" in listing.text
    assert listing.text.index("UC-1-aaa") < listing.text.index("UC-2-bbb")
    assert "$37.98" in listing.text
