"""Integration tests for the HTTP routes (main.py)."""

from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from app.database import get_db
from app.exports import XLSX_MEDIA_TYPE
from app.main import app, get_gateway, get_workflow
from app.models import utcnow
from app.payments import RazorpayClient

from test_payments import FakeResponse, FakeSession


ORDER_PAYLOAD = {
    "name": "Meena Raj",
    "address": "12 Beach Road",
    "city": "Thoothukudi",
    "state": "Tamil Nadu",
    "country": "India",
    "pin": 628001,
    "mobile": "9876543210",
    "email": "meena@example.com",
    "total_amount": 420,
    "products": [
        {"id": 1, "title": "Dried Black Lime", "qty": 2, "weight": "250g", "price": 120, "sale_price": 105},
        {"id": 2, "title": "Lime Powder", "qty": 1, "weight": "100g", "price": 210},
    ],
}


@pytest.fixture
def gateway_session():
    return FakeSession(FakeResponse(payload={"id": "order_rzp_1", "amount": 42000, "currency": "INR"}))


@pytest.fixture
def client(workflow, session_factory, gateway_session):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_workflow] = lambda: workflow
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: RazorpayClient("rzp_test_key", "secret",
                                                                   session=gateway_session)
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_order(client, **overrides):
    response = client.post("/api/orders/create-order-pending", json={**ORDER_PAYLOAD, **overrides})
    assert response.status_code == 200
    return response.json()["order_no"]


class TestOrderEndpoints:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Order service is running"}

    def test_create_pending(self, client):
        response = client.post("/api/orders/create-order-pending", json=ORDER_PAYLOAD)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Order saved as PENDING", "order_no": "VITA-10001"}

    def test_create_pending_missing_fields(self, client):
        response = client.post("/api/orders/create-order-pending", json={**ORDER_PAYLOAD, "name": "", "city": None})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["fields"] == ["name", "city"]

    def test_get_by_order_no(self, client):
        order_no = create_order(client)

        order = client.get(f"/api/orders/get/{order_no}").json()["order"]

        assert order["order_no"] == order_no
        assert order["status"] == "PENDING"
        assert order["pin"] == "628001"

    def test_get_unknown_order(self, client):
        response = client.get("/api/orders/get/VITA-404")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_get_by_id_includes_products(self, client):
        order_no = create_order(client)
        order_id = client.get(f"/api/orders/get/{order_no}").json()["order"]["id"]

        order = client.get(f"/api/orders/{order_id}").json()["order"]

        assert [item["hsn"] for item in order["products"]] == ["0813", "0908"]

    def test_list_all(self, client):
        first = create_order(client)
        second = create_order(client)

        orders = client.get("/api/orders/all").json()["orders"]

        assert [order["order_no"] for order in orders] == [second, first]

    def test_update_status_to_shipped(self, client, transport):
        order_no = create_order(client)

        response = client.post("/api/orders/update-status", json={"order_no": order_no, "status": "SHIPPED"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Order status updated to SHIPPED",
            "invoice_no": "INV-VITA-10001",
        }
        assert len(transport.sent) == 2

    def test_update_status_unknown_status(self, client):
        order_no = create_order(client)
        response = client.post("/api/orders/update-status", json={"order_no": order_no, "status": "LOST"})
        assert response.status_code == 400

    def test_update_status_unknown_order(self, client):
        response = client.post("/api/orders/update-status", json={"order_no": "VITA-404", "status": "SHIPPED"})
        assert response.status_code == 404

    def test_update_payment(self, client):
        order_no = create_order(client)

        response = client.post("/api/orders/update-payment",
                               json={"order_no": order_no, "razorpay_payment_id": "pay_1",
                                     "razorpay_order_id": "order_rzp_1"})

        body = response.json()
        assert body["success"] is True
        assert body["status"] == "ORDER_PLACED"
        assert body["payment_status"] == "PAID"

    def test_invoice_download(self, client):
        order_no = create_order(client)
        client.post("/api/orders/update-status", json={"order_no": order_no, "status": "SHIPPED"})

        response = client.get(f"/api/orders/invoice/{order_no}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="INV-VITA-10001.pdf"' in response.headers["content-disposition"]
        assert response.content == b"%PDF-1.4 fake invoice"

    def test_invoice_download_before_shipping(self, client):
        order_no = create_order(client)
        assert client.get(f"/api/orders/invoice/{order_no}").status_code == 400

    def test_invoice_render_failure(self, client, renderer):
        order_no = create_order(client)
        client.post("/api/orders/update-status", json={"order_no": order_no, "status": "SHIPPED"})
        renderer.should_fail = True

        assert client.get(f"/api/orders/invoice/{order_no}").status_code == 502


class TestPaymentEndpoints:
    def test_payment_route(self, client):
        assert client.get("/api/payment/test").json() == {"message": "Payment route working"}

    def test_create_payment(self, client, gateway_session):
        response = client.post("/api/payment/create-payment", json={"amount": 420})

        body = response.json()
        assert body["success"] is True
        assert body["order"]["id"] == "order_rzp_1"
        assert body["key"] == "rzp_test_key"
        assert gateway_session.calls[0][1]["json"]["amount"] == 42000

    def test_create_payment_rejects_zero_amount(self, client):
        assert client.post("/api/payment/create-payment", json={"amount": 0}).status_code == 422

    def test_gateway_failure(self, client, gateway_session):
        gateway_session.response = FakeResponse(status_code=500)
        assert client.post("/api/payment/create-payment", json={"amount": 420}).status_code == 502


class TestShipmentEndpoints:
    def _create(self, client, order_no):
        response = client.post("/api/shipments/create", json={
            "order_no": order_no,
            "name": "Meena Raj",
            "pin": 628001,
            "waybill": "WB1001",
            "weight": 0.5,
            "payment_mode": "Prepaid",
        })
        assert response.status_code == 200
        return response.json()["id"]

    def test_create_and_get(self, client):
        order_no = create_order(client)
        shipment_id = self._create(client, order_no)

        shipment = client.get(f"/api/shipments/get/{shipment_id}").json()["shipment"]

        assert shipment["order_no"] == order_no
        assert shipment["waybill"] == "WB1001"
        assert shipment["weight"] == "0.5"
        assert shipment["pin"] == "628001"

    def test_list_joins_order_details(self, client):
        order_no = create_order(client)
        client.post("/api/orders/update-status", json={"order_no": order_no, "status": "SHIPPED"})
        self._create(client, order_no)

        shipments = client.get("/api/shipments/all").json()["shipments"]

        assert shipments[0]["invoice_no"] == "INV-VITA-10001"
        assert float(shipments[0]["total_amount"]) == 420.0

    def test_get_for_order(self, client):
        order_no = create_order(client)
        shipment_id = self._create(client, order_no)

        assert client.get(f"/api/shipments/order/{order_no}").json()["shipment"]["id"] == shipment_id
        assert client.get("/api/shipments/order/VITA-404").status_code == 404

    def test_update(self, client):
        shipment_id = self._create(client, create_order(client))

        response = client.put(f"/api/shipments/update/{shipment_id}", json={"waybill": "WB2002", "weight": "1kg"})

        assert response.status_code == 200
        shipment = client.get(f"/api/shipments/get/{shipment_id}").json()["shipment"]
        assert shipment["waybill"] == "WB2002"
        assert shipment["weight"] == "1kg"

    def test_delete(self, client):
        shipment_id = self._create(client, create_order(client))

        assert client.delete(f"/api/shipments/delete/{shipment_id}").status_code == 200
        assert client.get(f"/api/shipments/get/{shipment_id}").status_code == 404

    def test_unknown_shipment(self, client):
        assert client.put("/api/shipments/update/999", json={"waybill": "x"}).status_code == 404
        assert client.delete("/api/shipments/delete/999").status_code == 404


class TestDashboard:
    def test_summary(self, client):
        paid = create_order(client)
        create_order(client)
        shipped = create_order(client, total_amount=210)
        client.post("/api/orders/update-payment", json={"order_no": paid})
        client.post("/api/orders/update-status", json={"order_no": shipped, "status": "SHIPPED"})

        body = client.get("/api/dashboard").json()

        month = utcnow().strftime("%b %Y")
        assert body["success"] is True
        assert float(body["revenue"]) == 420.0
        assert body["ordersCount"] == {"total": 3, "pending": 1, "delivered": 1}
        assert body["productsCount"] == 2
        assert body["monthlyOrders"] == [{"month": month, "orders": 3}]
        assert [(row["month"], float(row["revenue"])) for row in body["monthlyRevenue"]] == [(month, 420.0)]


class TestInvoiceRegisterExport:
    def test_month_export(self, client):
        shipped = create_order(client)
        create_order(client)
        client.post("/api/orders/update-status", json={"order_no": shipped, "status": "SHIPPED"})
        now = utcnow()

        response = client.get("/api/orders/export-excel", params={"year": now.year, "month": now.month})

        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_MEDIA_TYPE
        assert f'filename="orders-{now:%Y-%m}.xlsx"' in response.headers["content-disposition"]
        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        assert [row[1] for row in rows[1:]] == [shipped, shipped]

    def test_month_export_needs_year_and_month(self, client):
        response = client.get("/api/orders/export-excel", params={"year": 2025})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_range_export(self, client):
        response = client.get("/api/orders/export-excel-range", params={"from": "2025-01", "to": "2025-03"})

        assert response.status_code == 200
        assert 'filename="orders-2025-01-to-2025-03.xlsx"' in response.headers["content-disposition"]
        rows = list(load_workbook(BytesIO(response.content)).active.iter_rows(values_only=True))
        assert len(rows) == 1

    def test_range_export_rejects_reversed_range(self, client):
        response = client.get("/api/orders/export-excel-range", params={"from": "2025-03", "to": "2025-01"})
        assert response.status_code == 400


class TestCatalogueEndpoints:
    PRODUCT = {
        "title": "Black Lime Slices",
        "hsn": "0813",
        "variants": [{"weight": "100g", "price": "150", "stock": 4}, {"weight": "250g", "price": 320, "stock": 6}],
        "images": ["slices.jpg"],
    }

    def test_product_lifecycle(self, client):
        created = client.post("/api/products", json=self.PRODUCT).json()["product"]
        assert created["stock"] == 10
        assert created["images"] == ["/uploads/uploads/slices.jpg"]

        product_id = created["id"]
        updated = client.put(f"/api/products/{product_id}", json={**self.PRODUCT, "status": "Inactive"}).json()
        assert updated["product"]["status"] == "Inactive"
        assert client.get(f"/api/products/{product_id}").json()["product"]["title"] == "Black Lime Slices"

        assert client.delete(f"/api/products/{product_id}").json()["success"] is True
        assert client.get(f"/api/products/{product_id}").status_code == 404

    def test_list_active_products(self, client):
        body = client.get("/api/products").json()
        assert [p["title"] for p in body["products"]] == ["Dried Black Lime", "Lime Powder"]

    def test_product_needs_title(self, client):
        response = client.post("/api/products", json={**self.PRODUCT, "title": ""})

        assert response.status_code == 400
        assert response.json()["fields"] == ["title"]

    def test_category_lifecycle(self, client):
        created = client.post("/api/categories", json={"category_name": "Pickles", "date": "2025-03-01",
                                                       "image_url": "pickles.png"}).json()["category"]
        assert created["date"] == "2025-03-01"
        assert created["image_url"] == "uploads/pickles.png"

        category_id = created["id"]
        updated = client.put(f"/api/categories/{category_id}", json={"category_name": "Lime Pickles"}).json()
        assert updated["category"]["category_name"] == "Lime Pickles"
        assert updated["category"]["image_url"] == "uploads/pickles.png"
        assert [c["id"] for c in client.get("/api/categories").json()["categories"]] == [category_id]

        assert client.delete(f"/api/categories/{category_id}").status_code == 200
        assert client.get(f"/api/categories/{category_id}").status_code == 404
