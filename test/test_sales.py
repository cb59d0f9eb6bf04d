"""
Tests for orders (sales), tickets and the report endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest

from restopos import store


@pytest.fixture
def order(menu):
    return {
        "table_number": "7",
        "items": [
            {"product_id": menu.products["agua"].id, "quantity": 2},
            {"product_id": menu.products["flan"].id, "quantity": 1},
        ],
    }


class TestTakingOrders:
    def test_waiter_saves_pending_order(self, waiter_client, seed, order):
        response = waiter_client.post("/sales", json=order)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["customer_name"] == "Consumidor Final"
        assert data["user_id"] == seed.waiter_id
        assert data["user_name"] == "Wendy"
        assert data["restaurant_id"] == seed.second.id
        assert data["total_price"] == 8.25
        names = {i["name"]: i["quantity"] for i in data["items"]}
        assert names == {"Agua": 2, "Flan": 1}

    def test_repeated_lines_are_merged(self, waiter_client, menu):
        agua = menu.products["agua"].id
        response = waiter_client.post("/sales", json={
            "table_number": "1",
            "items": [{"product_id": agua, "quantity": 1}, {"product_id": agua, "quantity": 2}],
        })
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["quantity"] == 3

    def test_table_number_required(self, waiter_client, order):
        order["table_number"] = "  "
        response = waiter_client.post("/sales", json=order)
        assert response.status_code == 400
        assert response.json()["detail"] == "Por favor, introduce un número de mesa."

    def test_empty_order_rejected(self, waiter_client, order):
        order["items"] = []
        assert waiter_client.post("/sales", json=order).status_code == 400

    def test_unknown_product_rejected(self, waiter_client, order):
        order["items"].append({"product_id": "missing", "quantity": 1})
        assert waiter_client.post("/sales", json=order).status_code == 400

    def test_zero_quantity_rejected(self, waiter_client, order):
        order["items"][0]["quantity"] = 0
        assert waiter_client.post("/sales", json=order).status_code == 422

    def test_snapshot_survives_price_change(self, waiter_client, admin_client, menu, order):
        sale = waiter_client.post("/sales", json=order).json()
        admin_client.put(f"/products/{menu.products['agua'].id}", json={"price": 9})
        stored = waiter_client.get(f"/sales/{sale['id']}").json()
        agua = next(i for i in stored["items"] if i["name"] == "Agua")
        assert float(agua["price"]) == 2.0
        assert stored["total_price"] == 8.25


class TestSalesHistory:
    def test_waiter_only_sees_own_sales(self, waiter_client, seller_client, order):
        waiter_client.post("/sales", json=order)
        seller_sale = seller_client.post("/sales", json=order).json()

        assert len(waiter_client.get("/sales").json()) == 1
        assert len(seller_client.get("/sales").json()) == 2
        assert waiter_client.get(f"/sales/{seller_sale['id']}").status_code == 404

    def test_newest_first(self, seller_client, db_session, order):
        first = seller_client.post("/sales", json=order).json()
        second = seller_client.post("/sales", json=order).json()
        store.update_doc(db_session, "sales", first["id"], {
            "sale_date": datetime.now(timezone.utc) - timedelta(days=1),
        })
        assert [s["id"] for s in seller_client.get("/sales").json()] == [second["id"], first["id"]]

    def test_date_filter(self, seller_client, db_session, order):
        old = seller_client.post("/sales", json=order).json()
        seller_client.post("/sales", json=order)
        store.update_doc(db_session, "sales", old["id"], {
            "sale_date": datetime(2024, 1, 15, 12, tzinfo=timezone.utc),
        })
        response = seller_client.get("/sales", params={"start": "2024-01-01", "end": "2024-01-31"})
        assert [s["id"] for s in response.json()] == [old["id"]]


class TestEditingOrders:
    def test_update_items_refreshes_total(self, waiter_client, menu, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = waiter_client.put(f"/sales/{sale['id']}", json={
            "items": [{"product_id": menu.products["cerveza"].id, "quantity": 4}],
            "customer_name": "Luis",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["total_price"] == 14.0
        assert data["customer_name"] == "Luis"
        assert data["table_number"] == "7"

    def test_sale_to_edit_marker(self, waiter_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = waiter_client.put("/session/sale-to-edit", json={"sale_id": sale["id"]})
        assert response.status_code == 200
        assert response.json()["sale_to_edit_id"] == sale["id"]

        # Saving the edited order clears the marker
        waiter_client.put(f"/sales/{sale['id']}", json={"table_number": "8"})
        assert waiter_client.get("/session").json()["sale_to_edit_id"] is None

    def test_sale_to_edit_unknown_sale(self, waiter_client, seed):
        response = waiter_client.put("/session/sale-to-edit", json={"sale_id": "missing"})
        assert response.status_code == 404

    def test_mark_paid(self, seller_client, order):
        sale = seller_client.post("/sales", json=order).json()
        response = seller_client.put(f"/sales/{sale['id']}/status", json={"status": "paid"})
        assert response.status_code == 200
        assert response.json()["status"] == "paid"

    def test_waiter_cannot_mark_paid(self, waiter_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = waiter_client.put(f"/sales/{sale['id']}/status", json={"status": "paid"})
        assert response.status_code == 403
        assert waiter_client.get(f"/sales/{sale['id']}").json()["status"] == "pending"

    def test_paid_order_is_locked(self, waiter_client, seller_client, menu, order):
        sale = waiter_client.post("/sales", json=order).json()
        seller_client.put(f"/sales/{sale['id']}/status", json={"status": "paid"})

        response = waiter_client.put(f"/sales/{sale['id']}", json={
            "items": [{"product_id": menu.products["flan"].id, "quantity": 5}],
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Esta comanda ya está pagada y no se puede modificar."
        stored = waiter_client.get(f"/sales/{sale['id']}").json()
        assert stored["total_price"] == 8.25
        assert stored["items"] == sale["items"]

    def test_paid_order_cannot_be_reopened(self, waiter_client, seller_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        seller_client.put(f"/sales/{sale['id']}/status", json={"status": "paid"})
        response = waiter_client.put("/session/sale-to-edit", json={"sale_id": sale["id"]})
        assert response.status_code == 400
        assert waiter_client.get("/session").json()["sale_to_edit_id"] is None

    def test_update_missing_sale(self, seller_client, seed):
        response = seller_client.put("/sales/missing/status", json={"status": "paid"})
        assert response.status_code == 404


class TestBulkDelete:
    def test_delete_selected(self, admin_client, order):
        ids = [admin_client.post("/sales", json=order).json()["id"] for _ in range(3)]
        response = admin_client.post("/sales/bulk-delete", json={"ids": ids[:2]})
        assert response.status_code == 200
        assert response.json()["deleted"] == 2
        assert [s["id"] for s in admin_client.get("/sales").json()] == [ids[2]]

    def test_seller_cannot_delete(self, seller_client, waiter_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = seller_client.post("/sales/bulk-delete", json={"ids": [sale["id"]]})
        assert response.status_code == 403
        assert seller_client.get(f"/sales/{sale['id']}").status_code == 200

    def test_waiter_cannot_delete(self, waiter_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = waiter_client.post("/sales/bulk-delete", json={"ids": [sale["id"]]})
        assert response.status_code == 403

    def test_other_restaurant_ids_ignored(self, super_client, seller_client, seed, order):
        sale = seller_client.post("/sales", json=order).json()
        super_client.put("/session/restaurant", json={"restaurant_id": seed.first.id})
        response = super_client.post("/sales/bulk-delete", json={"ids": [sale["id"]]})
        assert response.json()["deleted"] == 0


class TestTicket:
    def test_ticket_pdf(self, waiter_client, order):
        sale = waiter_client.post("/sales", json=order).json()
        response = waiter_client.get(f"/sales/{sale['id']}/ticket")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_ticket_missing_sale(self, waiter_client, seed):
        assert waiter_client.get("/sales/missing/ticket").status_code == 404


class TestReports:
    def test_stock_report(self, seller_client, db_session, seed, menu, order):
        store.add_doc(db_session, "purchases", {
            "product_name": "agua", "quantity": 50, "unit_price": 1, "restaurant_id": seed.second.id,
        })
        store.add_doc(db_session, "purchases", {
            "product_name": "Flan", "quantity": 3, "unit_price": 1, "restaurant_id": seed.second.id,
        })
        seller_client.post("/sales", json=order)

        response = seller_client.get("/reports/stock")
        assert response.status_code == 200
        rows = {r["product_name"]: r for r in response.json()}
        assert rows["Agua"]["current_stock"] == 48
        assert rows["Agua"]["status"] == "in stock"
        assert rows["Flan"]["current_stock"] == 2
        assert rows["Flan"]["status"] == "low stock"
        assert rows["Cerveza"]["status"] == "out of stock"
        assert response.json()[0]["product_name"] == "Cerveza"

        filtered = seller_client.get("/reports/stock", params={"search": "AGU"}).json()
        assert [r["product_name"] for r in filtered] == ["Agua"]

    def test_waiter_has_no_reports(self, waiter_client, seed):
        assert waiter_client.get("/reports/stock").status_code == 403
        assert waiter_client.get("/reports/dashboard").status_code == 403

    def test_sales_by_day_defaults_to_last_30_days(self, seller_client, order):
        seller_client.post("/sales", json=order)
        series = seller_client.get("/reports/sales-by-day").json()
        assert len(series) == 30
        assert series[-1]["day"] == datetime.now(timezone.utc).date().isoformat()
        assert sum(d["sales"] for d in series) == 8.25

    def test_sales_by_day_range(self, seller_client, seed):
        response = seller_client.get(
            "/reports/sales-by-day", params={"start": "2024-02-27", "end": "2024-03-01"}
        )
        assert [d["day"] for d in response.json()] == [
            "2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01",
        ]

    def test_sales_by_day_range_is_capped(self, seller_client, seed):
        response = seller_client.get(
            "/reports/sales-by-day", params={"start": "0001-01-01", "end": "2024-03-01"}
        )
        assert response.status_code == 400

        response = seller_client.get(
            "/reports/sales-by-day", params={"start": "2024-01-01", "end": "2024-12-31"}
        )
        assert len(response.json()) == 366

    def test_stock_search_by_category(self, seller_client, menu):
        rows = seller_client.get("/reports/stock", params={"search": "postres"}).json()
        assert [r["product_name"] for r in rows] == ["Flan"]

    def test_dashboard(self, seller_client, menu, order):
        seller_client.post("/customers", json={"name": "Luis"})
        seller_client.post("/sales", json=order)
        seller_client.post("/sales", json={
            "table_number": "2",
            "items": [{"product_id": menu.products["cerveza"].id, "quantity": 1}],
        })

        data = seller_client.get("/reports/dashboard").json()
        assert data["kpis"] == {
            "total_revenue": 11.75, "total_sales": 2, "avg_ticket": 5.88, "total_customers": 1,
        }
        assert [p["name"] for p in data["best_selling"]] == ["Flan", "Agua", "Cerveza"]
        assert data["worst_selling"] == []
        categories = {c["name"]: c["value"] for c in data["sales_by_category"]}
        assert categories == {"Bebidas": 7.5, "Postres": 4.25}
