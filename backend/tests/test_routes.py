# Overview: Pytest coverage for HTTP routes and CLI commands.

"""
Route Tests

Thin checks on status codes and response shape; the services underneath
are covered in their own test modules.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from ecodues.services import dues_service


def _consumer_purchase(client, consumer, item, fee="4.00"):
    return client.post("/api/purchases/consumer", json={
        "buyer_id": consumer.id,
        "inventory_id": item.id,
        "amount_paid": "10.00",
        "disposal_fee": fee,
    })


class TestSystemRoutes:
    def test_health_counts_open_dues(self, client, db_session, consumer, stocked_item):
        _consumer_purchase(client, consumer, stocked_item)

        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["open_dues"]["consumer"] == 1

    def test_version(self, client):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert resp.get_json()["due_resolution_policy"] == "first_match"


class TestPurchaseRoutes:
    def test_consumer_purchase_created(self, client, db_session, consumer, stocked_item):
        resp = _consumer_purchase(client, consumer, stocked_item)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["dues"][0]["tier"] == "consumer"
        assert body["dues"][0]["amount"] == "4.00"

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/purchases/consumer", json={"buyer_id": 1})
        assert resp.status_code == 400

    def test_unknown_field(self, client, db_session, consumer, stocked_item):
        resp = client.post("/api/purchases/consumer", json={
            "buyer_id": consumer.id,
            "inventory_id": stocked_item.id,
            "amount_paid": "1.00",
            "disposal_fee": "0.10",
            "coupon": "FREE",
        })
        assert resp.status_code == 400

    def test_unknown_inventory(self, client, db_session, consumer):
        resp = client.post("/api/purchases/consumer", json={
            "buyer_id": consumer.id,
            "inventory_id": 9999,
            "amount_paid": "1.00",
            "disposal_fee": "0.10",
        })
        assert resp.status_code == 404

    def test_insufficient_stock_conflict(self, client, db_session, business, stocked_item):
        resp = client.post("/api/purchases/business", json={
            "business_id": business.id,
            "inventory_id": stocked_item.id,
            "quantity": 500,
            "unit_price": "1.00",
            "plastic_grams": 10,
        })
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["on_hand"] == 100
        assert body["requested"] == 500

    def test_company_purchase_opens_pair(self, client, db_session, retailer, company, product):
        resp = client.post("/api/purchases/company", json={
            "retailer_id": retailer.id,
            "company_id": company.id,
            "quantity": 500,
            "disposal_cost_per_unit": "0.10",
        })
        assert resp.status_code == 201
        tiers = [d["tier"] for d in resp.get_json()["dues"]]
        assert tiers == ["retailer", "company"]

    def test_registration(self, client, db_session, business, retailer):
        payload = {"business_id": business.id, "retailer_id": retailer.id}
        first = client.post("/api/purchases/registrations", json=payload)
        second = client.post("/api/purchases/registrations", json=payload)
        assert first.status_code == second.status_code == 200
        assert first.get_json()["link"]["id"] == second.get_json()["link"]["id"]


class TestDueRoutes:
    def test_settle_then_conflict(self, client, db_session, consumer, linked_chain):
        due_id = _consumer_purchase(client, consumer, linked_chain).get_json()["dues"][0]["id"]

        resp = client.post(f"/api/dues/consumer/{due_id}/settle")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["outcome"] == "cascaded"
        assert body["due"]["status"] == "paid"
        assert body["next_due"]["tier"] == "business"

        again = client.post(f"/api/dues/consumer/{due_id}/settle")
        assert again.status_code == 409

    def test_settle_unknown_due(self, client, db_session):
        assert client.post("/api/dues/consumer/404/settle").status_code == 404

    def test_invalid_tier(self, client, db_session):
        assert client.post("/api/dues/wholesale/1/settle").status_code == 400
        assert client.get("/api/dues?tier=wholesale").status_code == 400

    def test_list_requires_tier(self, client, db_session):
        assert client.get("/api/dues").status_code == 400

    def test_due_detail_and_chain(self, client, db_session, consumer, linked_chain):
        due_id = _consumer_purchase(client, consumer, linked_chain).get_json()["dues"][0]["id"]
        next_id = client.post(f"/api/dues/consumer/{due_id}/settle").get_json()["next_due"]["id"]

        detail = client.get(f"/api/dues/business/{next_id}").get_json()
        assert detail["due"]["parent_due_id"] == due_id
        assert [ev["event_type"] for ev in detail["events"]][0] == "due.opened"

        chain = client.get(f"/api/dues/business/{next_id}/chain").get_json()["chain"]
        assert [d["tier"] for d in chain] == ["consumer", "business"]

    def test_event_payload_is_structured(self, client, db_session, consumer, business, linked_chain):
        due_id = _consumer_purchase(client, consumer, linked_chain).get_json()["dues"][0]["id"]
        client.post(f"/api/dues/consumer/{due_id}/settle")

        events = client.get(f"/api/dues/consumer/{due_id}").get_json()["events"]
        (cascaded,) = [ev for ev in events if ev["event_type"] == "due.cascaded"]
        assert cascaded["payload"] == {"owner_id": business.id, "via": "business_purchase"}

    def test_unexpected_error_is_logged_as_500(self, client, db_session, monkeypatch, caplog):
        def explode(tier, due_id):
            raise RuntimeError("resolver crashed")

        monkeypatch.setattr(dues_service, "settle", explode)

        with caplog.at_level(logging.ERROR):
            resp = client.post("/api/dues/consumer/1/settle")

        assert resp.status_code == 500
        assert "Failed to settle consumer due 1" in caplog.text
        assert "resolver crashed" in caplog.text

    def test_sweep(self, client, db_session, consumer, stocked_item):
        _consumer_purchase(client, consumer, stocked_item)

        resp = client.post("/api/dues/sweep", json={"as_of": "2999-01-01", "tier": "consumer"})
        assert resp.status_code == 200
        assert resp.get_json()["swept"] == {"consumer": 1}

    def test_sweep_owner_without_tier(self, client, db_session):
        resp = client.post("/api/dues/sweep", json={"owner_id": 3})
        assert resp.status_code == 400

    def test_persistence_failure_is_503(self, client, db_session, consumer, linked_chain, monkeypatch):
        due_id = _consumer_purchase(client, consumer, linked_chain).get_json()["dues"][0]["id"]

        def boom(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(dues_service, "_open_next_due", boom)

        resp = client.post(f"/api/dues/consumer/{due_id}/settle")
        assert resp.status_code == 503
        assert client.get(f"/api/dues/consumer/{due_id}").get_json()["due"]["status"] == "pending"


class TestReportRoutes:
    def test_due_summary(self, client, db_session, consumer, stocked_item):
        _consumer_purchase(client, consumer, stocked_item, fee="2.50")

        resp = client.get(f"/api/reports/dues/summary?tier=consumer&owner_id={consumer.id}")
        assert resp.status_code == 200
        assert resp.get_json()["total_owed"] == "2.50"

    def test_summary_requires_params(self, client, db_session):
        assert client.get("/api/reports/dues/summary?tier=consumer").status_code == 400

    def test_unknown_retailer(self, client, db_session):
        resp = client.get("/api/reports/company-balances?retailer_id=4040")
        assert resp.status_code == 400

    def test_flow(self, client, db_session, consumer, stocked_item):
        _consumer_purchase(client, consumer, stocked_item)
        flows = client.get("/api/reports/dues/flow").get_json()["flows"]
        assert flows[0]["flow_stage"] == "at_consumer"


class TestInventoryRoutes:
    def test_movement_and_history(self, client, db_session, stocked_item):
        resp = client.post(f"/api/inventory/{stocked_item.id}/movements", json={"quantity": 5, "kind": "return"})
        assert resp.status_code == 201

        item = client.get(f"/api/inventory/{stocked_item.id}").get_json()["item"]
        assert item["quantity"] == 105

    def test_over_draw_conflict(self, client, db_session, stocked_item):
        resp = client.post(f"/api/inventory/{stocked_item.id}/movements", json={"quantity": 101, "kind": "purchase"})
        assert resp.status_code == 409


class TestCommands:
    def test_sweep_overdue_command(self, app, db_session, consumer, stocked_item, client):
        _consumer_purchase(client, consumer, stocked_item)

        runner = app.test_cli_runner()
        result = runner.invoke(args=["dues", "sweep-overdue", "--as-of", "2999-01-01"])

        assert result.exit_code == 0
        assert "Marked 1 dues overdue" in result.output

    def test_settle_and_chain_commands(self, app, db_session, consumer, linked_chain, client):
        due_id = _consumer_purchase(client, consumer, linked_chain).get_json()["dues"][0]["id"]
        runner = app.test_cli_runner()

        settled = runner.invoke(args=["dues", "settle", "consumer", str(due_id)])
        assert settled.exit_code == 0
        assert "cascaded" in settled.output

        again = runner.invoke(args=["dues", "settle", "consumer", str(due_id)])
        assert again.exit_code != 0

        chain = runner.invoke(args=["dues", "chain", "consumer", str(due_id)])
        assert chain.exit_code == 0
        assert "business" in chain.output
