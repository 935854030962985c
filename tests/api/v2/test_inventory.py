"""
Tests for the inventory API endpoints (/api/v2/inventory).

Records are always created through the API so every test exercises the same
path a client would.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from warehouse_api.api.deps import create_access_token

from factories import InitialPlacementFactory, ReceiptRequestFactory, TransactionRequestFactory, TransferRequestFactory

INVENTORY_PREFIX = "/api/v2/inventory"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _place_via_api(client: AsyncClient, catalog, amount="50", **overrides) -> dict:
    fields = {"product_id": catalog.flour_id, "shelf_id": catalog.shelf_x, "amount": amount}
    fields.update(overrides)
    payload = InitialPlacementFactory(**fields)
    response = await client.post(f"{INVENTORY_PREFIX}/transactions", json=payload)
    assert response.status_code == 201, f"Initial placement failed: {response.text}"
    return response.json()


def _assert_problem(response, status_code: int, code: str):
    assert response.status_code == status_code, response.text
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    assert body["status"] == status_code
    assert body["code"] == code
    assert body["trace_id"]
    return body


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, catalog):
        response = await client.get(INVENTORY_PREFIX)
        _assert_problem(response, 401, "AUTH_001")
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient, catalog):
        response = await client.get(INVENTORY_PREFIX, headers={"Authorization": "Bearer nope"})
        _assert_problem(response, 401, "AUTH_001")

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, catalog):
        token = create_access_token({"sub": "clerk-7"}, expires_delta=timedelta(minutes=-5))
        response = await client.get(INVENTORY_PREFIX, headers={"Authorization": f"Bearer {token}"})
        _assert_problem(response, 401, "AUTH_001")

    @pytest.mark.asyncio
    async def test_token_without_subject(self, client: AsyncClient, catalog):
        token = create_access_token({"email": "clerk@example.com"})
        response = await client.get(INVENTORY_PREFIX, headers={"Authorization": f"Bearer {token}"})
        _assert_problem(response, 401, "AUTH_001")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransactions:
    @pytest.mark.asyncio
    async def test_initial_then_add_remove_adjust(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        assert created["transaction_type"] == "initial"
        assert Decimal(created["quantity_after"]) == Decimal("50")
        assert created["actor_id"] == "clerk-7"
        inventory_id = created["inventory_id"]

        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(inventory_id=inventory_id, transaction_type="add", amount="10"),
        )
        assert response.status_code == 201
        assert Decimal(response.json()["quantity_after"]) == Decimal("60")

        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(inventory_id=inventory_id, transaction_type="remove", amount="70"),
        )
        body = _assert_problem(response, 409, "INV_002")
        assert Decimal(body["context"]["requested"]) == Decimal("70")
        assert Decimal(body["context"]["available"]) == Decimal("60")

        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(inventory_id=inventory_id, transaction_type="adjust", amount="25"),
        )
        assert response.status_code == 201
        entry = response.json()
        assert Decimal(entry["quantity_change"]) == Decimal("-35")

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{inventory_id}/quantity")
        assert response.status_code == 200
        assert Decimal(response.json()["quantity"]) == Decimal("25")
        assert response.json()["unit"] == "kg"

    @pytest.mark.asyncio
    async def test_addressing_by_location(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog, batch_number="LOT-77")

        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(
                product_id=catalog.flour_id,
                shelf_id=catalog.shelf_x,
                batch_number="LOT-77",
                transaction_type="remove",
                amount="5",
            ),
        )
        assert response.status_code == 201
        assert response.json()["inventory_id"] == created["inventory_id"]

    @pytest.mark.asyncio
    async def test_unknown_transaction_type(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(inventory_id=created["inventory_id"], transaction_type="borrow"),
        )
        _assert_problem(response, 422, "INV_003")

    @pytest.mark.asyncio
    async def test_excess_precision(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(
                inventory_id=created["inventory_id"], transaction_type="add", amount="0.00001"
            ),
        )
        body = _assert_problem(response, 422, "INV_001")
        assert body["context"]["reason"] == "too_many_decimal_places"

    @pytest.mark.asyncio
    async def test_missing_record(self, authenticated_client: AsyncClient, catalog):
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(inventory_id=424242, transaction_type="remove"),
        )
        _assert_problem(response, 404, "RES_001")

    @pytest.mark.asyncio
    async def test_duplicate_initial(self, authenticated_client: AsyncClient, catalog):
        await _place_via_api(authenticated_client, catalog, batch_number="DUP")
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=InitialPlacementFactory(
                product_id=catalog.flour_id, shelf_id=catalog.shelf_x, batch_number="DUP"
            ),
        )
        _assert_problem(response, 409, "RES_002")

    @pytest.mark.asyncio
    async def test_unit_mismatch(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(
                inventory_id=created["inventory_id"], transaction_type="add", amount="1", unit="lb"
            ),
        )
        body = _assert_problem(response, 422, "INV_004")
        assert body["context"]["expected"] == "kg"

    @pytest.mark.asyncio
    async def test_unknown_fields_rejected(self, authenticated_client: AsyncClient, catalog):
        payload = TransactionRequestFactory(inventory_id=1, transaction_type="add", quantity_change="5")
        response = await authenticated_client.post(f"{INVENTORY_PREFIX}/transactions", json=payload)
        body = _assert_problem(response, 422, "VAL_001")
        assert any("quantity_change" in error["field"] for error in body["errors"])

    @pytest.mark.asyncio
    async def test_address_required(self, authenticated_client: AsyncClient, catalog):
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transactions",
            json=TransactionRequestFactory(transaction_type="add"),
        )
        _assert_problem(response, 422, "VAL_001")


# ---------------------------------------------------------------------------
# Receipts and transfers
# ---------------------------------------------------------------------------


class TestReceiptsAndTransfers:
    @pytest.mark.asyncio
    async def test_receipt_creates_then_adds(self, authenticated_client: AsyncClient, catalog):
        payload = ReceiptRequestFactory(product_id=catalog.bolts_id, shelf_id=catalog.shelf_y, amount="40")
        first = await authenticated_client.post(f"{INVENTORY_PREFIX}/receipts", json=payload)
        assert first.status_code == 201
        assert first.json()["transaction_type"] == "initial"

        payload["amount"] = "2"
        second = await authenticated_client.post(f"{INVENTORY_PREFIX}/receipts", json=payload)
        assert second.status_code == 201
        assert second.json()["transaction_type"] == "add"
        assert Decimal(second.json()["quantity_after"]) == Decimal("42")

    @pytest.mark.asyncio
    async def test_receipt_to_unknown_shelf(self, authenticated_client: AsyncClient, catalog):
        payload = ReceiptRequestFactory(product_id=catalog.bolts_id, shelf_id=424242, amount="3")
        response = await authenticated_client.post(f"{INVENTORY_PREFIX}/receipts", json=payload)
        body = _assert_problem(response, 404, "RES_001")
        assert body["context"]["resource"] == "Shelf"

        response = await authenticated_client.get(INVENTORY_PREFIX, params={"product_id": catalog.bolts_id})
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_draining_transfer(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog, amount="25")
        source_id = created["inventory_id"]

        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transfers",
            json=TransferRequestFactory(source_inventory_id=source_id, target_shelf_id=catalog.shelf_y, amount="25"),
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["source_deleted"] is True
        assert body["target_created"] is True
        assert body["source_entry"]["transfer_id"] == body["target_entry"]["transfer_id"] == body["transfer_id"]
        target_id = body["target_entry"]["inventory_id"]

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{source_id}")
        _assert_problem(response, 404, "RES_001")

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{target_id}")
        assert response.status_code == 200
        assert response.json()["shelf_id"] == catalog.shelf_y
        assert Decimal(response.json()["quantity"]) == Decimal("25")

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{source_id}/transactions")
        assert response.status_code == 200
        history = response.json()
        assert [e["transaction_type"] for e in history["items"]] == ["initial", "transfer_out"]
        assert history["has_more"] is False

    @pytest.mark.asyncio
    async def test_transfer_to_unknown_shelf(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transfers",
            json=TransferRequestFactory(source_inventory_id=created["inventory_id"], target_shelf_id=9090),
        )
        _assert_problem(response, 404, "RES_005")

    @pytest.mark.asyncio
    async def test_transfer_to_same_shelf(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.post(
            f"{INVENTORY_PREFIX}/transfers",
            json=TransferRequestFactory(source_inventory_id=created["inventory_id"], target_shelf_id=catalog.shelf_x),
        )
        _assert_problem(response, 422, "INV_005")


# ---------------------------------------------------------------------------
# Reads and administration
# ---------------------------------------------------------------------------


class TestReadsAndAdministration:
    @pytest.mark.asyncio
    async def test_list_records(self, authenticated_client: AsyncClient, catalog):
        await _place_via_api(authenticated_client, catalog)
        await _place_via_api(authenticated_client, catalog, shelf_id=catalog.shelf_y)

        response = await authenticated_client.get(
            INVENTORY_PREFIX, params={"shelf_id": catalog.shelf_y, "page_size": 10}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["page"] == 1
        assert body["items"][0]["shelf_id"] == catalog.shelf_y
        assert body["items"][0]["version"] == 1

    @pytest.mark.asyncio
    async def test_ledger_pagination(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        inventory_id = created["inventory_id"]
        for amount in ("1", "2", "3"):
            response = await authenticated_client.post(
                f"{INVENTORY_PREFIX}/transactions",
                json=TransactionRequestFactory(inventory_id=inventory_id, transaction_type="add", amount=amount),
            )
            assert response.status_code == 201

        first = await authenticated_client.get(
            f"{INVENTORY_PREFIX}/{inventory_id}/transactions", params={"page_size": 3}
        )
        body = first.json()
        assert len(body["items"]) == 3
        assert body["has_more"] is True
        assert body["total"] == 4

        second = await authenticated_client.get(
            f"{INVENTORY_PREFIX}/{inventory_id}/transactions",
            params={"page_size": 3, "cursor": body["next_cursor"]},
        )
        rest = second.json()
        assert len(rest["items"]) == 1
        assert rest["has_more"] is False
        assert Decimal(rest["items"][0]["quantity_after"]) == Decimal("56")

    @pytest.mark.asyncio
    async def test_invalid_cursor(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.get(
            f"{INVENTORY_PREFIX}/{created['inventory_id']}/transactions", params={"cursor": "%%%"}
        )
        _assert_problem(response, 422, "VAL_002")

    @pytest.mark.asyncio
    async def test_reconciliation(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{created['inventory_id']}/reconciliation")
        assert response.status_code == 200
        body = response.json()
        assert body["consistent"] is True
        assert body["entry_count"] == 1

    @pytest.mark.asyncio
    async def test_patch_quantity(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.patch(
            f"{INVENTORY_PREFIX}/{created['inventory_id']}",
            json={"quantity": "48", "reason": "cycle count"},
        )
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["record"]["quantity"]) == Decimal("48")
        assert body["record"]["version"] == 2
        assert body["entry"]["transaction_type"] == "update"

    @pytest.mark.asyncio
    async def test_patch_requires_a_change(self, authenticated_client: AsyncClient, catalog):
        created = await _place_via_api(authenticated_client, catalog)
        response = await authenticated_client.patch(
            f"{INVENTORY_PREFIX}/{created['inventory_id']}", json={"reason": "nothing"}
        )
        _assert_problem(response, 422, "VAL_001")

    @pytest.mark.asyncio
    async def test_quantity_is_read_through_the_service(
        self, authenticated_client: AsyncClient, catalog, monkeypatch
    ):
        from warehouse_api.api.v2 import inventory as inventory_routes

        calls = []
        original = inventory_routes.get_current_quantity

        async def recording_get_current_quantity(db, inventory_id):
            calls.append(inventory_id)
            return await original(db, inventory_id)

        monkeypatch.setattr(inventory_routes, "get_current_quantity", recording_get_current_quantity)

        created = await _place_via_api(authenticated_client, catalog, amount="12.5")
        inventory_id = created["inventory_id"]

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/{inventory_id}/quantity")
        assert response.status_code == 200
        assert Decimal(response.json()["quantity"]) == Decimal("12.5")
        assert response.json()["unit"] == "kg"
        assert calls == [inventory_id]

        response = await authenticated_client.get(f"{INVENTORY_PREFIX}/999999/quantity")
        _assert_problem(response, 404, "RES_001")

    @pytest.mark.asyncio
    async def test_delete_and_purge(self, authenticated_client: AsyncClient, catalog):
        kept = await _place_via_api(authenticated_client, catalog)
        purged = await _place_via_api(authenticated_client, catalog, shelf_id=catalog.shelf_z)

        response = await authenticated_client.delete(f"{INVENTORY_PREFIX}/{kept['inventory_id']}")
        assert response.status_code == 200
        assert response.json()["entry"]["transaction_type"] == "delete"
        assert response.json()["entry"]["reason"] == "Inventory deleted"
        history = await authenticated_client.get(f"{INVENTORY_PREFIX}/{kept['inventory_id']}/transactions")
        assert len(history.json()["items"]) == 2

        response = await authenticated_client.delete(
            f"{INVENTORY_PREFIX}/{purged['inventory_id']}", params={"purge_history": "true"}
        )
        assert response.status_code == 200
        assert response.json()["history_purged"] is True
        assert response.json()["entry"] is None
        history = await authenticated_client.get(f"{INVENTORY_PREFIX}/{purged['inventory_id']}/transactions")
        _assert_problem(history, 404, "RES_001")


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed_as_trace_id(self, client: AsyncClient, catalog):
        response = await client.get(INVENTORY_PREFIX, headers={"X-Request-ID": "req-123"})
        assert response.headers["x-request-id"] == "req-123"
        assert response.json()["trace_id"] == "req-123"
