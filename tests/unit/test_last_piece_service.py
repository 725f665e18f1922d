import pytest
from unittest.mock import AsyncMock

from inventory_sync.services.last_piece_service import LAST_PIECE_TAG, plan_product_update, run_last_piece_job
from inventory_sync.shopify.update_product import PRODUCT_UPDATE_MUTATION


pytestmark = pytest.mark.unit


def _product(pid, quantities, status="ACTIVE", tags=None):
    return {
        "id": f"gid://shopify/Product/{pid}",
        "title": f"Product {pid}",
        "status": status,
        "tags": tags or [],
        "variants": {"edges": [{"node": {"inventoryQuantity": q}} for q in quantities]},
    }


class TestPlan:

    def test_zero_stock_goes_to_draft_without_tag(self):
        plan = plan_product_update(_product(1, [0, 0], tags=[LAST_PIECE_TAG]))
        assert plan["should_have_tag"] is False
        assert plan["target_status"] == "DRAFT"
        assert plan["status_change"] == "DRAFT"
        assert plan["tags"] == []

    @pytest.mark.parametrize("quantities", [[1], [1, 1], [2, 0]])
    def test_one_or_two_left_gets_tag(self, quantities):
        plan = plan_product_update(_product(1, quantities, tags=["Sale"]))
        assert plan["should_have_tag"] is True
        assert plan["tags"] == ["Sale", LAST_PIECE_TAG]
        assert plan["status_change"] is None

    def test_plenty_of_stock_drops_tag(self):
        plan = plan_product_update(_product(1, [2, 1], tags=[LAST_PIECE_TAG, "Sale"]))
        assert plan["should_have_tag"] is False
        assert plan["tags"] == ["Sale"]

    def test_draft_with_stock_is_reactivated(self):
        plan = plan_product_update(_product(1, [5], status="DRAFT"))
        assert plan["status_change"] == "ACTIVE"
        assert plan["tags"] is None

    def test_already_correct_needs_nothing(self):
        plan = plan_product_update(_product(1, [1], tags=[LAST_PIECE_TAG]))
        assert plan["status_change"] is None
        assert plan["tags"] is None


@pytest.mark.asyncio
async def test_run_job_applies_plans_and_clears_cursor(settings, shopify_client, store, sleep):
    products = [
        _product(1, [0]),
        _product(2, [1]),
        _product(3, [9], status="DRAFT", tags=[LAST_PIECE_TAG]),
        _product(4, [5]),
    ]
    page = {"products": {"pageInfo": {"hasNextPage": False, "endCursor": "c1"},
                         "edges": [{"node": p} for p in products]}}
    mutation_ok = {"productUpdate": {"product": {}, "userErrors": []}}

    async def graphql(query, variables=None):
        return mutation_ok if query == PRODUCT_UPDATE_MUTATION else page

    shopify_client.graphql = AsyncMock(side_effect=graphql)

    result = await run_last_piece_job(settings, client=shopify_client, store=store, sleep=sleep)

    assert result == {"processed": 4, "tagged": 1, "untagged": 1, "drafted": 1, "activated": 1, "errors": 0}
    mutations = [c.args[1]["input"] for c in shopify_client.graphql.await_args_list if c.args[0] == PRODUCT_UPDATE_MUTATION]
    assert {"id": "gid://shopify/Product/1", "status": "DRAFT"} in mutations
    assert {"id": "gid://shopify/Product/2", "tags": [LAST_PIECE_TAG]} in mutations
    assert store.deletes == ["last_piece_tags"]


@pytest.mark.asyncio
async def test_run_job_counts_user_errors(settings, shopify_client, store, sleep):
    page = {"products": {"pageInfo": {"hasNextPage": False}, "edges": [{"node": _product(1, [1])}]}}
    failed = {"productUpdate": {"userErrors": [{"message": "Product is locked"}]}}

    async def graphql(query, variables=None):
        return failed if query == PRODUCT_UPDATE_MUTATION else page

    shopify_client.graphql = AsyncMock(side_effect=graphql)

    result = await run_last_piece_job(settings, client=shopify_client, store=store, sleep=sleep)
    assert result["processed"] == 1
    assert result["errors"] == 1
    assert result["tagged"] == 0
