"""
Tests for bid proximity scoring.
"""
import pytest
from httpx import AsyncClient

from utils.proximity import calculate_proximity, get_proximity_label
from conftest import auth_headers


class TestCalculateProximity:
    """Banded score of a bid against the asking price."""

    @pytest.mark.parametrize("bid,asking,expected", [
        (10.0, 10.0, 100),
        (12.0, 10.0, 100),
        (9.0, 10.0, 90),
        (8.5, 10.0, 75),
        (8.0, 10.0, 75),
        (7.0, 10.0, 60),
        (6.9, 10.0, 69),
        (6.5, 10.0, 65),
        (5.0, 10.0, 50),
        (0.5, 10.0, 10),
        (0.0, 10.0, 10),
    ])
    def test_bands(self, bid, asking, expected):
        assert calculate_proximity(bid, asking) == expected

    @pytest.mark.parametrize("asking", [0, None])
    def test_no_reference_price(self, asking):
        assert calculate_proximity(5.0, asking) == 50

    @pytest.mark.parametrize("score,label", [
        (100, "Strong offer"),
        (90, "Strong offer"),
        (89, "Competitive"),
        (75, "Competitive"),
        (60, "Below market"),
        (59, "Significantly below asking"),
        (10, "Significantly below asking"),
    ])
    def test_labels(self, score, label):
        assert get_proximity_label(score) == label


class TestProximityEndpoint:
    """POST /api/bids/proximity"""

    @pytest.mark.asyncio
    async def test_preview(self, async_client: AsyncClient, make_user, make_product):
        seller = await make_user()
        buyer = await make_user(contact_type="Buyer")
        product = await make_product(seller, price_per_unit=5.0)

        response = await async_client.post(
            "/api/bids/proximity",
            json={"productId": product.id, "pricePerUnit": 4.6},
            headers=auth_headers(buyer),
        )
        assert response.status_code == 200
        assert response.json() == {"proximityScore": 90, "label": "Strong offer"}

    @pytest.mark.asyncio
    async def test_inactive_product(self, async_client: AsyncClient, make_user, make_product):
        seller = await make_user()
        product = await make_product(seller, is_active=False)
        response = await async_client.post(
            "/api/bids/proximity",
            json={"productId": product.id, "pricePerUnit": 4.0},
            headers=auth_headers(seller),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_price_must_be_positive(self, async_client: AsyncClient, make_user, make_product):
        seller = await make_user()
        product = await make_product(seller)
        response = await async_client.post(
            "/api/bids/proximity",
            json={"productId": product.id, "pricePerUnit": 0},
            headers=auth_headers(seller),
        )
        assert response.status_code == 422
