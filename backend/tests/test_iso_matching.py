"""
Tests for ISO product scoring and matching.
"""
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.iso import IsoRequest, IsoStatus
from db.models.product import Product
from db.types import utcnow
from services.iso_matching_service import (
    match_iso_to_products,
    match_product_to_open_isos,
    score_product_against_iso,
)


def _product(**overrides) -> Product:
    fields = dict(
        category="Flower",
        type="Indica",
        certification="EU-GMP, GACP",
        price_per_unit=4.0,
        grams_available=5000,
        thc_min=20.0,
        thc_max=24.0,
        cbd_min=0.1,
        cbd_max=0.5,
    )
    fields.update(overrides)
    return Product(**fields)


class TestScoring:
    """Weighted criteria scoring."""

    def test_blank_request_scores_full_marks(self):
        score, breakdown = score_product_against_iso(_product(), IsoRequest())
        assert score == 100
        assert breakdown == {
            "category": 25,
            "type": 15,
            "thcFit": 15,
            "cbdFit": 10,
            "priceFit": 15,
            "quantityFit": 10,
            "certificationMatch": 10,
        }

    def test_text_criteria_are_case_insensitive(self):
        iso = IsoRequest(category="flower", type="INDICA", certification="gmp")
        score, _ = score_product_against_iso(_product(), iso)
        assert score == 100

    def test_category_mismatch_loses_its_weight(self):
        score, breakdown = score_product_against_iso(_product(category="Trim"), IsoRequest(category="Flower"))
        assert breakdown["category"] == 0
        assert score == 75

    def test_thc_uses_upper_bound(self):
        iso = IsoRequest(thc_min=22, thc_max=26)
        assert score_product_against_iso(_product(thc_max=24), iso)[1]["thcFit"] == 15
        assert score_product_against_iso(_product(thc_max=27), iso)[1]["thcFit"] == 0
        assert score_product_against_iso(_product(thc_min=None, thc_max=None), iso)[1]["thcFit"] == 0

    def test_budget(self):
        iso = IsoRequest(budget_max=4.0)
        assert score_product_against_iso(_product(price_per_unit=4.0), iso)[1]["priceFit"] == 15
        assert score_product_against_iso(_product(price_per_unit=4.01), iso)[1]["priceFit"] == 0
        assert score_product_against_iso(_product(price_per_unit=None), iso)[1]["priceFit"] == 0

    @pytest.mark.parametrize("grams,expected", [(999, 0), (1000, 10), (5000, 10), (5001, 0)])
    def test_quantity_range(self, grams, expected):
        iso = IsoRequest(quantity_min=1000, quantity_max=5000)
        assert score_product_against_iso(_product(grams_available=grams), iso)[1]["quantityFit"] == expected

    def test_certification_substring(self):
        iso = IsoRequest(certification="GACP")
        assert score_product_against_iso(_product(), iso)[1]["certificationMatch"] == 10
        assert score_product_against_iso(_product(certification=None), iso)[1]["certificationMatch"] == 0


async def _iso(db: AsyncSession, buyer, **overrides) -> IsoRequest:
    fields = dict(
        buyer_id=buyer.id,
        category="Flower",
        budget_max=5.0,
        status=IsoStatus.OPEN,
        expires_at=utcnow() + timedelta(days=30),
    )
    fields.update(overrides)
    iso = IsoRequest(**fields)
    db.add(iso)
    await db.commit()
    return iso


class TestMatchIsoToProducts:
    """Candidate products for one request."""

    @pytest.mark.asyncio
    async def test_ranks_active_products_without_writing(self, db_session: AsyncSession, make_user, make_product):
        buyer = await make_user()
        seller = await make_user()
        cheap = await make_product(seller, price_per_unit=4.0)
        pricey = await make_product(seller, price_per_unit=9.0)
        await make_product(seller, is_active=False)
        await make_product(seller, category="Trim", type="Sativa", price_per_unit=9.0)
        iso = await _iso(db_session, buyer, type="Indica")

        matches = await match_iso_to_products(iso.id, db_session)

        assert [m["productId"] for m in matches] == [cheap.id, pricey.id]
        assert matches[0]["score"] == 100
        assert matches[1]["score"] == 85
        await db_session.refresh(iso)
        assert iso.status == IsoStatus.OPEN
        assert iso.matched_product_id is None

    @pytest.mark.asyncio
    async def test_only_open_requests_are_matched(self, db_session: AsyncSession, make_user, make_product):
        buyer = await make_user()
        await make_product(await make_user())
        closed = await _iso(db_session, buyer, status=IsoStatus.CLOSED)

        assert await match_iso_to_products(closed.id, db_session) == []
        assert await match_iso_to_products("missing", db_session) == []


class TestMatchProductToOpenIsos:
    """Recording a newly listed product on open requests."""

    @pytest.mark.asyncio
    async def test_marks_open_requests_matched(self, db_session: AsyncSession, make_user, make_product):
        buyer = await make_user()
        seller = await make_user()
        open_iso = await _iso(db_session, buyer)
        unrelated = await _iso(db_session, buyer, category="Hash", type="Sativa", budget_max=1.0)
        product = await make_product(seller)

        assert await match_product_to_open_isos(product.id, db_session) == 1

        await db_session.refresh(open_iso)
        await db_session.refresh(unrelated)
        assert open_iso.status == IsoStatus.MATCHED
        assert open_iso.matched_product_id == product.id
        assert unrelated.status == IsoStatus.OPEN
        assert unrelated.matched_product_id is None

    @pytest.mark.asyncio
    async def test_skips_expired_closed_and_already_matched(self, db_session: AsyncSession, make_user, make_product):
        buyer = await make_user()
        seller = await make_user()
        first = await make_product(seller)
        expired = await _iso(db_session, buyer, expires_at=utcnow() - timedelta(days=1))
        closed = await _iso(db_session, buyer, status=IsoStatus.CLOSED)
        kept = await _iso(db_session, buyer, matched_product_id=first.id)
        second = await make_product(seller)

        assert await match_product_to_open_isos(second.id, db_session) == 1

        for iso in (expired, closed, kept):
            await db_session.refresh(iso)
        assert expired.status == IsoStatus.OPEN
        assert expired.matched_product_id is None
        assert closed.status == IsoStatus.CLOSED
        assert kept.matched_product_id == first.id
        assert kept.status == IsoStatus.OPEN

    @pytest.mark.asyncio
    async def test_unknown_product(self, db_session: AsyncSession):
        assert await match_product_to_open_isos("missing", db_session) == 0
