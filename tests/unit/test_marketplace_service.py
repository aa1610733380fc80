"""Service tests for bid acceptance (the marketplace matcher)."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import (
    AlreadyFinancedError,
    BidExpiredError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from app.models.enums import BidStatus, BillStatus, UserRole
from app.schemas.bid import BidCreate
from app.services.bid_service import BidService
from app.services.bill_service import BillService
from app.services.ledger_service import LedgerService
from app.services.marketplace_service import MarketplaceService
from app.utils.time import get_utc_now
from tests.conftest import make_user


async def _place(db, financer, bill_id, pct):
    return await BidService.place_bid(
        db, financer, BidCreate(bill_id=bill_id, financing_percentage=Decimal(str(pct)))
    )


async def test_accept_finances_bill_and_rejects_others(db, make_bill, organization, financer, second_financer):
    bill = await make_bill(amount="10000")
    losing = await _place(db, financer, bill.id, 50)
    winning = await _place(db, second_financer, bill.id, 70)
    losing_id = losing.id

    result = await MarketplaceService.accept_bid(db, organization, winning.id)
    bid, financed = result["bid"], result["bill"]

    assert bid.status == BidStatus.ACCEPTED
    assert bid.accepted_at is not None
    assert financed.status == BillStatus.FINANCED
    assert financed.financer_id == second_financer.id
    assert financed.current_owner_id == second_financer.id
    assert financed.financing_percentage == Decimal("70")
    assert financed.financed_amount == Decimal("7000.00")
    assert financed.remaining_amount == Decimal("3000.00")
    assert not financed.is_in_marketplace
    assert financed.financed_at is not None

    assert (await BidService.get_bid_by_id(db, losing_id)).status == BidStatus.REJECTED
    assert await BidService.find_highest_bid(db, bill.id) is None

    await db.refresh(second_financer)
    assert second_financer.available_funds == Decimal("3000.00")
    stats = await LedgerService.get_user_stats(db, second_financer)
    assert stats["total_bids_won"] == 1
    assert stats["total_investment_amount"] == Decimal("7000.00")


async def test_financed_bill_leaves_marketplace(db, make_bill, organization, financer):
    bill = await make_bill(amount="10000")
    bid = await _place(db, financer, bill.id, 40)
    await MarketplaceService.accept_bid(db, organization, bid.id)

    items, total = await BillService.list_marketplace_bills(db, financer)
    assert total == 0 and items == []
    bills, total = await BillService.list_my_bills(db, financer)
    assert total == 1 and bills[0].id == bill.id


async def test_pay_after_financing_credits_financer_returns(
    db, make_bill, organization, customer, financer
):
    bill = await make_bill(amount="10000")
    bid = await _place(db, financer, bill.id, 40)
    await MarketplaceService.accept_bid(db, organization, bid.id)

    await BillService.pay_bill(db, customer, bill.id)
    assert (await LedgerService.get_user_stats(db, financer))["total_returns"] == Decimal("6000.00")
    assert (await LedgerService.get_user_stats(db, organization))["total_revenue"] == Decimal("0")


async def test_second_acceptance_is_already_financed(db, make_bill, organization, financer, second_financer):
    bill = await make_bill(amount="10000")
    first = await _place(db, financer, bill.id, 40)
    second = await _place(db, second_financer, bill.id, 30)
    first_id, second_id, bill_id = first.id, second.id, bill.id
    financer_id = financer.id
    await MarketplaceService.accept_bid(db, organization, first_id)

    # the competing bid was rejected by the first acceptance; the bill guard still reports it
    with pytest.raises(AlreadyFinancedError):
        await MarketplaceService.accept_bid(db, organization, second_id)
    await db.refresh(organization)

    # the accepted bid itself cannot be accepted twice either
    with pytest.raises(AlreadyFinancedError):
        await MarketplaceService.accept_bid(db, organization, first_id)
    await db.refresh(organization)

    # a bid still pending on a financed bill (e.g. a racing writer) hits the same guard
    second = await BidService.get_bid_by_id(db, second_id)
    second.status = BidStatus.PENDING
    await db.commit()
    await db.refresh(organization)
    with pytest.raises(AlreadyFinancedError):
        await MarketplaceService.accept_bid(db, organization, second_id)

    stored = await BillService.get_bill_by_id(db, bill_id)
    assert stored.financer_id == financer_id
    assert stored.financed_amount == Decimal("4000.00")


async def test_accept_leaves_lapsed_bids_untouched(db, make_bill, organization, financer, second_financer):
    third = await make_user(db, UserRole.FINANCER, "Third", Decimal("5000"))
    bill = await make_bill(amount="10000")
    winner = await _place(db, financer, bill.id, 40)
    loser = await _place(db, second_financer, bill.id, 30)
    lapsed = await _place(db, third, bill.id, 20)
    lapsed.expires_at = get_utc_now() - timedelta(minutes=1)
    await db.commit()
    loser_id, lapsed_id = loser.id, lapsed.id

    await MarketplaceService.accept_bid(db, organization, winner.id)

    assert (await BidService.get_bid_by_id(db, loser_id)).status == BidStatus.REJECTED
    assert (await BidService.get_bid_by_id(db, lapsed_id)).status == BidStatus.PENDING


async def test_accept_requires_bill_owner(db, make_bill, financer):
    bill = await make_bill()
    bid = await _place(db, financer, bill.id, 40)
    bid_id, bill_id = bid.id, bill.id
    other = await make_user(db, UserRole.ORGANIZATION, "Rival")

    with pytest.raises(ForbiddenError):
        await MarketplaceService.accept_bid(db, other, bid_id)
    stored = await BillService.get_bill_by_id(db, bill_id)
    assert stored.status == BillStatus.SENT and stored.financer_id is None


async def test_accept_expired_bid(db, make_bill, organization, financer):
    bill = await make_bill()
    bid = await _place(db, financer, bill.id, 40)
    bid.expires_at = get_utc_now() - timedelta(seconds=1)
    await db.commit()
    bid_id, financer_id = bid.id, financer.id

    with pytest.raises(BidExpiredError):
        await MarketplaceService.accept_bid(db, organization, bid_id)
    assert await LedgerService.get_available_funds(db, financer_id) == Decimal("5000")


async def test_accept_on_past_due_bill(db, make_bill, organization, financer):
    bill = await make_bill()
    bid = await _place(db, financer, bill.id, 40)
    bill.due_date = get_utc_now() - timedelta(minutes=1)
    await db.commit()
    bid_id, bill_id = bid.id, bill.id

    with pytest.raises(InvalidStateError):
        await MarketplaceService.accept_bid(db, organization, bid_id)
    stored = await BillService.get_bill_by_id(db, bill_id)
    assert stored.financer_id is None
    assert (await BidService.get_bid_by_id(db, bid_id)).status == BidStatus.PENDING


async def test_accept_missing_bid(db, organization):
    with pytest.raises(NotFoundError):
        await MarketplaceService.accept_bid(db, organization, uuid.uuid4())


async def test_acceptance_does_not_recheck_funds(db, make_bill, organization, financer):
    first = await make_bill(amount="10000")
    second = await make_bill(amount="10000")
    bid_a = await _place(db, financer, first.id, 40)
    bid_b = await _place(db, financer, second.id, 40)

    await MarketplaceService.accept_bid(db, organization, bid_a.id)
    await MarketplaceService.accept_bid(db, organization, bid_b.id)
    assert await LedgerService.get_available_funds(db, financer.id) == Decimal("-3000")
