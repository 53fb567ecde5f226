from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from datagod.extensions import db
from datagod.jobs.shop_balance_sync import sync_all_shop_balances
from datagod.models import ShopAvailableBalance, ShopProfit, Withdrawal
from datagod.utils import profits
from datagod.utils.profits import (
    approve_withdrawal,
    compute_available_balance,
    record_shop_profit,
    sync_shop_balance,
)


class TestProfitLedger:
    def test_balance_chain_is_continuous(self, app, factory):
        shop = factory.shop()
        amounts = [2.0, 0.0, 1.25, 3.5, 0.0]
        for amount in amounts:
            order = factory.order(shop=shop, profit_amount=amount)
            record_shop_profit(shop_id=shop.id, order_id=order.id, amount=amount)

        rows = ShopProfit.query.filter_by(shop_id=shop.id).order_by(ShopProfit.seq.asc()).all()
        assert [r.profit_amount for r in rows] == amounts
        assert rows[0].balance_before == 0.0
        for prev, cur in zip(rows, rows[1:]):
            assert cur.balance_before == prev.balance_after
        for r in rows:
            assert r.balance_after == pytest.approx(r.balance_before + r.profit_amount)
        assert rows[-1].balance_after == pytest.approx(sum(amounts))

    def test_replay_for_same_order_returns_existing_row(self, app, factory):
        shop = factory.shop()
        order = factory.order(shop=shop)
        first = record_shop_profit(shop_id=shop.id, order_id=order.id, amount=2.0)
        again = record_shop_profit(shop_id=shop.id, order_id=order.id, amount=2.0)
        assert first.id == again.id
        assert ShopProfit.query.count() == 1

    def test_rows_are_numbered_per_shop(self, app, factory):
        a, b = factory.shop(), factory.shop()
        first = record_shop_profit(shop_id=a.id, order_id=factory.order(shop=a).id, amount=1.0)
        other = record_shop_profit(shop_id=b.id, order_id=factory.order(shop=b).id, amount=1.0)
        second = record_shop_profit(shop_id=a.id, order_id=factory.order(shop=a).id, amount=1.0)
        assert (first.seq, second.seq, other.seq) == (1, 2, 1)

    def test_storage_rejects_forked_chain(self, app, factory):
        shop = factory.shop()
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=2.0)
        db.session.add(ShopProfit(shop_id=shop.id, order_id=factory.order(shop=shop).id, seq=1,
                                  profit_amount=1.0, balance_before=0.0, balance_after=1.0))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_stale_tail_is_rechained(self, app, factory):
        shop = factory.shop()
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=2.0)
        order = factory.order(shop=shop)
        real_tail = profits._last_profit
        reads = []

        def stale_then_real(shop_id):
            reads.append(shop_id)
            # first read misses the row a concurrent writer just committed
            return None if len(reads) == 1 else real_tail(shop_id)

        with patch("datagod.utils.profits._last_profit", side_effect=stale_then_real):
            row = record_shop_profit(shop_id=shop.id, order_id=order.id, amount=1.5)

        assert len(reads) == 2
        assert (row.seq, row.balance_before, row.balance_after) == (2, 2.0, 3.5)
        assert ShopProfit.query.filter_by(shop_id=shop.id).count() == 2

    def test_unflushed_conflict_surfaces_to_caller(self, app, factory):
        shop = factory.shop()
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=2.0)
        order = factory.order(shop=shop)

        with patch("datagod.utils.profits._last_profit", return_value=None):
            with pytest.raises(IntegrityError):
                record_shop_profit(shop_id=shop.id, order_id=order.id, amount=1.0, commit=False)
        db.session.rollback()
        assert ShopProfit.query.filter_by(shop_id=shop.id).count() == 1

    def test_chains_are_per_shop(self, app, factory):
        a, b = factory.shop(), factory.shop()
        record_shop_profit(shop_id=a.id, order_id=factory.order(shop=a).id, amount=5.0)
        row = record_shop_profit(shop_id=b.id, order_id=factory.order(shop=b).id, amount=1.0)
        assert row.balance_before == 0.0


class TestAvailableBalance:
    @pytest.mark.parametrize("credited, approved, expected", [
        (10.0, 0.0, 10.0),
        (10.0, 4.0, 6.0),
        (10.0, 10.0, 0.0),
        (10.0, 12.5, 0.0),
        (0.0, 0.0, 0.0),
    ])
    def test_formula(self, credited, approved, expected):
        assert compute_available_balance(credited, approved) == expected

    def test_snapshot_replaced_not_duplicated(self, app, factory):
        shop = factory.shop()
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=4.0)
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=1.0, status="pending")
        db.session.add(Withdrawal(shop_id=shop.id, amount=1.5, status="approved", reference="W-1"))
        db.session.add(Withdrawal(shop_id=shop.id, amount=9.0, status="pending", reference="W-2"))
        db.session.commit()

        sync_shop_balance(shop.id)
        snap = sync_shop_balance(shop.id)

        assert ShopAvailableBalance.query.filter_by(shop_id=shop.id).count() == 1
        assert snap.credited_profit == 4.0
        assert snap.pending_profit == 1.0
        assert snap.total_profit == 5.0
        assert snap.approved_withdrawals == 1.5
        assert snap.available_balance == 2.5

    def test_approve_withdrawal_resyncs_once(self, app, factory):
        shop = factory.shop()
        record_shop_profit(shop_id=shop.id, order_id=factory.order(shop=shop).id, amount=10.0)
        w = Withdrawal(shop_id=shop.id, amount=4.0, status="pending", reference="W-3")
        db.session.add(w)
        db.session.commit()

        res = approve_withdrawal(w.id)

        assert res["ok"]
        assert res["withdrawal"]["status"] == "approved"
        assert res["balance"]["available_balance"] == 6.0
        # profit rows are untouched so the withdrawal is only subtracted once
        assert ShopProfit.query.filter_by(shop_id=shop.id, status="credited").count() == 1

    def test_approve_twice_is_rejected(self, app, factory):
        shop = factory.shop()
        w = Withdrawal(shop_id=shop.id, amount=1.0, status="approved", reference="W-4")
        db.session.add(w)
        db.session.commit()
        res = approve_withdrawal(w.id)
        assert not res["ok"]
        assert res["status"] == 409

    def test_sync_all(self, app, factory):
        a, b = factory.shop(), factory.shop()
        record_shop_profit(shop_id=a.id, order_id=factory.order(shop=a).id, amount=3.0)
        res = sync_all_shop_balances()
        assert res["ok"]
        assert res["synced"] == 2
        assert ShopAvailableBalance.query.filter_by(shop_id=b.id).one().available_balance == 0.0
