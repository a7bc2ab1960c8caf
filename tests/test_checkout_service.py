from decimal import Decimal

from sqlalchemy.exc import OperationalError

from app.modules.sales.errors import ErrorCode
from app.modules.sales.repository import ProductCatalog, SaleRepository
from app.modules.sales.schemas import CheckoutState, SaleHeaderData, SaleLineData
from app.modules.sales.service import SalesService
from app.modules.sales.session import CheckoutSession
from app.shared.database.models import ExchangeRate, Sale

from conftest import run


class UnreachableCatalog(ProductCatalog):
    def get_by_barcode(self, barcode):
        raise OperationalError("SELECT product", {}, Exception("server closed the connection"))


class FailingCommitRepository(SaleRepository):
    def commit_sale(self, header, lines, should_abort=lambda: False):
        raise OperationalError("COMMIT", {}, Exception("server has gone away"))


def test_add_to_cart_uses_catalog_price_and_merges(db, seed_product):
    seed_product("A1", quantity=10, price=5000, name="Beerlao", unit="ຕຸກ")
    service = SalesService(db)
    session = CheckoutSession()

    run(service.add_to_cart(session, "A1", 2))
    result = run(service.add_to_cart(session, "A1", 3))

    assert result.ok
    assert len(session.cart) == 1
    line = session.cart.lines[0]
    assert (line.quantity, line.unit_price, line.name, line.unit) == (5, Decimal("5000"), "Beerlao", "ຕຸກ")


def test_add_to_cart_insufficient_stock_leaves_cart_unchanged(db, seed_product):
    seed_product("A1", quantity=1, price=5000)
    service = SalesService(db)
    session = CheckoutSession()

    result = run(service.add_to_cart(session, "A1", 2))

    assert result.error.code == ErrorCode.insufficient_stock
    assert result.error.remaining == 1
    assert session.cart.is_empty


def test_add_to_cart_counts_quantity_already_in_cart(db, seed_product):
    seed_product("A1", quantity=3, price=10)
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))

    result = run(service.add_to_cart(session, "A1", 2))

    assert result.error.code == ErrorCode.insufficient_stock
    assert session.cart.quantity_of("A1") == 2


def test_add_to_cart_rejects_unknown_sku_and_bad_quantity(db, seed_product):
    seed_product("A1", quantity=3, price=10)
    service = SalesService(db)
    session = CheckoutSession()

    assert run(service.add_to_cart(session, "NOPE", 1)).error.code == ErrorCode.not_found
    assert run(service.add_to_cart(session, "A1", 0)).error.code == ErrorCode.validation_error
    assert session.cart.is_empty


def test_remove_from_cart_missing_sku_is_not_fatal(db, seed_product):
    seed_product("A1", quantity=3, price=10)
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    assert run(service.remove_from_cart(session, "ZZ")).error.code == ErrorCode.not_found
    assert run(service.remove_from_cart(session, "A1")).ok
    assert session.cart.is_empty


def test_cart_is_frozen_while_checkout_in_flight(db, seed_product):
    seed_product("A1", quantity=3, price=10)
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))
    session.transition(CheckoutState.committing)

    assert run(service.add_to_cart(session, "A1", 1)).error.code == ErrorCode.validation_error
    assert run(service.remove_from_cart(session, "A1")).error.code == ErrorCode.validation_error
    assert run(service.checkout(session, 100, "", "E1")).error.code == ErrorCode.validation_error
    assert service.cancel(session).error.code == ErrorCode.validation_error
    assert session.cart.quantity_of("A1") == 1


def test_checkout_success_clears_cart_and_issues_new_token(db, seed_product, seed_rate, stock_of):
    seed_product("A1", quantity=10, price=5000)
    rate_id = seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))
    token = session.checkout_token

    result = run(service.checkout(session, Decimal("10000"), "C1", "E1"))

    assert result.ok
    assert result.value.change == Decimal("0")
    assert result.value.subtotal == Decimal("10000")
    assert result.value.exchange_rate_id == rate_id
    assert session.cart.is_empty
    assert session.state == CheckoutState.draft
    assert session.checkout_token != token
    assert stock_of("A1") == 8
    assert db.query(Sale).one().checkout_token == token


def test_checkout_failure_preserves_cart(db, seed_product, seed_rate, stock_of):
    seed_product("A1", quantity=10, price=5000)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))

    result = run(service.checkout(session, Decimal("5000"), "", "E1"))

    assert result.error.code == ErrorCode.validation_error
    assert session.cart.quantity_of("A1") == 2
    assert stock_of("A1") == 10


def test_checkout_without_exchange_rate(db, seed_product, stock_of, count_sales):
    seed_product("A1", quantity=10, price=5000)
    service = SalesService(db, exchange_rate_fallback=False)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    result = run(service.checkout(session, 5000, "", "E1"))

    assert result.error.code == ErrorCode.exchange_rate_unavailable
    assert stock_of("A1") == 10
    assert count_sales() == (0, 0)
    assert db.query(ExchangeRate).count() == 0


def test_checkout_fallback_records_default_rate(db, seed_product):
    seed_product("A1", quantity=10, price=5000)
    service = SalesService(db, exchange_rate_fallback=True)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    result = run(service.checkout(session, 5000, "", "E1"))

    assert result.ok
    rate = db.query(ExchangeRate).one()
    assert rate.usd_rate == Decimal("23000")
    assert rate.thb_rate == Decimal("626")
    assert result.value.exchange_rate_id == rate.id


def test_commit_failure_then_resubmit_writes_once(db, seed_product, seed_rate, stock_of, count_sales):
    seed_product("A1", quantity=10, price=5000)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))
    service.repository = FailingCommitRepository(db)

    failed = run(service.checkout(session, 10000, "", "E1"))

    assert failed.error.code == ErrorCode.commit_failure
    assert session.outcome_unknown
    assert session.state == CheckoutState.rolled_back
    assert session.cart.quantity_of("A1") == 2

    # The write actually landed on the server before the connection dropped
    landed = SaleRepository(db).commit_sale(
        SaleHeaderData(
            exchange_rate_id=1, customer_id="", employee_id="E1", sale_date=session.created_at,
            subtotal=Decimal("10000"), pay=Decimal("10000"), change=Decimal("0"),
            checkout_token=session.checkout_token,
        ),
        [SaleLineData(sku="A1", quantity=2, unit_price=Decimal("5000"), line_total=Decimal("10000"))],
    )
    service.repository = SaleRepository(db)

    retried = run(service.checkout(session, 10000, "", "E1"))

    assert retried.ok
    assert retried.value.sale_id == landed.id
    assert retried.value.items_count == 1
    assert count_sales() == (1, 1)
    assert stock_of("A1") == 8
    assert session.cart.is_empty


def test_current_totals_follow_cart_and_latest_rate(db, seed_product, seed_rate):
    seed_product("A1", quantity=10, price=23000)
    seed_rate(usd="23000", thb="626")
    newest = seed_rate(usd="20000", thb="500")
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    totals = run(service.current_totals(session))
    assert (totals.subtotal, totals.total_usd, totals.total_thb) == (Decimal("23000"), Decimal("1.15"), Decimal("46.00"))
    assert totals.exchange_rate_id == newest
    assert not totals.degraded

    run(service.add_to_cart(session, "A1", 1))
    totals = run(service.current_totals(session))
    assert totals.subtotal == Decimal("46000")
    assert totals.total_usd == Decimal("2.30")


def test_current_totals_without_rate_are_flagged_degraded(db, seed_product):
    seed_product("A1", quantity=10, price=23000)
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    totals = run(service.current_totals(session))

    assert totals.degraded
    assert totals.exchange_rate_id is None
    assert totals.total_usd == Decimal("1.00")


def test_cancel_discards_lines_without_persisting(db, seed_product, stock_of, count_sales):
    seed_product("A1", quantity=10, price=10)
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 4))

    assert service.cancel(session).ok
    assert session.cart.is_empty
    assert stock_of("A1") == 10
    assert count_sales() == (0, 0)


def test_lost_connection_during_checkout_leaves_session_usable(db, seed_product, seed_rate):
    seed_product("A1", quantity=4, price=100)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))
    service.stock_validator.catalog = UnreachableCatalog(db)

    result = run(service.checkout(session, 100, "", "E1"))

    assert result.error.code == ErrorCode.commit_failure
    assert session.state == CheckoutState.rolled_back
    assert not session.is_busy
    assert session.cart.quantity_of("A1") == 1
    assert service.cancel(session).ok


def test_fallback_rate_is_not_recorded_for_a_rejected_payment(db, seed_product, stock_of):
    seed_product("A1", quantity=10, price=5000)
    service = SalesService(db, exchange_rate_fallback=True)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))

    underpaid = run(service.checkout(session, 1, "", "E1"))
    negative = run(service.checkout(session, -5, "", "E1"))

    assert underpaid.error.code == ErrorCode.validation_error
    assert negative.error.code == ErrorCode.validation_error
    assert db.query(ExchangeRate).count() == 0
    assert stock_of("A1") == 10


def test_second_terminal_gets_conflict_after_first_sells_last_units(db, session_factory, seed_product, seed_rate, stock_of):
    seed_product("A1", quantity=3, price=100)
    seed_rate()
    other_db = session_factory()
    first, second = SalesService(db), SalesService(other_db)
    first_session, second_session = CheckoutSession(), CheckoutSession()

    try:
        assert run(first.add_to_cart(first_session, "A1", 3)).ok
        assert run(second.add_to_cart(second_session, "A1", 3)).ok

        assert run(first.checkout(first_session, 300, "", "E1")).ok
        result = run(second.checkout(second_session, 300, "", "E2"))
    finally:
        other_db.close()

    assert result.error.code == ErrorCode.concurrent_stock_conflict
    assert result.error.remaining == 0
    assert second_session.cart.quantity_of("A1") == 3
    assert stock_of("A1") == 0


def test_cart_edit_after_failure_is_refused_when_sale_landed(db, seed_product, seed_rate, count_sales):
    seed_product("A1", quantity=10, price=5000)
    seed_product("B2", quantity=10, price=100)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))
    service.repository = FailingCommitRepository(db)
    run(service.checkout(session, 10000, "", "E1"))
    service.repository = SaleRepository(db)
    # The failed write reached the database anyway
    landed = service.repository.commit_sale(
        SaleHeaderData(
            exchange_rate_id=1, customer_id="", employee_id="E1", sale_date=session.created_at,
            subtotal=Decimal("10000"), pay=Decimal("10000"), change=Decimal("0"),
            checkout_token=session.checkout_token,
        ),
        [SaleLineData(sku="A1", quantity=2, unit_price=Decimal("5000"), line_total=Decimal("10000"))],
    )

    added = run(service.add_to_cart(session, "B2", 1))
    removed = run(service.remove_from_cart(session, "A1"))

    assert added.error.code == ErrorCode.validation_error
    assert removed.error.code == ErrorCode.validation_error
    assert session.cart.quantity_of("B2") == 0
    assert run(service.checkout(session, 10000, "", "E1")).value.sale_id == landed.id
    assert count_sales() == (1, 1)


def test_cart_edit_after_failure_is_allowed_when_nothing_landed(db, seed_product, seed_rate, stock_of, count_sales):
    seed_product("A1", quantity=10, price=5000)
    seed_product("B2", quantity=10, price=100)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 2))
    service.repository = FailingCommitRepository(db)
    run(service.checkout(session, 10000, "", "E1"))
    service.repository = SaleRepository(db)

    assert run(service.add_to_cart(session, "B2", 1)).ok
    assert not session.outcome_unknown

    result = run(service.checkout(session, 10100, "", "E1"))

    assert result.ok
    assert result.value.items_count == 2
    assert stock_of("B2") == 9
    assert count_sales() == (1, 2)


def test_cancel_after_failure_starts_a_fresh_sale(db, seed_product, seed_rate):
    seed_product("A1", quantity=10, price=5000)
    seed_rate()
    service = SalesService(db)
    session = CheckoutSession()
    run(service.add_to_cart(session, "A1", 1))
    service.repository = FailingCommitRepository(db)
    run(service.checkout(session, 5000, "", "E1"))
    token = session.checkout_token

    assert service.cancel(session).ok

    assert session.cart.is_empty
    assert session.checkout_token != token
    assert not session.outcome_unknown
