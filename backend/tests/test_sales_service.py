# Overview: Pytest coverage for sale creation, cancellation and status changes.

"""
Sales Service Tests

Sale creation and cancellation are the only sale flows that touch stock.
These tests verify that:
1. A sale decrements stock and logs one 'out' movement per line
2. Totals follow sum(line totals) - discount + tax, rounded to cents
3. Any failing line leaves sales, items, stock and movements untouched
4. Cancelling a completed sale restores stock with 'in' movements
5. Cancelled is terminal
"""

from datetime import date
from decimal import Decimal

import pytest

from lumberpos.models import Sale
from lumberpos.services import sales_service
from lumberpos.services.inventory_service import InsufficientStockError
from lumberpos.services.sales_service import SaleLineRequest
from lumberpos.validation import ConflictError, NotFoundError, ValidationError

from helpers import movements_for, stock_of, table_counts


def _line(product, quantity):
    return SaleLineRequest(product_id=product.id, quantity=Decimal(str(quantity)))


class TestCreateSale:

    def test_sale_decrements_stock_and_logs_out_movement(self, db_session, product):
        """100 in stock, sell 30: 70 left and one 'out' movement of 30."""
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")

        assert stock_of(product.id) == Decimal("70")

        movements = movements_for(product.id)
        assert len(movements) == 1
        assert movements[0].movement_type == "out"
        assert movements[0].quantity == Decimal("30")
        assert movements[0].reason == "Sale"
        assert movements[0].reference_type == "sale"
        assert movements[0].reference_id == result.sale_id

    def test_sale_result_and_stored_header(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="pix")

        assert result.total_amount == Decimal("777.00")
        assert result.items_count == 1
        assert result.to_dict() == {"id": result.sale_id, "total_amount": 777.0, "items_count": 1}

        sale = db_session.get(Sale, result.sale_id)
        assert sale.status == "completed"
        assert sale.payment_method == "pix"
        assert sale.items[0].unit_price == Decimal("25.90")
        assert sale.items[0].total_price == Decimal("777.00")

    def test_total_is_subtotal_minus_discount_plus_tax(self, db_session, make_product):
        board = make_product(name="Pine Board", price="25.90")
        beam = make_product(name="Eucalyptus Beam", price="89.90", unit="piece")

        result = sales_service.create_sale(
            lines=[_line(board, "2.5"), _line(beam, 3)],
            payment_method="credit_card",
            discount=Decimal("10.00"),
            tax=Decimal("5.55"),
        )

        # 64.75 + 269.70 - 10.00 + 5.55
        assert result.total_amount == Decimal("330.00")
        sale = db_session.get(Sale, result.sale_id)
        line_sum = sum(item.total_price for item in sale.items)
        assert sale.total_amount == line_sum - sale.discount + sale.tax

    def test_line_totals_round_half_up_to_cents(self, db_session, product):
        # 1.333 x 25.90 = 34.5247
        result = sales_service.create_sale(lines=[_line(product, "1.333")], payment_method="cash")
        assert result.total_amount == Decimal("34.52")
        assert stock_of(product.id) == Decimal("98.667")

    def test_sale_records_customer_and_seller(self, db_session, product, customer, seller):
        result = sales_service.create_sale(
            lines=[_line(product, 1)],
            payment_method="cash",
            customer_id=customer.id,
            user_id=seller.id,
            notes="Deliver Friday",
        )

        sale = db_session.get(Sale, result.sale_id)
        assert sale.customer_id == customer.id
        assert sale.user_id == seller.id
        assert sale.notes == "Deliver Friday"
        assert movements_for(product.id)[0].user_id == seller.id

    def test_empty_sale_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.create_sale(lines=[], payment_method="cash")


class TestCreateSaleRollback:
    """Every failure leaves the database exactly as it was."""

    def test_insufficient_stock_writes_nothing(self, db_session, product):
        before = table_counts()

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(lines=[_line(product, 150)], payment_method="cash")

        details = exc_info.value.details
        assert details["product_id"] == product.id
        assert details["requested_quantity"] == 150.0
        assert details["available_quantity"] == 100.0
        assert "Available: 100" in str(exc_info.value)

        assert stock_of(product.id) == Decimal("100")
        assert table_counts() == before

    def test_failing_second_line_leaves_first_product_untouched(self, db_session, make_product):
        board = make_product(name="Pine Board", stock="100")
        plywood = make_product(name="Marine Plywood", price="145.00", stock="5", unit="m2")

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(
                lines=[_line(board, 10), _line(plywood, 6)],
                payment_method="cash",
            )

        assert exc_info.value.details["line"] == 2
        assert stock_of(board.id) == Decimal("100")
        assert stock_of(plywood.id) == Decimal("5")
        assert table_counts() == {"sales": 0, "sale_items": 0, "movements": 0}

    def test_duplicate_lines_are_checked_against_combined_quantity(self, db_session, product):
        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                lines=[_line(product, 60), _line(product, 50)],
                payment_method="cash",
            )
        assert stock_of(product.id) == Decimal("100")

    def test_duplicate_lines_within_stock_create_two_items(self, db_session, product):
        result = sales_service.create_sale(
            lines=[_line(product, 60), _line(product, 40)],
            payment_method="cash",
        )
        assert result.items_count == 2
        assert stock_of(product.id) == Decimal("0")
        assert len(movements_for(product.id)) == 2

    def test_inactive_product_is_not_found(self, db_session, make_product):
        retired = make_product(name="Old Stock", is_active=False)

        with pytest.raises(NotFoundError) as exc_info:
            sales_service.create_sale(lines=[_line(retired, 1)], payment_method="cash")

        assert exc_info.value.details == {"line": 1, "product_id": retired.id}
        assert stock_of(retired.id) == Decimal("100")

    def test_unknown_product_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(
                lines=[SaleLineRequest(product_id=99999, quantity=Decimal("1"))],
                payment_method="cash",
            )
        assert table_counts()["sales"] == 0

    def test_unknown_customer_is_not_found(self, db_session, product):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(lines=[_line(product, 1)], payment_method="cash", customer_id=99999)
        assert stock_of(product.id) == Decimal("100")

    def test_unknown_user_is_not_found(self, db_session, product):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(lines=[_line(product, 1)], payment_method="cash", user_id=99999)
        assert table_counts()["sales"] == 0

    def test_discount_larger_than_total_rejected(self, db_session, product):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                lines=[_line(product, 1)],
                payment_method="cash",
                discount=Decimal("30.00"),
            )
        assert stock_of(product.id) == Decimal("100")
        assert table_counts()["sales"] == 0

    def test_discount_and_tax_are_rounded_to_cents(self, db_session, product):
        result = sales_service.create_sale(
            lines=[_line(product, 1)],
            payment_method="cash",
            discount=Decimal("1.005"),
            tax=Decimal("0.004"),
        )

        # 25.90 - 1.01 + 0.00
        assert result.total_amount == Decimal("24.89")
        sale = db_session.get(Sale, result.sale_id)
        assert sale.discount == Decimal("1.01")
        assert sale.tax == Decimal("0.00")
        assert sale.total_amount == sum(item.total_price for item in sale.items) - sale.discount + sale.tax

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_line_quantity_rejected(self, db_session, product, quantity):
        with pytest.raises(ValidationError) as exc_info:
            sales_service.create_sale(lines=[_line(product, 1), _line(product, quantity)], payment_method="cash")

        assert exc_info.value.details == {"line": 2}
        assert stock_of(product.id) == Decimal("100")
        assert table_counts() == {"sales": 0, "sale_items": 0, "movements": 0}

    @pytest.mark.parametrize("field", ["discount", "tax"])
    def test_negative_discount_or_tax_rejected(self, db_session, product, field):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                lines=[_line(product, 1)],
                payment_method="cash",
                **{field: Decimal("-0.01")},
            )
        assert table_counts()["sales"] == 0

    def test_total_above_money_ceiling_rejected(self, db_session, make_product):
        bulk = make_product(name="Bulk Sheet", price="9999.00", stock="9999999")

        with pytest.raises(ValidationError):
            sales_service.create_sale(lines=[_line(bulk, 2000)], payment_method="cash")

        assert stock_of(bulk.id) == Decimal("9999999")
        assert table_counts() == {"sales": 0, "sale_items": 0, "movements": 0}


class TestSaleStatus:

    def test_cancel_restores_stock_with_in_movement(self, db_session, product, seller):
        """Sell 30 then cancel: stock back to 100, one 'in' movement for the sale."""
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")

        sale = sales_service.cancel_sale(result.sale_id, user_id=seller.id)

        assert sale.status == "cancelled"
        assert sale.cancelled_at is not None
        assert stock_of(product.id) == Decimal("100")

        restores = [m for m in movements_for(product.id) if m.movement_type == "in"]
        assert len(restores) == 1
        assert restores[0].quantity == Decimal("30")
        assert restores[0].reference_id == result.sale_id
        assert restores[0].reference_type == "sale_cancellation"
        assert restores[0].user_id == seller.id

    def test_cancel_restores_every_item(self, db_session, make_product):
        board = make_product(name="Pine Board", stock="100")
        beam = make_product(name="Eucalyptus Beam", price="89.90", stock="20", unit="piece")
        result = sales_service.create_sale(
            lines=[_line(board, "12.5"), _line(beam, 4)],
            payment_method="debit_card",
        )

        sales_service.update_sale_status(result.sale_id, "cancelled")

        assert stock_of(board.id) == Decimal("100")
        assert stock_of(beam.id) == Decimal("20")

    def test_cancelling_again_is_a_no_op(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")
        sales_service.cancel_sale(result.sale_id)
        sales_service.cancel_sale(result.sale_id)

        assert stock_of(product.id) == Decimal("100")
        assert len(movements_for(product.id)) == 2

    def test_cancelled_sale_cannot_be_reopened(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")
        sales_service.cancel_sale(result.sale_id)

        with pytest.raises(ConflictError):
            sales_service.update_sale_status(result.sale_id, "completed")

        db_session.expire_all()
        assert db_session.get(Sale, result.sale_id).status == "cancelled"
        assert stock_of(product.id) == Decimal("100")

    def test_pending_and_completed_switch_without_touching_stock(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")

        sale = sales_service.update_sale_status(result.sale_id, "pending")
        assert sale.status == "pending"
        sale = sales_service.update_sale_status(result.sale_id, "completed")
        assert sale.status == "completed"

        assert stock_of(product.id) == Decimal("70")
        assert len(movements_for(product.id)) == 1

    def test_cancelling_pending_sale_has_no_inventory_effect(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 30)], payment_method="cash")
        sales_service.update_sale_status(result.sale_id, "pending")

        sale = sales_service.cancel_sale(result.sale_id)

        assert sale.status == "cancelled"
        assert stock_of(product.id) == Decimal("70")
        assert [m.movement_type for m in movements_for(product.id)] == ["out"]

    def test_unknown_status_rejected(self, db_session, product):
        result = sales_service.create_sale(lines=[_line(product, 1)], payment_method="cash")
        with pytest.raises(ValidationError):
            sales_service.update_sale_status(result.sale_id, "refunded")

    def test_unknown_sale_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.cancel_sale(99999)


class TestListSales:

    def test_filters(self, db_session, product, customer):
        first = sales_service.create_sale(lines=[_line(product, 1)], payment_method="cash", customer_id=customer.id)
        second = sales_service.create_sale(lines=[_line(product, 2)], payment_method="cash")
        sales_service.cancel_sale(second.sale_id)

        assert [s.id for s in sales_service.list_sales()] == [second.sale_id, first.sale_id]
        assert [s.id for s in sales_service.list_sales(status="cancelled")] == [second.sale_id]
        assert [s.id for s in sales_service.list_sales(customer_id=customer.id)] == [first.sale_id]

    def test_date_range_is_inclusive_by_day(self, db_session, product):
        sales_service.create_sale(lines=[_line(product, 1)], payment_method="cash")

        assert sales_service.list_sales(start_date=date(2000, 1, 1)) != []
        assert sales_service.list_sales(start_date=date(2000, 1, 1), end_date=date(2000, 1, 2)) == []

    def test_get_sale_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(12345)
