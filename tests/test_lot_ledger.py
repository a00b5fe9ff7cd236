import logging

import pytest

from packtrack.exceptions import InsufficientStockError, NotFoundError, ValidationError
from packtrack.models import db, Lot, LotReservation, Material, Movement
from packtrack.services.lot_ledger import (
    consume_fifo,
    create_lot,
    peek_fifo,
    receive_purchase,
    validate_material_lot_sync,
)


def _lots(material_id):
    return Lot.query.filter_by(material_id=material_id).order_by(Lot.created_at, Lot.id).all()


def _lot_total(material_id):
    return sum(l.quantity_remaining for l in _lots(material_id) if l.status == 'active')


class TestLotCreation:

    def test_create_lot_raises_stock_and_logs_entry(self, db_session, make_material):
        material = make_material(stock_qty=0.0)

        lot = create_lot(material.id, 50.0, 4.0, source_ref='NF-100')
        db_session.commit()

        assert lot.status == 'active'
        assert lot.quantity_remaining == 50.0
        assert lot.original_quantity == 50.0
        assert db_session.get(Material, material.id).stock_qty == pytest.approx(50.0)

        movement = Movement.query.filter_by(material_id=material.id).one()
        assert movement.type == 'entry'
        assert movement.lot_id == lot.id
        assert movement.unit_cost == 4.0
        assert movement.qty_before == 0.0
        assert movement.qty_after == 50.0
        assert movement.reference == 'NF-100'

    @pytest.mark.parametrize('quantity,unit_cost', [(0, 4.0), (-5, 4.0), (10, 0), (10, -1)])
    def test_create_lot_rejects_non_positive_values(self, db_session, make_material, quantity, unit_cost):
        material = make_material()

        with pytest.raises(ValidationError):
            create_lot(material.id, quantity, unit_cost)

        assert Lot.query.count() == 0
        assert db_session.get(Material, material.id).stock_qty == 0.0

    def test_create_lot_unknown_material(self, db_session):
        with pytest.raises(NotFoundError):
            create_lot(9999, 10, 1.0)


class TestFifoConsumption:

    def test_kraft_scenario(self, db_session, make_material, add_lot):
        """50kg@4.00 on day 1 and 30kg@4.50 on day 2; drawing 60kg spans both lots."""
        kraft = make_material(name='Papel Kraft 200g', admin_unit_cost=4.0)
        lot1 = add_lot(kraft, 50, 4.00, day=1)
        lot2 = add_lot(kraft, 30, 4.50, day=2)

        result = consume_fifo(kraft.id, 60)
        db_session.commit()

        assert [(s.lot_id, s.quantity, s.unit_cost) for s in result.consumed] == [
            (lot1.id, 50, 4.00),
            (lot2.id, 10, 4.50),
        ]
        assert result.shortfall == 0

        lot1, lot2 = _lots(kraft.id)
        assert lot1.status == 'exhausted'
        assert lot1.quantity_remaining == 0
        assert lot2.status == 'active'
        assert lot2.quantity_remaining == pytest.approx(20)
        assert db_session.get(Material, kraft.id).stock_qty == pytest.approx(20)

    def test_lot_switch_raises_divergence_alert(self, db_session, make_material, add_lot):
        kraft = make_material(admin_unit_cost=4.0)
        lot1 = add_lot(kraft, 50, 4.00, day=1)
        lot2 = add_lot(kraft, 30, 4.50, day=2)

        result = consume_fifo(kraft.id, 60)

        assert len(result.alerts) == 1
        alert = result.alerts[0]
        assert alert.previous_lot_id == lot1.id
        assert alert.lot_id == lot2.id
        assert alert.lot_cost == 4.50
        assert alert.pct_diff == pytest.approx(0.125)

    def test_no_alert_when_no_lot_is_drained(self, db_session, make_material, add_lot):
        kraft = make_material(admin_unit_cost=4.0)
        add_lot(kraft, 50, 4.00, day=1)
        add_lot(kraft, 30, 4.50, day=2)

        result = consume_fifo(kraft.id, 20)

        assert result.alerts == []

    def test_fifo_never_touches_later_lots(self, db_session, make_material, add_lot):
        material = make_material()
        lot1 = add_lot(material, 10, 1.0, day=1)
        lot2 = add_lot(material, 20, 1.0, day=2)
        lot3 = add_lot(material, 30, 1.0, day=3)

        consume_fifo(material.id, 10 + 5)
        db_session.commit()

        lots = {l.id: l for l in _lots(material.id)}
        assert lots[lot1.id].status == 'exhausted'
        assert lots[lot2.id].quantity_remaining == pytest.approx(15)
        assert lots[lot3.id].quantity_remaining == pytest.approx(30)

    def test_ties_on_created_at_break_by_id(self, db_session, make_material, add_lot):
        material = make_material()
        first = add_lot(material, 5, 1.0, day=1)
        second = add_lot(material, 5, 2.0, day=1)

        result = consume_fifo(material.id, 6)

        assert [s.lot_id for s in result.consumed] == [first.id, second.id]

    def test_each_slice_emits_a_movement(self, db_session, make_material, add_lot):
        material = make_material()
        lot1 = add_lot(material, 50, 4.0, day=1)
        lot2 = add_lot(material, 30, 4.5, day=2)

        consume_fifo(material.id, 60, reference='PED-0001')
        db_session.commit()

        exits = Movement.query.filter_by(material_id=material.id, type='exit').order_by(Movement.id).all()
        assert [(m.lot_id, m.qty_delta, m.unit_cost) for m in exits] == [
            (lot1.id, -50.0, 4.0),
            (lot2.id, -10.0, 4.5),
        ]
        assert exits[0].qty_before == pytest.approx(80)
        assert exits[-1].qty_after == pytest.approx(20)
        assert all(m.reference == 'PED-0001' for m in exits)

    def test_insufficient_stock_raises_without_mutation(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 50, 4.0, day=1)
        add_lot(material, 30, 4.5, day=2)

        with pytest.raises(InsufficientStockError) as exc_info:
            consume_fifo(material.id, 100)
        db_session.commit()

        assert exc_info.value.required == 100
        assert exc_info.value.available == pytest.approx(80)
        assert exc_info.value.shortfall == pytest.approx(20)
        assert db_session.get(Material, material.id).stock_qty == pytest.approx(80)
        assert all(l.status == 'active' for l in _lots(material.id))
        assert Movement.query.filter_by(type='exit').count() == 0

    def test_allow_partial_draws_what_exists(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 50, 4.0, day=1)

        result = consume_fifo(material.id, 70, allow_partial=True, movement_type='production')
        db_session.commit()

        assert result.consumed_quantity == pytest.approx(50)
        assert result.shortfall == pytest.approx(20)
        assert db_session.get(Material, material.id).stock_qty == pytest.approx(0)
        assert Movement.query.filter_by(type='production').count() == 1

    def test_conservation_after_mixed_operations(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 12.5, 3.0, day=1)
        consume_fifo(material.id, 4.25)
        add_lot(material, 7.75, 3.1, day=2)
        consume_fifo(material.id, 10)
        add_lot(material, 3, 3.2, day=3)
        consume_fifo(material.id, 0.5)
        db_session.commit()

        stock = db_session.get(Material, material.id).stock_qty
        assert stock == pytest.approx(_lot_total(material.id))
        assert stock == pytest.approx(12.5 - 4.25 + 7.75 - 10 + 3 - 0.5)
        is_valid, error, _, _ = validate_material_lot_sync(material.id)
        assert is_valid, error

    def test_peek_matches_consume(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 50, 4.0, day=1)
        add_lot(material, 30, 4.5, day=2)
        add_lot(material, 10, 5.0, day=3)

        plan = peek_fifo(material.id, 65)
        assert db_session.get(Material, material.id).stock_qty == pytest.approx(90)

        result = consume_fifo(material.id, 65)

        assert [(s.lot_id, s.quantity, s.unit_cost) for s in plan.slices] == \
               [(s.lot_id, s.quantity, s.unit_cost) for s in result.consumed]
        assert plan.shortfall == result.shortfall == 0

    def test_peek_reports_shortfall_without_raising(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 5, 4.0, day=1)

        plan = peek_fifo(material.id, 8)

        assert plan.shortfall == pytest.approx(3)
        assert not plan.is_satisfied

    def test_reservations_of_other_orders_are_not_available(self, db_session, make_material, add_lot,
                                                            make_product, make_order):
        material = make_material()
        lot = add_lot(material, 50, 4.0, day=1)
        product = make_product(recipes=[(material, 100)])
        holder = make_order([(product, 1)])
        db_session.add(LotReservation(order_id=holder.id, lot_id=lot.id, material_id=material.id, quantity=40))
        db_session.commit()

        assert peek_fifo(material.id, 20).available == pytest.approx(10)
        with pytest.raises(InsufficientStockError):
            consume_fifo(material.id, 20)

        # The holder itself may draw its reservation
        result = consume_fifo(material.id, 20, order_id=holder.id)
        db_session.commit()
        assert result.consumed_quantity == pytest.approx(20)
        reservation = LotReservation.query.filter_by(order_id=holder.id).one()
        assert reservation.quantity == pytest.approx(20)
        assert reservation.status == 'active'

    def test_drawing_for_an_order_settles_its_holds_on_other_lots(self, db_session, make_material, add_lot,
                                                                 make_product, make_order):
        material = make_material()
        older = add_lot(material, 50, 4.0, day=1)
        newer = add_lot(material, 30, 4.0, day=2)
        product = make_product(recipes=[(material, 100)])
        holder = make_order([(product, 1)])
        db_session.add(LotReservation(order_id=holder.id, lot_id=newer.id, material_id=material.id, quantity=30))
        db_session.commit()

        result = consume_fifo(material.id, 30, order_id=holder.id)
        db_session.commit()

        # FIFO took the free older lot, yet the hold on the newer lot is spent
        assert [s.lot_id for s in result.consumed] == [older.id]
        reservation = LotReservation.query.filter_by(order_id=holder.id).one()
        assert reservation.status == 'consumed'
        assert reservation.quantity == 0
        assert peek_fifo(material.id, 50).available == pytest.approx(50)


class TestReceivePurchase:

    def test_receipt_commits_and_reports_divergence(self, db_session, make_material):
        material = make_material(admin_unit_cost=4.0)

        result = receive_purchase(material.id, 30, 4.5, reference='NF-200')

        db.session.expire_all()
        assert db_session.get(Lot, result.lot_id).source_ref == 'NF-200'
        assert result.alert is not None
        assert result.alert.pct_diff == pytest.approx(0.125)

    def test_receipt_at_admin_cost_has_no_alert(self, db_session, make_material):
        material = make_material(admin_unit_cost=4.0)

        result = receive_purchase(material.id, 30, 4.0)

        assert result.alert is None

    def test_invalid_receipt_leaves_no_trace(self, db_session, make_material):
        material = make_material()

        with pytest.raises(ValidationError):
            receive_purchase(material.id, 0, 4.0)

        assert Lot.query.count() == 0
        assert Movement.query.count() == 0


class TestLotSyncValidation:

    def test_detects_stock_drift(self, db_session, make_material, add_lot):
        material = make_material()
        add_lot(material, 10, 1.0)
        material = db_session.get(Material, material.id)
        material.stock_qty = 12.0
        db_session.commit()

        is_valid, error, stock_qty, lot_total = validate_material_lot_sync(material.id)

        assert not is_valid
        assert 'Lot sync error' in error
        assert stock_qty == 12.0
        assert lot_total == 10.0

    def test_consumption_does_not_mask_stock_drift(self, db_session, make_material, add_lot, caplog):
        material = make_material()
        add_lot(material, 10, 1.0)
        material = db_session.get(Material, material.id)
        material.stock_qty = 4.0
        db_session.commit()

        with caplog.at_level(logging.ERROR, logger="packtrack.services.lot_ledger._lot_ops"):
            consume_fifo(material.id, 6)
        db_session.commit()

        assert any("stock went negative" in r.getMessage() for r in caplog.records)
        is_valid, _, stock_qty, lot_total = validate_material_lot_sync(material.id)
        assert not is_valid
        assert stock_qty == pytest.approx(-2)
        assert lot_total == pytest.approx(4)

    def test_missing_material(self, db_session):
        is_valid, error, _, _ = validate_material_lot_sync(12345)
        assert not is_valid
        assert error == 'Material not found'
