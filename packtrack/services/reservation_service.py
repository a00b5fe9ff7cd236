import logging

from ..models import db, LotReservation
from ..models.lot_reservation import RESERVATION_ACTIVE

logger = logging.getLogger(__name__)

RESERVATION_EPSILON = 1e-9


def _settle_consumed(reservation):
    reservation.quantity = 0.0
    reservation.mark_consumed()


class ReservationService:
    """Lot reservations held for approved orders. Callers own the transaction."""

    @staticmethod
    def reserve_slices(order_id, material_id, slices):
        """Create one active reservation per planned lot slice"""
        reservations = []
        for slice_ in slices:
            if slice_.quantity <= 0:
                continue
            reservation = LotReservation(
                order_id=order_id,
                lot_id=slice_.lot_id,
                material_id=material_id,
                quantity=slice_.quantity,
                status=RESERVATION_ACTIVE,
            )
            db.session.add(reservation)
            reservations.append(reservation)
        return reservations

    @staticmethod
    def active_for_order(order_id, material_id=None):
        query = LotReservation.query.filter_by(order_id=order_id, status=RESERVATION_ACTIVE)
        if material_id is not None:
            query = query.filter_by(material_id=material_id)
        return query.order_by(LotReservation.material_id, LotReservation.id).all()

    @staticmethod
    def _reduce_for_material(order_id, material_id, quantity, settle):
        """Take ``quantity`` off the order's active holds on a material, whatever lot they sit on.

        A hold reduced to nothing is passed to ``settle``. Returns the quantity taken.
        """
        remaining = float(quantity)
        for reservation in ReservationService.active_for_order(order_id, material_id):
            if remaining <= RESERVATION_EPSILON:
                break
            held = float(reservation.quantity)
            if held - remaining <= RESERVATION_EPSILON:
                remaining -= held
                settle(reservation)
            else:
                reservation.quantity = held - remaining
                remaining = 0.0
        return float(quantity) - max(remaining, 0.0)

    @staticmethod
    def consume_for_material(order_id, material_id, quantity):
        """Settle holds after ``quantity`` of the material was drawn for the order."""
        return ReservationService._reduce_for_material(order_id, material_id, quantity, _settle_consumed)

    @staticmethod
    def release_for_material(order_id, material_id, quantity):
        """Give back up to ``quantity`` of the order's holds on a material."""
        released = ReservationService._reduce_for_material(
            order_id, material_id, quantity, LotReservation.mark_released
        )
        if released > 0:
            logger.info(f"RESERVATION: released {released:.3f} of material {material_id} for order {order_id}")
        return released

    @staticmethod
    def release_for_order(order_id):
        """Release every active reservation of an order. Returns the count released."""
        reservations = ReservationService.active_for_order(order_id)
        for reservation in reservations:
            reservation.mark_released()
        if reservations:
            logger.info(f"RESERVATION: released {len(reservations)} reservation(s) for order {order_id}")
        return len(reservations)
