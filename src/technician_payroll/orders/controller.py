from __future__ import annotations

from flask import Flask, request

from ..common.auth import admin_required, can_view_technician, current_role, current_user_id, login_required
from ..common.http import fail, ok
from ..common.validators import parse_optional_int, parse_payment_method
from ..container import Container
from ..core.enums import OrderStatus, Role
from ..core.exceptions import ValidationError
from ..weeks.payout_week import get_current_payout_week


def register(app: Flask, container: Container) -> None:
    def _owned_order(order_id: int):
        order = container.orders_repo.get(order_id)
        if not order:
            raise ValidationError("Order not found")
        if not can_view_technician(order.technician_id):
            return None
        return order

    @app.route("/api/orders", methods=["POST"], endpoint="create_order")
    @login_required
    def create_order():
        body = request.get_json(silent=True) or {}
        technician_id = current_user_id()
        if current_role() == Role.ADMIN:
            technician_id = parse_optional_int(body.get("technician_id"), "Technician") or technician_id

        order_id = container.order_service.create_order(
            technician_id=technician_id,
            replacement_cost=body.get("replacement_cost", 0),
            total_price=body.get("total_price", 0),
            payment_method=parse_payment_method(body.get("payment_method")),
            receipt_number=body.get("receipt_number"),
            order_number=body.get("order_number"),
            device=body.get("device"),
        )
        return ok(container.orders_repo.get(order_id).to_dict(), status=201)

    @app.route("/api/orders/<int:order_id>/pay", methods=["POST"], endpoint="pay_order")
    @login_required
    def pay_order(order_id: int):
        if not _owned_order(order_id):
            return fail("You can only update your own orders", status=403, code="FORBIDDEN")
        body = request.get_json(silent=True) or {}
        method = body.get("payment_method")
        order = container.order_service.mark_paid(
            order_id=order_id,
            receipt_number=body.get("receipt_number") or "",
            payment_method=parse_payment_method(method) if method else None,
        )
        return ok(order.to_dict())

    @app.route("/api/orders/<int:order_id>/costs", methods=["POST"], endpoint="update_order_costs")
    @login_required
    def update_order_costs(order_id: int):
        if not _owned_order(order_id):
            return fail("You can only update your own orders", status=403, code="FORBIDDEN")
        body = request.get_json(silent=True) or {}
        order = container.order_service.update_costs(
            order_id=order_id,
            replacement_cost=body.get("replacement_cost", 0),
            total_price=body.get("total_price", 0),
        )
        return ok(order.to_dict())

    @app.route("/api/orders/<int:order_id>/status", methods=["POST"], endpoint="change_order_status")
    @login_required
    def change_order_status(order_id: int):
        if not _owned_order(order_id):
            return fail("You can only update your own orders", status=403, code="FORBIDDEN")
        body = request.get_json(silent=True) or {}
        try:
            status = OrderStatus((body.get("status") or "").strip().lower())
        except ValueError:
            raise ValidationError("Status must be pending, paid, returned or cancelled")
        order = container.order_service.change_status(order_id=order_id, status=status)
        return ok(order.to_dict())

    @app.route("/api/orders/<int:order_id>", methods=["DELETE"], endpoint="delete_order")
    @admin_required
    def delete_order(order_id: int):
        order = container.order_service.delete_order(current_role=current_role(), order_id=order_id)
        totals = container.settlement_service.get_weekly_totals(
            technician_id=order.technician_id,
            week=get_current_payout_week(),
        )
        return ok({"deleted": order.order_id, "weekly_totals": totals.to_dict()})
