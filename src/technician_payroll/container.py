from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .adjustments.ledger import AdjustmentLedger
from .adjustments.mysql_adjustment_repository import MySQLAdjustmentRepository
from .adjustments.repository import AdjustmentRepository
from .adjustments.service import AdjustmentService
from .commission.calculator.base import CommissionCalculator
from .commission.calculator.standard_calculator import CommissionPolicy, StandardCommissionCalculator
from .core.enums import DistributionOrder
from .database.connection import DBConfig, DatabaseConnection
from .orders.mysql_order_repository import MySQLOrderRepository
from .orders.repository import OrderRepository
from .orders.service import OrderService
from .receipts.validator import DocumentValidator, HttpDocumentValidator
from .settlements.calculator import SettlementCalculator
from .settlements.mysql_settlement_repository import MySQLSettlementRepository
from .settlements.repository import SettlementRepository
from .settlements.service import SettlementService


@dataclass(frozen=True)
class Container:
    orders_repo: OrderRepository
    adjustments_repo: AdjustmentRepository
    settlements_repo: SettlementRepository

    commission_calculator: CommissionCalculator
    ledger: AdjustmentLedger

    order_service: OrderService
    adjustment_service: AdjustmentService
    settlement_service: SettlementService

    conn: Optional[DatabaseConnection] = None
    document_validator: Optional[DocumentValidator] = None


def build_services(
    *,
    orders_repo: OrderRepository,
    adjustments_repo: AdjustmentRepository,
    settlements_repo: SettlementRepository,
    settings: Any = None,
    conn: Optional[DatabaseConnection] = None,
    document_validator: Optional[DocumentValidator] = None,
) -> Container:
    """Wire services over any repositories (MySQL in the app, in-memory in tests)."""
    commission_calculator = StandardCommissionCalculator(CommissionPolicy.from_settings(settings))
    order = DistributionOrder(str(getattr(settings, "DISTRIBUTION_ORDER", DistributionOrder.CREATION.value)).lower())
    ledger = AdjustmentLedger(adjustments_repo, settlements_repo, order=order)

    order_service = OrderService(orders_repo, calculator=commission_calculator, validator=document_validator)
    adjustment_service = AdjustmentService(adjustments_repo, ledger)
    settlement_service = SettlementService(
        orders_repo,
        settlements_repo,
        ledger,
        calculator=SettlementCalculator(calculator=commission_calculator),
    )

    return Container(
        orders_repo=orders_repo,
        adjustments_repo=adjustments_repo,
        settlements_repo=settlements_repo,
        commission_calculator=commission_calculator,
        ledger=ledger,
        order_service=order_service,
        adjustment_service=adjustment_service,
        settlement_service=settlement_service,
        conn=conn,
        document_validator=document_validator,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    return build_services(
        orders_repo=MySQLOrderRepository(conn),
        adjustments_repo=MySQLAdjustmentRepository(conn),
        settlements_repo=MySQLSettlementRepository(conn),
        settings=settings,
        conn=conn,
        document_validator=HttpDocumentValidator.from_settings(settings) if settings is not None else None,
    )
