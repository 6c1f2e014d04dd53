"""Example: use the service layer directly, without Flask.

Controllers are thin; every payroll rule lives in the services.
"""

import importlib

from technician_payroll.config import get_settings_module
from technician_payroll.container import build_container
from technician_payroll.weeks.payout_week import get_current_payout_week


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, settings=settings)
    week = get_current_payout_week()
    quote, distribution = container.settlement_service.preview_settlement(technician_id=1, week=week)
    print(quote.to_dict())
    print(distribution.to_dict())


if __name__ == "__main__":
    main()
