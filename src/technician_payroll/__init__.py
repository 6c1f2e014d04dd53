"""Technician payroll package.

Weekly settlement engine for a repair shop, organized by feature modules
(orders, adjustments, settlements, ...) with a thin Flask controller layer
over service/repository layers.
"""
