import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "technician_payroll_test"),
}

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

COMMISSION_RATE = "0.40"
CARD_TAX_RATE = "0.19"
DISTRIBUTION_ORDER = "creation"

DOCUMENT_API_URL = ""
DOCUMENT_API_TOKEN = ""
DOCUMENT_API_TIMEOUT = 1
