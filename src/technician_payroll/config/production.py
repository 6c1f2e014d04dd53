import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "technician_payroll"),
}

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

COMMISSION_RATE = os.getenv("COMMISSION_RATE", "0.40")
CARD_TAX_RATE = os.getenv("CARD_TAX_RATE", "0.19")
DISTRIBUTION_ORDER = os.getenv("DISTRIBUTION_ORDER", "creation")

DOCUMENT_API_URL = os.getenv("DOCUMENT_API_URL", "https://api.bsale.cl")
DOCUMENT_API_TOKEN = os.getenv("DOCUMENT_API_TOKEN", "")
DOCUMENT_API_TIMEOUT = int(os.getenv("DOCUMENT_API_TIMEOUT", "5"))
