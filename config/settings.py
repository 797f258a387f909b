"""
SwarnaBill - Centralized Configuration
=======================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME")

    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES") or 60 * 24)  # 24 hours

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


# ==========================================
# 🏪 Shop Identity (printed on bills / QR)
# ==========================================
SHOP_NAME = os.getenv("SHOP_NAME", "Shri Mahakaleshwar Jewellers")
SHOP_ADDRESS = os.getenv("SHOP_ADDRESS", "Anisabad, Patna, Bihar - 800002")
SHOP_PHONE = os.getenv("SHOP_PHONE", "")
SHOP_GSTIN = os.getenv("SHOP_GSTIN", "")
SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "Asia/Kolkata")

# Bill number: <prefix><DDMMYYYY><seq>
BILL_NUMBER_PREFIX = os.getenv("BILL_NUMBER_PREFIX", "SMJ")
BILL_SEQUENCE_DIGITS = 3
EXCHANGE_NUMBER_PREFIX = "EXC"
EXCHANGE_SEQUENCE_DIGITS = 3


# ==========================================
# 🧮 Billing Defaults
# ==========================================
DEFAULT_GST_ON_METAL = Decimal(os.getenv("DEFAULT_GST_ON_METAL") or "3")
DEFAULT_GST_ON_MAKING = Decimal(os.getenv("DEFAULT_GST_ON_MAKING") or "5")

# Old-item exchange policy
EXCHANGE_SHOP_DEDUCTION_PERCENT = Decimal(os.getenv("EXCHANGE_SHOP_DEDUCTION_PERCENT") or "3")
DEFAULT_WASTAGE_PERCENT = Decimal(os.getenv("DEFAULT_WASTAGE_PERCENT") or "2")


# ==========================================
# 📊 Reports
# ==========================================
PREMIUM_AVG_BILL_VALUE = Decimal(os.getenv("PREMIUM_AVG_BILL_VALUE") or "50000")


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
