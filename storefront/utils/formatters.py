from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import pytz
from ..config import Config

CENT = Decimal("0.01")

def round_money(amount) -> Decimal:
    """Round an amount to cents"""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)

def format_price(amount) -> str:
    """Format an amount as dollars and cents"""
    return f"${round_money(amount):,.2f}"

def format_datetime(dt: datetime) -> str:
    """Format a timestamp in the configured timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")
