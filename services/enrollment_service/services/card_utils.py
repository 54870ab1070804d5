"""Normalization of card metadata returned by the payment gateways."""

from typing import Optional


def to_four_char_issuer(brand: Optional[str]) -> str:
    """Map a gateway card brand to the 4-character POS issuer code."""
    if not brand:
        return ""
    b = brand.strip().upper()
    if b.startswith("VIS"):
        return "VISA"
    if b.startswith("AMEX") or b.startswith("AMX"):
        return "AMEX"
    if b.startswith("MAS") or b == "MC" or b.startswith("MSTR"):
        return "MC"
    if b.startswith("DIS"):
        return "DISC"
    return b[:4]


def mmyy_to_date(mmyy: Optional[str]) -> Optional[str]:
    """``"0927"`` or ``"09/27"`` → ``"09/01/2027"``; None when unparseable."""
    if not mmyy:
        return None
    s = "".join(mmyy.split()).replace("/", "")
    if len(s) != 4 or not s.isdigit():
        return None
    month = int(s[:2])
    if not 1 <= month <= 12:
        return None
    return f"{month:02d}/01/{2000 + int(s[2:])}"


def mask_card(masked: Optional[str]) -> str:
    """Keep only the last four digits of whatever the gateway sent."""
    if not masked:
        return ""
    digits = [c for c in masked if c.isdigit()]
    last4 = "".join(digits[-4:])
    return f"XXXXXXXXXXXX{last4}" if last4 else ""
