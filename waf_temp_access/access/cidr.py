from __future__ import annotations

import ipaddress


def to_cidr(address: str) -> str:
    """Normalize an address to the CIDR form stored in the allow-list.

    - "203.0.113.5"    -> "203.0.113.5/32"
    - "203.0.113.0/24" -> unchanged (anything with a "/" passes through)
    - bare IPv6 literals get /128

    Membership is decided by exact string equality on this form, so the string is
    not re-canonicalized beyond trimming whitespace.
    """
    s = str(address).strip()
    if not s:
        raise ValueError("empty address")
    if "/" in s:
        return s
    try:
        if ipaddress.ip_address(s).version == 6:
            return f"{s}/128"
    except ValueError:
        pass
    return f"{s}/32"
