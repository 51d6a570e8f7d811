"""
GWT-RPC encoding for the ADE planning server.

ADE speaks GWT-RPC: requests are pipe-delimited token streams whose string
table and token positions are fixed by the server's serialization policy.
Longs (timestamps, user ids) travel as GWT radix-64 strings.
"""

from datetime import datetime, timedelta
from typing import Iterable

from .timezone_utils import to_epoch_millis


GWT_RPC_CONTENT_TYPE = "text/x-gwt-rpc; charset=UTF-8"

_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789$_"
)


def encode_long(value: int) -> str:
    """
    Encode a 64-bit integer as a GWT radix-64 string.

    The 64 bits are read as eleven digits (one 4-bit digit, then ten 6-bit
    digits), most significant first. Leading zero digits are dropped but
    the last digit is always written, so 0 encodes as "A".
    """
    low = value & 0xFFFFFFFF
    high = (value >> 32) & 0xFFFFFFFF
    digits = (
        (high >> 28) & 0xF,
        (high >> 22) & 0x3F,
        (high >> 16) & 0x3F,
        (high >> 10) & 0x3F,
        (high >> 4) & 0x3F,
        ((high & 0xF) << 2) | ((low >> 30) & 0x3),
        (low >> 24) & 0x3F,
        (low >> 18) & 0x3F,
        (low >> 12) & 0x3F,
        (low >> 6) & 0x3F,
    )

    out = []
    have_non_zero = False
    for digit in digits:
        if digit > 0:
            have_non_zero = True
        if have_non_zero:
            out.append(_ALPHABET[digit])
    out.append(_ALPHABET[low & 0x3F])
    return "".join(out)


def encode_datetime(dt: datetime) -> str:
    """Encode an aware datetime as its epoch milliseconds."""
    return encode_long(to_epoch_millis(dt))


def user_id_token(now: datetime) -> str:
    """ADE session user id: the encoded time two hours before `now`."""
    return encode_datetime(now - timedelta(hours=2))


def build_login_payload(module_base: str, policy: str, user_id: str) -> str:
    """MyPlanningClientServiceProxy.method1login request."""
    return (
        f"7|0|8|{module_base}|{policy}|"
        "com.adesoft.gwt.directplan.client.rpc.MyPlanningClientServiceProxy|"
        "method1login|J|"
        "com.adesoft.gwt.core.client.rpc.data.LoginRequest/3705388826|"
        "com.adesoft.gwt.directplan.client.rpc.data.DirectLoginRequest/635437471|"
        f"|1|2|3|4|2|5|6|{user_id}|7|0|0|0|1|1|8|8|-1|0|0|"
    )


def build_generated_url_payload(
    module_base: str,
    policy: str,
    user_id: str,
    class_ids: Iterable[int],
    start: datetime,
    end: datetime,
) -> str:
    """
    CorePlanningServiceProxy.method11getGeneratedUrl request for an iCal
    feed of `class_ids` between `start` and `end`.
    """
    ids = list(class_ids)
    class_tokens = "|".join(f"9|{class_id}" for class_id in ids)
    return (
        f"7|0|11|{module_base}|{policy}|"
        "com.adesoft.gwt.core.client.rpc.CorePlanningServiceProxy|"
        "method11getGeneratedUrl|J|java.util.List|"
        "java.lang.String/2004016611|java.util.Date/3385151746|"
        "java.lang.Integer/3438268394|java.util.ArrayList/4159755760|ical|"
        f"1|2|3|4|7|5|6|7|8|8|9|9|{user_id}|10|{len(ids)}|{class_tokens}|"
        f"11|8|{encode_datetime(start)}|8|{encode_datetime(end)}|9|-1|9|226|"
    )


def gwt_headers(module_base: str, permutation: str) -> dict[str, str]:
    """Headers every GWT-RPC POST must carry."""
    return {
        "Content-Type": GWT_RPC_CONTENT_TYPE,
        "X-GWT-Module-Base": module_base,
        "X-GWT-Permutation": permutation,
    }
