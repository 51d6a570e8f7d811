"""Tests for GWT radix-64 encoding and GWT-RPC payloads."""

import random
import re
from datetime import datetime

import pytest
import pytz

from ade_backend.gwt_codec import (
    GWT_RPC_CONTENT_TYPE,
    build_generated_url_payload,
    build_login_payload,
    encode_datetime,
    encode_long,
    gwt_headers,
    user_id_token,
)

MODULE_BASE = "https://ade.univ-tours.fr/direct/gwtdirectplanning/"
VALID_TOKEN = re.compile(r"^[A-Za-z0-9$_]+$")


class TestEncodeLong:

    @pytest.mark.parametrize("value, expected", [
        (0, "A"),
        (1, "B"),
        (25, "Z"),
        (26, "a"),
        (52, "0"),
        (62, "$"),
        (63, "_"),
        (64, "BA"),
        (1 << 32, "EAAAAA"),
    ])
    def test_small_values(self, value, expected):
        assert encode_long(value) == expected

    def test_millisecond_timestamp(self):
        # 2023-11-14T22:13:20Z
        assert encode_long(1_700_000_000_000) == "YvP5WgA"

    def test_all_bits_set(self):
        assert encode_long(-1) == "P" + "_" * 10
        assert encode_long(0xFFFFFFFFFFFFFFFF) == encode_long(-1)

    def test_never_longer_than_eleven_digits(self):
        assert len(encode_long(1 << 63)) == 11

    def test_deterministic_and_alphabet(self):
        rng = random.Random(1234)
        for _ in range(500):
            value = rng.randrange(-(1 << 63), 1 << 63)
            token = encode_long(value)
            assert token == encode_long(value)
            assert VALID_TOKEN.match(token)

    def test_leading_zero_digits_suppressed(self):
        for value in (1, 4096, 1 << 40, 1_700_000_000_000):
            assert not encode_long(value).startswith("A")


class TestDatetimes:

    def test_encode_datetime_uses_epoch_millis(self):
        dt = datetime(2023, 11, 14, 22, 13, 20, tzinfo=pytz.UTC)
        assert encode_datetime(dt) == "YvP5WgA"

    def test_user_id_is_two_hours_earlier(self):
        now = datetime(2023, 11, 15, 0, 13, 20, tzinfo=pytz.UTC)
        assert user_id_token(now) == "YvP5WgA"


class TestPayloads:

    def test_login_payload_is_byte_exact(self):
        payload = build_login_payload(MODULE_BASE, "217140C31DF67EF6BA02D106930F5725", "XYZ")
        assert payload == (
            "7|0|8|https://ade.univ-tours.fr/direct/gwtdirectplanning/|"
            "217140C31DF67EF6BA02D106930F5725|"
            "com.adesoft.gwt.directplan.client.rpc.MyPlanningClientServiceProxy|"
            "method1login|J|com.adesoft.gwt.core.client.rpc.data.LoginRequest/3705388826|"
            "com.adesoft.gwt.directplan.client.rpc.data.DirectLoginRequest/635437471||"
            "1|2|3|4|2|5|6|XYZ|7|0|0|0|1|1|8|8|-1|0|0|"
        )

    def test_generated_url_payload(self):
        start = datetime(2026, 8, 31, 22, 0, tzinfo=pytz.UTC)
        end = datetime(2027, 8, 30, 22, 0, tzinfo=pytz.UTC)
        payload = build_generated_url_payload(
            MODULE_BASE, "748880AB5D6D59CC4770FCCE7567EA63", "UID", [10767, 10448], start, end
        )
        assert payload.startswith(
            "7|0|11|https://ade.univ-tours.fr/direct/gwtdirectplanning/|"
            "748880AB5D6D59CC4770FCCE7567EA63|"
            "com.adesoft.gwt.core.client.rpc.CorePlanningServiceProxy|method11getGeneratedUrl|"
            "J|java.util.List|java.lang.String/2004016611|java.util.Date/3385151746|"
            "java.lang.Integer/3438268394|java.util.ArrayList/4159755760|ical|"
            "1|2|3|4|7|5|6|7|8|8|9|9|UID|10|2|9|10767|9|10448|11|8|"
        )
        assert payload.endswith(
            f"|8|{encode_datetime(start)}|8|{encode_datetime(end)}|9|-1|9|226|"
        )

    def test_generated_url_payload_token_count_grows_with_catalog(self):
        start = datetime(2026, 9, 1, tzinfo=pytz.UTC)
        end = datetime(2027, 8, 31, tzinfo=pytz.UTC)
        one = build_generated_url_payload(MODULE_BASE, "P", "U", [1], start, end)
        three = build_generated_url_payload(MODULE_BASE, "P", "U", [1, 2, 3], start, end)
        assert len(three.split("|")) - len(one.split("|")) == 4
        assert "|10|3|9|1|9|2|9|3|11|" in three

    def test_headers(self):
        headers = gwt_headers(MODULE_BASE, "PERM")
        assert headers == {
            "Content-Type": GWT_RPC_CONTENT_TYPE,
            "X-GWT-Module-Base": MODULE_BASE,
            "X-GWT-Permutation": "PERM",
        }
        assert GWT_RPC_CONTENT_TYPE == "text/x-gwt-rpc; charset=UTF-8"
