"""Tests for decode_breakdown - display data from a snapshot alone."""

import pytest

from core.breakdown import decode_breakdown
from core.config import BillingConfig


class TestDecodeBreakdown:
    """Well-formed snapshots."""

    def test_colored_item_without_addons(self):
        breakdown = decode_breakdown("圖騰小圖案-彩色", 3000, {"color": "彩色", "size": "T-1"})

        assert breakdown.service_name == "圖騰小圖案"
        assert breakdown.color == "彩色"
        assert breakdown.service_price == 3000
        assert breakdown.addons == []
        assert breakdown.addons_total == 0

    def test_known_addons_are_separated(self):
        breakdown = decode_breakdown("圖騰小圖案", 2700, {"design_fee": 500, "custom_addon": 200})

        assert [(a.key, a.amount) for a in breakdown.addons] == [("custom_addon", 200), ("design_fee", 500)]
        assert [a.label for a in breakdown.addons] == ["加購", "設計費"]
        assert breakdown.addons_total == 700
        assert breakdown.service_price == 2000
        assert breakdown.design_fee == 500
        assert breakdown.custom_addon == 200

    def test_other_addons_follow_known_ones_sorted_by_key(self):
        breakdown = decode_breakdown("圖騰小圖案", 5000, {
            "size": "T-1",
            "touch_up": 300,
            "design_fee": 500,
            "aftercare": 100,
        })
        assert [a.key for a in breakdown.addons] == ["design_fee", "aftercare", "touch_up"]
        assert breakdown.addons[1].label == "aftercare"
        assert breakdown.service_price == 4100

    def test_name_without_color_suffix_is_kept(self):
        breakdown = decode_breakdown("圖騰小圖案", 1000, {"color": "彩色"})
        assert breakdown.service_name == "圖騰小圖案"
        assert breakdown.color == "彩色"

    def test_serializes_camel_case(self):
        dumped = decode_breakdown("圖騰小圖案", 2700, {"design_fee": 500}).model_dump(by_alias=True)
        assert dumped["serviceName"] == "圖騰小圖案"
        assert dumped["finalPrice"] == 2700
        assert dumped["servicePrice"] == 2200
        assert dumped["addonsTotal"] == 500
        assert dumped["designFee"] == 500
        assert dumped["customAddon"] == 0


class TestMalformedSnapshots:
    """Decoding never raises; bad values are left out."""

    @pytest.mark.parametrize("variants", [None, "garbage", 42, ["design_fee", 500]])
    def test_non_mapping_variants(self, variants):
        breakdown = decode_breakdown("圖騰小圖案", 2000, variants)
        assert breakdown.addons == []
        assert breakdown.service_price == 2000

    def test_numeric_strings_are_accepted(self):
        breakdown = decode_breakdown("圖騰小圖案", 2000, {"design_fee": " 300 "})
        assert breakdown.design_fee == 300

    @pytest.mark.parametrize("raw", ["abc", True, {"amount": 1}, [1], -100, 0, "0"])
    def test_unusable_amounts_are_omitted(self, raw):
        breakdown = decode_breakdown("圖騰小圖案", 2000, {"design_fee": raw})
        assert breakdown.addons == []
        assert breakdown.design_fee == 0
        assert breakdown.service_price == 2000

    def test_missing_name_uses_default_label(self):
        assert decode_breakdown(None, 1000, {}).service_name == "服務"
        assert decode_breakdown("", 1000, {}).service_name == "服務"

    def test_default_label_is_configurable(self):
        config = BillingConfig(default_service_label="Service")
        assert decode_breakdown(None, 1000, {}, config=config).service_name == "Service"

    @pytest.mark.parametrize("final_price", [None, "3000", True])
    def test_non_numeric_final_price_is_zero(self, final_price):
        breakdown = decode_breakdown("圖騰小圖案", final_price, {"custom_addon": 200})
        assert breakdown.final_price == 0
        assert breakdown.service_price == 0

    def test_addons_above_final_price_clamp_service_price(self):
        breakdown = decode_breakdown("圖騰小圖案", 500, {"design_fee": 800})
        assert breakdown.addons_total == 800
        assert breakdown.service_price == 0

    def test_non_string_color_is_ignored(self):
        breakdown = decode_breakdown("圖騰小圖案-5", 1000, {"color": 5})
        assert breakdown.color is None
        assert breakdown.service_name == "圖騰小圖案-5"

    def test_huge_addon_amount_is_exact(self):
        breakdown = decode_breakdown("圖騰小圖案", 1000, {"custom_addon": "9" * 400})
        assert breakdown.custom_addon == 10 ** 400 - 1
        assert breakdown.addons_total == 10 ** 400 - 1
        assert breakdown.service_price == 0
