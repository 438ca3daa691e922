"""Document number templates and counter naming."""

import pytest

from retail_kernel.domain.numbering import (
    DEFAULT_TEMPLATES,
    DocumentNumberFormat,
    build_formats,
)


class TestDocumentNumberFormat:
    @pytest.mark.parametrize(
        "counter, seq, year, expected",
        [
            ("purchase_order", 7, 2026, "OC-2026-0007"),
            ("supplier_invoice", 12, 2025, "NF-FOR-2025-0012"),
            ("sales_invoice", 123, 2026, "FAT-000123"),
            ("service_order", 1, 2026, "OS-0001"),
        ],
    )
    def test_default_formats(self, counter, seq, year, expected):
        assert build_formats()[counter].render(seq=seq, year=year) == expected

    def test_yearly_formats_use_one_counter_per_year(self):
        fmt = build_formats()["purchase_order"]
        assert fmt.yearly
        assert fmt.counter_name(2025) == "purchase_order:2025"
        assert fmt.counter_name(2025) != fmt.counter_name(2026)

    def test_plain_formats_share_one_counter(self):
        fmt = build_formats()["sales_invoice"]
        assert not fmt.yearly
        assert fmt.counter_name(2025) == fmt.counter_name(2026) == "sales_invoice"

    def test_template_without_seq_rejected(self):
        with pytest.raises(ValueError):
            DocumentNumberFormat("sales_invoice", "FAT-{year}")

    def test_overrides_merge_with_defaults(self):
        formats = build_formats({"sales_invoice": "V-{seq:05d}"})
        assert formats["sales_invoice"].render(seq=3, year=2026) == "V-00003"
        assert set(formats) == set(DEFAULT_TEMPLATES)

    def test_seq_wider_than_padding_is_not_truncated(self):
        assert build_formats()["service_order"].render(seq=12345, year=2026) == "OS-12345"
