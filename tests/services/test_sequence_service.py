"""SequenceService: locked counters and document numbers."""

from datetime import datetime, timezone

from retail_kernel.domain.numbering import build_formats


class TestNextValue:
    def test_starts_at_one(self, sequence_service):
        assert sequence_service.next_value("widgets") == 1

    def test_monotonic(self, sequence_service):
        values = [sequence_service.next_value("widgets") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_counters_are_independent(self, sequence_service):
        sequence_service.next_value("a")
        sequence_service.next_value("a")
        assert sequence_service.next_value("b") == 1

    def test_current_value(self, sequence_service):
        assert sequence_service.current_value("unused") is None
        sequence_service.next_value("used")
        assert sequence_service.current_value("used") == 1

    def test_reset_continues_from_value(self, sequence_service):
        sequence_service.reset("legacy", 41)
        assert sequence_service.next_value("legacy") == 42


class TestNextNumber:
    def test_yearly_number(self, sequence_service):
        fmt = build_formats()["purchase_order"]
        assert sequence_service.next_number(fmt) == "OC-2024-0001"
        assert sequence_service.next_number(fmt) == "OC-2024-0002"

    def test_new_year_restarts_yearly_counter(self, sequence_service, deterministic_clock):
        fmt = build_formats()["supplier_invoice"]
        sequence_service.next_number(fmt)
        sequence_service.next_number(fmt)
        deterministic_clock.set_time(datetime(2025, 1, 2, tzinfo=timezone.utc))
        assert sequence_service.next_number(fmt) == "NF-FOR-2025-0001"

    def test_plain_counter_ignores_year(self, sequence_service, deterministic_clock):
        fmt = build_formats()["sales_invoice"]
        sequence_service.next_number(fmt)
        deterministic_clock.set_time(datetime(2025, 1, 2, tzinfo=timezone.utc))
        assert sequence_service.next_number(fmt) == "FAT-000002"
