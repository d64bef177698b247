"""Tests for CarryForwardResolver: latest bucket at or before T, never after."""

from datetime import datetime, timezone
from decimal import Decimal

from vaultnav.valuation.carry_forward import CarryForwardResolver


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


T0 = _utc(2024, 1, 1, 0)
T1 = _utc(2024, 1, 1, 1)
T2 = _utc(2024, 1, 1, 2)
T3 = _utc(2024, 1, 1, 3)


class TestResolve:
    """Single-asset resolution."""

    def test_exact_bucket(self) -> None:
        resolver = CarryForwardResolver({"SOL": {T1: Decimal("100")}})
        assert resolver.resolve("SOL", T1) == Decimal("100")

    def test_carries_forward_latest_earlier_bucket(self) -> None:
        resolver = CarryForwardResolver({"SOL": {T0: Decimal("100"), T1: Decimal("105")}})
        assert resolver.resolve("SOL", T3) == Decimal("105")

    def test_no_data_before_bucket(self) -> None:
        resolver = CarryForwardResolver({"SOL": {T2: Decimal("100")}})
        assert resolver.resolve("SOL", T1) is None

    def test_unknown_asset(self) -> None:
        resolver = CarryForwardResolver({"SOL": {T0: Decimal("100")}})
        assert resolver.resolve("BONK", T3) is None

    def test_never_looks_ahead(self) -> None:
        """Adding later data never changes the price resolved for an earlier bucket."""
        before = CarryForwardResolver({"SOL": {T0: Decimal("100")}})
        after = CarryForwardResolver({"SOL": {T0: Decimal("100"), T2: Decimal("999")}})
        assert before.resolve("SOL", T1) == after.resolve("SOL", T1) == Decimal("100")

    def test_zero_price_resolves(self) -> None:
        resolver = CarryForwardResolver({"DEAD": {T0: Decimal("0")}})
        assert resolver.resolve("DEAD", T1) == Decimal("0")


class TestBucketsAndResolveAll:
    """Bucket union and multi-asset resolution."""

    def test_bucket_timestamps_union_sorted(self) -> None:
        resolver = CarryForwardResolver(
            {
                "SOL": {T2: Decimal("1"), T0: Decimal("1")},
                "USDC": {T1: Decimal("1"), T0: Decimal("1")},
            }
        )
        assert resolver.bucket_timestamps() == [T0, T1, T2]

    def test_resolve_all_omits_unresolved(self) -> None:
        resolver = CarryForwardResolver(
            {"SOL": {T0: Decimal("100")}, "USDC": {T2: Decimal("1")}}
        )
        assert resolver.resolve_all(["SOL", "USDC"], T1) == {"SOL": Decimal("100")}
        assert resolver.resolve_all(["SOL", "USDC"], T2) == {
            "SOL": Decimal("100"),
            "USDC": Decimal("1"),
        }

    def test_empty(self) -> None:
        resolver = CarryForwardResolver({})
        assert resolver.bucket_timestamps() == []
        assert resolver.resolve_all(["SOL"], T0) == {}
