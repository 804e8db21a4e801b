"""
Gap ledger tests.

Covers fixed-routine registration (splits, overlaps, fit failures), the
floating pool ordering, gap filling, forced placements and gap pruning.
Every mutation is followed by a check that gaps + placements + discarded
ranges still tile the segment exactly.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from segment_builder import (AddressRange, DecisionKind, FitError, GapLedger,
                             InternalInvariantError, OverlapError, Routine)


def _assert_partition(ledger: GapLedger):
    """gaps + placements + discarded must cover [lo, hi] with no hole or overlap."""
    spans = [(addr, addr + r.size) for addr, r in ledger.placements.items()]
    spans += [(addr, addr + size) for addr, size in ledger.gaps.items()]
    spans += [(addr, addr + size) for addr, size in ledger.discarded]
    spans.sort()
    pos = ledger.address_range.lo
    for start, end in spans:
        assert start == pos, f"hole or overlap at ${pos:04X} (next span starts ${start:04X})"
        pos = end
    assert pos == ledger.address_range.hi + 1


def _ledger(lo=0x1000, hi=0x10FF) -> GapLedger:
    return GapLedger(AddressRange(lo, hi))


# ─── Construction ─────────────────────

class TestConstruction:
    def test_single_initial_gap(self):
        ledger = _ledger()
        assert ledger.gaps == {0x1000: 256}
        assert ledger.placements == {}
        assert ledger.is_solved()

    def test_from_routines_registers_fixed_first(self):
        routines = [Routine("float", 8), Routine("fix", 16, fixed_address=0x1000)]
        ledger = GapLedger.from_routines(AddressRange(0x1000, 0x10FF), routines)
        assert ledger.placements[0x1000].label == "fix"
        assert [r.label for r in ledger.floating] == ["float"]
        assert ledger.gaps == {0x1010: 240}


# ─── Fixed routines ─────────────────────

class TestRegisterFixed:
    def test_split_in_the_middle(self):
        ledger = _ledger()
        r = Routine("mid", 0x20, fixed_address=0x1010)
        ledger.register_fixed(r)
        assert ledger.gaps == {0x1000: 0x10, 0x1030: 0xD0}
        assert ledger.placements == {0x1010: r}
        assert r.assigned_address == 0x1010
        kinds = [d.kind for d in ledger.trace]
        assert kinds == [DecisionKind.FIXED, DecisionKind.SPLIT, DecisionKind.SPLIT]
        _assert_partition(ledger)

    def test_at_gap_start_leaves_only_suffix(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("head", 16, fixed_address=0x1000))
        assert ledger.gaps == {0x1010: 240}
        _assert_partition(ledger)

    def test_at_gap_end_leaves_only_prefix(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("tail", 16, fixed_address=0x10F0))
        assert ledger.gaps == {0x1000: 240}
        _assert_partition(ledger)

    def test_whole_range(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("all", 256, fixed_address=0x1000))
        assert ledger.gaps == {}
        _assert_partition(ledger)

    def test_range_starting_at_zero(self):
        ledger = _ledger(0x0000, 0x00FF)
        ledger.register_fixed(Routine("zp", 0x10, fixed_address=0x0000))
        assert ledger.gaps == {0x0010: 0xF0}
        _assert_partition(ledger)

    def test_past_gap_end_raises_fit_error(self):
        ledger = _ledger()
        with pytest.raises(FitError) as exc:
            ledger.register_fixed(Routine("long", 17, fixed_address=0x10F0))
        assert exc.value.label == "long"
        assert exc.value.gap_address == 0x1000
        assert ledger.gaps == {0x1000: 256}
        assert ledger.placements == {}

    def test_runs_into_another_fixed_routine(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("second", 16, fixed_address=0x1020))
        with pytest.raises(FitError):
            ledger.register_fixed(Routine("first", 0x30, fixed_address=0x1000))

    def test_outside_range_raises_overlap_error(self):
        ledger = _ledger()
        with pytest.raises(OverlapError) as exc:
            ledger.register_fixed(Routine("far", 4, fixed_address=0x2000))
        assert exc.value.address == 0x2000

    def test_same_address_twice(self):
        """Second registration fails, the first stays intact."""
        ledger = GapLedger(AddressRange(0x0100, 0x01FF))
        first = Routine("first", 16, fixed_address=0x0100)
        ledger.register_fixed(first)
        gaps_before = dict(ledger.gaps)
        with pytest.raises(OverlapError) as exc:
            ledger.register_fixed(Routine("second", 8, fixed_address=0x0100))
        assert exc.value.label == "second"
        assert ledger.placements == {0x0100: first}
        assert first.assigned_address == 0x0100
        assert ledger.gaps == gaps_before
        _assert_partition(ledger)

    def test_inside_another_fixed_routine(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("a", 0x20, fixed_address=0x1000))
        with pytest.raises(OverlapError):
            ledger.register_fixed(Routine("b", 4, fixed_address=0x1010))


# ─── Floating pool ─────────────────────

class TestFloatingPool:
    def test_sorted_ascending(self):
        ledger = _ledger()
        for label, size in [("c", 30), ("a", 10), ("b", 20)]:
            ledger.add_routine(Routine(label, size))
        assert [r.size for r in ledger.floating] == [10, 20, 30]

    def test_equal_sizes_keep_registration_order(self):
        ledger = _ledger()
        for label in ["x", "y", "z"]:
            ledger.add_routine(Routine(label, 5))
        assert [r.label for r in ledger.floating] == ["x", "y", "z"]

    def test_is_solved_tracks_pool(self):
        ledger = _ledger()
        ledger.add_routine(Routine("a", 10))
        assert not ledger.is_solved()
        ledger.fill_gap(0x1000, list(ledger.floating))
        assert ledger.is_solved()


# ─── fill_gap ─────────────────────

class TestFillGap:
    def test_back_to_back_and_remainder_discarded(self):
        ledger = _ledger()
        a, b, c = Routine("a", 10), Routine("b", 20), Routine("c", 30)
        for r in (a, b, c):
            ledger.add_routine(r)
        ledger.fill_gap(0x1000, [a, b])
        assert a.assigned_address == 0x1000
        assert b.assigned_address == 0x100A
        assert ledger.gaps == {}
        assert ledger.discarded == [(0x101E, 226)]
        assert ledger.floating == [c]
        fill = ledger.trace.of_kind(DecisionKind.FILL)[0]
        assert fill.labels == ("a", "b")
        assert fill.detail == "filled in - dropped bytes: 226"
        _assert_partition(ledger)

    def test_exact_fill(self):
        ledger = _ledger(0x1000, 0x101F)
        a, b = Routine("a", 12), Routine("b", 20)
        ledger.add_routine(a)
        ledger.add_routine(b)
        ledger.fill_gap(0x1000, [a, b])
        assert ledger.discarded == []
        assert ledger.trace.of_kind(DecisionKind.FILL)[0].detail == "filled to the last byte"

    def test_last_routines_report_out_of_routines(self):
        ledger = _ledger()
        a = Routine("a", 12)
        ledger.add_routine(a)
        ledger.fill_gap(0x1000, [a])
        assert ledger.trace.of_kind(DecisionKind.FILL)[0].detail == "out of routines"

    def test_overflow_raises_and_leaves_ledger_untouched(self):
        ledger = _ledger(0x1000, 0x100F)
        a, b = Routine("a", 10), Routine("b", 10)
        ledger.add_routine(a)
        ledger.add_routine(b)
        with pytest.raises(InternalInvariantError):
            ledger.fill_gap(0x1000, [a, b])
        assert ledger.gaps == {0x1000: 16}
        assert ledger.placements == {}
        assert len(ledger.floating) == 2
        assert a.assigned_address is None

    def test_unknown_gap(self):
        ledger = _ledger()
        with pytest.raises(InternalInvariantError):
            ledger.fill_gap(0x1001, [])

    def test_routine_not_in_pool(self):
        ledger = _ledger()
        with pytest.raises(InternalInvariantError):
            ledger.fill_gap(0x1000, [Routine("stranger", 4)])

    def test_same_routine_twice(self):
        ledger = _ledger()
        a = Routine("a", 4)
        ledger.add_routine(a)
        with pytest.raises(InternalInvariantError):
            ledger.fill_gap(0x1000, [a, a])


# ─── Forced placements ─────────────────────

class TestObviousSteps:
    def _two_gaps(self) -> GapLedger:
        # gaps: $1000 (64 bytes) and $1050 (176 bytes)
        ledger = _ledger()
        ledger.register_fixed(Routine("fix", 0x10, fixed_address=0x1040))
        return ledger

    def test_single_candidate_goes_to_gap_tail(self):
        ledger = self._two_gaps()
        big = Routine("big", 100)
        small = Routine("small", 30)
        ledger.add_routine(big)
        ledger.add_routine(small)
        assert ledger.perform_obvious_steps() == 1
        assert big.assigned_address == 0x1050 + 76
        assert ledger.gaps == {0x1000: 64, 0x1050: 76}
        assert ledger.floating == [small]
        forced = ledger.trace.of_kind(DecisionKind.FORCED)
        assert [d.labels for d in forced] == [("big",)]
        _assert_partition(ledger)

    def test_gap_consumed_completely_is_removed(self):
        ledger = self._two_gaps()
        r = Routine("exact", 176)
        ledger.add_routine(r)
        ledger.perform_obvious_steps()
        assert r.assigned_address == 0x1050
        assert ledger.gaps == {0x1000: 64}
        _assert_partition(ledger)

    def test_chain_of_forced_placements(self):
        ledger = self._two_gaps()
        for label, size in [("a", 100), ("b", 70), ("c", 6)]:
            ledger.add_routine(Routine(label, size))
        # 100 -> gap $1050 (76 left); 70 -> gap $1050 (6 left); 6 fits both gaps
        assert ledger.perform_obvious_steps() == 2
        assert ledger.gaps == {0x1000: 64, 0x1050: 6}
        assert [r.label for r in ledger.floating] == ["c"]

    def test_ambiguous_largest_routine_stops(self):
        ledger = self._two_gaps()
        ledger.add_routine(Routine("mid", 50))
        assert ledger.perform_obvious_steps() == 0
        assert ledger.gaps == {0x1000: 64, 0x1050: 176}

    def test_no_candidate_stops(self):
        ledger = self._two_gaps()
        ledger.add_routine(Routine("huge", 200))
        assert ledger.perform_obvious_steps() == 0


# ─── Gap pruning ─────────────────────

class TestRemoveUselessGaps:
    def test_drops_gaps_smaller_than_smallest_routine(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("fix", 0x10, fixed_address=0x1040))
        ledger.add_routine(Routine("r", 100))
        assert ledger.remove_useless_gaps() == 1
        assert ledger.gaps == {0x1050: 176}
        assert ledger.discarded == [(0x1000, 64)]
        assert min(ledger.gaps.values()) >= ledger.floating[0].size
        _assert_partition(ledger)

    def test_gap_equal_to_smallest_routine_survives(self):
        ledger = _ledger()
        ledger.register_fixed(Routine("fix", 0x10, fixed_address=0x1040))
        ledger.add_routine(Routine("r", 64))
        assert ledger.remove_useless_gaps() == 0
        assert 0x1000 in ledger.gaps

    def test_empty_pool_keeps_gaps(self):
        ledger = _ledger()
        assert ledger.remove_useless_gaps() == 0
        assert ledger.gaps == {0x1000: 256}


# ─── Observer ─────────────────────

class TestObserver:
    def test_observer_sees_every_decision(self):
        seen = []
        ledger = GapLedger(AddressRange(0x1000, 0x10FF), observer=seen.append)
        ledger.register_fixed(Routine("fix", 0x10, fixed_address=0x1040))
        assert seen == ledger.trace.decisions
        assert seen[0].labels == ("fix",)
