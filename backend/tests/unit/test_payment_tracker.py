"""
Unit tests for the payment commitment tracker.

WHAT: Commitment parsing, agreement lifecycle, totals
WHY: Agreements are the record of what counterparties committed to
HOW: Tracker over an in-memory key-value store
"""

import pytest

from yield_garden.models.garden import PaymentStatus
from yield_garden.services.payment_tracker import PaymentTracker, parse_commitment_confirmation


@pytest.mark.unit
class TestParseCommitment:
    
    def test_agreement_with_amount(self):
        result = parse_commitment_confirmation("I agree to pay 25 USDC")
        assert result.confirmed is True
        assert result.amount == 25.0
    
    def test_usd_suffix_and_confirm(self):
        result = parse_commitment_confirmation("Confirmed, 12.5 usd")
        assert result.confirmed is True
        assert result.amount == 12.5
    
    def test_affirmation_without_amount(self):
        result = parse_commitment_confirmation("I will pay")
        assert result.confirmed is True
        assert result.amount is None
    
    def test_amount_without_affirmation(self):
        result = parse_commitment_confirmation("maybe 10 USDC")
        assert result.confirmed is False
        assert result.amount == 10.0
    
    def test_empty_text(self):
        result = parse_commitment_confirmation("")
        assert result.confirmed is False
        assert result.amount is None
    
    def test_thousands_separator(self):
        result = parse_commitment_confirmation("I agree to pay 1,000 USDC")
        assert result.confirmed is True
        assert result.amount == 1000.0
    
    @pytest.mark.parametrize("text", [
        "I agree to pay 0 USDC",
        "I agree to pay 10000 USDC",
        "I agree to pay 10,000 USDC",
    ])
    def test_out_of_range_amount_is_absent(self, text):
        result = parse_commitment_confirmation(text)
        assert result.confirmed is True
        assert result.amount is None


@pytest.mark.unit
class TestAgreementLifecycle:
    
    def test_record_creates_pending(self, tracker):
        agreement = tracker.record_agreement("dm:a:b", 25.0, "Garden contribution", "0xUser")
        assert agreement.status == PaymentStatus.PENDING
        assert agreement.id.startswith("dm:a:b-")
        assert tracker.get_agreement(agreement.id) == agreement
    
    def test_ids_unique_within_thread(self, tracker):
        first = tracker.record_agreement("t1", 5.0, "a", "0xUser")
        second = tracker.record_agreement("t1", 5.0, "b", "0xUser")
        assert first.id != second.id
        assert len(tracker.list_by_thread("t1")) == 2
    
    def test_forward_transitions_stamp_times(self, tracker):
        agreement = tracker.record_agreement("t1", 25.0, "a", "0xUser")
        
        committed = tracker.mark_committed(agreement.id)
        assert committed.status == PaymentStatus.COMMITTED
        assert committed.committed_at is not None
        
        started = tracker.mark_work_started(agreement.id)
        assert started.status == PaymentStatus.IN_PROGRESS
        assert started.work_started_at is not None
        
        completed = tracker.mark_completed(agreement.id)
        assert completed.status == PaymentStatus.COMPLETED
        assert completed.completed_at is not None
    
    def test_backward_transition_is_ignored(self, tracker):
        agreement = tracker.record_agreement("t1", 25.0, "a", "0xUser")
        tracker.mark_committed(agreement.id)
        tracker.mark_work_started(agreement.id)
        
        result = tracker.mark_committed(agreement.id)
        assert result.status == PaymentStatus.IN_PROGRESS
        assert tracker.get_agreement(agreement.id).status == PaymentStatus.IN_PROGRESS
    
    def test_skipping_ahead_is_allowed(self, tracker):
        agreement = tracker.record_agreement("t1", 25.0, "a", "0xUser")
        assert tracker.mark_work_started(agreement.id).status == PaymentStatus.IN_PROGRESS
    
    def test_unknown_id_returns_none(self, tracker):
        assert tracker.mark_committed("missing") is None
        assert tracker.get_agreement("missing") is None
    
    def test_total_committed_excludes_pending(self, tracker):
        pending = tracker.record_agreement("t1", 100.0, "a", "0xA")
        committed = tracker.record_agreement("t2", 25.0, "b", "0xB")
        started = tracker.record_agreement("t3", 5.0, "c", "0xC")
        tracker.mark_committed(committed.id)
        tracker.mark_work_started(started.id)
        
        assert tracker.get_agreement(pending.id).status == PaymentStatus.PENDING
        assert tracker.total_committed() == pytest.approx(30.0)
    
    def test_agreements_survive_new_tracker(self, kv, tracker):
        agreement = tracker.record_agreement("t1", 25.0, "a", "0xUser")
        tracker.mark_committed(agreement.id)
        
        reopened = PaymentTracker(kv)
        assert reopened.get_agreement(agreement.id).status == PaymentStatus.COMMITTED
        assert [a.id for a in reopened.list_agreements()] == [agreement.id]
