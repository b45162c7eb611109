"""
Tests for per-listing delivery state.
"""

from kufar_notifier.components.delivery_state_tracker import DeliveryStateTracker


class TestDeliveryStateTracker:
    """Test cases for DeliveryStateTracker."""

    def test_new_listing_should_be_sent(self, store):
        tracker = DeliveryStateTracker(store)

        assert tracker.should_send("1001", "100") is True
        assert tracker.record_for("1001").has_sent_to == {}

    def test_sent_listing_is_skipped(self, store, sample_listing):
        tracker = DeliveryStateTracker(store)

        tracker.mark_sent(sample_listing.kufar_id, "100", sample_listing)

        assert tracker.should_send(sample_listing.kufar_id, "100") is False

    def test_other_recipients_still_receive(self, store, sample_listing):
        tracker = DeliveryStateTracker(store)

        tracker.mark_sent(sample_listing.kufar_id, "100", sample_listing)

        assert tracker.should_send(sample_listing.kufar_id, "200") is True

    def test_mark_sent_keeps_earlier_recipients(self, store, sample_listing):
        tracker = DeliveryStateTracker(store)

        tracker.mark_sent(sample_listing.kufar_id, "100", sample_listing)
        record = tracker.mark_sent(sample_listing.kufar_id, "200", sample_listing)

        assert record.was_sent_to("100")
        assert record.was_sent_to("200")

    def test_listing_document_is_persisted(self, store, sample_listing):
        DeliveryStateTracker(store).mark_sent(sample_listing.kufar_id, "100", sample_listing)

        document = store.get_listing_document(sample_listing.kufar_id)

        assert document["kufar_id"] == sample_listing.kufar_id
        assert document["ad_link"] == sample_listing.ad_link
        assert "ad_id" not in document
