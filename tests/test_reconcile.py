"""Tests for per-platform reconciliation of sub-scrape batches."""

from freegames.core.reconcile import MergeAccumulator, reconcile
from freegames.models.game import Platform


class TestMergeAccumulator:

    def test_duplicate_titles_union_set_fields(self, sample_listing):
        accumulator = MergeAccumulator()
        accumulator.add(sample_listing("Hades", tags={"top-pick"}, categories={"Action"}, features={"Single Player"}))
        accumulator.add(sample_listing("Hades", tags={"highly-discounted", "90%-off"}, categories={"Roguelike"},
                                       features={"Controller Support"}))

        merged = accumulator.listings()
        assert len(merged) == 1
        assert merged[0]['tags'] == {"top-pick", "highly-discounted", "90%-off"}
        assert merged[0]['categories'] == {"Action", "Roguelike"}
        assert merged[0]['features'] == {"Single Player", "Controller Support"}

    def test_first_seen_wins_for_scalar_fields(self, sample_listing):
        accumulator = MergeAccumulator()
        accumulator.add(sample_listing("Hades", link="https://store/hades", price="Free", image="first.jpg"))
        accumulator.add(sample_listing("Hades", link="https://store/hades-2", price="$2.49", image="second.jpg",
                                       discount_percent=90))

        merged = accumulator.listings()[0]
        assert merged['link'] == "https://store/hades"
        assert merged['price'] == "Free"
        assert merged['image'] == "first.jpg"
        assert merged['discount_percent'] is None

    def test_titles_are_case_sensitive(self, sample_listing):
        accumulator = MergeAccumulator()
        accumulator.extend([sample_listing("HADES"), sample_listing("Hades")])
        assert len(accumulator.listings()) == 2

    def test_inputs_are_not_mutated(self, sample_listing):
        first = sample_listing("Hades", tags={"top-pick"})
        accumulator = MergeAccumulator()
        accumulator.extend([first, sample_listing("Hades", tags={"budget"})])
        assert first['tags'] == {"top-pick"}

    def test_tag_counts(self, sample_listing):
        accumulator = MergeAccumulator()
        accumulator.extend([
            sample_listing("A", tags={"always-free"}),
            sample_listing("B", tags={"always-free", "drm-free"}),
        ])
        assert accumulator.tag_counts() == {"always-free": 2, "drm-free": 1}


class TestReconcile:

    def test_order_is_first_seen_across_batches(self, sample_listing):
        result = reconcile([
            [sample_listing("B", platform=Platform.GOG), sample_listing("A", platform=Platform.GOG)],
            [sample_listing("C", platform=Platform.GOG), sample_listing("A", platform=Platform.GOG, tags={"x"})],
        ])
        assert [listing['title'] for listing in result.listings] == ["B", "A", "C"]
        assert result.input_count == 4
        assert result.duplicates_merged == 1

    def test_each_call_starts_empty(self, sample_listing):
        reconcile([[sample_listing("A")]])
        second = reconcile([[sample_listing("B")]])
        assert [listing['title'] for listing in second.listings] == ["B"]

    def test_empty_batches(self):
        result = reconcile([])
        assert result.listings == []
        assert result.tag_counts == {}
