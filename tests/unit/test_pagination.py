"""Tests for vendor page-count resolution and listing completeness."""

from solarsync_engine.vendors.pagination import is_last_page, resolve_page_count


class TestResolvePageCount:
    def test_pages_derived_from_total_when_reported_zero(self):
        assert resolve_page_count(total=250, pages=0, page_size=100, max_pages=500) == 3

    def test_reported_pages_used_when_positive(self):
        assert resolve_page_count(total=250, pages=4, page_size=100, max_pages=500) == 4

    def test_exact_multiple(self):
        assert resolve_page_count(total=200, pages=0, page_size=100, max_pages=500) == 2

    def test_empty_listing(self):
        assert resolve_page_count(total=0, pages=0, page_size=100, max_pages=500) == 0
        assert resolve_page_count(total=None, pages=None, page_size=100, max_pages=500) == 0

    def test_capped_at_max_pages(self):
        assert resolve_page_count(total=10_000, pages=0, page_size=10, max_pages=5) == 5

    def test_negative_pages_floor_at_zero(self):
        assert resolve_page_count(total=0, pages=-1, page_size=100, max_pages=500) == 0


class TestIsLastPage:
    def test_empty_page_ends_listing(self):
        assert is_last_page(0, 100, total=250, page_size=100) is True

    def test_total_not_yet_reached(self):
        assert is_last_page(100, 200, total=250, page_size=100) is False

    def test_total_reached(self):
        assert is_last_page(50, 250, total=250, page_size=100) is True

    def test_short_pages_do_not_end_listing_before_total(self):
        # Vendor serves 50 per page although 100 were asked for
        assert is_last_page(50, 50, total=120, page_size=100) is False

    def test_short_page_ends_listing_without_total(self):
        assert is_last_page(30, 130, total=None, page_size=100) is True
        assert is_last_page(100, 100, total=0, page_size=100) is False
