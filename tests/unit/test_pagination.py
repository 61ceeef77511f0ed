import pytest

from shortener.errors import ValidationError
from shortener.pagination import Filters, calculate_metadata, resolve_sort

SAFELIST = ("id", "name", "created_at", "updated_at")


def test_metadata_for_partial_last_page():
    metadata = calculate_metadata(total=95, page=3, page_size=20)

    assert metadata.first_page == 1
    assert metadata.last_page == 5
    assert metadata.current_page == 3
    assert metadata.page_size == 20
    assert metadata.total_records == 95


def test_metadata_for_empty_result():
    metadata = calculate_metadata(total=0, page=1, page_size=20)
    assert metadata.first_page == 1
    assert metadata.last_page == 1
    assert metadata.total_records == 0


def test_metadata_does_not_clamp_current_page():
    metadata = calculate_metadata(total=10, page=9, page_size=5)
    assert metadata.last_page == 2
    assert metadata.current_page == 9


def test_resolve_sort_ascending_and_descending():
    assert resolve_sort("name", SAFELIST) == ("name", "ASC")
    assert resolve_sort("-created_at", SAFELIST) == ("created_at", "DESC")


@pytest.mark.parametrize("bad_sort", ["destination", "-version", "name; DROP TABLE links", "-", "", "--name"])
def test_resolve_sort_rejects_keys_outside_allow_list(bad_sort):
    with pytest.raises(ValidationError) as excinfo:
        resolve_sort(bad_sort, SAFELIST)
    assert "sort" in excinfo.value.errors


def test_filters_limit_and_offset():
    filters = Filters(page=3, page_size=20, sort="id", sort_safelist=SAFELIST)
    assert filters.limit == 20
    assert filters.offset == 40


def test_filters_validate_returns_resolved_sort():
    filters = Filters(page=1, page_size=10, sort="-name", sort_safelist=SAFELIST)
    assert filters.validate() == ("name", "DESC")


def test_filters_validate_collects_all_errors():
    filters = Filters(page=0, page_size=101, sort="nope", sort_safelist=SAFELIST)

    with pytest.raises(ValidationError) as excinfo:
        filters.validate()

    assert set(excinfo.value.errors) == {"page", "page_size", "sort"}


@pytest.mark.parametrize("page", [-1, 0, 10_000_001])
def test_filters_page_bounds(page):
    with pytest.raises(ValidationError):
        Filters(page=page, sort_safelist=SAFELIST).validate()
