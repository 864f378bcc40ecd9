import pytest

from conftest import make_course
from schemas.api import SearchFilters
from services.filters import apply_filters
from services.pagination import paginate


@pytest.mark.parametrize(
    "total,page,per_page,expected",
    [
        (10, 1, 4, 4),
        (10, 3, 4, 2),
        (10, 4, 4, 0),
        (0, 1, 24, 0),
        (5, 1, 5, 5),
    ],
)
def test_page_length(total, page, per_page, expected):
    response = paginate(list(range(total)), page, per_page)

    assert len(response["results"]) == expected
    assert response["total"] == total
    assert response["page"] == page
    assert response["per_page"] == per_page


def test_page_slices_in_order():
    assert paginate(list("abcdefg"), 2, 3)["results"] == ["d", "e", "f"]


def test_invalid_page_rejected():
    with pytest.raises(ValueError):
        paginate([1, 2], 0, 10)
    with pytest.raises(ValueError):
        paginate([1, 2], 1, 0)


def _courses():
    return [
        make_course("a", "A", category="Cloud", level="Beginner", is_free=True),
        make_course("b", "B", category="Cloud", level="Advanced", is_free=False, price=30),
        make_course("c", "C", category="Design", level="Beginner", is_free=True),
    ]


def test_filters_are_conjunctive():
    filters = SearchFilters(category="Cloud", level="Beginner")
    assert [c.id for c in apply_filters(_courses(), filters)] == ["a"]


def test_is_free_accepts_string():
    filters = SearchFilters.model_validate({"is_free": "true"})
    assert filters.is_free is True
    assert [c.id for c in apply_filters(_courses(), filters)] == ["a", "c"]

    assert SearchFilters.model_validate({"is_free": "false"}).is_free is False
    assert SearchFilters.model_validate({"is_free": ""}).is_free is None


def test_is_free_rejects_garbage():
    with pytest.raises(ValueError):
        SearchFilters.model_validate({"is_free": "maybe"})


def test_blank_filters_do_not_filter():
    filters = SearchFilters(category="", level="  ")
    assert len(apply_filters(_courses(), filters)) == 3
    assert len(apply_filters(_courses(), None)) == 3
