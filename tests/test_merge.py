from conftest import make_course
from services.merge import merge_courses


def test_base_record_wins_over_external_duplicate():
    base = [make_course("c1", "Intro to ML", avg_rating=4, review_count=10, is_free=True)]
    external = [make_course("c1", "Different Title"), make_course("c2", "Advanced ML")]

    merged = merge_courses(base, external)

    assert [c.id for c in merged] == ["c1", "c2"]
    assert merged[0].title == "Intro to ML"
    assert merged[0].is_free is True


def test_identity_falls_back_to_slug():
    base = [make_course(None, "Base", slug="shared-slug")]
    external = [make_course(None, "External", slug="shared-slug"), make_course(None, "Other", slug="other")]

    merged = merge_courses(base, external)

    assert [c.title for c in merged] == ["Base", "Other"]
    assert merged[0].identity_key == "shared-slug"


def test_courses_without_identity_are_always_kept():
    nameless = [make_course(None, "A"), make_course(None, "B")]
    merged = merge_courses(nameless, [make_course(None, "C")])
    assert [c.title for c in merged] == ["A", "B", "C"]


def test_duplicates_inside_one_source_are_dropped_keeping_first():
    external = [make_course("x", "first"), make_course("x", "second"), make_course("y", "third")]
    merged = merge_courses([], external)
    assert [c.title for c in merged] == ["first", "third"]


def test_no_two_merged_courses_share_a_key():
    base = [make_course(f"k{i % 4}", f"base-{i}") for i in range(8)]
    external = [make_course(f"k{i % 6}", f"ext-{i}") for i in range(12)]

    merged = merge_courses(base, external)
    keys = [c.identity_key for c in merged]

    assert len(keys) == len(set(keys))
    for course in merged:
        if course.id in {"k0", "k1", "k2", "k3"}:
            assert course.title.startswith("base-")
    # order preserved: base keys first, then external-only keys in arrival order
    assert keys == ["k0", "k1", "k2", "k3", "k4", "k5"]
