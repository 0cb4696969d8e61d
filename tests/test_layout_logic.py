import itertools

import pytest

from scoresplit.domain.models import PageDimension, Staff, System
from scoresplit.features.detection.models import PixelBoundary, SystemDetection
from scoresplit.features.layout.logic import (
    add_staff_at_position,
    apply_separator_drag,
    apply_system_labels_to_all,
    build_page_records,
    compute_separators,
    derive_parts_from_staffs,
    document_to_pixel_y,
    get_page_systems,
    get_scale,
    get_system_ordinal,
    group_by_system,
    merge_staffs,
    pixel_to_document_y,
    split_staff_at_position,
    staffs_match_systems,
)
from scoresplit.features.layout.validation import (
    validate_duplicate_labels_in_systems,
    validate_label_completeness,
    validate_label_consistency,
    validate_staff_count_consistency,
)


def _ids():
    counter = itertools.count()
    return lambda: f"id{next(counter)}"


def _staff(sid, system_id, top, bottom, label="", page=0):
    return Staff(sid, page, top, bottom, label, system_id)


# --- Coordinates ---


def test_scale_and_conversion():
    scale = get_scale(144)
    assert scale == 2.0
    assert pixel_to_document_y(0, 792, scale) == 792
    assert pixel_to_document_y(200, 792, scale) == 692
    assert document_to_pixel_y(692, 792, scale) == 200


def test_conversion_is_reversible():
    scale = get_scale(150)
    for px in (0, 17, 333, 1649):
        doc = pixel_to_document_y(px, 792, scale)
        assert document_to_pixel_y(doc, 792, scale) == pytest.approx(px)


def test_build_page_records_links_staffs_to_systems():
    detections = (
        SystemDetection(144, 432, (PixelBoundary(144, 288), PixelBoundary(300, 432))),
        SystemDetection(600, 700, (PixelBoundary(600, 700),)),
    )
    systems, staffs = build_page_records(
        detections, 1, PageDimension(612, 792), get_scale(144), id_factory=_ids()
    )

    assert [s.id for s in systems] == ["id0", "id3"]
    assert systems[0] == System("id0", 1, 720.0, 576.0)
    assert [s.system_id for s in staffs] == ["id0", "id0", "id3"]
    assert staffs[0].top == 720.0 and staffs[0].bottom == 648.0
    assert all(s.page_index == 1 and s.label == "" for s in staffs)
    assert all(s.top > s.bottom for s in staffs)
    assert staffs_match_systems(staffs, systems)


# --- Queries ---


def test_page_systems_in_reading_order():
    systems = [
        System("low", 0, 300, 200),
        System("other", 1, 900, 800),
        System("high", 0, 700, 600),
    ]
    assert [s.id for s in get_page_systems(systems, 0)] == ["high", "low"]
    assert get_system_ordinal(systems, 0, "low") == 1
    assert get_system_ordinal(systems, 0, "other") == -1


def test_staffs_match_systems():
    systems = [System("s1", 0, 700, 600)]
    assert not staffs_match_systems([], systems)
    assert staffs_match_systems([_staff("a", "s1", 700, 650)], systems)
    assert not staffs_match_systems([_staff("a", "missing", 700, 650)], systems)
    assert not staffs_match_systems([_staff("a", "s1", 700, 650, page=1)], systems)


def test_group_by_system_sorts_top_down():
    staffs = [_staff("b", "s1", 640, 600), _staff("a", "s1", 700, 650)]
    assert [s.id for s in group_by_system(staffs)["s1"]] == ["a", "b"]


def test_apply_system_labels_to_all():
    staffs = [
        _staff("t1", "s1", 700, 650, "Violin"),
        _staff("t2", "s1", 640, 600, "Cello"),
        _staff("o2", "s2", 340, 300),
        _staff("o1", "s2", 400, 350),
        _staff("o3", "s2", 290, 250, "Keep"),
    ]
    result = {s.id: s.label for s in apply_system_labels_to_all(staffs, "s1")}
    assert result == {"t1": "Violin", "t2": "Cello", "o1": "Violin", "o2": "Cello", "o3": "Keep"}


def test_apply_labels_with_unknown_template_changes_nothing():
    staffs = (_staff("a", "s1", 700, 650, "x"),)
    assert apply_system_labels_to_all(staffs, "nope") == staffs


def test_derive_parts_in_reading_order():
    systems = [System("s1", 0, 700, 500), System("s2", 0, 400, 200), System("s3", 1, 700, 500)]
    staffs = [
        _staff("c3", "s3", 600, 500, "Cello", page=1),
        _staff("v2", "s2", 400, 300, "Violin"),
        _staff("c1", "s1", 600, 500, "Cello"),
        _staff("v1", "s1", 700, 600, "Violin"),
        _staff("u", "s2", 300, 200),
    ]
    parts = derive_parts_from_staffs(staffs, systems)

    assert [p.label for p in parts] == ["Violin", "Cello"]
    assert [s.id for s in parts[0].staffs] == ["v1", "v2"]
    assert [s.id for s in parts[1].staffs] == ["c1", "c3"]


# --- Manual edits ---


def test_add_staff_centers_and_clamps():
    added = add_staff_at_position((), 0, 400, 792, id_factory=lambda: "n")
    assert (added[0].top, added[0].bottom) == (425, 375)

    near_top = add_staff_at_position((), 0, 790, 792, id_factory=lambda: "n")
    assert (near_top[0].top, near_top[0].bottom) == (792, 742)

    near_bottom = add_staff_at_position((), 0, 5, 792, id_factory=lambda: "n")
    assert (near_bottom[0].top, near_bottom[0].bottom) == (50, 0)


def test_split_keeps_id_on_upper_half():
    staffs = (_staff("a", "s1", 700, 600, "Horn"), _staff("b", "s1", 590, 500))
    result = split_staff_at_position(staffs, "a", 650, id_factory=lambda: "new")

    assert [s.id for s in result] == ["a", "new", "b"]
    assert (result[0].top, result[0].bottom) == (700, 650)
    assert (result[1].top, result[1].bottom) == (650, 600)
    assert result[1].label == "Horn" and result[1].system_id == "s1"


def test_split_is_clamped_to_minimum_height():
    staffs = (_staff("a", "s1", 700, 600),)
    result = split_staff_at_position(staffs, "a", 699, id_factory=lambda: "new")
    assert result[0].bottom == 690
    assert split_staff_at_position(staffs, "zz", 650) == staffs


def test_merge_staffs():
    staffs = (_staff("a", "s1", 700, 650), _staff("b", "s1", 640, 600), _staff("c", "s1", 590, 550))
    result = merge_staffs(staffs, "a", "b")
    assert [s.id for s in result] == ["a", "c"]
    assert (result[0].top, result[0].bottom) == (700, 600)
    assert merge_staffs(staffs, "a", "missing") == staffs


def test_separators_and_drag():
    a, b = _staff("a", "s1", 700, 650), _staff("b", "s1", 640, 600)
    separators = compute_separators([b, a])

    assert [(s.kind, s.y) for s in separators] == [("edge", 700), ("part", 645), ("edge", 600)]
    assert separators[1].staff_above_id == "a" and separators[1].staff_below_id == "b"
    assert compute_separators([]) == []

    moved = apply_separator_drag((a, b), (a, b), 1, 620)
    assert moved[0].bottom == 620 and moved[1].top == 620

    clamped = apply_separator_drag((a, b), (a, b), 0, 640)
    assert clamped[0].top == 660 and clamped[0].bottom == 650
    assert clamped[1] is b

    assert apply_separator_drag((a, b), (a, b), 7, 10) == (a, b)


def test_edge_drag_respects_min_height():
    a = _staff("a", "s1", 700, 650)
    moved = apply_separator_drag((a,), (a,), 1, 699, min_height=10)
    assert moved[0].bottom == 690


# --- Validation ---


def test_staff_count_consistency():
    staffs = [
        _staff("a1", "s1", 700, 650), _staff("a2", "s1", 640, 600),
        _staff("b1", "s2", 500, 450), _staff("b2", "s2", 440, 400),
        _staff("c1", "s3", 300, 250, page=1),
    ]
    report = validate_staff_count_consistency(staffs)
    assert report.expected_count == 2
    assert not report.is_consistent
    assert [(m.system_id, m.page_index, m.count) for m in report.mismatches] == [("s3", 1, 1)]

    empty = validate_staff_count_consistency([])
    assert empty.is_consistent and empty.expected_count is None


def test_staff_count_tie_prefers_larger():
    staffs = [_staff("a1", "s1", 700, 650), _staff("b1", "s2", 500, 450), _staff("b2", "s2", 440, 400)]
    assert validate_staff_count_consistency(staffs).expected_count == 2


def test_label_checks():
    staffs = [
        _staff("a1", "s1", 700, 650, "Flute"),
        _staff("a2", "s1", 640, 600, "Oboe"),
        _staff("b1", "s2", 500, 450, "Flute"),
        _staff("b2", "s2", 440, 400, "Flute"),
        _staff("c1", "s3", 300, 250),
    ]
    completeness = validate_label_completeness(staffs)
    assert (completeness.unlabeled_count, completeness.total_count) == (1, 5)

    dupes = validate_duplicate_labels_in_systems(staffs)
    assert [(d.system_id, d.duplicate_labels) for d in dupes] == [("s2", ("Flute",))]

    consistency = validate_label_consistency(staffs)
    assert consistency.expected_labels == ("Flute", "Oboe")
    assert [m.system_id for m in consistency.mismatches] == ["s2", "s3"]
    assert validate_label_consistency([]).is_consistent
