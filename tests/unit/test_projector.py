import copy

from conftest import sample_tree

from p2j_service.conversion import PageProjection, project
from p2j_service.conversion.projector import project_field, project_text


def test_project_keeps_page_count_and_order() -> None:
    tree = sample_tree()
    tree["Pages"][1]["Width"] = 99

    pages = project(tree)

    assert len(pages) == 2
    assert [p.width for p in pages] == [38.25, 99]
    assert all(isinstance(p, PageProjection) for p in pages)


def test_project_without_pages_is_empty() -> None:
    assert project({"Pages": []}) == ()
    assert project({}) == ()


def test_empty_texts_and_fields_stay_lists() -> None:
    page = project(sample_tree())[1].to_dict()

    assert page["Texts"] == []
    assert page["Fields"] == []


def test_missing_texts_and_fields_keys_project_to_empty_lists() -> None:
    page = project({"Pages": [{"Width": 1, "Height": 2}]})[0].to_dict()

    assert page == {"Width": 1, "Height": 2, "Texts": [], "Fields": []}


def test_text_runs_are_decoded_trimmed_and_joined() -> None:
    text = project(sample_tree())[0].texts[0]

    assert text.text == "Form 1040EZ (2011)"
    assert text.to_dict() == {"x": 2.1, "y": 3.4, "w": 10.2, "text": "Form 1040EZ (2011)"}


def test_text_without_runs_has_no_text_key() -> None:
    assert "text" not in project_text({"x": 1, "y": 2, "w": 3}).to_dict()
    assert "text" not in project_text({"x": 1, "y": 2, "w": 3, "R": []}).to_dict()


def test_field_id_is_taken_from_identifier_object() -> None:
    fields = project(sample_tree())[0].fields

    assert fields[0].to_dict() == {"id": "f1", "x": 7, "y": 8, "w": 9, "value": "Alice"}
    assert "id" not in fields[1].to_dict()


def test_field_value_is_passed_through_unchanged() -> None:
    for value in ("Yes", 42, 3.5, False, None):
        assert project_field({"id": {"Id": "c"}, "V": value}).value == value


def test_projection_drops_unlisted_engine_keys() -> None:
    page = project(sample_tree())[0].to_dict()

    assert set(page) == {"Width", "Height", "Texts", "Fields"}
    assert set(page["Texts"][0]) == {"x", "y", "w", "text"}
    assert set(page["Fields"][0]) == {"id", "x", "y", "w", "value"}


def test_projection_does_not_modify_engine_output() -> None:
    tree = sample_tree()
    before = copy.deepcopy(tree)

    project(tree)

    assert tree == before
