from __future__ import annotations

from klarity.catalog import find_act, load_reference_table, search_acts, suggest_acts
from klarity.domain.constants import CATEGORY_CHOICES


def _codes(acts):
    return [a.code for a in acts]


def test_reference_table_loads_unique_codes_and_known_categories():
    table = load_reference_table()
    codes = _codes(table)
    assert len(codes) == len(set(codes))
    assert "HBLD038" in codes
    assert all(a.category in CATEGORY_CHOICES for a in table)
    assert load_reference_table() is table  # cached


def test_find_act_exact_code():
    crown = find_act("HBLD038")
    assert crown is not None
    assert crown.label_patient == "Couronne céramique"
    assert crown.price_avg_province == 550
    assert crown.base_remboursement == 120
    assert find_act("hbld038") is None
    assert find_act("NOPE") is None
    assert find_act(None) is None


def test_empty_search_returns_whole_table_in_order():
    assert _codes(search_acts("")) == _codes(load_reference_table())
    assert _codes(search_acts(None)) == _codes(load_reference_table())


def test_search_is_case_insensitive_over_labels():
    assert _codes(search_acts("COURONNE")) == ["HBLD038", "HBLD036", "HBLD418"]


def test_search_matches_keywords_and_technical_label():
    assert _codes(search_acts("tartre")) == ["HBJD001"]
    assert _codes(search_acts("avulsion")) == ["HBGD035", "HBGD038"]
    assert _codes(search_acts("hbqk")) == ["HBQK002", "HBQK389"]


def test_suggest_requires_a_term_and_caps_results():
    assert suggest_acts("") == []
    assert suggest_acts(None) == []
    assert _codes(suggest_acts("hbld")) == ["HBLD038", "HBLD036", "HBLD418", "HBLD090", "HBLD350"]
    assert _codes(suggest_acts("hbld", limit=2)) == ["HBLD038", "HBLD036"]


def test_suggest_ignores_keywords_and_technical_label():
    # "tartre" is only a keyword, "avulsion" only appears in technical labels
    assert suggest_acts("tartre") == []
    assert suggest_acts("avulsion") == []
    assert _codes(suggest_acts("extraction")) == ["HBGD035", "HBGD038"]
