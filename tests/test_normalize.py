from __future__ import annotations


def test_normalize_game_name_strips_symbols_and_roman_numerals():
    from game_unifier.utils.utilities import normalize_game_name

    assert normalize_game_name("Final Fantasy VII™") == "final fantasy 7"
    assert normalize_game_name("Baldur's Gate: Enhanced Edition") == "baldurs gate enhanced edition"
    assert normalize_game_name("  S.T.A.L.K.E.R.  ") == "s t a l k e r"


def test_casefold_unique_keeps_first_spelling_and_order():
    from game_unifier.utils.utilities import casefold_unique

    assert casefold_unique(["Action", "RPG", "action", " ", "rpg", "Shooter"]) == [
        "Action",
        "RPG",
        "Shooter",
    ]


def test_strip_query_string():
    from game_unifier.utils.utilities import strip_query_string

    assert strip_query_string("https://x/a.jpg?w=600&h=400") == "https://x/a.jpg"
    assert strip_query_string("https://x/a.jpg") == "https://x/a.jpg"


def test_iter_chunks():
    import pytest

    from game_unifier.utils.utilities import iter_chunks

    assert iter_chunks([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError):
        iter_chunks([1], 0)
