import pytest
from animalitos.core.errors import InvariantViolation
from animalitos.core.registry import ANIMALS, get_animal, find_by_name, opposite_color


def test_table_is_complete():
    assert sorted(ANIMALS) == list(range(38))
    colors = [a.color for a in ANIMALS.values()]
    assert (colors.count('red'), colors.count('black'), colors.count('green')) == (18, 18, 2)


def test_greens_and_ballena():
    assert [a.number for a in ANIMALS.values() if a.color == 'green'] == [0, 37]
    assert get_animal(37).name == 'Ballena' and get_animal(37).lottery_number == '00'
    assert find_by_name(' ballena ').number == 37
    assert find_by_name('Unicornio') is None


def test_out_of_range():
    with pytest.raises(InvariantViolation):
        get_animal(38)
    with pytest.raises(InvariantViolation):
        get_animal(-1)


def test_opposite():
    assert opposite_color('red') == 'black'
    assert opposite_color('black') == 'red'
    assert opposite_color('green') is None
