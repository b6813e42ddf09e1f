from dataclasses import dataclass
from animalitos.core.errors import InvariantViolation

RED, BLACK, GREEN = "red", "black", "green"
COLORS = (RED, BLACK, GREEN)

MIN_CODE, MAX_CODE = 0, 37
ALL_CODES = tuple(range(MIN_CODE, MAX_CODE + 1))


@dataclass(frozen=True)
class AnimalDescriptor:
    number: int
    name: str
    color: str
    lottery_number: str


# (name, color, lottery number as printed on the ticket)
_TABLE = [
    ("Delfín", GREEN, "0"), ("Carnero", RED, "1"), ("Toro", BLACK, "2"),
    ("Ciempies", RED, "3"), ("Alacran", BLACK, "4"), ("León", RED, "5"),
    ("Rana", BLACK, "6"), ("Perico", RED, "7"), ("Ratón", BLACK, "8"),
    ("Aguila", RED, "9"), ("Tigre", BLACK, "10"), ("Gato", BLACK, "11"),
    ("Caballo", RED, "12"), ("Mono", BLACK, "13"), ("Paloma", RED, "14"),
    ("Zorro", BLACK, "15"), ("Oso", RED, "16"), ("Pavo", BLACK, "17"),
    ("Burro", RED, "18"), ("Chivo", RED, "19"), ("Cochino", BLACK, "20"),
    ("Gallo", RED, "21"), ("Camello", BLACK, "22"), ("Cebra", RED, "23"),
    ("Iguana", BLACK, "24"), ("Gallina", RED, "25"), ("Vaca", BLACK, "26"),
    ("Perro", RED, "27"), ("Zamuro", BLACK, "28"), ("Elefante", BLACK, "29"),
    ("Caiman", RED, "30"), ("Lapa", BLACK, "31"), ("Ardilla", RED, "32"),
    ("Pescado", BLACK, "33"), ("Venado", RED, "34"), ("Jirafa", BLACK, "35"),
    ("Culebra", RED, "36"), ("Ballena", GREEN, "00"),
]

ANIMALS: dict[int, AnimalDescriptor] = {
    i: AnimalDescriptor(i, name, color, lottery)
    for i, (name, color, lottery) in enumerate(_TABLE)
}


def get_animal(number: int) -> AnimalDescriptor:
    if not isinstance(number, int) or number not in ANIMALS:
        raise InvariantViolation(f"numeric code out of range: {number!r}")
    return ANIMALS[number]


def find_by_name(name: str) -> AnimalDescriptor | None:
    key = (name or "").strip().lower()
    for animal in ANIMALS.values():
        if animal.name.lower() == key:
            return animal
    return None


def opposite_color(color: str) -> str | None:
    """Red and black swap; green has no fixed opposite."""
    if color == RED:
        return BLACK
    if color == BLACK:
        return RED
    return None
