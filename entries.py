import datetime as dt
import enum
import uuid
from dataclasses import dataclass, field


DATE_FORMAT = "%Y-%m-%d"
KG_PER_LB = 0.453592
KG_PER_STONE = 6.35029318


class WeightUnit(enum.Enum):
    KG = "kg"
    LBS = "lbs"
    STONE = "stone"

    @classmethod
    def labels(cls):
        return [unit.value for unit in cls]


def new_entry_id():
    return uuid.uuid4().hex


def as_day(value):
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def parse_date(date_str):
    return dt.datetime.strptime(date_str, DATE_FORMAT).date()


def format_date(date_obj):
    return date_obj.strftime(DATE_FORMAT)


def to_kg(value, unit):
    unit = WeightUnit(unit)
    if unit is WeightUnit.LBS:
        return value * KG_PER_LB
    if unit is WeightUnit.STONE:
        return value * KG_PER_STONE
    return value


def from_kg(value, unit):
    unit = WeightUnit(unit)
    if unit is WeightUnit.LBS:
        return value / KG_PER_LB
    if unit is WeightUnit.STONE:
        return value / KG_PER_STONE
    return value


def convert_weight(value, from_unit, to_unit):
    return from_kg(to_kg(value, from_unit), to_unit)


@dataclass
class Entry:
    """One dated body-composition measurement."""

    date: dt.date
    weight: float
    body_fat: float
    muscle_mass: float
    visceral_fat: int
    weight_unit: WeightUnit = WeightUnit.KG
    image_path: str | None = None
    id: str = field(default_factory=new_entry_id)

    def __post_init__(self):
        self.date = as_day(self.date)
        self.weight_unit = WeightUnit(self.weight_unit)

    def on_day(self, day):
        return self.date == as_day(day)

    def weight_in(self, unit):
        return convert_weight(self.weight, self.weight_unit, unit)

    def to_dict(self):
        return {
            "id": self.id,
            "date": format_date(self.date),
            "weight": self.weight,
            "bodyFatPercent": self.body_fat,
            "muscleMassPercent": self.muscle_mass,
            "visceralFat": self.visceral_fat,
            "weightUnit": self.weight_unit.value,
            "imagePath": self.image_path,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            date=parse_date(data["date"]),
            weight=float(data["weight"]),
            body_fat=float(data["bodyFatPercent"]),
            muscle_mass=float(data["muscleMassPercent"]),
            visceral_fat=int(data["visceralFat"]),
            weight_unit=WeightUnit(data["weightUnit"]),
            image_path=data.get("imagePath"),
        )
