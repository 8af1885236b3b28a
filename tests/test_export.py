import csv
import io
from types import SimpleNamespace

from app.models.booking import BookingStatus, MealType
from app.services import export


def make(name, meal_type, receipt):
    return SimpleNamespace(
        receipt_number=receipt,
        employee_name=name,
        employee_id=f"{name.lower()}@company.com",
        meal_type=meal_type,
        status=BookingStatus.APPROVED,
        booking_date="2024-06-12",
    )


BOOKINGS = [
    make("Asha", MealType.VEG, "RCP1"),
    make("Ravi", MealType.NON_VEG, "RCP2"),
    make("Meena", MealType.VEG, "FREE3"),
]


def test_count_by_meal_type():
    assert export.count_by_meal_type(BOOKINGS) == {"veg": 2, "non_veg": 1, "total": 3}


def test_csv_has_header_and_rows():
    rows = list(csv.reader(io.StringIO(export.bookings_to_csv(BOOKINGS))))
    assert rows[0] == ["Receipt Number", "Employee Name", "Employee ID", "Meal Type", "Status", "Booking Date"]
    assert rows[2] == ["RCP2", "Ravi", "ravi@company.com", "Non-Veg", "approved", "2024-06-12"]
    assert len(rows) == 4


def test_print_sheet_groups_by_meal_type():
    html = export.render_print_sheet("2024-06-12", BOOKINGS)
    assert "Wednesday, June 12, 2024" in html
    assert "Vegetarian (2)" in html
    assert "Non-Vegetarian (1)" in html
    assert html.index("Asha") < html.index("Non-Vegetarian (1)") < html.index("Ravi")
    assert "{{" not in html


def test_print_sheet_escapes_names():
    html = export.render_print_sheet("2024-06-12", [make("<b>Bob</b>", MealType.VEG, "RCP9")])
    assert "&lt;b&gt;Bob&lt;/b&gt;" in html


def test_print_sheet_empty_day():
    html = export.render_print_sheet("2024-06-12", [])
    assert html.count("No bookings") == 2
