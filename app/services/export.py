"""
Booking Export
CSV download and printable meal list for the kitchen
"""
import csv
import io
import os
from datetime import datetime
from html import escape

from app.models.booking import MealType

CSV_COLUMNS = ["Receipt Number", "Employee Name", "Employee ID", "Meal Type", "Status", "Booking Date"]

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "print")


def meal_type_label(meal_type) -> str:
    return "Veg" if MealType(meal_type) == MealType.VEG else "Non-Veg"


def count_by_meal_type(bookings) -> dict:
    veg = sum(1 for b in bookings if MealType(b.meal_type) == MealType.VEG)
    non_veg = sum(1 for b in bookings if MealType(b.meal_type) == MealType.NON_VEG)
    return {"veg": veg, "non_veg": non_veg, "total": veg + non_veg}


def bookings_to_csv(bookings) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for b in bookings:
        writer.writerow([
            b.receipt_number,
            b.employee_name,
            b.employee_id,
            meal_type_label(b.meal_type),
            b.status.value if hasattr(b.status, "value") else b.status,
            b.booking_date,
        ])
    return buffer.getvalue()


def _rows_table(bookings) -> str:
    if not bookings:
        return "<p>No bookings</p>"
    rows = "".join(
        f"<tr><td class=\"checkbox\">&#9744;</td><td>{i}</td>"
        f"<td>{escape(b.employee_name)}</td><td>{escape(b.employee_id)}</td>"
        f"<td>{escape(b.receipt_number)}</td></tr>"
        for i, b in enumerate(bookings, start=1)
    )
    return (
        "<table><thead><tr><th class=\"checkbox\"></th><th>#</th><th>Employee Name</th>"
        f"<th>Employee ID</th><th>Receipt Number</th></tr></thead><tbody>{rows}</tbody></table>"
    )


def render_print_sheet(booking_date: str, bookings) -> str:
    """Printable meal list grouped by veg / non-veg with a summary header"""
    with open(os.path.join(TEMPLATE_DIR, "meal_list.html"), "r") as f:
        template = f.read()

    day = datetime.strptime(booking_date, "%Y-%m-%d")
    veg = [b for b in bookings if MealType(b.meal_type) == MealType.VEG]
    non_veg = [b for b in bookings if MealType(b.meal_type) == MealType.NON_VEG]

    content = template.replace("{{title_date}}", day.strftime("%b %d, %Y"))
    content = content.replace("{{long_date}}", day.strftime("%A, %B %d, %Y"))
    content = content.replace("{{veg_count}}", str(len(veg)))
    content = content.replace("{{non_veg_count}}", str(len(non_veg)))
    content = content.replace("{{total_count}}", str(len(veg) + len(non_veg)))
    content = content.replace("{{veg_table}}", _rows_table(veg))
    content = content.replace("{{non_veg_table}}", _rows_table(non_veg))
    return content
