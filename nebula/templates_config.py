from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from nebula.database import utcnow

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Shared templates environment for outgoing email
templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"])
)


def format_datetime(value: datetime) -> str:
    return value.strftime("%A, %d %B %Y %H:%M") if value else ""


def format_price(value: float) -> str:
    return f"${value:,.2f}"


templates.filters["datetime"] = format_datetime
templates.filters["price"] = format_price
templates.globals["current_year"] = lambda: utcnow().year


def render_template(name: str, **context) -> str:
    return templates.get_template(name).render(**context)
