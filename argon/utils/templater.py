from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape


def format_date(value: datetime, with_time: bool = False) -> str:
    text = f"{value.day} {value:%B %Y}"
    if with_time:
        text += f" at {value:%H:%M}"
    return text


class Templater:
    def __init__(self):
        self.file_loader = FileSystemLoader(Path(__file__).parent / "templates")
        self.env = Environment(
            loader=self.file_loader,
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["date"] = format_date

    def render(self, name: str, **data) -> str:
        return self.env.get_template(name).render(**data)
