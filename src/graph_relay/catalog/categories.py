"""Tool categories used by the search-tools discovery operation."""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ToolCategory:
    """Named group of tools selected by a name pattern."""

    name: str
    description: str
    pattern: re.Pattern[str]


def _category(name: str, description: str, pattern: str) -> ToolCategory:
    return ToolCategory(name=name, description=description, pattern=re.compile(pattern, re.I))


TOOL_CATEGORIES: dict[str, ToolCategory] = {
    c.name: c
    for c in (
        _category("mail", "Outlook mail messages and folders", r"mail|message(?!.*channel)"),
        _category("calendar", "Calendars, events and calendar views", r"calendar|event"),
        _category("files", "OneDrive and document library items", r"drive|file|folder"),
        _category("contacts", "Outlook contacts", r"contact"),
        _category("tasks", "Microsoft To Do and Planner", r"todo|task|planner"),
        _category("onenote", "OneNote notebooks, sections and pages", r"onenote"),
        _category("search", "Microsoft Search queries", r"^search-"),
        _category("users", "Users and the signed-in profile", r"user"),
        _category("excel", "Excel workbooks and worksheets", r"excel|workbook|worksheet"),
        _category("teams", "Teams, channels and chats", r"team|channel|chat"),
        _category("sharepoint", "SharePoint sites and lists", r"sharepoint|site"),
    )
}
