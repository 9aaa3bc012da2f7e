"""
Centralized DOM schema for the SF Rec & Park reservation site (rec.us).

All selectors, visible texts and phrases used by RecParkSiteAdapter are defined
here. The site is a React app: the date picker is react-datepicker, and most
controls are only addressable by their visible text.

When the site changes its markup, update selectors ONLY in this file.
"""

import re
from dataclasses import dataclass
from datetime import date

UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWER = "abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class RecDOMSchema:
    """Selectors and texts for the rec.us booking flow, in flow order."""

    # ========== LOGIN ==========
    LOGIN_LINK_TEXT = "Log In"
    EMAIL_INPUT = "input[id='email']"
    PASSWORD_INPUT = "input[id='password']"
    LOGIN_SUBMIT_TEXT = "log in & continue"

    # ========== COURT PAGE ==========
    COURT_RESERVATIONS_TEXT = "Court Reservations"

    # ========== DATE PICKER (react-datepicker) ==========
    DATE_INPUT = "input"
    DATE_PICKER = ".react-datepicker"
    DATE_PICKER_NEXT_NAME = "right"
    OUTSIDE_MONTH_CLASS = "react-datepicker__day--outside-month"

    # ========== SLOT LIST ==========
    SLOT_LIST_LABEL_TEXT = "Tennis"
    SLOTS_LOADED_PATTERN = re.compile(r"(\d:)|(No free)")

    # ========== BOOKING FORM ==========
    DURATION_BUTTON_XPATH = "//label[text()='Duration']/following-sibling::button"
    DURATION_READY_TEXT = "2 hours"
    DURATION_OPTION = "div[role='option']:not([aria-disabled='true'])"
    PARTICIPANT_PICKER_TEXT = "Select participant"
    ACCOUNT_OWNER_TEXT = "Account Owner"
    BOOK_BUTTON = "button.max-w-max"
    SEND_CODE_TEXT = "Send Code"

    # ========== VERIFICATION ==========
    CODE_INPUT = "input[id='totp']"
    CONFIRM_TEXT = "Confirm"
    SUCCESS_TEXT = "You're all set!"
    CONFLICT_PHRASE = "already reserved at this time"


def xpath_literal(value: str) -> str:
    """Quote a string for use inside an XPath expression."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


def text_xpath(text: str) -> str:
    """
    XPath for elements whose own text contains `text`, ignoring case.

    Mirrors how the site's controls are found by label: substring match on the
    element's direct text nodes, so wrapping containers are not matched.
    """
    needle = xpath_literal(text.lower())
    return (
        f"//*[text()[contains(translate(normalize-space(.), '{UPPER}', '{LOWER}'), {needle})]]"
    )


def button_named_xpath(name: str) -> str:
    """XPath for a button whose aria-label or text contains `name`, ignoring case."""
    needle = xpath_literal(name.lower())
    return (
        f"//button[contains(translate(@aria-label, '{UPPER}', '{LOWER}'), {needle}) "
        f"or contains(translate(normalize-space(.), '{UPPER}', '{LOWER}'), {needle})]"
    )


def slot_list_xpath(label: str = RecDOMSchema.SLOT_LIST_LABEL_TEXT) -> str:
    """XPath for the container holding the slot list: the parent of the first label."""
    return f"({text_xpath(label)})[1]/.."


def day_selector(day: int) -> str:
    """
    CSS selector for a day cell of the currently displayed month.

    react-datepicker renders trailing days of adjacent months with the
    outside-month modifier; those cells share the day class of the same
    number and must never be picked.
    """
    if not 1 <= day <= 31:
        raise ValueError(f"Invalid day of month: {day}")
    return f".react-datepicker__day--{day:03d}:not(.{RecDOMSchema.OUTSIDE_MONTH_CLASS})"


def month_offset(target: date, reference: date) -> int:
    """
    Number of forward steps the date picker needs to show the target's month.

    The picker opens on the reference month. Returns 0 when the target is in
    the same calendar month.
    """
    offset = (target.year - reference.year) * 12 + (target.month - reference.month)
    if offset < 0:
        raise ValueError(
            f"{target.isoformat()} is before the date picker's month "
            f"({reference.strftime('%B %Y')})"
        )
    return offset


def parse_slot_lines(text: str) -> list[str]:
    """Extract the free slot lines (those carrying a clock time) from the slot list text."""
    return [line.strip() for line in text.split("\n") if ":" in line]


def slot_label_matches(text: str, slot_time: str) -> bool:
    """
    Whether an element's text is the label of `slot_time`.

    The label must equal the time, or start with it followed by a space (e.g.
    "3:00 PM - 4:00 PM"). A plain substring is not enough: "12:00 PM" contains
    "2:00 PM".
    """
    label = " ".join(text.split())
    return label == slot_time or label.startswith(f"{slot_time} ")
