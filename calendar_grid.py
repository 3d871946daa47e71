import calendar
import datetime as dt


WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
DAYS_IN_WEEK = len(WEEKDAY_LABELS)


def days_in_month(ref):
    return calendar.monthrange(ref.year, ref.month)[1]


def first_weekday_offset(ref):
    # calendar counts Monday as 0; the grid starts on Sunday.
    monday_based = calendar.monthrange(ref.year, ref.month)[0]
    return (monday_based + 1) % DAYS_IN_WEEK


def date_for_day(ref, day):
    return dt.date(ref.year, ref.month, day)


def month_cells(ref):
    blanks = [None] * first_weekday_offset(ref)
    days = [date_for_day(ref, day) for day in range(1, days_in_month(ref) + 1)]
    return blanks + days


def month_weeks(ref):
    cells = month_cells(ref)
    remainder = len(cells) % DAYS_IN_WEEK
    if remainder:
        cells += [None] * (DAYS_IN_WEEK - remainder)
    return [cells[i : i + DAYS_IN_WEEK] for i in range(0, len(cells), DAYS_IN_WEEK)]


def shift_month(ref, delta):
    month_index = ref.year * 12 + (ref.month - 1) + delta
    year, month = divmod(month_index, 12)
    month += 1
    day = min(ref.day, calendar.monthrange(year, month)[1])
    return dt.date(year, month, day)


def month_title(ref):
    return f"{calendar.month_name[ref.month]} {ref.year}"
