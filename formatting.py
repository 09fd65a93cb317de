"""
Display formatters, registered as Jinja filters in app.py.
"""


def format_percent(value):
    return f"{value:.2f}%"


def format_currency(value):
    return f"${value:.2f}"


def format_number(value):
    return f"{value:,}"


def format_compare_value(value, fmt):
    """Format a comparison-table cell. Missing values render as '-'."""
    if value is None:
        return "-"

    if fmt == "currency":
        return f"${value:.2f}"
    if fmt == "currency_billions":
        return f"${value / 1_000_000_000:.2f}B"
    if fmt == "percent":
        return f"{value:.2f}%"
    if fmt == "percent_sign":
        prefix = "+" if value >= 0 else ""
        return f"{prefix}{value:.2f}%"
    if fmt == "percent_from_decimal":
        return f"{value * 100:.1f}%"
    if fmt == "decimal2":
        return f"{value:.2f}"
    if fmt == "decimal3":
        return f"{value:.3f}"
    if fmt == "number":
        return f"{value:,}"
    return str(value)
