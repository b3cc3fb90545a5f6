"""
Chart-of-accounts row factories for tests.
"""

from ledgerbook.schemas.chart_of_accounts import ChartAccountRow


def make_row(code, parent=None, name=None, level=None, kind=1, role=1, **extra) -> ChartAccountRow:
    """Build a chart row; level defaults to 0 for parentless rows, 1 otherwise."""
    return ChartAccountRow(
        code=code,
        parent_code=parent,
        name=name or f"Account {code}",
        level=level if level is not None else (0 if parent is None else 1),
        kind=kind,
        role=role,
        **extra,
    )
