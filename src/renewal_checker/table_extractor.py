"""
Renewals table extraction.

The renewals page has no stable id or class on its table, so the table is
located by the visible text of one of its header cells. Every body row of the
table produces exactly one element of the result: a RenewalRecord when all
fields parse, a RowError describing every failed field otherwise. A malformed
row never aborts the extraction.
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from .exceptions import TableNotFoundError
from .models import RenewalRecord, RenewalReport, RenewalRow, RowError

logger = logging.getLogger(__name__)

DEFAULT_LOCATOR_LABEL = "Days Until Expiry"
DEFAULT_ID_PARAM = "domain"
EXPECTED_CELLS = 5
HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

DAYS_PATTERN = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")


def _normalize(text: str) -> str:
    return WHITESPACE.sub(" ", text).strip().lower()


def _contains_label(tag: Tag, label: str) -> bool:
    return label in _normalize(tag.get_text(" "))


def find_table(soup: BeautifulSoup, label: str) -> Optional[Tag]:
    """
    Locate a table by the text of its header.

    Looks for a <th> containing the label and walks up to its <table>;
    failing that, for a heading containing the label and the first table
    after it.

    Args:
        soup: Parsed document
        label: Visible header text to look for (case-insensitive)

    Returns:
        The table tag or None
    """
    needle = _normalize(label)
    for th in soup.find_all("th"):
        if _contains_label(th, needle):
            table = th.find_parent("table")
            if table is not None:
                return table

    for heading in soup.find_all(HEADINGS):
        if _contains_label(heading, needle):
            table = heading.find_next("table")
            if table is not None:
                return table

    return None


def _owning_table(tag: Tag) -> Optional[Tag]:
    return tag.find_parent("table")


def table_rows(table: Tag) -> list[Tag]:
    """Body rows of a table, excluding rows of nested tables."""
    bodies = [tbody for tbody in table.find_all("tbody") if _owning_table(tbody) is table]
    if bodies:
        return [
            tr
            for tbody in bodies
            for tr in tbody.find_all("tr")
            if _owning_table(tr) is table
        ]

    rows = []
    for tr in table.find_all("tr"):
        if _owning_table(tr) is not table or tr.find_parent("thead") is not None:
            continue
        if tr.find("td", recursive=False) is None:
            continue
        rows.append(tr)
    return rows


def _cells(tr: Tag) -> list[Tag]:
    return tr.find_all(["td", "th"], recursive=False)


def _days(cell: Tag) -> Optional[int]:
    match = DAYS_PATTERN.search(cell.get_text(" "))
    return int(match.group(1)) if match else None


def _renew_link(cell: Tag, origin: str, id_param: str) -> tuple[Optional[int], Optional[str]]:
    anchor = cell.find("a", href=True)
    if anchor is None:
        return None, None
    href = str(anchor["href"]).strip()
    if not href:
        return None, None
    renew_url = urljoin(origin + "/", href)
    values = parse_qs(urlparse(renew_url).query).get(id_param, [])
    raw_id = values[0].strip() if values else ""
    # isdigit() also accepts superscripts, which int() rejects
    if not raw_id.isdecimal():
        return None, renew_url
    return int(raw_id), renew_url


def _origin(page_url: str) -> str:
    parsed = urlparse(page_url)
    return f"{parsed.scheme}://{parsed.netloc}" if parsed.scheme and parsed.netloc else ""


def parse_row(index: int, tr: Tag, origin: str, id_param: str = DEFAULT_ID_PARAM) -> RenewalRow:
    """
    Parse one table row.

    Args:
        index: Zero-based row index, used in every diagnostic
        tr: The <tr> element
        origin: Page origin the renew link is resolved against
        id_param: Query parameter of the renew link holding the numeric id

    Returns:
        RenewalRecord, or RowError naming every field that failed
    """
    cells = _cells(tr)
    if len(cells) < EXPECTED_CELLS:
        content = tr.decode_contents().strip()
        return RowError(
            error=f"row #{index} has {len(cells)} cells, expected {EXPECTED_CELLS}. "
            f"Row content: {content}"
        )

    errors: list[str] = []

    name = cells[0].get_text().strip()
    if not name:
        errors.append(f'"name" property not detected in cell 0, row {index}')
    context = f' (domain, "{name}")' if name else ""

    status = cells[1].get_text().strip()
    if not status:
        errors.append(f'"status" property not detected in cell 1{context}, row {index}')

    days_left = _days(cells[2])
    if days_left is None:
        errors.append(f'"daysLeft" property not detected in cell 2{context}, row {index}')

    # "Minimum Advance Renewal is 14 Days" or a bare "Renewable"
    renewal_text = cells[3].get_text().strip()
    if not renewal_text:
        errors.append(f'"minRenewalDays" property not detected in cell 3{context}, row {index}')
    min_renewal_days = _days(cells[3])

    domain_id, renew_url = _renew_link(cells[4], origin, id_param)
    if domain_id is None or renew_url is None:
        errors.append(f'"id" property not detected in cell 4{context}, row {index}')

    if errors:
        return RowError(error="; ".join(errors))

    return RenewalRecord(
        id=domain_id,
        name=name,
        status=status,
        days_left=days_left,
        renew_url=renew_url,
        min_renewal_days=min_renewal_days,
    )


def extract_renewals(
    html: str,
    page_url: str,
    label: str = DEFAULT_LOCATOR_LABEL,
    id_param: str = DEFAULT_ID_PARAM,
) -> list[RenewalRow]:
    """
    Extract renewal rows from the renewals page.

    Args:
        html: The renewals page
        page_url: URL the page was fetched from (its origin resolves renew links)
        label: Header text used to locate the table
        id_param: Query parameter of the renew link holding the numeric id

    Returns:
        One RenewalRecord or RowError per body row, in row order

    Raises:
        TableNotFoundError: If no table matches the label
    """
    soup = BeautifulSoup(html or "", "html.parser")
    table = find_table(soup, label)
    if table is None:
        raise TableNotFoundError(
            "table of domains not found",
            details={"label": label, "url": page_url},
        )

    origin = _origin(page_url)
    rows = [parse_row(index, tr, origin, id_param) for index, tr in enumerate(table_rows(table))]
    logger.debug(
        "Extracted %d row(s), %d with errors",
        len(rows),
        sum(1 for row in rows if isinstance(row, RowError)),
    )
    return rows


def group_rows(rows: list[RenewalRow]) -> RenewalReport:
    """Split a row sequence into parsed domains and error messages."""
    report = RenewalReport()
    for row in rows:
        if isinstance(row, RenewalRecord):
            report.domains.append(row)
        else:
            report.errors.append(row.error)
    return report
