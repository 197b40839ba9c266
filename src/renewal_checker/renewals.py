"""
Authenticated fetch of the renewals page.
"""

import logging
from typing import Mapping, Optional

from .exceptions import UnexpectedStatusError, UnsupportedContentTypeError
from .models import RenewalRow
from .session_walker import HTML_MEDIA_TYPE
from .table_extractor import DEFAULT_ID_PARAM, DEFAULT_LOCATOR_LABEL, extract_renewals
from .transport import Transport

logger = logging.getLogger(__name__)


async def fetch_renewals(
    transport: Transport,
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    label: str = DEFAULT_LOCATOR_LABEL,
    id_param: str = DEFAULT_ID_PARAM,
) -> list[RenewalRow]:
    """
    Fetch the renewals page and extract its rows.

    Redirects are not followed: on this page a redirect means the session
    cookie was not accepted.

    Args:
        transport: Transport used for the request
        url: Absolute URL of the renewals page
        headers: Request headers carrying the session Cookie and User-Agent
        label: Header text that locates the renewals table
        id_param: Query parameter of the renew link holding the domain id

    Returns:
        One RenewalRecord or RowError per table row

    Raises:
        UnexpectedStatusError: Any non-success status, redirects included
        UnsupportedContentTypeError: Success without an HTML body
        TableNotFoundError: No table matches ``label``
        TransportFailureError: On connection-level failures
    """
    response = await transport.get(url, headers=headers)

    if not response.is_success:
        details = {"url": url, "status_code": response.status_code}
        if response.location:
            details["location"] = response.location
        raise UnexpectedStatusError(
            f"request {url} failed with status code {response.status_code}",
            details=details,
        )

    if response.media_type != HTML_MEDIA_TYPE:
        raise UnsupportedContentTypeError(
            f"request {url} returned unsupported content-type "
            f'"{response.headers.get("content-type", "")}"',
            details={"url": url, "status_code": response.status_code},
        )

    rows = extract_renewals(response.text, url, label=label, id_param=id_param)
    logger.debug("Fetched %d renewal row(s) from %s", len(rows), url)
    return rows
