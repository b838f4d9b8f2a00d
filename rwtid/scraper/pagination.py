"""Search form submission and result link traversal for one query window.

Workflow per window:

- GET the search form page.
- Fill ``start_year`` / ``end_year`` on the ``search.php`` form and submit it
  the way a browser click on its submit button would.
- Walk the anchors under ``div#content > div#indent > ol > li`` of the
  results listing and follow each one, sending the listing as Referer.

Nothing here retries. The first failed request raises ``FetchError`` and ends
the window's sequence.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode, FetchError
from .http_client import ClientPolicy, fetch_page
from .logging_utils import _scraper_event
from .windows import QueryWindow


@dataclass(frozen=True)
class DetailLink:
    href: str
    text: str
    url: str


def _soup(response: requests.Response) -> BeautifulSoup:
    # Raw bytes so html5lib honours the page's <meta charset>.
    return BeautifulSoup(response.content, "html5lib")


def _action_matches(action: str, wanted: str) -> bool:
    path = urlparse(action or "").path
    return path == wanted or path.rsplit("/", 1)[-1] == wanted


def _form_defaults(form) -> Dict[str, str]:  # noqa: ANN001
    """Return the values a browser would submit for ``form`` unchanged."""

    data: Dict[str, str] = {}
    submit_seen = False
    for element in form.find_all(["input", "select", "textarea", "button"]):
        name = element.get("name")
        if not name or element.has_attr("disabled"):
            continue
        if element.name == "select":
            options = element.find_all("option")
            chosen = next((opt for opt in options if opt.has_attr("selected")), None)
            chosen = chosen or (options[0] if options else None)
            if chosen is not None:
                data[name] = chosen.get("value", chosen.get_text(strip=True))
            continue
        if element.name == "textarea":
            data[name] = element.get_text()
            continue
        kind = (element.get("type") or ("submit" if element.name == "button" else "text")).lower()
        if kind in {"submit", "image"}:
            # Only the clicked button is sent; click the first one.
            if not submit_seen:
                data[name] = element.get("value", "")
                submit_seen = True
            continue
        if kind in {"checkbox", "radio"}:
            if element.has_attr("checked"):
                data[name] = element.get("value", "on")
            continue
        if kind in {"reset", "file"}:
            continue
        data[name] = element.get("value", "")
    return data


def submit_search_form(
    session: requests.Session,
    form_page: requests.Response,
    window: QueryWindow,
    *,
    policy: Optional[ClientPolicy] = None,
) -> requests.Response:
    """Submit the year-range search form and return the results listing."""

    soup = _soup(form_page)
    form = next(
        (
            candidate
            for candidate in soup.find_all("form")
            if _action_matches(candidate.get("action", ""), config.SEARCH_FORM_ACTION)
        ),
        None,
    )
    if form is None:
        raise FetchError(
            f"Search form with action {config.SEARCH_FORM_ACTION!r} not found",
            error_code=ErrorCode.SITE_STRUCTURE,
            url=form_page.url,
        )

    data = _form_defaults(form)
    data[config.START_YEAR_FIELD] = str(window.start_year)
    data[config.END_YEAR_FIELD] = str(window.end_year)
    action_url = urljoin(form_page.url, form.get("action", ""))
    method = (form.get("method") or "GET").upper()

    _scraper_event(
        "search",
        window=window.label(),
        method=method,
        url=action_url,
    )
    return fetch_page(
        session,
        action_url,
        method=method,
        data=data,
        referer=form_page.url,
        policy=policy,
    )


def iter_detail_links(listing: requests.Response) -> Iterator[DetailLink]:
    """Yield detail links from a results listing in document order."""

    soup = _soup(listing)
    for anchor in soup.select(config.RESULT_LINK_SELECTOR):
        href = (anchor.get("href") or "").strip()
        if not href:
            continue
        yield DetailLink(
            href=href,
            text=anchor.get_text(strip=True),
            url=urljoin(listing.url, href),
        )


def follow_link(
    session: requests.Session,
    link: DetailLink,
    listing: requests.Response,
    *,
    policy: Optional[ClientPolicy] = None,
) -> requests.Response:
    return fetch_page(session, link.url, referer=listing.url, policy=policy)


def iter_detail_documents(
    session: requests.Session,
    window: QueryWindow,
    *,
    policy: Optional[ClientPolicy] = None,
    form_url: Optional[str] = None,
) -> Iterator[Tuple[DetailLink, requests.Response]]:
    """Yield ``(link, detail_page)`` pairs for every result of ``window``.

    Pages are fetched only as the sequence is consumed.
    """

    form_page = fetch_page(session, form_url or config.SEARCH_FORM_URL, policy=policy)
    listing = submit_search_form(session, form_page, window, policy=policy)
    for link in iter_detail_links(listing):
        yield link, follow_link(session, link, listing, policy=policy)


__all__ = [
    "DetailLink",
    "submit_search_form",
    "iter_detail_links",
    "follow_link",
    "iter_detail_documents",
]
