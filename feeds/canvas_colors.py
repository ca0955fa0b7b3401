"""Course colour extraction for Canvas calendar feeds."""
import logging
import re
from typing import Dict, Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from feeds.feed_client import FeedClient
from feeds.ics_parser import split_property, unescape_text, unfold_lines

logger = logging.getLogger(__name__)

DEFAULT_COLOR = '#6C757D'

DEPARTMENT_COLORS = {
    'HES': '#E74C3C',
    'LIFE': '#27AE60',
    'LIFE-L': '#27AE60',
    'MATH': '#8B4513',
    'MU': '#27AE60',
    'PSY': '#E74C3C',
    'BIO': '#27AE60',
    'CHEM': '#3498DB',
    'PHYS': '#9B59B6',
    'ENG': '#F39C12',
    'HIST': '#E67E22',
    'ECON': '#1ABC9C',
    'PHIL': '#34495E',
    'ART': '#E91E63',
    'CS': '#2C3E50',
    'STAT': '#95A5A6',
}

_TERM_RE = re.compile(r'\d{4}[A-Z]{2}', re.IGNORECASE)
_COURSE_PATTERNS = [
    # [2025FA-PSY-100-007]
    re.compile(r'\[(\d{4}[A-Z]{2})-([A-Z]{2,4}-?\d{3,4}[A-Z]?(?:-[A-Z]?\d*)?)\]', re.IGNORECASE),
    # [PSY-100-007-2025FA]
    re.compile(r'\[([A-Z]{2,4}-?\d{3,4}[A-Z]?(?:-[A-Z]?\d*)?)-(\d{4}[A-Z]{2})\]', re.IGNORECASE),
    # PSY-100, MATH-118
    re.compile(r'\b([A-Z]{2,4}-?\d{3,4}[A-Z]?)\b', re.IGNORECASE),
]
_COLOR_STYLE_RES = [
    re.compile(r'background-color:\s*([^;"]+)', re.IGNORECASE),
    re.compile(r'background:\s*([^;"]+)', re.IGNORECASE),
    re.compile(r'(?<![-\w])color:\s*([^;"]+)', re.IGNORECASE),
]


def extract_course_code(title: str) -> Optional[str]:
    """
    Pull a normalized course code out of a Canvas event title.

    Args:
        title: Event SUMMARY (e.g., "Essay 2 [2025FA-PSY-100-007]")

    Returns:
        Course code such as "PSY-100" or "LIFE-102-L", or None
    """
    if not title:
        return None

    for pattern in _COURSE_PATTERNS:
        match = pattern.search(title)
        if not match:
            continue
        candidates = [group for group in match.groups()
                      if group and not _TERM_RE.fullmatch(group)]
        if not candidates:
            continue

        code = _TERM_RE.sub('', candidates[0]).strip('-')
        if '-L' in code.upper():
            code = re.sub(r'-L\d+$', '-L', code, flags=re.IGNORECASE)
        elif re.match(r'^[A-Z]{2,4}-?\d{3,4}-\d{3}$', code, re.IGNORECASE):
            code = re.sub(r'-\d{3}$', '', code)
        return code.upper()

    return None


def extract_course_codes(ics_content: str) -> List[str]:
    """Collect distinct course codes from every SUMMARY in an ICS feed."""
    codes: List[str] = []
    for line in unfold_lines(ics_content):
        if ':' not in line:
            continue
        name, _, value = split_property(line)
        if name != 'SUMMARY':
            continue
        code = extract_course_code(unescape_text(value).strip())
        if code and code not in codes:
            codes.append(code)
    return codes


def colors_by_department(course_codes: Iterable[str]) -> Dict[str, str]:
    """Assign palette colours by exact code, then by department prefix."""
    colors = {}
    for code in course_codes:
        if code in DEPARTMENT_COLORS:
            colors[code] = DEPARTMENT_COLORS[code]
            continue
        prefix = code.split('-')[0]
        colors[code] = DEPARTMENT_COLORS.get(prefix, DEFAULT_COLOR)
    return colors


def _card_color(card) -> Optional[str]:
    for element in [card] + card.find_all(style=True):
        style = element.get('style') or ''
        for pattern in _COLOR_STYLE_RES:
            match = pattern.search(style)
            if match:
                return match.group(1).strip()
    return None


def _card_name(card) -> Optional[str]:
    if card.get('title'):
        return card['title']
    titled = card.find(attrs={'title': True})
    if titled:
        return titled['title']
    return card.get('aria-label')


def extract_colors_from_dashboard(html: str, course_codes: List[str]) -> Dict[str, str]:
    """
    Read course card colours from Canvas dashboard HTML.

    Codes without a matching card get their department palette colour.

    Args:
        html: Dashboard page HTML
        course_codes: Codes to resolve

    Returns:
        Mapping of course code to CSS colour
    """
    soup = BeautifulSoup(html, 'html.parser')
    colors: Dict[str, str] = {}

    for card in soup.find_all('div', class_='ic-DashboardCard'):
        name = _card_name(card)
        color = _card_color(card)
        if not name or not color:
            continue
        for code in course_codes:
            if code.lower() in name.lower() and code not in colors:
                colors[code] = color
                break

    logger.info(f"Matched {len(colors)} of {len(course_codes)} courses on the dashboard")
    unresolved = [code for code in course_codes if code not in colors]
    colors.update(colors_by_department(unresolved))
    return colors


class CanvasColorScraper:
    """Resolves colours for the courses referenced by a Canvas ICS feed."""

    DASHBOARD_USER_AGENT = (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
    )

    def __init__(self, feed_client: FeedClient, timeout: int = 30):
        self.feed_client = feed_client
        self.timeout = timeout

    def fetch_course_colors(self, ics_url: str) -> Dict[str, str]:
        """
        Fetch the feed, extract course codes and resolve their colours.

        Args:
            ics_url: Canvas ICS feed URL

        Returns:
            Mapping of course code to colour

        Raises:
            ValueError: If the URL is not an https Canvas URL
            FeedFetchError: If the ICS feed cannot be fetched
        """
        match = re.match(r'^(https://[^/]+)', ics_url or '')
        if not match:
            raise ValueError('Invalid Canvas ICS URL format')
        base_url = match.group(1)

        ics_content = self.feed_client.fetch_text(ics_url)
        course_codes = extract_course_codes(ics_content)
        logger.info(f"Extracted {len(course_codes)} course codes from ICS")

        try:
            response = requests.get(
                f"{base_url}/",
                headers={'User-Agent': self.DASHBOARD_USER_AGENT},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.info(f"Dashboard fetch failed, using department palette: {e}")
            return colors_by_department(course_codes)

        if not response.ok:
            logger.info(
                f"Could not access dashboard (HTTP {response.status_code}), "
                f"using department palette"
            )
            return colors_by_department(course_codes)

        return extract_colors_from_dashboard(response.text, course_codes)
