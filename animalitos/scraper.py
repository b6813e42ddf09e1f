"""
Results page scraper.

Pulls the "Resultados Mega Animalitos" block out of the public results page
and turns it into DrawRecords, newest first.
"""
import re
from datetime import datetime
from typing import Optional
import requests
from animalitos.config import settings, setup_logging
from animalitos.core.errors import SourceUnavailableError
from animalitos.core.registry import ANIMALS, find_by_name
from animalitos.core.types import DrawRecord
from animalitos.core.validation import infer_occurred_at, is_valid_time_label, normalize_time_label

logger = setup_logging(__name__)

HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                  '(KHTML, like Gecko) Chrome/124.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'es-ES,es;q=0.8,en-US;q=0.5,en;q=0.3',
    'Cache-Control': 'no-cache',
}

START_MARKERS = ("## Resultados Mega Animalitos", "Resultados Mega Animalitos", "Mega Animalitos")
END_MARKERS = ("Resultados Lotto Activo", "Resultados Ruleta Activa", "Resultados La Granjita",
               "Conoce los Animalitos")

RESULT_RE = re.compile(
    r"Resultado Mega Animalitos[^>]*>[\s\S]*?(\d+)\s*<[^>]*>[\s\S]*?<h3[^>]*>([^<]+)</h3>",
    re.IGNORECASE,
)
TIME_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(am|pm)", re.IGNORECASE)


def fetch_html(url: str, timeout: float = 10) -> str:
    try:
        response = requests.get(url, headers=HEADERS, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise SourceUnavailableError(f"GET {url} failed: {e}") from e
    return response.text


def _section(html: str) -> Optional[str]:
    for marker in START_MARKERS:
        start = html.find(marker)
        if start != -1:
            break
    else:
        return None
    end = len(html)
    for marker in END_MARKERS:
        idx = html.find(marker, start + len(marker))
        if idx != -1 and idx < end:
            end = idx
    return html[start:end]


def _internal_code(number: int, name: str) -> int:
    # both greens are printed as 0 (Ballena is ticket "00"); the name tells them apart
    if number == 0:
        animal = find_by_name(name)
        if animal is not None:
            return animal.number
    return number


def extract_results(html: str, now: datetime, tz: Optional[str] = None) -> list[DrawRecord]:
    section = _section(html)
    if section is None:
        raise SourceUnavailableError("results marker not found in page")

    results = []
    seen = set()
    for m in RESULT_RE.finditer(section):
        name = m.group(2).strip()
        code = _internal_code(int(m.group(1)), name)
        if code not in ANIMALS:
            logger.debug(f"Skipping unknown animal {code} {name}")
            continue

        # the time label usually follows the block, sometimes precedes it
        tm = TIME_RE.search(section, m.start(), m.start() + 500) or \
            TIME_RE.search(section[max(0, m.start() - 200):m.start()])
        if not tm:
            logger.debug(f"No time label near {code} {name}")
            continue
        if not is_valid_time_label(tm.group(0)):
            logger.debug(f"Skipping {code} {name} with bad time label {tm.group(0)}")
            continue
        label = normalize_time_label(tm.group(0))

        if (label, code) in seen:
            continue
        seen.add((label, code))
        results.append(DrawRecord.build(code, label, infer_occurred_at(label, now, tz), display_name=name))

    results.sort(key=lambda r: r.occurred_at, reverse=True)
    return results


def scrape_latest(now: datetime, url: Optional[str] = None) -> list[DrawRecord]:
    html = fetch_html(url or settings.results_url, timeout=settings.request_timeout)
    return extract_results(html, now, settings.site_timezone)
