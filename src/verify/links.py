from __future__ import annotations

import concurrent.futures
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Iterable
from urllib.parse import urlparse, urlunparse

import pandas as pd
import requests

from src.normalize.schema import is_missing
from src.store.http import PoliteHttpClient

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
VERIFICATION_CACHE_DAYS = 7
VERIFICATION_COLUMNS = ("verified_source", "link_trustworthiness", "link_active", "verification_notes")

KNOWN_SCHOLARSHIP_PATTERNS = tuple(
    re.compile(pattern, flags)
    for pattern, flags in (
        (r"edu$", 0),
        (r"\.edu/", 0),
        (r"\.gov$", 0),
        (r"\.gov/", 0),
        (r"scholarship", re.IGNORECASE),
        (r"financial-aid", re.IGNORECASE),
        (r"fastweb\.com", 0),
        (r"scholarships\.com", 0),
        (r"chegg\.com", 0),
        (r"niche\.com", 0),
        (r"collegeboard\.org", 0),
        (r"fundsforlearning\.com", 0),
        (r"petersons\.com", 0),
        (r"unigo\.com", 0),
        (r"cappex\.com", 0),
        (r"scholarshipsportal\.com", 0),
        (r"scholarshipamerica\.org", 0),
        (r"internationalscholarships\.com", 0),
        (r"foundation", re.IGNORECASE),
        (r"fund", re.IGNORECASE),
    )
)
BLOCKLISTED_HOSTS = (
    "example.com",
    "test.com",
    "website.com",
    "samplesite.com",
    "domain.com",
    "mywebsite.com",
    "yourwebsite.com",
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "tiktok.com",
)


class EnrichmentError(RuntimeError):
    """A link could not be verified; the scholarship is kept but marked unverified."""


@dataclass(slots=True)
class VerificationResult:
    verified: bool
    trustworthiness: str
    active: bool
    notes: list[str] = field(default_factory=list)
    corrected_url: str | None = None


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def normalize_url(url: str) -> str:
    candidate = url.strip()
    if not candidate.startswith(("http://", "https://")):
        candidate = "https://" + candidate
    parsed = urlparse(candidate)
    if not parsed.hostname:
        return url
    path = parsed.path.rstrip("/")
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, "", parsed.query, ""))


def _is_blocklisted(hostname: str) -> bool:
    return any(host in hostname for host in BLOCKLISTED_HOSTS)


def matches_scholarship_domain_pattern(url: str) -> bool:
    hostname = urlparse(url).hostname or ""
    if not hostname or _is_blocklisted(hostname):
        return False
    return any(pattern.search(url) for pattern in KNOWN_SCHOLARSHIP_PATTERNS)


def suggest_corrected_url(url: str) -> str | None:
    if not is_valid_url(url):
        candidate = normalize_url(url)
        return candidate if candidate != url and is_valid_url(candidate) else None

    parsed = urlparse(url)
    hostname = parsed.hostname or ""
    if not hostname.startswith("www.") and ".edu" not in hostname and ".gov" not in hostname:
        return urlunparse(parsed._replace(netloc="www." + parsed.netloc))
    if parsed.scheme == "http":
        return urlunparse(parsed._replace(scheme="https"))
    return None


def _trustworthiness(hostname: str, *, trusted: bool, scholarship_site: bool) -> str:
    if trusted or hostname.endswith(".edu") or hostname.endswith(".gov"):
        return "high"
    if scholarship_site:
        return "medium"
    return "low"


class LinkVerifier:
    """Checks scholarship links against domain heuristics and, optionally, a live HEAD request."""

    def __init__(
        self,
        *,
        http_client: PoliteHttpClient | None = None,
        trusted_domains: Iterable[str] = (),
        cache_days: int = VERIFICATION_CACHE_DAYS,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._http = http_client
        self._trusted_domains = {domain.strip().lower() for domain in trusted_domains if domain.strip()}
        self._cache_ttl = timedelta(days=cache_days)
        self._now = now
        self._cache: dict[str, tuple[datetime, VerificationResult]] = {}
        self._lock = threading.Lock()

    def _cached(self, key: str) -> VerificationResult | None:
        with self._lock:
            cached = self._cache.get(key)
            if cached is None:
                return None
            checked_at, result = cached
            if self._now() - checked_at > self._cache_ttl:
                del self._cache[key]
                return None
            return result

    def _remember(self, key: str, result: VerificationResult) -> None:
        with self._lock:
            self._cache[key] = (self._now(), result)

    def _check_live(self, url: str) -> bool:
        if self._http is None:
            return True
        try:
            status = self._http.head_status(url)
        except requests.RequestException as exc:
            raise EnrichmentError(f"Link check failed for {url}: {exc}") from exc
        return status < 400

    def verify(self, url: str | None) -> VerificationResult:
        if not url or not url.strip():
            return VerificationResult(verified=False, trustworthiness="unknown", active=False, notes=["No URL provided"])

        if not is_valid_url(url):
            return VerificationResult(
                verified=False,
                trustworthiness="unknown",
                active=False,
                notes=["Invalid URL format"],
                corrected_url=suggest_corrected_url(url),
            )

        cache_key = normalize_url(url)
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        hostname = (urlparse(cache_key).hostname or "").lower()
        notes: list[str] = []
        if _is_blocklisted(hostname):
            result = VerificationResult(
                verified=False,
                trustworthiness="low",
                active=False,
                notes=["URL validation failed", "Domain is not a legitimate scholarship provider"],
            )
        else:
            trusted = hostname in self._trusted_domains
            scholarship_site = trusted or matches_scholarship_domain_pattern(cache_key)
            try:
                active = self._check_live(url)
            except EnrichmentError as exc:
                logger.warning("%s", exc)
                active = False
                notes.append("Link could not be reached")
            if not active and not notes:
                notes.append("URL validation failed")
            if not scholarship_site:
                notes.append("Domain does not appear to be a scholarship provider")
            trustworthiness = _trustworthiness(hostname, trusted=trusted, scholarship_site=scholarship_site)
            if trustworthiness == "low":
                notes.append("Domain has low trustworthiness score")
            result = VerificationResult(
                verified=active and scholarship_site,
                trustworthiness=trustworthiness,
                active=active,
                notes=notes,
            )

        if not result.verified:
            corrected = suggest_corrected_url(url)
            if corrected and corrected != url:
                result.corrected_url = corrected

        self._remember(cache_key, result)
        return result


def _apply_result(row: dict[str, Any], result: VerificationResult) -> dict[str, Any]:
    row["verified_source"] = result.verified
    row["link_trustworthiness"] = result.trustworthiness
    row["link_active"] = result.active
    row["verification_notes"] = list(result.notes)
    if result.corrected_url:
        row["link"] = result.corrected_url
    return row


def _unverified(row: dict[str, Any], note: str) -> dict[str, Any]:
    return _apply_result(
        row,
        VerificationResult(verified=False, trustworthiness="unknown", active=False, notes=[note]),
    )


def verify_scholarship_batch(
    scholarships_df: pd.DataFrame,
    verifier: LinkVerifier,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> pd.DataFrame:
    """Annotate each scholarship with link verification fields.

    Links are checked in fixed-size batches; each batch completes before the
    next starts. Failures mark the row unverified and never drop it.
    """

    if batch_size < 1:
        raise ValueError("batch_size must be at least 1.")
    rows = scholarships_df.to_dict(orient="records")
    if not rows:
        return scholarships_df.copy()

    annotated: list[dict[str, Any]] = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            futures: list[concurrent.futures.Future[VerificationResult] | None] = []
            for row in batch:
                link = row.get("link")
                if is_missing(link) or not str(link).strip():
                    futures.append(None)
                else:
                    futures.append(executor.submit(verifier.verify, str(link)))

            for row, future in zip(batch, futures, strict=True):
                if future is None:
                    annotated.append(_unverified(row, "No URL provided"))
                    continue
                try:
                    annotated.append(_apply_result(row, future.result()))
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Verification failed for %s (%s)", row.get("id"), exc, exc_info=True)
                    annotated.append(_unverified(row, "Verification failed"))

    extra_columns = [column for column in VERIFICATION_COLUMNS if column not in scholarships_df.columns]
    return pd.DataFrame(annotated, columns=[*scholarships_df.columns, *extra_columns])
