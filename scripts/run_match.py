from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.io.serialization import write_json_atomic
from src.normalize.profile import InvalidProfileError, has_required_answers, normalize_answers
from src.pipeline.cache import MatchResultCache
from src.pipeline.config import load_matching_config
from src.pipeline.matching import ScholarshipMatcher
from src.rank.refine import SORT_KEYS, ResultFilters, refine_matches
from src.store.base import RecordStore
from src.store.frame_store import FrameRecordStore
from src.store.http import PoliteHttpClient
from src.store.postgrest import PostgrestRecordStore
from src.verify.links import LinkVerifier, verify_scholarship_batch

logger = logging.getLogger("run_match")

DEFAULT_CONFIG_PATH = ROOT_DIR / "data" / "matching_config.json"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank scholarships for one set of questionnaire answers.")
    parser.add_argument("--answers", type=Path, required=True, help="JSON file with questionnaire answers.")
    parser.add_argument(
        "--records",
        type=Path,
        default=None,
        help="Parquet or JSON scholarship records; used instead of a hosted store.",
    )
    parser.add_argument("--store-url", type=str, default=os.environ.get("SUPABASE_URL"))
    parser.add_argument("--store-key", type=str, default=os.environ.get("SUPABASE_KEY"))
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--today", type=str, default=None, help="Override today's date (YYYY-MM-DD).")
    parser.add_argument("--filters", type=Path, default=None, help="JSON file with result filters.")
    parser.add_argument("--search", type=str, default=None, help="Keep matches mentioning this text.")
    parser.add_argument("--sort-by", choices=SORT_KEYS, default="match")
    parser.add_argument("--verify-links", action="store_true")
    parser.add_argument("--output", type=Path, default=None)
    return parser.parse_args(argv)


def _resolve_path(path: Path) -> Path:
    return path if path.is_absolute() else ROOT_DIR / path


def build_store(records: Path | None, store_url: str | None, store_key: str | None) -> RecordStore:
    if records is not None:
        return FrameRecordStore.from_path(_resolve_path(records))
    if store_url and store_key:
        return PostgrestRecordStore(store_url, store_key)
    raise ValueError("Provide --records or a store URL and key (SUPABASE_URL / SUPABASE_KEY).")


def run_match(
    answers: dict[str, Any],
    store: RecordStore,
    *,
    config_path: Path | None = None,
    today: date | None = None,
    verify_links: bool = False,
    filters: ResultFilters | None = None,
    search_term: str | None = None,
    sort_by: str = "match",
) -> dict[str, Any]:
    loaded = load_matching_config(config_path)
    cache = MatchResultCache(
        ttl_seconds=loaded.matching.cache_ttl_seconds,
        max_entries=loaded.matching.cache_max_entries,
    )
    with ScholarshipMatcher(
        store,
        cache=cache,
        config=loaded.matching,
        weights=loaded.scoring_weights,
        major_categories=loaded.major_categories,
    ) as matcher:
        result = matcher.match(normalize_answers(answers), today=today)

    if filters is not None or search_term or sort_by != "match":
        # Categories and totalMatches still describe the full ranked list.
        result.scholarships = refine_matches(
            result.scholarships,
            filters,
            search_term=search_term,
            sort_by=sort_by,
            today=today,
        )

    if verify_links and not result.is_empty:
        http_client = PoliteHttpClient(requests_per_second=5.0, timeout_seconds=10.0)
        try:
            result.scholarships = verify_scholarship_batch(
                result.scholarships,
                LinkVerifier(http_client=http_client),
                batch_size=loaded.matching.verification_batch_size,
            )
        finally:
            http_client.close()

    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    answers = json.loads(_resolve_path(args.answers).read_text(encoding="utf-8"))
    if not has_required_answers(answers):
        logger.error("Please complete education level, major and GPA to find matching scholarships.")
        return 2

    try:
        store = build_store(args.records, args.store_url, args.store_key)
        filters = None
        if args.filters is not None:
            filters = ResultFilters.from_mapping(
                json.loads(_resolve_path(args.filters).read_text(encoding="utf-8"))
            )
        payload = run_match(
            answers,
            store,
            config_path=_resolve_path(args.config),
            today=date.fromisoformat(args.today) if args.today else None,
            verify_links=args.verify_links,
            filters=filters,
            search_term=args.search,
            sort_by=args.sort_by,
        )
    except InvalidProfileError as exc:
        logger.error("Invalid answers: %s", exc)
        return 2
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    if args.output is not None:
        write_json_atomic(payload, _resolve_path(args.output))
        print(f"Wrote {payload['totalMatches']} matches to {args.output}")
    else:
        print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
