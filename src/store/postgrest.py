from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd
import requests

from src.normalize.schema import prepare_scholarship_df
from src.store.base import AnyOf, Contains, Eq, Filter, IsNull, Lte, RecordStore, StoreError
from src.store.http import PoliteHttpClient

logger = logging.getLogger(__name__)

_RESERVED_CHARS = set(',.:()"\\ {}')
POPULARITY_FUNCTION = "increment_scholarship_popularity"


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format(value, "g")
    return str(value)


def _quote(text: str) -> str:
    if not text or any(char in _RESERVED_CHARS for char in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def render_predicate(predicate: Filter) -> str:
    if isinstance(predicate, IsNull):
        return f"{predicate.column}.is.null"
    if isinstance(predicate, Eq):
        if isinstance(predicate.value, bool):
            return f"{predicate.column}.is.{_format_scalar(predicate.value)}"
        return f"{predicate.column}.eq.{_quote(_format_scalar(predicate.value))}"
    if isinstance(predicate, Lte):
        return f"{predicate.column}.lte.{_quote(_format_scalar(predicate.value))}"
    if isinstance(predicate, Contains):
        escaped = _format_scalar(predicate.value).replace("\\", "\\\\").replace('"', '\\"')
        return f'{predicate.column}.cs.{{"{escaped}"}}'
    if isinstance(predicate, AnyOf):
        if not predicate.predicates:
            raise ValueError("AnyOf requires at least one predicate.")
        return "or(" + ",".join(render_predicate(item) for item in predicate.predicates) + ")"
    raise TypeError(f"Unsupported filter type: {type(predicate).__name__}")


def build_query_params(filters: Sequence[Filter], *, limit: int) -> list[tuple[str, str]]:
    params = [("select", "*"), ("limit", str(int(limit)))]
    if filters:
        params.append(("and", "(" + ",".join(render_predicate(item) for item in filters) + ")"))
    return params


class PostgrestRecordStore(RecordStore):
    """Record store backed by a hosted PostgREST endpoint (for example Supabase)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "scholarships",
        http_client: PoliteHttpClient | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        if not base_url:
            raise ValueError("PostgrestRecordStore requires a base_url.")
        self.base_url = base_url.rstrip("/")
        self.table = table
        self._http = http_client or PoliteHttpClient(
            timeout_seconds=timeout_seconds,
            default_headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def function_url(self, name: str) -> str:
        return f"{self.base_url}/rest/v1/rpc/{name}"

    def close(self) -> None:
        self._http.close()

    def _rows_to_frame(self, payload: Any, *, source: str) -> pd.DataFrame:
        if payload is None:
            return prepare_scholarship_df([])
        if not isinstance(payload, list):
            raise StoreError(f"{source} returned a non-list payload ({type(payload).__name__}).")
        return prepare_scholarship_df(payload)

    def query_scholarships(self, filters: Sequence[Filter] = (), *, limit: int = 100) -> pd.DataFrame:
        params = build_query_params(filters, limit=limit)
        try:
            payload = self._http.get_json(self.table_url, params=params)
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Query on '{self.table}' failed: {exc}") from exc
        return self._rows_to_frame(payload, source=f"Query on '{self.table}'")

    def call_function(self, name: str, params: Mapping[str, Any]) -> pd.DataFrame:
        try:
            payload = self._http.post_json(self.function_url(name), payload=dict(params))
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Function '{name}' failed: {exc}") from exc
        return self._rows_to_frame(payload, source=f"Function '{name}'")

    def upsert(self, records: Iterable[Mapping[str, Any]]) -> int:
        rows = [dict(record) for record in records]
        if not rows:
            return 0
        try:
            self._http.post_json(
                self.table_url,
                payload=rows,
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            )
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Upsert into '{self.table}' failed: {exc}") from exc
        return len(rows)

    def delete(self, scholarship_ids: Iterable[str]) -> int:
        ids = [str(item) for item in scholarship_ids]
        if not ids:
            return 0
        id_list = ",".join(_quote(item) for item in ids)
        try:
            self._http.delete(self.table_url, params=[("id", f"in.({id_list})")])
        except requests.RequestException as exc:
            raise StoreError(f"Delete from '{self.table}' failed: {exc}") from exc
        return len(ids)

    def increment_popularity(self, scholarship_id: str) -> None:
        try:
            self._http.post_json(
                self.function_url(POPULARITY_FUNCTION),
                payload={"scholarship_id": scholarship_id},
            )
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Popularity update for '{scholarship_id}' failed: {exc}") from exc
