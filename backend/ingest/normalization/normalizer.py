"""
Normalization layer entry point.
Routes raw provider records to the dataset adapter for their provider tag.

Normalization is total: whatever the payload shape, every raw record yields
one fully-populated canonical record, defaulted where the source is silent.
"""
from __future__ import annotations

from typing import Any, Callable

from shared.models.domain import AnyRecord, Standing
from shared.models.enums import DatasetType
from shared.utils.logging import get_logger

from ingest.normalization.leagues import normalize_league
from ingest.normalization.matches import normalize_match
from ingest.normalization.odds import normalize_odds
from ingest.normalization.standings import normalize_standing

logger = get_logger(__name__)

Adapter = Callable[[Any, str], AnyRecord]

ADAPTERS: dict[DatasetType, Adapter] = {
    DatasetType.LIVE: normalize_match,
    DatasetType.LIVE_ALL: normalize_match,
    DatasetType.FIXTURES: normalize_match,
    DatasetType.STANDINGS: normalize_standing,
    DatasetType.ODDS: normalize_odds,
    DatasetType.LEAGUES: normalize_league,
    DatasetType.HEAD_TO_HEAD: normalize_match,
    DatasetType.RECENT_FORM: normalize_match,
}


def normalize_record(dataset: DatasetType, raw: Any, provider_tag: str) -> AnyRecord:
    return ADAPTERS[dataset](raw, provider_tag)


def normalize_records(dataset: DatasetType, raw_records: Any, provider_tag: str) -> list[AnyRecord]:
    """
    Normalize a raw record list.

    A non-list payload (degraded text body, error envelope) is a malformed
    payload and normalizes to an empty list.
    """
    if not isinstance(raw_records, list):
        logger.warning(
            "malformed_payload",
            provider=provider_tag,
            dataset=dataset.value,
            payload_type=type(raw_records).__name__,
        )
        return []

    records = [normalize_record(dataset, raw, provider_tag) for raw in raw_records]

    if dataset == DatasetType.STANDINGS:
        # Tables without explicit ranks are already in rank order
        for index, record in enumerate(records, start=1):
            if isinstance(record, Standing) and record.position == 0:
                record.position = index
    return records
