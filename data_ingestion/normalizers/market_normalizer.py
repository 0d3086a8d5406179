"""
Normalizers - Market and reference data.

============================================================
SOURCES
============================================================
- CoinGecko: /search/trending (``coins[].item``), /coins/markets
  (plain list) and /global (``data`` summary)
- NASA Astronomy Picture of the Day (one object, or a list when
  a date range is requested)

Neither source carries a per-item publication time except APOD,
so CoinGecko items are stamped with the ingestion time.

============================================================
"""

from typing import Any, Dict, List

from data_ingestion.normalizers.base import NormalizationContext, NormalizerPlugin
from data_ingestion.normalizers.helpers import (
    coerce_timestamp,
    digest,
    stable_id,
    strip_html,
)
from data_ingestion.normalizers.schemas import ApodSchema, CoinGeckoSchema
from data_ingestion.parsers.base import ParsedPayload
from data_ingestion.types import NormalizedItem, Priority


COINGECKO_TRUST_RATING = 80
NASA_TRUST_RATING = 100

COINGECKO_COIN_URL = "https://www.coingecko.com/en/coins/{id}"
COINGECKO_HOME_URL = "https://www.coingecko.com"


# =============================================================
# COINGECKO
# =============================================================

class CoinGeckoNormalizer(NormalizerPlugin):
    key = "coingecko"
    schema = CoinGeckoSchema

    def _coin_item(
        self,
        coin: Dict[str, Any],
        summary: str,
        tags: List[str],
        context: NormalizationContext,
    ) -> NormalizedItem:
        coin_id = coin.get("id")
        name = coin.get("name") or coin.get("symbol") or "Crypto Asset"
        return NormalizedItem(
            id=stable_id("cg", coin_id, name),
            title=name,
            link=COINGECKO_COIN_URL.format(id=coin_id) if coin_id else COINGECKO_HOME_URL,
            published_at=context.ingested_at,
            source_id=context.source_id,
            description=summary,
            tags=tags,
            priority=Priority.MEDIUM,
            category=context.endpoint.category,
            trust_rating=COINGECKO_TRUST_RATING,
            metadata=dict(coin),
        )

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        data = payload.data

        if isinstance(data, dict) and isinstance(data.get("coins"), list):
            items = []
            for entry in data["coins"]:
                if not isinstance(entry, dict):
                    continue
                coin = entry.get("item") if isinstance(entry.get("item"), dict) else entry
                name = coin.get("name") or coin.get("symbol")
                items.append(self._coin_item(coin, f"Trending: {name}", ["crypto", "trending"], context))
            return items

        if isinstance(data, list):
            return [
                self._coin_item(
                    coin,
                    f"{coin.get('name') or coin.get('symbol')} price: ${coin.get('current_price')}",
                    ["crypto", "markets"],
                    context,
                )
                for coin in data if isinstance(coin, dict)
            ]

        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            summary = data["data"]
            marker = summary.get("updated_at") or digest(sorted(summary.items()))
            return [NormalizedItem(
                id=f"cg-global-{marker}",
                title="Crypto Market Overview",
                link=COINGECKO_HOME_URL,
                published_at=coerce_timestamp(summary.get("updated_at"), context.ingested_at),
                source_id=context.source_id,
                description=f"Active Cryptocurrencies: {summary.get('active_cryptocurrencies')}",
                tags=["crypto", "global"],
                priority=Priority.MEDIUM,
                category=context.endpoint.category,
                trust_rating=COINGECKO_TRUST_RATING,
                metadata=dict(summary),
            )]

        return []


# =============================================================
# NASA APOD
# =============================================================

class NasaApodNormalizer(NormalizerPlugin):
    key = "nasa-apod"
    schema = ApodSchema

    def _item(self, entry: Dict[str, Any], context: NormalizationContext) -> NormalizedItem:
        date = entry.get("date")
        explanation = entry.get("explanation") or ""
        return NormalizedItem(
            id=stable_id("nasa-apod", date, entry.get("title"), entry.get("url")),
            title=entry.get("title") or "Astronomy Picture of the Day",
            link=entry.get("url") or context.source_url,
            published_at=coerce_timestamp(date, context.ingested_at),
            source_id=context.source_id,
            description=strip_html(explanation),
            tags=["astronomy", "space", "nasa", "image"],
            priority=Priority.MEDIUM,
            category=context.endpoint.category,
            trust_rating=NASA_TRUST_RATING,
            metadata={
                "media_type": entry.get("media_type"),
                "hd_url": entry.get("hdurl"),
                "copyright": entry.get("copyright"),
            },
        )

    def normalize(
        self,
        payload: ParsedPayload,
        context: NormalizationContext,
    ) -> List[NormalizedItem]:
        data = payload.data
        entries = [data] if isinstance(data, dict) else data if isinstance(data, list) else []
        return [self._item(e, context) for e in entries if isinstance(e, dict)]
