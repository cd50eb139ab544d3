"""
Default feed source list.

Used by ``python -m opennews.main seed-sources`` to populate an empty
``feed_sources`` table. After seeding, sources are managed in the database.
"""

from typing import Any

DEFAULT_SOURCES: dict[str, dict[str, Any]] = {
    # --- Crypto news ---
    "cointelegraph": {
        "name": "Cointelegraph",
        "kind": "rss",
        "feed_link": "https://cointelegraph.com/rss",
    },
    "coindesk": {
        "name": "CoinDesk",
        "kind": "rss",
        "feed_link": "https://www.coindesk.com/arc/outboundfeeds/rss/",
    },
    "decrypt": {
        "name": "Decrypt",
        "kind": "rss",
        "feed_link": "https://decrypt.co/feed",
    },
    "the_block": {
        "name": "The Block",
        "kind": "rss",
        "feed_link": "https://www.theblock.co/rss.xml",
    },
    "bitcoin_magazine": {
        "name": "Bitcoin Magazine",
        "kind": "rss",
        "feed_link": "https://bitcoinmagazine.com/feed",
    },
    # --- AI research (uncapped) ---
    "arxiv_cs_ai": {
        "name": "arXiv cs.AI",
        "kind": "rss",
        "feed_link": "https://rss.arxiv.org/rss/cs.AI",
    },
    "arxiv_cs_cl": {
        "name": "arXiv cs.CL",
        "kind": "rss",
        "feed_link": "https://rss.arxiv.org/rss/cs.CL",
    },
    # --- Push channels (ingested through POST /webhook, never polled) ---
    "telegram_push": {
        "name": "WebSocket Source",
        "kind": "websocket-push",
        "feed_link": "push://telegram",
    },
}
