"""Background writer settings. Only the promscale profile tunes these."""

from conftune.services.recommend.base import KeySpec, Recommender, ValueKind
from conftune.services.units import TimeUnit


BGWRITER_LABEL = "background writer"

BGWRITER_DELAY = "bgwriter_delay"
BGWRITER_LRU_MAXPAGES = "bgwriter_lru_maxpages"
BGWRITER_FLUSH_AFTER = "bgwriter_flush_after"

BGWRITER_SPECS = (
    KeySpec(BGWRITER_DELAY, ValueKind.TIME, TimeUnit.MILLISECONDS),
    KeySpec(BGWRITER_LRU_MAXPAGES, ValueKind.NUMERIC),
    KeySpec(BGWRITER_FLUSH_AFTER, ValueKind.NUMERIC),
)

PROMSCALE_BGWRITER_VALUES = {
    BGWRITER_DELAY: "10ms",
    BGWRITER_LRU_MAXPAGES: "100000",
    BGWRITER_FLUSH_AFTER: "0",
}


class PromscaleBgwriterRecommender(Recommender):
    """Aggressive background writer for high-rate metric ingest."""

    label = BGWRITER_LABEL
    specs = BGWRITER_SPECS

    def _recommend(self, key: str) -> str:
        return PROMSCALE_BGWRITER_VALUES[key]
