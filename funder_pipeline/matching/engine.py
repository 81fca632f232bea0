"""AI funder matching with a read-through/write-through result cache."""

import logging
from typing import List

from ..errors import NoFundersAvailable, StoreError
from ..models import CharityProfile, FunderMatch
from .cache import MatchCache, compute_cache_key
from .parser import parse_matching_response
from .prompts import MATCHING_SYSTEM_PROMPT, FunderSample, build_matching_prompt

logger = logging.getLogger(__name__)

FUNDER_LIMIT = 50
GRANT_SAMPLE_SIZE = 10
TOP_MATCHES = 20


class FunderMatcher:
    """Ranks the busiest funders in the store for one charity.

    The scoring service is only called on a cache miss (or a forced refresh).
    """

    def __init__(
        self,
        store,
        scoring_client,
        cache: MatchCache,
        currency: str = "GBP",
        funder_limit: int = FUNDER_LIMIT,
        grant_sample_size: int = GRANT_SAMPLE_SIZE,
        top_matches: int = TOP_MATCHES,
    ) -> None:
        self._store = store
        self._scoring = scoring_client
        self._cache = cache
        self.currency = currency
        self.funder_limit = funder_limit
        self.grant_sample_size = grant_sample_size
        self.top_matches = top_matches

    def match_funders(self, profile: CharityProfile, force_refresh: bool = False) -> List[FunderMatch]:
        """Return up to ``top_matches`` funders, best match first.

        Raises:
            StoreError: the funder list could not be read.
            NoFundersAvailable: the store holds no funders.
            ParseError: the scoring response was malformed.
        """
        funders = self._store.list_funders(limit=self.funder_limit, order_by_grant_count=True)
        if not funders:
            raise NoFundersAvailable("No funders found in database")

        cache_key = compute_cache_key(profile, [f.org_id for f in funders])
        if force_refresh:
            logger.info("Force refresh requested, bypassing cache")
        else:
            cached = self._cache.lookup(profile.reg_charity_number, cache_key)
            if cached is not None:
                return cached

        samples = [
            FunderSample(funder=funder, grants=self._grant_sample(funder.org_id))
            for funder in funders
        ]
        prompt = build_matching_prompt(profile, samples, currency=self.currency)

        logger.info(
            f"Scoring {len(funders)} funders for charity {profile.charity_name} "
            f"({profile.reg_charity_number})"
        )
        response_text = self._scoring.complete(MATCHING_SYSTEM_PROMPT, prompt)
        matches = parse_matching_response(response_text, funders)

        # sorted() is stable, so equal scores keep the scoring service's order
        ranked = sorted(matches, key=lambda m: m.match_score, reverse=True)[: self.top_matches]

        self._cache.store(profile, cache_key, ranked)
        return ranked

    def _grant_sample(self, funder_org_id: str):
        try:
            return self._store.get_recent_grants(funder_org_id, limit=self.grant_sample_size)
        except StoreError as exc:
            logger.error(f"Error fetching grants for {funder_org_id}: {exc}")
            return []
