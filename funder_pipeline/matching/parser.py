"""Parse the scoring service's JSON array into validated FunderMatch records."""

import json
import logging
import re
from typing import Dict, List

from pydantic import ValidationError

from ..errors import ParseError
from ..models import FunderMatch, MatchResponseItem, Organisation

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*\n(.*?)\n?\s*```", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Return the body of a fenced code block if ``text`` contains one."""
    match = _CODE_FENCE.search(text)
    return match.group(1) if match else text.strip()


def parse_matching_response(text: str, funders: List[Organisation]) -> List[FunderMatch]:
    """Decode and validate the scoring response.

    Every element must reference one of ``funders``. A single unknown
    ``funder_org_id`` fails the whole parse; dropping it silently would
    misreport how complete the result is.

    Raises:
        ParseError: malformed JSON, wrong shape, or an unknown funder.
    """
    by_id: Dict[str, Organisation] = {f.org_id: f for f in funders}

    try:
        decoded = json.loads(strip_code_fence(text))
    except ValueError as exc:
        logger.error("Scoring response is not valid JSON: %s", text[:500])
        raise ParseError("Failed to parse AI matching response") from exc
    if not isinstance(decoded, list):
        raise ParseError(f"Expected a JSON array of matches, got {type(decoded).__name__}")

    matches = []
    for position, raw in enumerate(decoded):
        try:
            item = MatchResponseItem.model_validate(raw)
        except ValidationError as exc:
            raise ParseError(f"Match {position} is malformed: {exc}") from exc

        funder = by_id.get(item.funder_org_id)
        if funder is None:
            raise ParseError(f"Funder {item.funder_org_id} not found")

        matches.append(
            FunderMatch(
                funder=funder,
                match_score=item.match_score,
                score_breakdown=item.score_breakdown,
                reasoning=item.reasoning,
                similar_charities_funded=item.similar_charities_funded,
            )
        )
    return matches
