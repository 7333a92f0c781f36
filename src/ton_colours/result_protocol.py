"""
The deployer's stdout protocol.

The blueprint script prints free-form progress lines and, as its very last
act, one machine-readable line:

    MINT_RESULT={"itemIndex": 7, "nftAddress": "EQ...", "mintedAt": "..."}

Progress lines may mention the prefix too, so the scan runs from the end and
only the last matching line counts.
"""

import json
import math

from .errors import InvalidResultPayload, MalformedResultPayload, MissingResultPayload

RESULT_PREFIX = "MINT_RESULT="


def parse_mint_result(stdout: str) -> dict:
    lines = [line.strip() for line in stdout.splitlines()]
    for line in reversed([line for line in lines if line]):
        if not line.startswith(RESULT_PREFIX):
            continue
        payload = line[len(RESULT_PREFIX):]
        try:
            result = json.loads(payload)
        except json.JSONDecodeError:
            raise MalformedResultPayload(
                "Mint script produced an invalid JSON payload", stdout=stdout
            ) from None
        if not isinstance(result, dict):
            raise MalformedResultPayload(
                "Mint script result payload is not a JSON object", stdout=stdout
            )
        return result
    raise MissingResultPayload("Mint script did not produce a result payload", stdout=stdout)


def extract_item_index(result: dict) -> int:
    value = result.get("itemIndex")
    if isinstance(value, bool):
        value = None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidResultPayload(
            "Mint script result is missing a numeric itemIndex", result=result
        )
    return value
