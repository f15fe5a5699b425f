"""Claim catalog.

Claims are permission flags carried in bearer tokens. The catalog is
closed: it is defined here and frozen when the module is imported.
"""

from enum import IntEnum
from types import MappingProxyType
from typing import Iterable, Mapping

from domain.model.errors import ValidationError


class Claim(IntEnum):
    ADMIN = 0

    @property
    def label(self) -> str:
        return self.name.lower()


CLAIMS: Mapping[int, str] = MappingProxyType({claim.value: claim.label for claim in Claim})


def is_valid_claim(claim_id: int) -> bool:
    return claim_id in CLAIMS


def claim_name(claim_id: int) -> str:
    """Return the catalog name for ``claim_id``.

    Raises:
        ValidationError: the id is not part of the catalog
    """
    if not is_valid_claim(claim_id):
        raise ValidationError(f"not valid claim detected: {claim_id}")
    return CLAIMS[claim_id]


def validate_claims(claim_ids: Iterable[int]) -> None:
    for claim_id in claim_ids:
        claim_name(claim_id)
