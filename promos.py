import logging
from typing import Iterable, Optional

from errors import AuthorizationError, DuplicatePromoCodeError, NotFoundError
from schemas import Identity, PromoCode

logger = logging.getLogger("savra")


def find_redeemable(code: str, promo_catalog: Iterable[PromoCode]) -> Optional[PromoCode]:
    """Case-insensitive lookup of a code that is active and below its usage cap."""
    wanted = code.strip().upper()
    for promo in promo_catalog:
        if promo.code.upper() == wanted and promo.is_redeemable:
            return promo
    return None


def require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")


def list_promo_codes(repository):
    return repository.list_promo_codes()


def add_promo_code(identity: Identity, repository, code: str, discount: int,
                   is_active: bool = True, max_usage: Optional[int] = None) -> PromoCode:
    require_admin(identity)
    promo = PromoCode(id=repository.new_id(), code=code, discount=discount,
                      is_active=is_active, max_usage=max_usage)
    if repository.find_promo_code(promo.code) is not None:
        raise DuplicatePromoCodeError()
    repository.save_promo_code(promo)
    logger.info("Promo code %s created (%s%%)", promo.code, promo.discount)
    return promo


def delete_promo_code(identity: Identity, repository, promo_id: str) -> None:
    require_admin(identity)
    if not repository.delete_promo_code(promo_id):
        raise NotFoundError("Promo code not found")
    logger.info("Promo code %s deleted", promo_id)
