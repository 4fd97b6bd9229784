import pytest

from cart import CartEngine, compute_totals
from errors import EmptyCartError, InvalidQuantityError, InvalidSizeError, PromoCodeNotFoundError
from schemas import Cart, Product, PromoCode

from conftest import make_promo


def product(pid="9", price=10250, **kwargs):
    return Product(id=pid, name=f"Ring {pid}", category="rings", price=price, **kwargs)


def new_engine():
    return CartEngine(Cart(cart_key="session"))


def test_add_same_product_and_size_merges_quantity():
    engine = new_engine()
    ring = product()
    engine.add_item(ring, 2, size="18")
    engine.add_item(ring, 3, size="18")
    assert len(engine.lines) == 1
    assert engine.lines[0].quantity == 5


def test_different_sizes_are_separate_lines():
    engine = new_engine()
    ring = product()
    engine.add_item(ring, size="17")
    engine.add_item(ring, size="18.5")
    assert [l.size for l in engine.lines] == ["17", "18.5"]


def test_add_rejects_non_positive_quantity():
    engine = new_engine()
    with pytest.raises(InvalidQuantityError):
        engine.add_item(product(), 0)
    with pytest.raises(InvalidQuantityError):
        engine.add_item(product(), -2)
    assert engine.lines == []


def test_sized_product_requires_size():
    engine = new_engine()
    with pytest.raises(InvalidSizeError):
        engine.add_item(product(sizes=["17", "18"]))


def test_unit_price_is_snapshotted_at_add_time():
    engine = new_engine()
    ring = product(price=1000)
    engine.add_item(ring)
    ring.price = 9999
    engine.add_item(ring)
    assert engine.lines[0].unit_price == 1000
    assert engine.subtotal == 2000


@pytest.mark.parametrize("quantity", [0, -1, -10])
def test_update_quantity_to_zero_or_less_removes_line(quantity):
    engine = new_engine()
    engine.add_item(product(), 4, size="18")
    engine.update_quantity("9", "18", quantity)
    assert engine.find_line("9", "18") is None


def test_update_quantity_sets_absolute_value_and_ignores_missing_line():
    engine = new_engine()
    engine.add_item(product(), 4, size="18")
    engine.update_quantity("9", "18", 2)
    engine.update_quantity("missing", None, 7)
    assert engine.lines[0].quantity == 2
    assert len(engine.lines) == 1


def test_remove_item_only_touches_matching_size():
    engine = new_engine()
    engine.add_item(product(), size="17")
    engine.add_item(product(), size="18")
    engine.remove_item("9", "17")
    engine.remove_item("9", "20")
    assert [l.size for l in engine.lines] == ["18"]


def test_clear_drops_lines_and_promo(repo):
    engine = new_engine()
    engine.add_item(product())
    engine.apply_promo_code("savra10", [make_promo(repo)])
    engine.clear()
    assert engine.lines == []
    assert engine.cart.applied_promo is None


def test_scenario_without_promo_above_threshold():
    engine = new_engine()
    engine.add_item(product(), 1, size="18")
    totals = engine.totals()
    assert (totals.subtotal, totals.discount, totals.delivery, totals.total) == (10250, 0, 0, 10250)


def test_scenario_with_promo(repo):
    engine = new_engine()
    engine.add_item(product(), 1, size="18")
    discount = engine.apply_promo_code("SAVRA10", [make_promo(repo)])
    assert discount == 1025
    assert engine.totals().total == 9225


def test_scenario_small_cart_pays_delivery():
    engine = new_engine()
    engine.add_item(product(price=1000), 2)
    totals = engine.totals()
    assert (totals.subtotal, totals.discount, totals.delivery, totals.total) == (2000, 0, 500, 2500)


def test_delivery_threshold_is_exclusive():
    assert compute_totals(5000).delivery == 500
    assert compute_totals(5001).delivery == 0


def test_installment_is_floor_of_total_over_months():
    assert compute_totals(10250).installment == 854
    assert compute_totals(10250, installment_months=6).installment == 1708


def test_promo_lookup_is_case_insensitive(repo):
    engine = new_engine()
    engine.add_item(product())
    assert engine.apply_promo_code("  savra10 ", [make_promo(repo)]) == 1025


def test_applying_same_promo_twice_is_idempotent(repo):
    promo = make_promo(repo)
    engine = new_engine()
    engine.add_item(product())
    first = engine.apply_promo_code("SAVRA10", repo.list_promo_codes())
    second = engine.apply_promo_code("SAVRA10", repo.list_promo_codes())
    assert first == second == 1025
    assert repo.get_promo_code(promo.id).usage_count == 0


@pytest.mark.parametrize("is_active", [True, False])
def test_exhausted_promo_is_rejected(repo, is_active):
    make_promo(repo, max_usage=3, usage_count=3, is_active=is_active)
    engine = new_engine()
    engine.add_item(product())
    with pytest.raises(PromoCodeNotFoundError):
        engine.apply_promo_code("SAVRA10", repo.list_promo_codes())
    assert engine.cart.applied_promo is None


def test_inactive_or_unknown_promo_is_rejected(repo):
    make_promo(repo, is_active=False)
    engine = new_engine()
    engine.add_item(product())
    for code in ("SAVRA10", "NOPE"):
        with pytest.raises(PromoCodeNotFoundError):
            engine.apply_promo_code(code, repo.list_promo_codes())


def test_discount_is_frozen_and_total_never_negative(repo):
    engine = new_engine()
    engine.add_item(product(price=10000), 1)
    engine.apply_promo_code("FULL", [make_promo(repo, code="FULL", discount=100)])
    engine.update_quantity("9", None, 1)
    engine.remove_item("9")
    engine.add_item(product("2", price=100))
    totals = engine.totals()
    assert totals.discount == 10000
    assert totals.total == 0


def test_remove_promo_restores_undiscounted_total(repo):
    engine = new_engine()
    engine.add_item(product())
    engine.apply_promo_code("SAVRA10", [make_promo(repo)])
    engine.remove_promo_code()
    assert engine.totals().total == 10250


def test_submit_order_increments_usage_once_and_clears_cart(repo):
    promo = make_promo(repo)
    engine = new_engine()
    engine.add_item(product(), size="18")
    engine.apply_promo_code("SAVRA10", repo.list_promo_codes())

    order = engine.submit_order(repo, user_id="u1")

    assert order.status == "pending"
    assert order.total == 9225
    assert order.discount == 1025
    assert order.promo_code == "SAVRA10"
    assert order.order_type == "catalog"
    assert repo.get_promo_code(promo.id).usage_count == 1
    stored = repo.get_order(order.id)
    assert (stored.total, stored.promo_code, len(stored.lines)) == (9225, "SAVRA10", 1)
    assert engine.lines == []
    assert engine.cart.applied_promo is None


def test_submit_without_promo_leaves_usage_untouched(repo):
    promo = make_promo(repo)
    engine = new_engine()
    engine.add_item(product())
    engine.submit_order(repo)
    assert repo.get_promo_code(promo.id).usage_count == 0


def test_submit_empty_cart_fails(repo):
    with pytest.raises(EmptyCartError):
        new_engine().submit_order(repo)


def test_submit_revalidates_promo(repo):
    promo = make_promo(repo, max_usage=1)
    engine = new_engine()
    engine.add_item(product())
    engine.apply_promo_code("SAVRA10", repo.list_promo_codes())
    repo.increment_promo_usage(promo.id)

    with pytest.raises(PromoCodeNotFoundError):
        engine.submit_order(repo)
    assert len(engine.lines) == 1
    assert repo.count_orders() == 0


def test_constructor_line_marks_order_type(repo):
    engine = new_engine()
    engine.add_item(product(), size="18")
    engine.add_item(product("2", price=500), size="19.5", order_type="constructor")
    assert engine.submit_order(repo).order_type == "constructor"


def test_promo_code_model_canonicalises_code():
    assert PromoCode(id="1", code=" summer ", discount=5).code == "SUMMER"
