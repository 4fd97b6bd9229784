import pytest

from cart import CartEngine
from configurator import RingConfigurator, is_valid_ring_size, products_in_category
from errors import ConfiguratorError
from schemas import Cart, Product

CLASSIC = Product(id="1", name="Classic Band", category="rings", price=4200, type="classic")
TEXTURED_MENS = Product(id="2", name="Bark Ring", category="rings", price=7600, type="textured_mens")


def test_category_filters_by_ring_type():
    products = [CLASSIC, TEXTURED_MENS]
    assert products_in_category("classic", products) == [CLASSIC]
    assert products_in_category("mens", products) == [TEXTURED_MENS]
    assert products_in_category("textured", products) == [TEXTURED_MENS]
    assert products_in_category("all", products) == products


def test_steps_unlock_in_order():
    wizard = RingConfigurator()
    with pytest.raises(ConfiguratorError):
        wizard.select_product(CLASSIC)
    with pytest.raises(ConfiguratorError):
        wizard.select_size("18")
    wizard.select_category("classic")
    with pytest.raises(ConfiguratorError):
        wizard.select_size("18")


def test_changing_category_resets_later_steps():
    wizard = RingConfigurator()
    wizard.select_category("all")
    wizard.select_product(CLASSIC)
    wizard.select_size("18.5")
    assert wizard.is_ready

    wizard.select_category("mens")
    assert wizard.product is None
    assert wizard.size is None
    assert not wizard.is_ready


def test_changing_product_resets_size():
    wizard = RingConfigurator()
    wizard.select_category("all")
    wizard.select_product(CLASSIC)
    wizard.select_size("17")
    wizard.select_product(TEXTURED_MENS)
    assert wizard.size is None


def test_product_outside_category_is_rejected():
    wizard = RingConfigurator()
    wizard.select_category("mens")
    with pytest.raises(ConfiguratorError):
        wizard.select_product(CLASSIC)


@pytest.mark.parametrize("size,valid", [("10", True), ("18.5", True), ("30", True),
                                        ("9.5", False), ("18.3", False), ("abc", False), ("NaN", False)])
def test_ring_size_range(size, valid):
    assert is_valid_ring_size(size) is valid


def test_complete_adds_constructor_line():
    engine = CartEngine(Cart(cart_key="s"))
    wizard = RingConfigurator()
    wizard.select_category("classic")
    wizard.select_product(CLASSIC)
    wizard.select_size("18.5")
    line = wizard.complete(engine)
    assert line.order_type == "constructor"
    assert (line.product_id, line.size, line.quantity) == ("1", "18.5", 1)


def test_complete_requires_all_steps():
    wizard = RingConfigurator()
    wizard.select_category("classic")
    with pytest.raises(ConfiguratorError):
        wizard.complete(CartEngine(Cart(cart_key="s")))
