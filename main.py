"""
main.py
Interactive storefront shell against the pastry shop API.

Usage: python main.py
Then type `help`. The revalidation loop runs in the background, so logging
out from another shell sharing the same storage file empties this cart too.
"""

import asyncio
import shlex

from storefront.api_client import ApiError
from storefront.app import Storefront
from storefront.config import load_settings
from storefront.log import configure_logging, get_logger
from storefront.signals import ORDER_STATUS_CHANGED

logger = get_logger(__name__)

HELP = """\
login <email> <password>   log in
logout                     log out (your cart is kept for next time)
whoami                     current user
products                   list active products
add <product_id> [qty]     add to cart (minimum order applies)
update <product_id> <qty>  set quantity (0 removes)
remove <product_id>        remove from cart
cart                       show cart
clear                      empty cart
checkout [notes...]        place the order
orders                     my latest orders
quit                       exit"""


def _price(value: float) -> str:
    return f"Rp {value:,.0f}".replace(",", ".")


def _print_result(result):
    if result.get("status") == "error":
        print(f"✗ {result.get('error_message', 'failed')}")
    else:
        print("✓ ok")


def _notify(message: str, ceiling: int) -> None:
    print(f"⚠️  {message}")


def show_cart(shop: Storefront):
    if not shop.cart.is_authenticated:
        print("Not logged in.")
        return
    if not shop.cart.items:
        print("Cart is empty.")
        return
    for item in shop.cart.items:
        print(f"  [{item.product.id}] {item.product.name} x{item.quantity}  {_price(item.line_total)}")
    print(f"  {shop.cart.get_total_items()} units, total {_price(shop.cart.get_total_price())}")


def cmd_add(shop: Storefront, args):
    # the shop page checks login before touching the cart
    if not shop.cart.is_authenticated:
        print("Please log in to add products to the cart.")
        return

    product_id = int(args[0])
    product = shop.client.get_product(product_id)
    if product is None or not product.is_active:
        print("Product not found.")
        return

    quantity = int(args[1]) if len(args) > 1 else product.min_order
    if quantity < product.min_order:
        print(f"Minimum purchase is {product.min_order} units. Quantity changed to {product.min_order}")
        quantity = product.min_order

    result = shop.cart.add_item(product, quantity)
    if result["status"] == "success":
        print(f"✓ {quantity}x {product.name} added to cart")
    else:
        _print_result(result)


def handle(shop: Storefront, line: str) -> bool:
    try:
        parts = shlex.split(line)
    except ValueError as e:
        print(f"✗ {e}")
        return True
    if not parts:
        return True

    cmd, args = parts[0].lower(), parts[1:]

    try:
        if cmd in ("quit", "exit"):
            return False
        elif cmd == "help":
            print(HELP)
        elif cmd == "login" and len(args) == 2:
            _print_result(shop.session.login(args[0], args[1]))
        elif cmd == "logout":
            _print_result(shop.session.logout())
        elif cmd == "whoami":
            user = shop.session.current_user()
            print(f"{user.name} <{user.email}>" if user else "Not logged in.")
        elif cmd == "products":
            for p in shop.client.list_products():
                if p.is_active:
                    print(f"  [{p.id}] {p.name}  {_price(p.unit_price)}  stock {p.stock}")
        elif cmd == "add" and args:
            cmd_add(shop, args)
        elif cmd == "update" and len(args) == 2:
            _print_result(shop.cart.update_quantity(int(args[0]), int(args[1])))
        elif cmd == "remove" and len(args) == 1:
            _print_result(shop.cart.remove_item(int(args[0])))
        elif cmd == "cart":
            show_cart(shop)
        elif cmd == "clear":
            _print_result(shop.cart.clear_cart())
        elif cmd == "checkout":
            result = shop.checkout(special_notes=" ".join(args) or None)
            if result["status"] == "success":
                print(f"✓ Order #{result['order']['id']} created")
            else:
                _print_result(result)
        elif cmd == "orders":
            orders = shop.client.my_orders(per_page=5)
            if orders is None:
                print("Server unreachable.")
            for o in orders or []:
                print(f"  #{o.id}  {o.status}  {_price(o.total_price)}")
            shop.orders.acknowledge()
        else:
            print("Unknown command. Type `help`.")
    except ApiError as e:
        print(f"✗ {e.message}")
    except ValueError:
        print("✗ Ids and quantities must be numbers.")

    if shop.badge.count:
        print(f"[cart: {shop.badge.count}]")
    return True


async def main():
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_json)

    shop = Storefront(settings, notify=_notify)
    logger.info("Storefront started", api=settings.api_base_url, storage=str(settings.storage_path))
    shop.bus.subscribe(ORDER_STATUS_CHANGED, lambda: print("🔔 One of your orders has a new status"))

    stop = asyncio.Event()
    loop_task = asyncio.create_task(shop.run_revalidation(stop))

    print("Pastry storefront. Type `help`.")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not handle(shop, line):
                break
    finally:
        stop.set()
        await loop_task
        shop.close()


if __name__ == "__main__":
    asyncio.run(main())
