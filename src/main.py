"""Command-line front-end for the shop backend, backed by the sqlite store."""

import argparse
import asyncio
import dataclasses
import json
import sys

from rich.console import Console

from core.api import Backend, Response
from utils.config import get_settings

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shop backend - accounts, catalog and carts")
    parser.add_argument("--db", help="sqlite file to use (default: DB_PATH or data/shop.sqlite)")
    sub = parser.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Create an account and email its credentials")
    reg.add_argument("full_name")
    reg.add_argument("email")
    reg.add_argument("role", choices=["admin", "buyer"])

    login = sub.add_parser("login", help="Check a userID/PIN pair")
    login.add_argument("user_id")
    login.add_argument("pin")

    add = sub.add_parser("add-product", help="Add a product to the catalog")
    add.add_argument("name")
    add.add_argument("price", type=float)
    add.add_argument("quantity", type=int)
    add.add_argument("--description", default="")

    rm = sub.add_parser("remove-product", help="Remove a product by id")
    rm.add_argument("product_id")

    sub.add_parser("products", help="List every product")

    cart_add = sub.add_parser("cart-add", help="Put a product in a user's cart")
    cart_add.add_argument("user_id")
    cart_add.add_argument("product_id")

    cart_rm = sub.add_parser("cart-remove", help="Take a product out of a user's cart")
    cart_rm.add_argument("user_id")
    cart_rm.add_argument("product_id")

    cart = sub.add_parser("cart", help="Show a user's cart")
    cart.add_argument("user_id")

    return parser


async def dispatch(backend: Backend, args: argparse.Namespace) -> Response:
    cmd = args.command
    if cmd == "register":
        return await backend.register(
            {"fullName": args.full_name, "email": args.email, "role": args.role}
        )
    if cmd == "login":
        return await backend.login({"userID": args.user_id, "pin": args.pin})
    if cmd == "add-product":
        return await backend.add_product(
            {
                "name": args.name,
                "description": args.description,
                "price": args.price,
                "quantity": args.quantity,
            }
        )
    if cmd == "remove-product":
        return await backend.remove_product(args.product_id)
    if cmd == "products":
        return await backend.list_products()
    if cmd == "cart-add":
        return await backend.cart_add({"userID": args.user_id, "productID": args.product_id})
    if cmd == "cart-remove":
        return await backend.cart_remove({"userID": args.user_id, "productID": args.product_id})
    if cmd == "cart":
        return await backend.get_cart(args.user_id)
    raise ValueError(f"Unknown command: {cmd}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.db:
        settings = dataclasses.replace(settings, db_path=args.db)
    backend = Backend.from_settings(settings)
    try:
        response = await dispatch(backend, args)
    finally:
        await backend.close()

    console.print_json(json.dumps(response.body))
    if not response.ok:
        console.print(f"[red]status {response.status}[/]")
        return 1
    return 0


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
