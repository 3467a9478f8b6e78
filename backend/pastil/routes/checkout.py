# Overview: Flask API routes for checkout and cancellation; parses input and returns JSON responses.

# backend/pastil/routes/checkout.py
"""Checkout API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import checkout_service, recipe_service, transaction_number_service
from ..services.cancellation_service import (
    CancellationExpiredError,
    CancellationNotFoundError,
    get_cancellation_window,
)
from ..services.cart import Cart, CartError
from ..services.checkout_service import CheckoutValidationError
from ..services.concurrency import PersistenceError
from ..services.sales_service import SaleError


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _build_cart(items) -> Cart:
    """Cart from [{"product_id": 1, "quantity": 2}, ...]; unknown products raise CartError."""
    if not isinstance(items, list):
        raise CartError("items must be a list")

    wanted = []
    for raw in items:
        if not isinstance(raw, dict) or "product_id" not in raw:
            raise CartError("each item needs product_id and quantity")
        wanted.append((raw["product_id"], raw.get("quantity", 1)))

    products = {p.id: p for p in recipe_service.load_products([pid for pid, _ in wanted])}

    cart = Cart()
    for product_id, quantity in wanted:
        product = products.get(product_id)
        if product is None:
            raise CartError(f"Product {product_id} not found")
        cart.add(product, quantity)
    return cart


@checkout_bp.get("/products")
def list_products_route():
    """Finished products with derived cost and availability."""
    return jsonify({"products": recipe_service.list_product_availability()}), 200


@checkout_bp.post("")
def checkout_route():
    """
    Commit a cart.

    201: committed; 207: sale recorded but some stock deductions failed;
    400: validation; 500: sale rows could not be written.
    """
    try:
        data = request.get_json(silent=True) or {}
        cart = _build_cart(data.get("items", []))

        result = checkout_service.checkout(
            cart,
            payment_method=data.get("payment_method"),
            customer_type=data.get("customer_type"),
            dine_in_takeout=data.get("dine_in_takeout"),
            customer_payment_cents=data.get("customer_payment_cents"),
        )

        status = 207 if result.is_partial else 201
        return jsonify({"checkout": result.to_dict()}), status

    except CartError as e:
        return jsonify({"error": str(e), "details": {}}), 400
    except CheckoutValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except PersistenceError as e:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Failed to process sale", "details": e.details}), 500
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.get("/pending")
def pending_route():
    """Most recent sale that can still be cancelled, with seconds remaining."""
    window = get_cancellation_window()
    entry = window.pending()
    if entry is None:
        return jsonify({"pending": None}), 200
    return jsonify({"pending": entry.to_dict(window.clock())}), 200


@checkout_bp.post("/<transaction_id>/cancel")
def cancel_route(transaction_id: str):
    """Void every sale row of the transaction and restore its stock."""
    try:
        result = get_cancellation_window().cancel(transaction_id)
        return jsonify({"cancellation": result.to_dict()}), 200

    except CancellationNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except CancellationExpiredError as e:
        return jsonify({"error": str(e), "details": e.details}), 410
    except (PersistenceError, SaleError) as e:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Failed to cancel sale", "details": e.details}), 500
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/<transaction_id>/dismiss")
def dismiss_route(transaction_id: str):
    dismissed = get_cancellation_window().dismiss(transaction_id)
    return jsonify({"dismissed": dismissed}), 200


@checkout_bp.get("/next-number")
def next_number_route():
    """Preview only; nothing is reserved."""
    try:
        number = transaction_number_service.next_transaction_number(request.args.get("period"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.exception("Failed to read transaction numbers")
        return jsonify({"error": "Failed to read transaction numbers", "details": e.details}), 500
    return jsonify({"transaction_number": number}), 200
