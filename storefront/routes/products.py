"""Catalog endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify

from ..errors import StoreError
from ..utils.validators import ensure_positive_int
from . import error_response


products_bp = Blueprint("storefront_products", __name__, url_prefix="/api/products")
logger = logging.getLogger(__name__)


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


@products_bp.get("")
def list_products():
    try:
        return jsonify(_components()["catalog"].list_available())
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error fetching products")
        return jsonify({"error": "Error fetching products"}), 500


@products_bp.get("/<product_id>")
def get_product(product_id: str):
    try:
        pid = ensure_positive_int(product_id, "product_id")
        return jsonify(_components()["catalog"].get_product(pid))
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error fetching product %s", product_id)
        return jsonify({"error": "Error fetching product"}), 500
