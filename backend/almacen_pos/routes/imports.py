# Overview: Flask API routes for product imports; parses uploads and returns JSON responses.

"""
Import Routes

Supports CSV, JSON, and Excel (.xlsx) uploads, or a JSON body with ``rows``.
"""

import csv
import io
import json

from flask import Blueprint, request, jsonify, send_file

from .. import notifications
from ..decorators import require_auth, require_role
from ..services import import_service
from ..services.import_service import ProductImportError


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _parse_upload() -> dict:
    """Parsed products from the uploaded file or the JSON body."""
    if "file" not in request.files:
        data = request.get_json(silent=True) or {}
        rows = data.get("rows")
        if not isinstance(rows, list):
            raise ProductImportError("file or rows is required")
        if rows and all(isinstance(row, (list, tuple)) for row in rows):
            return import_service.parse_table(rows)
        return import_service.parse_records(rows)

    file = request.files["file"]
    ext = (file.filename or "").rsplit(".", 1)[-1].lower()

    if ext == "csv":
        try:
            text = file.stream.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ProductImportError("El archivo CSV debe estar en UTF-8")
        return import_service.parse_table(csv.reader(io.StringIO(text)))
    if ext == "json":
        try:
            rows = json.load(file.stream)
        except ValueError:
            raise ProductImportError("JSON inválido")
        if isinstance(rows, dict):
            rows = rows.get("rows", [])
        return import_service.parse_records(rows)
    if ext in {"xlsx", "xlsm", "xltx", "xltm"}:
        return import_service.parse_table(import_service.read_workbook(io.BytesIO(file.stream.read())))
    raise ProductImportError("Unsupported file format")


@imports_bp.get("/products/template")
@require_auth
@require_role("manager")
def template_route():
    return send_file(
        io.BytesIO(import_service.build_template()),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="plantilla_inventario.xlsx",
    )


@imports_bp.post("/products/preview")
@require_auth
@require_role("manager")
def preview_route():
    """Parse and validate an upload without writing anything."""
    try:
        return jsonify(_parse_upload()), 200
    except ProductImportError as e:
        return jsonify({"error": str(e)}), 400


@imports_bp.post("/products")
@require_auth
@require_role("manager")
def import_products_route():
    """
    Import products from an upload.

    Rows that fail validation are skipped and reported in ``errors``; a file
    missing required columns imports nothing.
    """
    try:
        parsed = _parse_upload()
    except ProductImportError as e:
        return jsonify({"error": str(e)}), 400

    if any(error.startswith("Faltan columnas") for error in parsed["errors"]):
        notifications.error("Error al importar productos", parsed["errors"][0])
        return jsonify({"error": parsed["errors"][0], "errors": parsed["errors"]}), 400

    result = import_service.import_products(parsed["data"])
    result["errors"] = parsed["errors"]
    if not result["success"]:
        notifications.error("Error al importar productos", result["error"])
        return jsonify(result), 400

    notifications.success("Importación completada", f"{result['imported']} productos importados")
    return jsonify(result), 201
