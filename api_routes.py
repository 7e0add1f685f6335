#!/usr/bin/env python3
"""
JSON and image endpoints for the feeder web app.
Separated from the page routes - import and register with the Flask app.
"""

import io
import logging

import requests
from flask import Response, jsonify, request, send_file, send_from_directory
from qrcode.exceptions import DataOverflowError

import feeder_config
from area_calculator import compute_area
from compositor import PLACEHOLDER_SVG, create_bookmatched_texture, fetch_image_bytes
from feeder_auth import catalog_client, login_required
from product_forms import validate_price
from qr_cards import (
    QR_PRESETS,
    card_filename,
    compose_qr_card,
    encode_product_qr,
    form_qr_filename,
    simple_qr_filename,
)

PROXY_HEADERS = {
    "Cache-Control": "public, max-age=86400",
    "Access-Control-Allow-Origin": "*",
}

QR_FILENAMES = {
    "card": card_filename,
    "simple": simple_qr_filename,
    "form": form_qr_filename,
}


def placeholder_response() -> Response:
    return Response(PLACEHOLDER_SVG, mimetype="image/svg+xml", headers=PROXY_HEADERS)


def register_api_routes(app):
    """Register image, QR and calculator API routes with Flask app."""

    @app.route('/api/proxy-image', methods=['GET'])
    def proxy_image():
        """
        Re-serve a remote image from this origin.

        Query params:
            url: Remote image URL

        Returns:
            200: Image bytes with the upstream content type, or a placeholder
                 SVG if the url is missing or the fetch fails
        """
        url = request.args.get('url')
        if not url:
            return placeholder_response()

        try:
            content, content_type = fetch_image_bytes(url, timeout=feeder_config.REQUEST_TIMEOUT)
        except requests.HTTPError as e:
            logging.error("Failed to fetch image: %s", e)
            return placeholder_response()
        except requests.RequestException as e:
            logging.error("Error proxying image: %s", e)
            return placeholder_response()

        return Response(content, mimetype=content_type, headers=PROXY_HEADERS)

    @app.route('/api/calculate-quantity', methods=['POST'])
    def calculate_quantity():
        """
        Live quantity for the product form.

        Body (JSON or form): sizeLength, sizeHeight, sizeUnit, numberOfPieces

        Returns:
            200: {quantity, formula}; both null when the inputs are incomplete
                 or invalid
        """
        data = request.get_json(silent=True) or request.form
        length = data.get('sizeLength', '')
        height = data.get('sizeHeight', '')
        unit = data.get('sizeUnit', 'in')
        pieces = data.get('numberOfPieces', '')

        result = compute_area(length, height, unit, pieces)
        if result is None:
            error = None
            if all(str(v).strip() for v in (length, height, pieces)):
                error = "Please enter valid numbers for size and pieces"
            return jsonify({'quantity': None, 'formula': None, 'error': error})

        return jsonify({'quantity': result.total_area, 'formula': result.formula, 'error': None})

    @app.route('/api/qr/<product_id>', methods=['GET'])
    def download_qr(product_id):
        """
        Plain QR code for a product.

        Query params:
            preset: simple (300px, default) | form (200px, margin 2) | card (200px)
        """
        preset = request.args.get('preset', 'simple')
        if preset not in QR_PRESETS:
            return jsonify({'success': False, 'message': f'Unknown preset: {preset}'}), 400

        try:
            png = encode_product_qr(product_id, preset=preset)
        except (ValueError, DataOverflowError) as e:
            logging.error("Error generating QR code for %s: %s", product_id, e)
            return jsonify({'success': False, 'message': 'Failed to generate QR code'}), 400

        return send_file(
            io.BytesIO(png),
            mimetype='image/png',
            as_attachment=True,
            download_name=QR_FILENAMES[preset](product_id),
        )

    @app.route('/api/qr-card/<product_id>', methods=['GET'])
    def download_qr_card(product_id):
        """
        Printable QR card.

        Query params:
            name: Product name printed under the code
            fallback: "1" to get the bare QR code if the card template is missing

        Returns:
            200: PNG download
            500: {success: false, message} when the card could not be built
        """
        name = request.args.get('name', '')
        fallback = request.args.get('fallback') == '1'

        result = compose_qr_card(product_id, name, fallback_to_plain=fallback)
        if not result.ok:
            return jsonify({'success': False, 'message': result.error}), 500

        return send_file(
            io.BytesIO(result.png),
            mimetype='image/png',
            as_attachment=True,
            download_name=card_filename(product_id),
        )

    @app.route('/api/bookmatch', methods=['GET'])
    def bookmatch_texture():
        """
        Bookmatched texture for an image URL.

        Returns:
            200: {dataUrl, backgroundSize, backgroundPosition, fellBack}
        """
        url = request.args.get('url', '')
        texture = create_bookmatched_texture(url)
        return jsonify({
            'dataUrl': texture.data_url,
            'backgroundSize': texture.background_size,
            'backgroundPosition': texture.background_position,
            'fellBack': texture.fell_back,
        })

    @app.route('/api/update-price/<product_id>', methods=['POST'])
    @login_required
    def update_price(product_id):
        """
        Inline price edit from the bulk edit page.

        Body: {price}

        Returns:
            200: {success: true, price}
            400: invalid price
            502: backend refused or was unreachable
        """
        data = request.get_json(silent=True) or request.form
        price = validate_price(str(data.get('price', '')))
        if price is None:
            return jsonify({'success': False, 'message': 'Please enter a valid price'}), 400

        result = catalog_client().update_price(product_id, price)
        if not result.success:
            return jsonify({'success': False, 'message': result.message}), 502

        logging.info("Updated price for %s to %s", product_id, price)
        return jsonify({'success': True, 'price': price, 'message': 'Price updated successfully'})

    @app.route('/mockups/<path:filename>', methods=['GET'])
    def mockup_image(filename):
        return send_from_directory(feeder_config.MOCKUPS_DIR, filename)
