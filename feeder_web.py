#!/usr/bin/env python3
"""
Evershine Feeder Web GUI

A browser-based interface for feeders to add, edit, price and QR-tag
stone products in the Evershine catalog. All product data lives in the
backend API; this app renders pages and composes images.
"""

import logging
import os
import threading
from urllib.parse import urlsplit

from flask import Flask, flash, redirect, render_template_string, request, url_for

import feeder_config
from api_routes import register_api_routes
from area_calculator import quantity_formula
from catalog_api import FeederSession, UploadFile
from compositor import PLACEHOLDER_DATA_URL, png_data_url
from feeder_auth import (
    catalog_client,
    clear_session,
    close_catalog_client,
    current_session,
    login_required,
    store_session,
)
from product_forms import (
    APPLICATION_AREAS,
    CATEGORIES,
    FINISHES,
    MAX_IMAGES,
    SIZE_UNITS,
    ProductForm,
    parse_application_areas,
    validate_images,
    validate_login,
    validate_registration,
)
from qr_cards import encode_product_qr, form_qr_filename
from visualizer import MOCKUPS, build_visualizer

app = Flask(__name__)
app.secret_key = feeder_config.SECRET_KEY
# 10 images of up to 5MB plus form fields
app.config['MAX_CONTENT_LENGTH'] = 60 * 1024 * 1024

register_api_routes(app)
app.teardown_appcontext(close_catalog_client)

LAYOUT_TEMPLATE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }} - Evershine</title>
    <style>
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            background: #f5f5f5;
            color: #181818;
            display: flex;
        }
        .sidebar {
            width: 72px;
            min-height: 100vh;
            background: #000;
            border-right: 6px solid #194a95;
            display: flex;
            flex-direction: column;
            align-items: center;
            padding-top: 20px;
            gap: 12px;
        }
        .sidebar a {
            color: white;
            text-decoration: none;
            font-size: 11px;
            text-align: center;
            padding: 10px 4px;
            width: 60px;
            border-radius: 8px;
        }
        .sidebar a.active, .sidebar a:hover { background: #194a95; }
        main { flex: 1; padding: 24px; max-width: 1400px; }
        h1 { font-size: 26px; margin-bottom: 16px; }
        .btn {
            padding: 10px 20px;
            border: none;
            border-radius: 6px;
            cursor: pointer;
            font-size: 14px;
            font-weight: 500;
            text-decoration: none;
            display: inline-block;
        }
        .btn-primary { background: #194a95; color: white; }
        .btn-primary:hover { background: #0f3a7a; }
        .btn-secondary { background: #95a5a6; color: white; }
        .btn:disabled { opacity: 0.6; cursor: not-allowed; }
        input[type="text"], input[type="email"], input[type="password"], input[type="number"], select, textarea {
            padding: 10px 12px;
            border: 1px solid #ccc;
            border-radius: 6px;
            font-size: 14px;
            width: 100%;
        }
        input[readonly] { background: #f9fafb; }
        label { font-weight: 600; display: block; margin-bottom: 6px; }
        .field { margin-bottom: 16px; }
        .row { display: flex; gap: 16px; }
        .row > * { flex: 1; }
        .error { color: #e74c3c; font-size: 13px; margin-top: 4px; }
        .hint { color: #666; font-size: 13px; margin-top: 4px; }
        .flash { padding: 12px 16px; border-radius: 6px; margin-bottom: 16px; }
        .flash.error { background: #fdecea; color: #c0392b; }
        .flash.success { background: #e8f8ef; color: #1e8449; }
        .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(220px, 1fr)); gap: 20px; }
        .card { background: white; border-radius: 8px; overflow: hidden; box-shadow: 0 2px 10px rgba(0,0,0,0.08); }
        .card img { width: 100%; aspect-ratio: 1; object-fit: cover; background: #f0f0f0; }
        .card .body { padding: 12px; }
        .badge { font-size: 12px; padding: 2px 8px; border-radius: 10px; background: #eee; }
        .badge.approved { background: #dcfce7; color: #166534; }
        .badge.pending { background: #fef9c3; color: #854d0e; }
        table { width: 100%; border-collapse: collapse; background: white; }
        th, td { padding: 10px; border-bottom: 1px solid #eee; text-align: left; }
        .thumbs img { width: 90px; height: 90px; object-fit: cover; border-radius: 4px; }
        .centered { max-width: 420px; margin: 60px auto; background: white; padding: 32px; border-radius: 8px; }
    </style>
</head>
<body>
    {% if show_sidebar %}
    <nav class="sidebar">
        <a href="{{ url_for('products') }}" class="{{ 'active' if active == 'products' }}">All Products</a>
        <a href="{{ url_for('add_product') }}" class="{{ 'active' if active == 'add' }}">Add Product</a>
        <a href="{{ url_for('all_qr') }}" class="{{ 'active' if active == 'all_qr' }}">Bulk Edit</a>
        <a href="{{ url_for('logout') }}">Logout</a>
    </nav>
    {% endif %}
    <main>
        {% with messages = get_flashed_messages(with_categories=true) %}
            {% for category, message in messages %}
                <div class="flash {{ category }}">{{ message }}</div>
            {% endfor %}
        {% endwith %}
        {{ body|safe }}
    </main>
    <script>
        function useFallbackImage(img) {
            img.onerror = null;
            img.src = {{ placeholder|tojson }};
        }
    </script>
</body>
</html>
'''

LANDING_TEMPLATE = '''
<div class="centered" style="text-align:center">
    <h1>Evershine</h1>
    <p style="margin-bottom:24px">Choose your portal</p>
    <p><a class="btn btn-primary" href="{{ public_site }}/admin/login">Admin Panel</a></p><br>
    <p><a class="btn btn-primary" href="{{ public_site }}/agent-login">Consultant</a></p><br>
    <p><a class="btn btn-primary" href="{{ url_for('login') }}">Feeder</a></p>
</div>
'''

LOGIN_TEMPLATE = '''
<div class="centered">
    <h1>Feeder Login</h1>
    {% if api_error %}<div class="flash error">{{ api_error }}</div>{% endif %}
    <form method="post">
        <div class="field">
            <label for="email">Email</label>
            <input type="email" id="email" name="email" value="{{ email }}">
            {% if errors.email %}<div class="error">{{ errors.email }}</div>{% endif %}
        </div>
        <div class="field">
            <label for="password">Password</label>
            <input type="password" id="password" name="password">
            {% if errors.password %}<div class="error">{{ errors.password }}</div>{% endif %}
        </div>
        <input type="hidden" name="next" value="{{ next_url }}">
        <button class="btn btn-primary" type="submit">Login</button>
    </form>
    <p class="hint">No account? <a href="{{ url_for('register') }}">Register</a></p>
</div>
'''

REGISTER_TEMPLATE = '''
<div class="centered">
    <h1>Feeder Registration</h1>
    {% if api_error %}<div class="flash error">{{ api_error }}</div>{% endif %}
    <form method="post">
        {% for name, label, kind in fields %}
        <div class="field">
            <label for="{{ name }}">{{ label }}</label>
            <input type="{{ kind }}" id="{{ name }}" name="{{ name }}"
                   value="{{ values.get(name, '') if kind != 'password' else '' }}">
            {% if errors.get(name) %}<div class="error">{{ errors.get(name) }}</div>{% endif %}
        </div>
        {% endfor %}
        <button class="btn btn-primary" type="submit">Register</button>
    </form>
    <p class="hint">Already registered? <a href="{{ url_for('login') }}">Login</a></p>
</div>
'''

ADMIN_PANEL_TEMPLATE = '''
<h1>Hello{% if feeder and feeder.name %}, {{ feeder.name }}{% endif %}</h1>
<p style="margin-bottom:20px">
    <a class="btn btn-primary" href="{{ url_for('products') }}">Products</a>
    <a class="btn btn-primary" href="{{ url_for('all_qr') }}">Bulk Edit &amp; QR</a>
</p>
<a class="btn btn-primary" href="{{ url_for('add_product') }}">+ Add Product</a>
'''

PRODUCTS_TEMPLATE = '''
<div class="row" style="align-items:center; margin-bottom:16px">
    <h1>Products</h1>
    <form method="get" style="flex:2">
        <input type="text" name="q" value="{{ query }}" placeholder="Search Product...">
    </form>
    <div style="text-align:right">
        <a class="btn btn-secondary" href="{{ url_for('all_qr') }}">List</a>
        <a class="btn btn-primary" href="{{ url_for('add_product') }}">Add New Product</a>
    </div>
</div>
<p class="hint" style="margin-bottom:16px">Showing {{ products|length }} of {{ total }} products</p>
<div class="grid">
    {% for product in products %}
    <div class="card">
        <a href="{{ url_for('product_detail', product_id=product.postId) }}">
            <img src="{{ (product.image or [placeholder])[0] }}" alt="{{ product.name }}" onerror="useFallbackImage(this)">
        </a>
        <div class="body">
            <strong>{{ product.name }}</strong>
            {% if product.status %}<span class="badge {{ product.status }}">{{ product.status|capitalize }}</span>{% endif %}
            <p><a href="{{ url_for('edit_product_check', product_id=product.postId) }}">Edit</a></p>
        </div>
    </div>
    {% endfor %}
</div>
{% if not products %}<p class="hint">No products found.</p>{% endif %}
'''

PRODUCT_FORM_TEMPLATE = '''
<h1>{{ 'Edit Product' if mode == 'edit' else 'Add New Product' }}</h1>

{% if qr_data_url %}
<div class="card" style="max-width:280px; margin-bottom:20px; padding:16px; text-align:center">
    <img src="{{ qr_data_url }}" alt="Product QR Code" style="width:200px; aspect-ratio:1">
    <p><a class="btn btn-primary" download="{{ qr_filename }}" href="{{ qr_data_url }}">Download QR Code</a></p>
</div>
{% endif %}

<form method="post" enctype="multipart/form-data" style="max-width:800px">
    <div class="field">
        <label for="name">Product Name</label>
        <input type="text" id="name" name="name" value="{{ form.name }}" placeholder="Enter product name">
        {% if errors.name %}<div class="error">{{ errors.name }}</div>{% endif %}
    </div>

    <div class="field">
        <label for="category">Category</label>
        <select id="category" name="category">
            <option value="">Select a category</option>
            {% for category in categories %}
            <option value="{{ category }}" {{ 'selected' if form.category == category }}>{{ category }}</option>
            {% endfor %}
        </select>
        {% if errors.category %}<div class="error">{{ errors.category }}</div>{% endif %}
    </div>

    <div class="row">
        <div class="field">
            <label for="price">Price</label>
            <input type="number" step="any" id="price" name="price" value="{{ form.price }}" placeholder="per sqft">
            {% if errors.price %}<div class="error">{{ errors.price }}</div>{% endif %}
        </div>
        <div class="field">
            <label for="thickness">Thickness</label>
            <input type="text" id="thickness" name="thickness" value="{{ form.thickness }}" placeholder="e.g., 20mm">
        </div>
    </div>

    <div class="row">
        <div class="field">
            <label>Size</label>
            <div class="row">
                <input type="text" inputmode="numeric" id="sizeLength" name="sizeLength" value="{{ form.size_length }}" placeholder="L">
                <input type="text" inputmode="numeric" id="sizeHeight" name="sizeHeight" value="{{ form.size_height }}" placeholder="H">
                <select id="sizeUnit" name="sizeUnit">
                    {% for unit in size_units %}
                    <option value="{{ unit }}" {{ 'selected' if form.size_unit == unit }}>{{ unit }}</option>
                    {% endfor %}
                </select>
            </div>
            {% if errors.size %}<div class="error" id="sizeError">{{ errors.size }}</div>{% else %}<div class="error" id="sizeError"></div>{% endif %}
        </div>
        <div class="field">
            <label for="numberOfPieces">Number of Pieces</label>
            <input type="text" inputmode="numeric" id="numberOfPieces" name="numberOfPieces" value="{{ form.number_of_pieces }}" placeholder="Pieces">
        </div>
    </div>

    <div class="field">
        <label for="quantityAvailable">
            Quantity Available
            <span style="font-weight:normal; margin-left:12px">
                <input type="checkbox" id="autoCalculate" name="autoCalculate" {{ 'checked' if form.auto_calculate }}> Auto-calculate
            </span>
        </label>
        <input type="text" inputmode="numeric" id="quantityAvailable" name="quantityAvailable"
               value="{{ form.quantity_available }}" placeholder="in sqft" {{ 'readonly' if form.auto_calculate }}>
        <div class="hint" id="calculationPreview">{{ calculation_preview or '' }}</div>
        {% if errors.quantityAvailable %}<div class="error">{{ errors.quantityAvailable }}</div>{% endif %}
    </div>

    <div class="field">
        <label>Finishes</label>
        {% for finish in finishes %}
        <label style="display:inline; font-weight:normal; margin-right:12px">
            <input type="checkbox" name="finishes" value="{{ finish|lower }}" {{ 'checked' if finish|lower in form.finishes }}> {{ finish }}
        </label>
        {% endfor %}
    </div>

    <div class="field">
        <label>Application Areas</label>
        {% for area in application_areas %}
        <label style="display:inline; font-weight:normal; margin-right:12px">
            <input type="checkbox" name="applicationAreas" value="{{ area }}" {{ 'checked' if area in form.application_areas }}> {{ area }}
        </label>
        {% endfor %}
        {% if errors.applicationAreas %}<div class="error">{{ errors.applicationAreas }}</div>{% endif %}
    </div>

    <div class="field">
        <label for="description">Description</label>
        <textarea id="description" name="description" rows="4">{{ form.description }}</textarea>
    </div>

    <div class="field">
        <label>Upload Product Images ({{ form.existing_images|length }}/{{ max_images }})</label>
        {% if form.existing_images %}
        <div class="thumbs row" style="flex-wrap:wrap; margin-bottom:8px">
            {% for url in form.existing_images %}
            <label style="flex:0; font-weight:normal">
                <img src="{{ url }}" alt="Product image {{ loop.index }}" onerror="useFallbackImage(this)"><br>
                <input type="checkbox" name="existingImages" value="{{ url }}" checked> Keep
            </label>
            {% endfor %}
        </div>
        {% endif %}
        <input type="file" name="images" multiple accept="image/jpeg,image/png,image/webp">
        <div class="hint">JPG, PNG or WebP, up to 5MB each, 10 images in total.</div>
    </div>

    <button class="btn btn-primary" type="submit">{{ 'Update Product' if mode == 'edit' else 'Add Product' }}</button>
</form>

<script>
    const autoCalc = document.getElementById('autoCalculate');
    const quantity = document.getElementById('quantityAvailable');
    const preview = document.getElementById('calculationPreview');
    const sizeError = document.getElementById('sizeError');

    async function recalculate() {
        if (!autoCalc.checked) {
            preview.textContent = '';
            return;
        }
        const body = {};
        for (const id of ['sizeLength', 'sizeHeight', 'sizeUnit', 'numberOfPieces']) {
            body[id] = document.getElementById(id).value;
        }
        const response = await fetch('{{ url_for("calculate_quantity") }}', {
            method: 'POST',
            headers: {'Content-Type': 'application/json'},
            body: JSON.stringify(body),
        });
        const data = await response.json();
        sizeError.textContent = data.error || '';
        preview.textContent = data.formula || '';
        if (data.quantity !== null) {
            quantity.value = data.quantity;
        }
    }

    for (const id of ['sizeLength', 'sizeHeight', 'sizeUnit', 'numberOfPieces']) {
        document.getElementById(id).addEventListener('input', recalculate);
    }
    autoCalc.addEventListener('change', () => {
        quantity.readOnly = autoCalc.checked;
        recalculate();
    });
</script>
'''

ALL_QR_TEMPLATE = '''
<div class="row" style="align-items:center; margin-bottom:16px">
    <h1>Bulk Edit</h1>
    <form method="get" style="flex:2">
        <input type="text" name="q" value="{{ query }}" placeholder="Search Product...">
    </form>
</div>
<div id="notice"></div>
<table>
    <tr><th></th><th>Name</th><th>Category</th><th>Size</th><th>Price</th><th>QR</th></tr>
    {% for product in products %}
    <tr>
        <td class="thumbs"><img src="{{ (product.image or [placeholder])[0] }}" alt="{{ product.name }}" onerror="useFallbackImage(this)"></td>
        <td><a href="{{ url_for('product_detail', product_id=product.postId) }}">{{ product.name }}</a></td>
        <td>{{ product.category or '' }}</td>
        <td>{{ product.size or '' }} {{ product.sizeUnit or '' }}</td>
        <td>
            <input type="number" step="any" style="width:110px" value="{{ product.price }}"
                   data-product="{{ product.postId }}" onkeydown="if (event.key === 'Enter') updatePrice(this)">
            <button class="btn btn-secondary" onclick="updatePrice(this.previousElementSibling)">Save</button>
        </td>
        <td>
            <a class="btn btn-primary" onclick="downloadCard(event, this)"
               href="{{ url_for('download_qr_card', product_id=product.postId, name=product.name) }}">Download</a>
        </td>
    </tr>
    {% endfor %}
</table>

<script>
    function notify(message, kind) {
        document.getElementById('notice').innerHTML = '';
        const div = document.createElement('div');
        div.className = 'flash ' + kind;
        div.textContent = message;
        document.getElementById('notice').appendChild(div);
    }

    async function updatePrice(input) {
        const price = input.value;
        if (!price || isNaN(Number(price)) || Number(price) <= 0) {
            notify('Please enter a valid price', 'error');
            return;
        }
        try {
            const response = await fetch('/api/update-price/' + encodeURIComponent(input.dataset.product), {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify({price: Number(price)}),
            });
            const data = await response.json();
            notify(data.message, data.success ? 'success' : 'error');
        } catch (error) {
            notify('Failed to update price. Please try again.', 'error');
        }
    }

    async function downloadCard(event, link) {
        event.preventDefault();
        link.textContent = 'Generating...';
        try {
            const response = await fetch(link.href);
            if (!response.ok) {
                const data = await response.json();
                notify(data.message || 'Failed to generate QR code', 'error');
                return;
            }
            const blob = await response.blob();
            const disposition = response.headers.get('Content-Disposition') || '';
            const match = disposition.match(/filename=\"?([^\";]+)/);
            const a = document.createElement('a');
            a.href = URL.createObjectURL(blob);
            a.download = match ? match[1] : 'qr.png';
            document.body.appendChild(a);
            a.click();
            document.body.removeChild(a);
        } catch (error) {
            notify('Failed to generate QR code', 'error');
        } finally {
            link.textContent = 'Download';
        }
    }
</script>
'''

PRODUCT_DETAIL_TEMPLATE = '''
<p><a href="javascript:history.back()">&larr; Back</a></p>
<div class="row" style="margin-top:16px">
    <div>
        <img src="{{ images[current] if images else placeholder }}" alt="{{ product.name }}"
             style="width:100%; max-width:560px; aspect-ratio:1; object-fit:cover; border-radius:8px" onerror="useFallbackImage(this)">
        {% if images|length > 1 %}
        <div class="thumbs row" style="flex-wrap:wrap; margin-top:8px">
            {% for img in images %}
            <a href="?image={{ loop.index0 }}" style="flex:0">
                <img src="{{ img }}" alt="{{ product.name }} thumbnail {{ loop.index }}" onerror="useFallbackImage(this)"
                     style="{{ 'outline:2px solid #194a95' if loop.index0 == current }}">
            </a>
            {% endfor %}
        </div>
        {% endif %}
    </div>
    <div>
        <h1>{{ product.name }}</h1>
        <p class="hint">{{ product.category }}</p>
        <p style="margin-top:16px">
            <strong>Quantity Available:</strong> {{ product.quantityAvailable }} sqft
            {% if formula %}<span class="badge" title="{{ formula }}">how?</span>{% endif %}
        </p>
        {% if formula %}<p class="hint">{{ formula }}</p>{% endif %}
        {% if product.size %}<p><strong>Size:</strong> {{ product.size }} {{ product.sizeUnit }}</p>{% endif %}
        {% if product.numberOfPieces %}<p><strong>Pieces:</strong> {{ product.numberOfPieces }}</p>{% endif %}
        {% if product.thickness %}<p><strong>Thickness:</strong> {{ product.thickness }}</p>{% endif %}
        {% if product.finishes %}<p><strong>Finishes:</strong> {{ product.finishes }}</p>{% endif %}
        {% if areas %}
        <p><strong>Application Areas:</strong>
            {% for area in areas %}<span class="badge">{{ area }}</span> {% endfor %}
        </p>
        {% endif %}
        {% if product.description %}<p style="margin-top:16px; white-space:pre-line">{{ product.description }}</p>{% endif %}
        <p style="margin-top:24px">
            <a class="btn btn-primary" href="{{ url_for('download_qr_card', product_id=product.postId, name=product.name, fallback=1) }}">Download QR Card</a>
            <a class="btn btn-secondary" href="{{ url_for('download_qr', product_id=product.postId, preset='simple') }}">Download QR Code</a>
            {% if images %}<a class="btn btn-secondary" href="{{ url_for('product_visualizer', product_id=product.postId) }}">View in Room</a>{% endif %}
        </p>
    </div>
</div>
'''

VISUALIZER_TEMPLATE = '''
<p><a href="{{ url_for('product_detail', product_id=product_id) }}">&larr; Back to product</a></p>
<h1>{{ state.product_name }} in a room</h1>
{% if not state.ready %}
<p class="hint">Loading room previews...</p>
{% else %}
<p style="margin-bottom:12px">
    {% for mockup in mockups %}
    <a class="btn {{ 'btn-primary' if mockup.id == state.active_mockup else 'btn-secondary' }}"
       href="?room={{ mockup.id }}">{{ mockup.name }}</a>
    {% endfor %}
</p>
{% if state.mockups_loaded.get(state.active_mockup) %}
<div style="position:relative; max-width:1000px; aspect-ratio:16/10;
            background-image:url('{{ state.texture.data_url }}');
            background-size:{{ state.texture.background_size }};
            background-position:{{ state.texture.background_position }};
            background-repeat:repeat">
    <img src="{{ url_for('mockup_image', filename=active_file) }}" alt="{{ state.active_mockup }}"
         style="position:absolute; inset:0; width:100%; height:100%; object-fit:cover">
</div>
{% else %}
<p class="flash error">This room preview is unavailable.</p>
{% endif %}
{% endif %}
'''

ERROR_TEMPLATE = '''
<div class="centered" style="text-align:center">
    <h1>{{ heading }}</h1>
    <p class="error" style="margin-bottom:16px">{{ message }}</p>
    <a href="javascript:history.back()">&larr; Go Back</a>
</div>
'''


def render_page(title: str, body_template: str, active: str = "", show_sidebar: bool = True, **context):
    """Render body_template inside the shared layout."""
    body = render_template_string(body_template, placeholder=PLACEHOLDER_DATA_URL, **context)
    return render_template_string(
        LAYOUT_TEMPLATE,
        title=title,
        body=body,
        active=active,
        show_sidebar=show_sidebar,
        placeholder=PLACEHOLDER_DATA_URL,
    )


def filter_products(products: list[dict], query: str) -> list[dict]:
    """Case-insensitive name search."""
    query = (query or "").strip().lower()
    if not query:
        return products
    return [p for p in products if query in (p.get("name") or "").lower()]


def uploaded_images() -> list[UploadFile]:
    images = []
    for storage in request.files.getlist("images"):
        if not storage or not storage.filename:
            continue
        images.append(UploadFile(
            filename=storage.filename,
            content=storage.read(),
            content_type=storage.mimetype or "application/octet-stream",
        ))
    return images


def render_product_form(mode: str, form: ProductForm, errors: dict, qr_post_id: str = None, status: int = 200):
    calculation = form.calculate_quantity()
    qr_data_url = None
    if qr_post_id:
        qr_data_url = png_data_url(encode_product_qr(qr_post_id, preset="form"))

    page = render_page(
        "Edit Product" if mode == "edit" else "Add Product",
        PRODUCT_FORM_TEMPLATE,
        active="add" if mode == "create" else "products",
        mode=mode,
        form=form,
        errors=errors,
        categories=CATEGORIES,
        finishes=FINISHES,
        application_areas=APPLICATION_AREAS,
        size_units=SIZE_UNITS,
        max_images=MAX_IMAGES,
        calculation_preview=calculation.formula if calculation else None,
        qr_data_url=qr_data_url,
        qr_filename=form_qr_filename(qr_post_id) if qr_post_id else None,
    )
    return page, status


def error_page(heading: str, message: str, status: int = 404):
    return render_page(heading, ERROR_TEMPLATE, heading=heading, message=message), status


def safe_next_url(target: str) -> str:
    """Only same-site paths are allowed as post-login redirects."""
    fallback = url_for("products")
    if not target or "\\" in target or any(c.isspace() or ord(c) < 32 for c in target):
        return fallback
    if not target.startswith("/") or target.startswith("//"):
        return fallback
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return fallback
    return target


@app.route('/')
def index():
    return render_page(
        "Welcome", LANDING_TEMPLATE, show_sidebar=False,
        public_site=feeder_config.PUBLIC_SITE_URL,
    )


@app.route('/login', methods=['GET', 'POST'])
def login():
    email = ""
    errors = {}
    api_error = ""
    next_url = safe_next_url(request.values.get("next", ""))

    if request.method == 'POST':
        email = request.form.get("email", "")
        password = request.form.get("password", "")
        errors = validate_login(email, password)

        if not errors:
            result = catalog_client().login_feeder(email, password)
            if result.success and isinstance(result.data, dict) and result.data.get("accessToken"):
                store_session(FeederSession.from_login_response(result.data))
                flash("Login successful!", "success")
                return redirect(next_url)
            api_error = result.message or "Failed to login"
            logging.warning("Login failed for %s: %s", email, api_error)

    page = render_page(
        "Login", LOGIN_TEMPLATE, show_sidebar=False,
        email=email, errors=errors, api_error=api_error, next_url=next_url,
    )
    return page, 400 if (errors or api_error) else 200


@app.route('/register', methods=['GET', 'POST'])
def register():
    values = {}
    errors = {}
    api_error = ""

    if request.method == 'POST':
        values = {k: request.form.get(k, "") for k in ("name", "email", "password", "confirmPassword")}
        errors = validate_registration(values["name"], values["email"], values["password"], values["confirmPassword"])

        if not errors:
            result = catalog_client().register_feeder(values["name"], values["email"], values["password"])
            if result.success:
                flash("Registration successful! Please log in.", "success")
                return redirect(url_for("login"))
            api_error = result.message or "Failed to register"

    fields = [
        ("name", "Name", "text"),
        ("email", "Email", "email"),
        ("password", "Password", "password"),
        ("confirmPassword", "Confirm Password", "password"),
    ]
    page = render_page(
        "Register", REGISTER_TEMPLATE, show_sidebar=False,
        fields=fields, values=values, errors=errors, api_error=api_error,
    )
    return page, 400 if (errors or api_error) else 200


@app.route('/logout')
def logout():
    clear_session()
    return redirect(url_for("login"))


@app.route('/admin-panel')
@login_required
def admin_panel():
    return render_page("Admin Panel", ADMIN_PANEL_TEMPLATE, feeder=current_session())


@app.route('/products')
@login_required
def products():
    query = request.args.get("q", "")
    result = catalog_client().get_all_products()
    all_products = result.data if result.success else []
    if not result.success:
        flash(result.message, "error")

    return render_page(
        "Products", PRODUCTS_TEMPLATE, active="products",
        products=filter_products(all_products, query),
        total=len(all_products),
        query=query,
    )


@app.route('/products/<product_id>/edit')
@login_required
def edit_product_check(product_id):
    """Make sure the product still exists before opening the edit form."""
    result = catalog_client().get_product_by_id(product_id)
    if not result.success:
        flash("Unable to edit product at this time", "error")
        return redirect(url_for("products"))
    return redirect(url_for("edit_product", product_id=product_id))


@app.route('/add-product', methods=['GET', 'POST'])
@login_required
def add_product():
    if request.method == 'GET':
        return render_product_form("create", ProductForm(), {})

    form = ProductForm.from_request_form(request.form)
    form.apply_auto_quantity()
    errors = form.validate()
    images = uploaded_images()
    image_error = validate_images(images)

    if errors or image_error:
        if image_error:
            flash(image_error, "error")
        return render_product_form("create", form, errors, status=400)

    result = catalog_client().create_product(form.to_fields(), images)
    if not result.success:
        flash(result.message or "Error creating product", "error")
        return render_product_form("create", form, {}, status=502)

    post_id = (result.data or {}).get("postId")
    logging.info("Created product %s (%s)", post_id, form.name)
    flash("Product created successfully!", "success")
    return render_product_form("create", ProductForm(), {}, qr_post_id=post_id)


@app.route('/edit-product/<product_id>', methods=['GET', 'POST'])
@login_required
def edit_product(product_id):
    client = catalog_client()

    if request.method == 'GET':
        result = client.get_product_by_id(product_id)
        if not result.success:
            return error_page("Error Loading Product", result.message or "Failed to fetch product details")
        return render_product_form("edit", ProductForm.from_product(result.data), {})

    form = ProductForm.from_request_form(request.form)
    form.apply_auto_quantity()
    errors = form.validate()
    images = uploaded_images()
    image_error = validate_images(images, existing_count=len(form.existing_images))

    if errors or image_error:
        if image_error:
            flash(image_error, "error")
        return render_product_form("edit", form, errors, status=400)

    result = client.update_product(product_id, form.to_fields(), images, existing_images=form.existing_images)
    if not result.success:
        flash(result.message or "Error updating product", "error")
        return render_product_form("edit", form, {}, status=502)

    logging.info("Updated product %s", product_id)
    flash("Product updated successfully!", "success")
    return redirect(url_for("products"))


@app.route('/all-qr')
@login_required
def all_qr():
    query = request.args.get("q", "")
    result = catalog_client().get_all_products()
    if not result.success:
        flash(result.message, "error")
    all_products = result.data if result.success else []

    return render_page(
        "Bulk Edit", ALL_QR_TEMPLATE, active="all_qr",
        products=filter_products(all_products, query),
        query=query,
    )


@app.route('/product/<product_id>')
def product_detail(product_id):
    """Public product page - the target of every QR code."""
    result = catalog_client().get_product_by_id(product_id)
    if not result.success:
        return error_page("Product Not Found", result.message or "Error fetching product")

    product = dict(result.data)
    product.setdefault("size", "")
    product["sizeUnit"] = product.get("sizeUnit") or "inches"
    images = product.get("image") or []

    try:
        current = int(request.args.get("image", 0)) % max(len(images), 1)
    except ValueError:
        current = 0

    formula = quantity_formula(product.get("size"), product["sizeUnit"], product.get("numberOfPieces"))

    return render_page(
        product.get("name") or "Product", PRODUCT_DETAIL_TEMPLATE, show_sidebar=False,
        product=product,
        images=images,
        current=current,
        formula=formula,
        areas=parse_application_areas(product.get("applicationAreas")),
    )


@app.route('/product/<product_id>/visualize')
def product_visualizer(product_id):
    result = catalog_client().get_product_by_id(product_id)
    if not result.success:
        return error_page("Product Not Found", result.message or "Error fetching product")

    product = result.data
    images = product.get("image") or []
    if not images:
        return error_page("No Images", "This product has no images to preview.")

    state = build_visualizer(images[0], product.get("name") or "", active_mockup=request.args.get("room"))
    active_file = next(m["file"] for m in MOCKUPS if m["id"] == state.active_mockup)

    return render_page(
        "Visualizer", VISUALIZER_TEMPLATE, show_sidebar=False,
        state=state,
        mockups=state.available_mockups,
        active_file=active_file,
        product_id=product_id,
    )


if __name__ == '__main__':
    import webbrowser

    feeder_config.setup_logging()

    port = feeder_config.PORT
    # Use 0.0.0.0 for Render, 127.0.0.1 for local
    host = '0.0.0.0' if os.environ.get('RENDER') else '127.0.0.1'
    url = f"http://localhost:{port}"

    if not os.environ.get('RENDER'):
        threading.Timer(1.5, lambda: webbrowser.open(url)).start()

    logging.info("Starting Evershine Feeder at %s (API: %s)", url, feeder_config.API_URL)
    app.run(host=host, port=port, debug=False, threaded=True)
