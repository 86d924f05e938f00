import logging
import os
import time

from dotenv import load_dotenv
from flask import Flask, request, jsonify

from card_service import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL,
    GENERATION_FAILED_MESSAGE,
    CardRequest,
    GenerationFailed,
    InvalidCardRequest,
    enhance_image_prompt,
    generate_image,
    request_card,
)

load_dotenv()

app = Flask(__name__)

CONFIGURED_MODEL = os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
if CONFIGURED_MODEL not in AVAILABLE_MODELS:
    raise RuntimeError(f"GEMINI_MODEL must be one of {AVAILABLE_MODELS}, got {CONFIGURED_MODEL!r}")


def resolve_api_key(data):
    """Key typed into the page wins over the server's GEMINI_API_KEY."""
    return (data.get("api_key") or "").strip() or os.getenv("GEMINI_API_KEY", "")


@app.route("/")
def index():
    return HTML_PAGE


@app.route("/api/card", methods=["POST"])
def card():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    model = data.get("model") or CONFIGURED_MODEL

    try:
        card_request = CardRequest.create(data.get("name"), data.get("category", "standard"))
    except InvalidCardRequest as e:
        return jsonify({"error": str(e)}), 400

    if model not in AVAILABLE_MODELS:
        return jsonify({"error": f"Unknown model: {model}"}), 400

    api_key = resolve_api_key(data)
    if not api_key:
        return jsonify({"error": "API key is required to generate cards"}), 400

    try:
        start = time.time()
        record = request_card(card_request, api_key, model=model)
        images = {"primary": None, "packaging": None}
        if data.get("enhance_images"):
            images["primary"] = generate_image(record.primary_image_prompt, api_key, model=model)
            images["packaging"] = generate_image(record.packaging_image_prompt, api_key, model=model)
        elapsed = round(time.time() - start, 1)
        return jsonify({"card": record.to_dict(), "images": images, "elapsed": elapsed})
    except GenerationFailed as e:
        app.logger.error("Card generation failed for %r: %s", card_request.name, e.message)
        return jsonify({"error": GENERATION_FAILED_MESSAGE}), 502


@app.route("/api/image-prompt", methods=["POST"])
def image_prompt():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    prompt = (data.get("prompt") or "").strip()
    model = data.get("model") or CONFIGURED_MODEL

    if not prompt:
        return jsonify({"error": "Prompt cannot be empty"}), 400

    if model not in AVAILABLE_MODELS:
        return jsonify({"error": f"Unknown model: {model}"}), 400

    api_key = resolve_api_key(data)
    if not api_key:
        return jsonify({"error": "API key is required"}), 400

    start = time.time()
    text = enhance_image_prompt(prompt, api_key, model=model)
    elapsed = round(time.time() - start, 1)
    return jsonify({"text": text, "elapsed": elapsed})


HTML_PAGE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Die-cast Card Studio</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    background: #0f0f0f;
    color: #e0e0e0;
    min-height: 100vh;
  }

  .panel {
    max-width: 720px;
    margin: 0 auto;
    display: flex;
    flex-direction: column;
  }

  .panel-header {
    padding: 16px 24px;
    border-bottom: 1px solid #1e1e1e;
    display: flex;
    align-items: center;
    gap: 10px;
  }

  .panel-header h2 {
    font-size: 0.95rem;
    font-weight: 600;
    color: #fff;
  }

  .badge {
    font-size: 0.65rem;
    padding: 2px 8px;
    border-radius: 4px;
    font-weight: 500;
    text-transform: uppercase;
    letter-spacing: 0.5px;
  }
  .badge-mainline { background: #3a1e1e; color: #f87171; }
  .badge-premium { background: #3a321e; color: #facc15; }

  .panel-body {
    padding: 20px 24px 80px;
    display: flex;
    flex-direction: column;
    gap: 16px;
  }

  .controls {
    display: flex;
    gap: 10px;
    align-items: center;
    flex-wrap: wrap;
  }

  input[type=text], input[type=password], select {
    background: #1a1a1a;
    color: #e0e0e0;
    border: 1px solid #2a2a2a;
    border-radius: 8px;
    padding: 8px 12px;
    font-size: 0.85rem;
    outline: none;
    transition: border-color 0.2s;
  }
  input[type=text]:focus, input[type=password]:focus, select:hover, select:focus { border-color: #8b5cf6; }
  #carName { flex: 1; min-width: 220px; }

  .toggle label {
    font-size: 0.8rem;
    color: #aaa;
    margin-right: 10px;
    cursor: pointer;
  }

  button {
    background: #8b5cf6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 8px 20px;
    font-size: 0.82rem;
    font-weight: 500;
    cursor: pointer;
    transition: background 0.2s, opacity 0.2s;
  }
  button:hover { background: #7c3aed; }
  button:disabled { opacity: 0.5; cursor: not-allowed; }

  .output-card {
    background: #1a1a1a;
    border: 1px solid #2a2a2a;
    border-radius: 10px;
    padding: 16px;
    line-height: 1.6;
    font-size: 0.9rem;
    display: none;
  }
  .output-card.visible { display: block; }
  .output-card.error {
    border-color: #ef4444;
    color: #fca5a5;
    background: #1a1111;
  }

  .card-title { font-size: 1.2rem; color: #fff; margin: 8px 0 2px; }
  .card-subtitle { font-size: 0.78rem; color: #888; }

  .image-placeholder {
    margin: 14px 0;
    height: 160px;
    border: 1px dashed #333;
    border-radius: 10px;
    display: flex;
    align-items: center;
    justify-content: center;
    color: #666;
  }

  .detail-row {
    display: flex;
    justify-content: space-between;
    border-bottom: 1px solid #222;
    padding: 4px 0;
    font-size: 0.82rem;
  }
  .detail-label { color: #888; }

  .card-description { margin: 14px 0; color: #bbb; }

  .status {
    font-size: 0.78rem;
    color: #888;
    min-height: 1.2em;
  }
  .status .timer { color: #8b5cf6; font-variant-numeric: tabular-nums; }

  .loading {
    display: flex;
    align-items: center;
    gap: 10px;
    color: #888;
  }
  .spinner {
    width: 16px; height: 16px;
    border: 2px solid #333;
    border-top-color: #8b5cf6;
    border-radius: 50%;
    animation: spin 0.8s linear infinite;
  }
  @keyframes spin { to { transform: rotate(360deg); } }
</style>
</head>
<body>

<div class="panel">
  <div class="panel-header">
    <h2>Die-cast Card Studio</h2>
    <span class="badge badge-premium">Gemini</span>
  </div>
  <div class="panel-body">
    <div class="controls">
      <input id="carName" type="text" placeholder="Car name, e.g. Velocity X" autofocus>
      <button id="generateBtn" onclick="generateCard()">Generate</button>
    </div>
    <div class="controls toggle">
      <label><input type="radio" name="cardType" value="standard" checked> Mainline</label>
      <label><input type="radio" name="cardType" value="premium"> Premium</label>
      <input id="apiKey" type="password" placeholder="Gemini API key (optional)">
    </div>
    <div id="cardOutput" class="output-card"></div>
    <div id="cardStatus" class="status"></div>
  </div>
</div>

<script>
  const carNameEl = document.getElementById('carName');
  const apiKeyEl = document.getElementById('apiKey');
  const outputEl = document.getElementById('cardOutput');
  const statusEl = document.getElementById('cardStatus');
  const generateBtn = document.getElementById('generateBtn');

  carNameEl.addEventListener('keydown', e => {
    if (e.key === 'Enter') { e.preventDefault(); generateCard(); }
  });

  function el(tag, className, text) {
    const node = document.createElement(tag);
    if (className) node.className = className;
    if (text !== undefined) node.textContent = text;
    return node;
  }

  function detailRow(label, value) {
    const row = el('div', 'detail-row');
    row.appendChild(el('span', 'detail-label', label));
    row.appendChild(el('span', 'detail-value', value));
    return row;
  }

  function imageSlot(src, alt, placeholder) {
    if (src) {
      const img = document.createElement('img');
      img.src = src;
      img.alt = alt;
      return img;
    }
    return el('div', 'image-placeholder', placeholder);
  }

  function renderCard(card, images) {
    outputEl.className = 'output-card visible';
    outputEl.innerHTML = '';
    const premium = card.category === 'premium';
    outputEl.appendChild(el('span', 'badge ' + (premium ? 'badge-premium' : 'badge-mainline'), card.label));
    outputEl.appendChild(el('h3', 'card-title', card.name));
    outputEl.appendChild(el('p', 'card-subtitle', 'Die-cast ' + card.label + ' • ' + card.year));
    outputEl.appendChild(imageSlot(images.primary, card.name, '\u{1F697} ' + card.name));
    outputEl.appendChild(detailRow('Series:', card.series));
    outputEl.appendChild(detailRow('Number:', card.identifier));
    outputEl.appendChild(detailRow('Scale:', card.specs.scale));
    outputEl.appendChild(detailRow('Material:', card.specs.material));
    outputEl.appendChild(detailRow('Value:', card.specs.collectorValue));
    outputEl.appendChild(el('p', 'card-description', card.description));
    outputEl.appendChild(el('h3', 'card-subtitle', 'Blister Package'));
    outputEl.appendChild(imageSlot(images.packaging, 'Blister package', '\u{1F4E6} Blister Package'));
  }

  function showError(message) {
    outputEl.className = 'output-card visible error';
    outputEl.textContent = 'Error: ' + message;
  }

  async function generateCard() {
    const name = carNameEl.value.trim();
    if (!name) { showError('Please enter a car name'); return; }
    const category = document.querySelector('input[name="cardType"]:checked').value;

    generateBtn.disabled = true;
    generateBtn.textContent = 'Generating...';
    outputEl.className = 'output-card visible';
    outputEl.innerHTML = '<div class="loading"><div class="spinner"></div>Designing card...</div>';
    statusEl.textContent = '';

    try {
      const res = await fetch('/api/card', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify({ name, category, api_key: apiKeyEl.value.trim() }),
      });
      const data = await res.json();
      if (!res.ok || data.error) throw new Error(data.error || 'HTTP ' + res.status);
      renderCard(data.card, data.images);
      statusEl.innerHTML = 'Completed in <span class="timer">' + data.elapsed + 's</span>';
    } catch (e) {
      showError(e.message);
    } finally {
      generateBtn.disabled = false;
      generateBtn.textContent = 'Generate';
    }
  }
</script>
</body>
</html>
"""

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=int(os.getenv("PORT", "5001")), threaded=True)
