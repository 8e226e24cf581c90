# server.py
# Лёгкий локальный сервер (Flask): JSON API для фронта, принимает действия игрока.
# Запуск: python server.py  (или flask --app server run)
# Состояние живёт только в памяти процесса: перезапуск = новая игра.

from __future__ import annotations
from typing import Dict, Any
import os

from flask import Flask, request, jsonify

import game
import content
import deck

app = Flask(__name__)

SESSIONS: Dict[str, Dict[str, Any]] = {}

def get_state(sid: str) -> Dict[str, Any]:
    st = SESSIONS.get(sid)
    # лёгкая защита от несовпадений версии
    if st is None or int(st.get("version", 0)) != game.SAVE_VERSION:
        st = game.default_state()
        SESSIONS[sid] = st
    return st

@app.post("/api/bootstrap")
def api_bootstrap():
    data = request.get_json(silent=True) or {}
    sid = data.get("sid")
    if not sid:
        sid = game.make_uid("sid")
    st = get_state(sid)
    return jsonify({"sid": sid, "state": game.sanitize_for_client(st)})

@app.post("/api/action")
def api_action():
    data = request.get_json(silent=True) or {}
    sid = data.get("sid")
    action = data.get("action") or {}
    if not sid:
        return jsonify({"error": "missing sid"}), 400
    st = get_state(sid)
    work = game.deep(st)
    try:
        game.dispatch(work, action)
        SESSIONS[sid] = st = work
    except Exception as e:
        # чтобы фронт не зависал: состояние прежнее, ошибка в тосте
        app.logger.exception("action %s failed", action.get("type"))
        st.setdefault("ui", {})["toast"] = f"Ошибка: {type(e).__name__}"
    return jsonify({"sid": sid, "state": game.sanitize_for_client(st)})

@app.get("/api/content")
def api_content():
    # Кодекс: все ходы (базовая и улучшенная версия)
    moves = []
    for mid in content.MOVE_INDEX:
        moves.append({"base": deck.apply_level(content.MOVE_INDEX[mid], 1),
                      "up": deck.apply_level(content.MOVE_INDEX[mid], 2)})
    return jsonify({
        "moves": moves,
        "action_types": content.ACTION_TYPES,
        "variants": content.VARIANTS,
        "modes": content.GAME_MODES,
        "teams": content.TEAMS,
        "classes": content.CLASSES,
        "difficulties": content.DIFFICULTIES,
        "shop": content.SHOP_ITEMS,
        "perks": content.PERKS,
        "node_labels": content.NODE_LABELS,
        "phase_delays": content.PHASE_DELAYS_MS,
    })

@app.get("/api/ping")
def ping():
    return jsonify({"ok": True})

if __name__ == "__main__":
    # по умолчанию только локально
    host = os.environ.get("ENERGY_DUEL_HOST", "127.0.0.1")
    port = int(os.environ.get("ENERGY_DUEL_PORT", "5173"))
    app.run(host=host, port=port, debug=True)
