# adventure.py
# Забег: карта уровня, узлы, лавка, события, привал и добыча после боя.

from __future__ import annotations
from typing import Dict, Any, List, Optional, Tuple
import math, random

import content
import deck


def max_hp(adv: Dict[str, Any]) -> int:
    base = content.CLASSES[adv["player_class"]]["base_hp"]
    return max(1, int(base) + int(adv.get("max_hp_mod", 0)))


def gold_mod(adv: Dict[str, Any]) -> float:
    return float(content.DIFFICULTIES[adv.get("difficulty", "NORMAL")]["gold_mod"])


def new_adventure(player_class: str, difficulty: str, rng: random.Random) -> Dict[str, Any]:
    adv = {
        "player_class": player_class,
        "stage": 1,
        "floor": 0,
        "gold": 0,
        "hp": int(content.CLASSES[player_class]["base_hp"]),
        "max_hp_mod": 0,
        "permanent_buffs": [],
        "map": generate_map(1, rng),
        "difficulty": difficulty if difficulty in content.DIFFICULTIES else "NORMAL",
        "deck": deck.build_library(player_class, 2),
        "card_levels": {},
        "current_node": None,
        "loot": None,
        "event": None,
    }
    return adv


# ---- карта ----

def node_position(col: int, width: int) -> float:
    return (col + 1) / (width + 1)


def generate_map(stage: int, rng: random.Random) -> List[List[Dict[str, Any]]]:
    widths = content.MAP_ROW_WIDTHS
    last = len(widths) - 1
    rows: List[List[Dict[str, Any]]] = []
    for r, width in enumerate(widths):
        row: List[Dict[str, Any]] = []
        for col in range(width):
            if r == 0:
                ntype = "START"
            elif r == last:
                ntype = "BOSS"
            elif r == content.MAP_SHOP_ROW:
                ntype = "SHOP"
            elif r % 2 == 0:
                ntype = content.weighted_key(rng, content.EVEN_ROW_WEIGHTS)
            else:
                ntype = content.weighted_key(rng, content.ODD_ROW_WEIGHTS)
            row.append({
                "id": deck.make_uid("node"),
                "row": r,
                "col": col,
                "stage": stage,
                "type": ntype,
                "label": content.NODE_LABELS[ntype],
                "status": "available" if r == 0 else "locked",
                "next": [],
            })
        rows.append(row)

    # рёбра: к узлам следующего ряда, близким по горизонтали
    for r in range(last):
        cur, nxt = rows[r], rows[r + 1]
        for node in cur:
            x = node_position(node["col"], len(cur))
            for tgt in nxt:
                if abs(node_position(tgt["col"], len(nxt)) - x) <= content.MAP_EDGE_TOLERANCE:
                    node["next"].append(tgt["id"])
            if not node["next"]:
                near = min(nxt, key=lambda n: abs(node_position(n["col"], len(nxt)) - x))
                node["next"].append(near["id"])
        # гарантируем, что у каждого есть хотя бы один вход
        for tgt in nxt:
            if not any(tgt["id"] in n["next"] for n in cur):
                tx = node_position(tgt["col"], len(nxt))
                anchor = min(cur, key=lambda n: abs(node_position(n["col"], len(cur)) - tx))
                anchor["next"].append(tgt["id"])
    return rows


def find_node(adv: Dict[str, Any], node_id: str) -> Optional[Dict[str, Any]]:
    for row in adv.get("map", []):
        for node in row:
            if node["id"] == node_id:
                return node
    return None


def available_nodes(adv: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [n for row in adv.get("map", []) for n in row if n["status"] == "available"]


def select_node(adv: Dict[str, Any], node_id: str, rng: random.Random) -> Optional[Dict[str, Any]]:
    node = find_node(adv, node_id)
    if not node or node["status"] != "available":
        return None
    rows = adv["map"]
    node["status"] = "completed"
    for sib in rows[node["row"]]:
        if sib is not node and sib["status"] in ("available", "locked"):
            sib["status"] = "skipped"
    if node["row"] + 1 < len(rows):
        for tgt in rows[node["row"] + 1]:
            if tgt["id"] in node["next"]:
                tgt["status"] = "available"
    adv["floor"] = node["row"]
    adv["current_node"] = node_id
    if node["type"] == "BOSS" and node["row"] == len(rows) - 1:
        advance_stage(adv, rng)
    return node


def advance_stage(adv: Dict[str, Any], rng: random.Random) -> None:
    adv["stage"] = int(adv.get("stage", 1)) + 1
    adv["floor"] = 0
    adv["current_node"] = None
    adv["map"] = generate_map(adv["stage"], rng)


# ---- враги ----

def encounter_hp(base_hp: int, row: int, stage: int, elite: bool, difficulty: str) -> int:
    row_factor = 1 + content.ROW_HP_STEP * row
    stage_factor = 1 + content.STAGE_HP_STEP * (stage - 1)
    elite_factor = content.ELITE_HP_FACTOR if elite else 1.0
    hp_mod = content.DIFFICULTIES.get(difficulty, content.DIFFICULTIES["NORMAL"])["hp_mod"]
    return max(1, int(math.floor(base_hp * row_factor * stage_factor * elite_factor * hp_mod)))


def build_encounter(adv: Dict[str, Any], node: Dict[str, Any], rng: random.Random) -> List[Dict[str, Any]]:
    stage = int(node.get("stage", adv.get("stage", 1)))
    ntype = node["type"]
    if ntype == "BOSS":
        classes = ["BOSS"]
    else:
        count = 1
        if ntype == "BATTLE" and node["row"] >= content.SECOND_ENEMY_MIN_ROW and rng.random() < content.SECOND_ENEMY_CHANCE:
            count = 2
        classes = [rng.choice(content.PLAYABLE_CLASSES) for _ in range(count)]
    enemies = []
    for cls in classes:
        cdata = content.CLASSES[cls]
        enemies.append({
            "class_type": cls,
            "name": f"{content.NODE_LABELS[ntype]}: {cdata['name']}",
            "hp": encounter_hp(cdata["base_hp"], node["row"], stage, ntype == "ELITE", adv.get("difficulty", "NORMAL")),
            "energy": min(content.MAX_ENERGY, int(cdata["base_energy"]) + (stage - 1)),
            "level": stage,
        })
    return enemies


def victory_gold(adv: Dict[str, Any], node_type: str) -> int:
    return int(content.VICTORY_GOLD.get(node_type, 0) * gold_mod(adv))


# ---- лавка ----

def _apply_item(adv: Dict[str, Any], item: Dict[str, Any]) -> None:
    t = item["type"]
    if t == "HEAL":
        adv["hp"] = min(max_hp(adv), int(adv["hp"]) + int(item.get("value", 0)))
    elif t == "MAX_HP":
        adv["max_hp_mod"] = int(adv.get("max_hp_mod", 0)) + int(item.get("value", 0))
        adv["hp"] = min(max_hp(adv), int(adv["hp"]) + int(item.get("value", 0)))
    elif t == "BUFF":
        if item["id"] not in adv["permanent_buffs"]:
            adv["permanent_buffs"].append(item["id"])
    elif t == "GOLD":
        adv["gold"] = int(adv["gold"]) + int(item.get("value", 0))


def purchase(adv: Dict[str, Any], item_id: str) -> Tuple[bool, str]:
    item = content.SHOP_INDEX.get(item_id)
    if not item:
        return False, "Такого товара нет."
    if item["type"] == "BUFF" and item_id in adv.get("permanent_buffs", []):
        return False, f"{item['name']} уже у тебя."
    if int(adv.get("gold", 0)) < int(item["cost"]):
        return False, "Не хватает золота."
    adv["gold"] -= int(item["cost"])
    _apply_item(adv, item)
    return True, f"Куплено: {item['name']}."


# ---- событие и привал ----

def roll_event(adv: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    kind = content.weighted_key(rng, content.EVENT_WEIGHTS)
    if kind == "level_up" and not adv.get("deck"):
        kind = "gold"
    if kind == "heal":
        before = int(adv["hp"])
        adv["hp"] = min(max_hp(adv), before + content.EVENT_HEAL)
        got = adv["hp"] - before
        return {"kind": "heal", "amount": got, "text": f"Родник в стене: +{got} HP."}
    if kind == "gold":
        amount = int(rng.randint(content.EVENT_GOLD_MIN, content.EVENT_GOLD_MAX) * gold_mod(adv))
        adv["gold"] = int(adv["gold"]) + amount
        return {"kind": "gold", "amount": amount, "text": f"Тайник: +{amount} золота."}
    cid = rng.choice(adv["deck"])
    lvl = level_up(adv, cid)
    label = content.MOVE_INDEX[cid]["label"]
    return {"kind": "level_up", "card_id": cid, "amount": lvl, "text": f"Карта «{label}» улучшена до ур. {lvl}."}


def level_up(adv: Dict[str, Any], card_id: str) -> int:
    levels = adv.setdefault("card_levels", {})
    levels[card_id] = int(levels.get(card_id, 1)) + 1
    return levels[card_id]


def rest(adv: Dict[str, Any]) -> int:
    before = int(adv["hp"])
    adv["hp"] = min(max_hp(adv), before + int(math.ceil(max_hp(adv) / 2)))
    return adv["hp"] - before


# ---- добыча ----

def build_loot_choices(adv: Dict[str, Any], rng: random.Random) -> List[Dict[str, Any]]:
    choices: List[Dict[str, Any]] = []
    owned = adv.get("permanent_buffs", [])
    if rng.random() < content.LOOT_ITEM_CHANCE:
        pool = [it for it in content.SHOP_ITEMS if it["type"] != "BUFF" or it["id"] not in owned]
        if pool:
            it = rng.choice(pool)
            choices.append({"kind": "item", "item_id": it["id"], "label": f"Находка: {it['name']}", "desc": it["desc"]})
    deck_ids = sorted(set(adv.get("deck", [])))
    if deck_ids:
        cid = rng.choice(deck_ids)
        lvl = int(adv.get("card_levels", {}).get(cid, 1))
        choices.append({"kind": "card", "card_id": cid,
                        "label": f"Улучшить: {content.MOVE_INDEX[cid]['label']} (ур. {lvl + 1})",
                        "desc": content.MOVE_INDEX[cid]["desc"]})
    taken = {c.get("card_id") for c in choices}
    pool = [cid for cid in content.LOOT_CARD_POOL if cid not in adv.get("deck", []) and cid not in taken]
    while len(choices) < content.LOOT_CHOICES - 1 and pool:
        cid = rng.choice(pool)
        pool.remove(cid)
        choices.append({"kind": "card", "card_id": cid,
                        "label": f"Новая карта: {content.MOVE_INDEX[cid]['label']}",
                        "desc": content.MOVE_INDEX[cid]["desc"]})
    amount = int(content.LOOT_GOLD * gold_mod(adv))
    choices.append({"kind": "gold", "amount": amount, "label": f"Обменять на {amount} золота", "desc": ""})
    return choices


def apply_loot(adv: Dict[str, Any], choice: Dict[str, Any]) -> str:
    kind = choice.get("kind")
    if kind == "item":
        item = content.SHOP_INDEX[choice["item_id"]]
        _apply_item(adv, item)
        return f"Получено: {item['name']}."
    if kind == "card":
        cid = choice["card_id"]
        label = content.MOVE_INDEX[cid]["label"]
        if cid in adv["deck"]:
            lvl = level_up(adv, cid)
            return f"«{label}» теперь ур. {lvl}."
        adv["deck"].append(cid)
        return f"Новая карта: «{label}»."
    amount = int(choice.get("amount", 0))
    adv["gold"] = int(adv["gold"]) + amount
    return f"+{amount} золота."
