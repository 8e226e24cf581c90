# combat.py
# Разрешение раунда: все выбранные ходы применяются одновременно, в фиксированном порядке.
#
# Порядок (важен, многие взаимодействия от него зависят):
#   мгновенные карты (сразу при выборе) -> оплата и эффекты на себя -> лечение
#   -> атаки -> награды за попадание -> награды за убийство -> очистка
#   -> проверка конца матча

from __future__ import annotations
from typing import Dict, Any, List, Optional, Tuple
import random

import content
import deck

ROUND_TAGS = ("invulnerable", "reflect")


def log(match: Dict[str, Any], text: str, kind: str = "info") -> Dict[str, Any]:
    entry = {"round": int(match.get("round", 1)), "text": text, "kind": kind}
    match.setdefault("log", [])
    match["log"].append(entry)
    match["log"] = match["log"][-content.LOG_LIMIT:]  # ограничим историю
    return entry


# ---- бойцы ----

def new_combatant(pid: int, name: str, class_type: str, *, team: str = "NONE", is_human: bool = False,
                  hp: Optional[int] = None, max_hp: Optional[int] = None, energy: Optional[int] = None,
                  perks: Optional[List[str]] = None) -> Dict[str, Any]:
    cls = content.CLASSES[class_type]
    max_hp = int(max_hp if max_hp is not None else cls["base_hp"])
    hp = int(hp if hp is not None else max_hp)
    return {
        "id": pid,
        "name": name,
        "team": team,
        "class_type": class_type,
        "is_human": is_human,
        "hp": min(hp, max_hp),
        "max_hp": max_hp,
        "energy": int(energy if energy is not None else cls["base_energy"]),
        "max_energy": content.MAX_ENERGY,
        "shield": 0,
        "is_alive": True,
        "status": "idle",
        "action": None,
        "last_action": None,
        "buffs": [],
        "perks": list(perks or []),
        "targets": [],
        "damage_taken": 0,
        "energy_gained": 0,
        "hp_recovered": 0,
        "library": [],
        "card_levels": {},
        "draw_pile": [],
        "hand": [],
        "discard_pile": [],
        "used": [],
    }


def apply_perks_on_combat_start(player: Dict[str, Any]) -> None:
    perks = player.get("perks", [])
    if "BUFF_START_E" in perks:
        gain_energy(player, 1)
    if "BUFF_SHIELD_START" in perks:
        player["shield"] += 1
    if player["class_type"] == "CHANNELER":
        gain_energy(player, 1)


def find_player(players: List[Dict[str, Any]], pid: Optional[int]) -> Optional[Dict[str, Any]]:
    if pid is None:
        return None
    for p in players:
        if p["id"] == pid:
            return p
    return None


def is_enemy(a: Dict[str, Any], b: Dict[str, Any], mode: str) -> bool:
    if a is b:
        return False
    if mode == "FFA":
        return True
    return a.get("team") != b.get("team")


def valid_targets(player: Dict[str, Any], card: Dict[str, Any], players: List[Dict[str, Any]], mode: str) -> List[int]:
    t = card.get("target")
    if t == "enemy":
        return [q["id"] for q in players if q["is_alive"] and is_enemy(player, q, mode)]
    if t == "ally":
        return [q["id"] for q in players if q["is_alive"] and not is_enemy(player, q, mode)
                and (q is player or mode != "FFA")]
    return []


def needs_target(card: Dict[str, Any]) -> bool:
    return card.get("target") in ("enemy", "ally")


def has_buff(ent: Dict[str, Any], tag: str) -> bool:
    return tag in ent.get("buffs", [])


def add_buff(ent: Dict[str, Any], tag: str) -> None:
    ent.setdefault("buffs", [])
    if tag not in ent["buffs"]:
        ent["buffs"].append(tag)


def gain_energy(p: Dict[str, Any], n: int) -> int:
    before = int(p.get("energy", 0))
    p["energy"] = min(int(p.get("max_energy", content.MAX_ENERGY)), before + int(n))
    got = max(0, p["energy"] - before)
    p["energy_gained"] = int(p.get("energy_gained", 0)) + got
    return got


def heal_hp(p: Dict[str, Any], n: int) -> int:
    before = int(p.get("hp", 0))
    p["hp"] = min(int(p["max_hp"]), before + int(n))
    got = max(0, p["hp"] - before)
    p["hp_recovered"] = int(p.get("hp_recovered", 0)) + got
    return got


def lose_hp(p: Dict[str, Any], n: int) -> None:
    p["hp"] = max(0, int(p.get("hp", 0)) - int(n))
    p["damage_taken"] = int(p.get("damage_taken", 0)) + int(n)


def reset_round_counters(p: Dict[str, Any]) -> None:
    p["damage_taken"] = 0
    p["energy_gained"] = 0
    p["hp_recovered"] = 0


def gather_card() -> Dict[str, Any]:
    return deck.apply_level(content.MOVES["CHARGE"], 1)


# ---- применение эффектов ----

def apply_attack_instance(attacker: Dict[str, Any], target: Dict[str, Any], damage: int, *,
                          pierce: bool = False, match: Optional[Dict[str, Any]] = None) -> int:
    """Один удар по одной цели. Возвращает урон, дошедший до HP."""
    if has_buff(target, "invulnerable"):
        if has_buff(target, "reflect"):
            lose_hp(attacker, 1)
            if match is not None:
                log(match, f"{target['name']} отражает удар: {attacker['name']} теряет 1 HP.", "combat")
        elif match is not None:
            log(match, f"{target['name']} гасит атаку {attacker['name']} абсолютной защитой.", "combat")
        return 0
    dmg = max(0, int(damage))
    if not pierce and dmg > 0 and target.get("shield", 0) > 0:
        absorbed = min(dmg, int(target["shield"]))
        target["shield"] -= absorbed
        dmg -= absorbed
        if match is not None:
            log(match, f"Щит {target['name']} поглощает {absorbed} урона.", "combat")
    if dmg > 0:
        lose_hp(target, dmg)
        if match is not None:
            log(match, f"{attacker['name']} наносит {target['name']} {dmg} урона.", "combat")
    return dmg


def on_hit_rewards(attacker: Dict[str, Any], card: Dict[str, Any], total: int, kills: int,
                   match: Optional[Dict[str, Any]] = None) -> None:
    """Награды за попадание. Павший в этом раунде их не получает."""
    if attacker["hp"] <= 0:
        return
    if kills and "BUFF_VAMP" in attacker.get("perks", []):
        heal_hp(attacker, kills)
        if match is not None:
            log(match, f"Клык вампира: {attacker['name']} +{kills} HP.", "combat")
    if total <= 0:
        return
    on_hit = card.get("on_hit") or {}
    if on_hit.get("heal"):
        heal_hp(attacker, on_hit["heal"])
    if on_hit.get("energy"):
        gain_energy(attacker, on_hit["energy"])
    if attacker.get("class_type") == "BERSERKER":
        gain_energy(attacker, 1)


def strike(attacker: Dict[str, Any], card: Dict[str, Any], targets: List[Dict[str, Any]],
           match: Optional[Dict[str, Any]] = None, rewards: Optional[List[Tuple]] = None) -> int:
    """Атака по целям. Если передан rewards, награды за попадание откладываются туда."""
    damage = int(card.get("damage") or 0)
    if card.get("burst"):
        damage = int(attacker.get("energy", 0))
        attacker["energy"] = 0
        if match is not None:
            log(match, f"{attacker['name']} выплёскивает {damage} энергии.", "combat")
    total = 0
    kills = 0
    for t in targets:
        if t["id"] not in attacker["targets"]:
            attacker["targets"].append(t["id"])
        if damage <= 0:
            continue
        was_up = t["hp"] > 0
        for _ in range(int(card.get("hits", 1))):
            total += apply_attack_instance(attacker, t, damage, pierce=bool(card.get("pierce")), match=match)
        if was_up and t["hp"] <= 0:
            kills += 1
    if rewards is not None:
        rewards.append((attacker, card, total, kills))
    else:
        on_hit_rewards(attacker, card, total, kills, match)
    return total


def apply_self_effect(player: Dict[str, Any], card: Dict[str, Any], match: Optional[Dict[str, Any]] = None) -> None:
    name = player["name"]
    if card.get("hp_cost"):
        lose_hp(player, card["hp_cost"])
    if card.get("energy_gain"):
        n = int(card["energy_gain"])
        if card["id"] == "CHARGE" and player.get("class_type") == "ARCANIST":
            n = 2
        gain_energy(player, n)
    if card.get("shield"):
        player["shield"] = int(player.get("shield", 0)) + int(card["shield"])
    if card.get("invulnerable"):
        add_buff(player, "invulnerable")
        if card.get("reflect") or "BUFF_THORN" in player.get("perks", []):
            add_buff(player, "reflect")
    if match is not None:
        log(match, f"{name}: {card['label']}.", "combat")


def apply_instant(match: Dict[str, Any], player: Dict[str, Any], uid: str, target_id: Optional[int] = None) -> bool:
    """Мгновенная карта: платим и применяем сразу, раунд продолжается."""
    card = deck.find_hand_card(player, uid)
    if not card or not card.get("instant"):
        return False
    if not deck.can_afford(player, card):
        return False
    players = match["players"]
    target = None
    if needs_target(card):
        if target_id not in valid_targets(player, card, players, match["mode"]):
            return False
        target = find_player(players, target_id)
    player["energy"] -= deck.effective_cost(player, card)
    deck.use_card(player, uid)
    if card["type"] == "attack":
        log(match, f"{player['name']} мгновенно: {card['label']} по {target['name']}.", "combat")
        strike(player, card, [target], match)
        settle_instant_kills(match, player)
    else:
        apply_self_effect(player, card, match)
    return True


def settle_instant_kills(match: Dict[str, Any], attacker: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Павшие от мгновенной карты выбывают сразу, не дожидаясь раунда."""
    players = match["players"]
    fallen = [p for p in players if p["is_alive"] and p["hp"] <= 0]
    if not fallen:
        return None
    survivors = [p for p in players if p["is_alive"] and p["hp"] > 0]
    if attacker in survivors and _outcome(survivors, match["mode"]) is None:
        for d in fallen:
            if d["id"] in attacker.get("targets", []):
                gain_energy(attacker, 1)
                log(match, f"{attacker['name']} получает 1 энергию за {d['name']}.", "combat")
    for d in fallen:
        d["is_alive"] = False
        d["status"] = "eliminated"
        d["action"] = None
        log(match, f"{d['name']} повержен!", "death")
    result = check_winner(players, match["mode"])
    if result:
        declare_result(match, result)
    return result


def declare_result(match: Dict[str, Any], result: Dict[str, Any]) -> None:
    match["result"] = result
    match["phase"] = "game_over"
    if result["draw"]:
        log(match, "Никто не выжил. Ничья!", "win")
    else:
        log(match, f"Победитель: {result['winner_name']}!", "win")


# ---- раунд ----

def take_committed_card(player: Dict[str, Any], match: Dict[str, Any]) -> Dict[str, Any]:
    action = player.get("action") or {}
    uid = action.get("uid")
    if not uid:
        return gather_card()
    card = deck.find_hand_card(player, uid)
    if card is None:
        # план устарел (карту уже сыграли мгновенно), просто копим
        log(match, f"{player['name']}: выбранной карты нет в руке, вместо неё Накопление.")
        return gather_card()
    if not deck.can_afford(player, card):
        log(match, f"{player['name']}: не хватает энергии, вместо хода Накопление.")
        return gather_card()
    deck.use_card(player, uid)
    return card


def _outcome(survivors: List[Dict[str, Any]], mode: str) -> Optional[Dict[str, Any]]:
    if mode == "FFA":
        if len(survivors) > 1:
            return None
        if survivors:
            w = survivors[0]
            return {"winner_id": w["id"], "winner_team": w.get("team"), "winner_name": w["name"], "draw": False}
        return {"winner_id": None, "winner_team": None, "winner_name": None, "draw": True}
    a_alive = any(p.get("team") == "A" for p in survivors)
    b_alive = any(p.get("team") == "B" for p in survivors)
    if a_alive and b_alive:
        return None
    if a_alive or b_alive:
        team = "A" if a_alive else "B"
        return {"winner_id": None, "winner_team": team, "winner_name": team, "draw": False}
    return {"winner_id": None, "winner_team": None, "winner_name": None, "draw": True}


def check_winner(players: List[Dict[str, Any]], mode: str) -> Optional[Dict[str, Any]]:
    return _outcome([p for p in players if p["is_alive"]], mode)


def resolve_round(match: Dict[str, Any], rng: Optional[random.Random] = None) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Разрешить раунд по зафиксированным ходам. Детерминировано при данных ходах."""
    players = match["players"]
    mode = match["mode"]
    round_no = int(match.get("round", 1))
    match["phase"] = "resolving"
    acting = [p for p in players if p["is_alive"] and p["hp"] > 0]
    for p in acting:
        p["status"] = "acting"

    # оплата и эффекты на себя
    cards: Dict[int, Dict[str, Any]] = {}
    for p in acting:
        card = take_committed_card(p, match)
        cards[p["id"]] = card
        p["energy"] = max(0, int(p["energy"]) - deck.effective_cost(p, card))
        if card["type"] not in ("attack", "heal"):
            apply_self_effect(p, card, match)

    # лечение (до атак)
    for p in acting:
        card = cards[p["id"]]
        if card["type"] != "heal":
            continue
        tgt = find_player(players, (p.get("action") or {}).get("target"))
        if tgt is None or not tgt["is_alive"] or tgt["hp"] <= 0:
            log(match, f"{p['name']}: лечение уходит в пустоту.")
            continue
        got = heal_hp(tgt, int(card.get("heal") or 0))
        log(match, f"{p['name']} лечит {tgt['name']} на {got}.", "combat")

    # атаки (все удары раунда, затем награды за попадание)
    rewards: List[Tuple] = []
    for p in acting:
        card = cards[p["id"]]
        if card["type"] != "attack":
            continue
        if card.get("aoe"):
            targets = [q for q in players if q is not p and q["is_alive"]]
        else:
            tgt = find_player(players, (p.get("action") or {}).get("target"))
            targets = [tgt] if tgt is not None and tgt is not p and tgt["is_alive"] else []
        if not targets:
            log(match, f"{p['name']}: {card['label']}: цели нет.", "combat")
            continue
        log(match, f"{p['name']} использует {card['label']}.", "combat")
        strike(p, card, targets, match, rewards)
    for attacker, card, total, kills in rewards:
        on_hit_rewards(attacker, card, total, kills, match)

    # награда за убийство
    fallen = [p for p in players if p["is_alive"] and p["hp"] <= 0]
    survivors = [p for p in players if p["is_alive"] and p["hp"] > 0]
    if fallen and _outcome(survivors, mode) is None:
        for d in fallen:
            for q in survivors:
                if d["id"] in q.get("targets", []):
                    gain_energy(q, 1)
                    log(match, f"{q['name']} получает 1 энергию за {d['name']}.", "combat")

    # очистка
    stats: Dict[int, Dict[str, int]] = {}
    for p in players:
        p["buffs"] = [b for b in p.get("buffs", []) if b not in ROUND_TAGS]
        p["shield"] = 0
        deck.finish_used(p)
        card = cards.get(p["id"])
        if card is not None:
            p["last_action"] = {"move_id": card["id"], "label": card["label"],
                                "target": (p.get("action") or {}).get("target")}
        p["action"] = None
        p["targets"] = []
        stats[p["id"]] = {"damage_taken": p["damage_taken"], "energy_gained": p["energy_gained"],
                          "hp_recovered": p["hp_recovered"]}
        reset_round_counters(p)
    match["round_stats"] = stats

    # конец матча?
    for d in fallen:
        d["is_alive"] = False
        d["status"] = "eliminated"
        log(match, f"{d['name']} повержен!", "death")
    for p in players:
        if p["is_alive"]:
            p["status"] = "idle"
    result = check_winner(players, mode)
    if result:
        declare_result(match, result)
    else:
        match["phase"] = "hand_management"
    entries = [e for e in match.get("log", []) if e["round"] == round_no]
    return players, entries, result
