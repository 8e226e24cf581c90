# game.py
# Сердце игры: состояние, фазы раунда, действия игрока, забег, диспетчер.

from __future__ import annotations
from typing import Dict, Any, List, Optional, Tuple, Iterable
import time, random, copy

import content
import deck
import combat
import bots
import adventure

SAVE_VERSION = 1
HUMAN_ID = 1

# ---- утилиты ----

def now_ts() -> int:
    return int(time.time())

def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))

def deep(obj):
    return copy.deepcopy(obj)

make_uid = deck.make_uid
log = combat.log

def seeded_rng(state: Dict[str, Any]) -> random.Random:
    # детерминированный rng через счётчик
    seed = int(state.get("seed", 12345))
    ctr = int(state.get("rng_ctr", 0))
    state["rng_ctr"] = ctr + 1
    mix = (seed ^ (ctr * 0x9E3779B1)) & 0xFFFFFFFF
    return random.Random(mix)

def human_player(match: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not match:
        return None
    for p in match.get("players", []):
        if p.get("is_human"):
            return p
    return None

def auto_play(state: Dict[str, Any]) -> bool:
    return bool(state.get("settings", {}).get("auto_play", False))

def phase_delay(phase: str, auto: bool) -> int:
    return int(content.PHASE_DELAYS_MS.get(phase, {}).get("auto" if auto else "normal", 0))

def toast(state: Dict[str, Any], msg: str) -> None:
    state.setdefault("ui", {})["toast"] = msg

# ---- состояние ----

def default_state(seed: Optional[int] = None) -> Dict[str, Any]:
    return {
        "version": SAVE_VERSION,
        "updated_at": now_ts(),
        "seed": int(seed) if seed is not None else random.randrange(1, 2**31),
        "rng_ctr": 0,
        "screen": "MENU",
        "settings": {
            "difficulty": "NORMAL",
            "auto_play": False,
        },
        "match": None,        # текущий бой
        "adventure": None,    # активный забег
        "ui": {
            "toast": "",
        },
    }

def sanitize_for_client(state: Dict[str, Any]) -> Dict[str, Any]:
    # Делаем "view": подсказки для руки, без чужих рук и порядка колоды.
    st = deep(state)
    auto = auto_play(st)
    match = st.get("match")
    if match:
        players = match["players"]
        human = human_player(match)
        for p in players:
            p["draw_count"] = len(p.pop("draw_pile", []))
            p["hand_size"] = len(p.get("hand", []))
            if p is not human:
                p["hand"] = []
        if human:
            can_act = match["phase"] == "planning" and human["is_alive"] and not auto
            for c in human["hand"]:
                c["cost_now"] = deck.effective_cost(human, c)
                c["playable"] = can_act and deck.can_afford(human, c)
                c["valid_targets"] = combat.valid_targets(human, c, players, match["mode"])
        match["delay_ms"] = phase_delay(match["phase"], auto)
    adv = st.get("adventure")
    if adv:
        adv["max_hp"] = adventure.max_hp(adv)
        adv["available_nodes"] = [n["id"] for n in adventure.available_nodes(adv)]
    st["content_summary"] = {
        "classes": {k: {"name": v["name"], "desc": v["desc"], "passive": v["passive"]} for k, v in content.CLASSES.items()},
        "difficulties": content.DIFFICULTIES,
        "perks": content.PERKS,
        "round_buffs": content.ROUND_BUFFS,
        "shop": content.SHOP_ITEMS,
        "phase_delays": content.PHASE_DELAYS_MS,
    }
    return st

# ---- бой ----

def _seat_team(mode: str, seat: int, count: int) -> str:
    if mode == "TEAM":
        return "A" if seat < (count + 1) // 2 else "B"
    return "NONE"

def start_encounter(state: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    config = config or {}
    mode = config.get("mode", "FFA")
    if mode not in content.GAME_MODES:
        mode = "FFA"
    rng = seeded_rng(state)
    players: List[Dict[str, Any]] = []

    if mode == "ADVENTURE":
        adv = state.get("adventure")
        if not adv:
            return []
        human = combat.new_combatant(HUMAN_ID, "Ты", adv["player_class"], team="A", is_human=True,
                                     hp=adv["hp"], max_hp=adventure.max_hp(adv), perks=adv["permanent_buffs"])
        deck.setup_piles(human, adv["deck"], adv["card_levels"], rng)
        players.append(human)
        for i, foe in enumerate(config.get("enemies") or []):
            bot = combat.new_combatant(HUMAN_ID + 1 + i, foe["name"], foe["class_type"], team="B",
                                       hp=foe["hp"], max_hp=foe["hp"], energy=foe["energy"])
            lib = deck.build_library(foe["class_type"], 2)
            level = int(foe.get("level", 1))
            deck.setup_piles(bot, lib, {cid: level for cid in lib} if level > 1 else {}, rng)
            players.append(bot)
    else:
        cls = config.get("class")
        if cls not in content.PLAYABLE_CLASSES:
            cls = content.PLAYABLE_CLASSES[0]
        try:
            count = clamp(int(config.get("players", 2) or 2), 2, 6)
        except (TypeError, ValueError):
            count = 2
        human = combat.new_combatant(HUMAN_ID, "Ты", cls, team=_seat_team(mode, 0, count), is_human=True)
        deck.setup_piles(human, deck.build_library(cls, count), {}, rng)
        players.append(human)
        for seat in range(1, count):
            bcls = rng.choice(content.PLAYABLE_CLASSES)
            bot = combat.new_combatant(HUMAN_ID + seat, f"Бот {seat} ({content.CLASSES[bcls]['name']})", bcls,
                                       team=_seat_team(mode, seat, count))
            deck.setup_piles(bot, deck.build_library(bcls, count), {}, rng)
            players.append(bot)

    for p in players:
        combat.apply_perks_on_combat_start(p)
        deck.draw_to_hand(p, rng)

    match = {
        "mode": mode,
        "round": 1,
        "phase": "planning",
        "players": players,
        "log": [],
        "result": None,
        "node_type": config.get("node_type"),
        "round_stats": {},
    }
    log(match, "Бой начался!")
    state["match"] = match
    state["screen"] = "COMBAT"
    state["updated_at"] = now_ts()
    return players

def _pick_target(player: Dict[str, Any], card: Dict[str, Any], match: Dict[str, Any], target: Optional[int]) -> Tuple[bool, Optional[int]]:
    if not combat.needs_target(card):
        return True, None
    targets = combat.valid_targets(player, card, match["players"], match["mode"])
    if target is None and len(targets) == 1:
        target = targets[0]
    try:
        target = int(target) if target is not None else None
    except (TypeError, ValueError):
        return False, None
    return target in targets, target

def _human_can_act(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    match = state.get("match")
    if not match or match["phase"] != "planning":
        return None
    human = human_player(match)
    if not human or not human["is_alive"]:
        return None
    return human

def commit_instant_action(state: Dict[str, Any], card_ref: str, target: Optional[int] = None) -> bool:
    human = _human_can_act(state)
    if not human:
        return False
    match = state["match"]
    card = deck.find_hand_card(human, card_ref)
    if not card or not card.get("instant"):
        return False
    ok, target = _pick_target(human, card, match, target)
    if not ok:
        return False
    if not combat.apply_instant(match, human, card_ref, target):
        return False
    # мгновенный удар мог закончить бой
    if match.get("result"):
        _on_match_over(state, match["result"])
    state["updated_at"] = now_ts()
    return True

def commit_human_action(state: Dict[str, Any], card_ref: Optional[str], target: Optional[int] = None) -> bool:
    human = _human_can_act(state)
    if not human:
        return False
    match = state["match"]
    if card_ref in (None, "", "CHARGE"):
        card, uid = combat.gather_card(), None
    else:
        card = deck.find_hand_card(human, card_ref)
        if not card:
            return False
        if card.get("instant"):
            return commit_instant_action(state, card_ref, target)
        if not deck.can_afford(human, card):
            return False
        uid = card_ref
    ok, target = _pick_target(human, card, match, target)
    if not ok:
        return False
    human["action"] = {"uid": uid, "move_id": card["id"], "target": target}
    human["status"] = "ready"
    plan_bots(match, seeded_rng(state))
    if match.get("result"):
        _on_match_over(state, match["result"])
    else:
        match["phase"] = "revealing"
    state["updated_at"] = now_ts()
    return True

def plan_bots(match: Dict[str, Any], rng: random.Random, include_human: bool = False) -> None:
    """Боты (и человек в автоигре): сначала мгновенные карты, затем основной ход."""
    players = match["players"]
    for p in players:
        if not p["is_alive"] or p["hp"] <= 0 or (p["is_human"] and not include_human):
            continue
        inst = bots.choose_instant(p)
        if inst:
            combat.apply_instant(match, p, inst["uid"])
            if match.get("result"):
                return
        card, target = bots.calculate_bot_move(p, players, match["mode"], rng)
        p["action"] = {"uid": card.get("uid"), "move_id": card["id"], "target": target}
        p["status"] = "ready"

def resolve_round(state: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    match = state.get("match")
    if not match:
        return [], [], None
    human = human_player(match)
    auto = auto_play(state)
    spectating = human is None or not human["is_alive"]
    rng = seeded_rng(state)
    if match["phase"] == "planning":
        if not (auto or spectating):
            return match["players"], [], None
        plan_bots(match, rng, include_human=auto)
        if match.get("result"):
            _on_match_over(state, match["result"])
            return match["players"], [], match["result"]
    elif match["phase"] != "revealing":
        return match["players"], [], match.get("result")

    players, entries, result = combat.resolve_round(match, rng)
    if result:
        _on_match_over(state, result)
    elif auto or spectating or not human["is_alive"]:
        finish_hand_management(state)
    state["updated_at"] = now_ts()
    return players, entries, result

def _on_match_over(state: Dict[str, Any], result: Dict[str, Any]) -> None:
    match = state["match"]
    adv = state.get("adventure")
    if match["mode"] == "ADVENTURE" and adv:
        human = human_player(match)
        if human and not result["draw"] and result["winner_team"] == human["team"]:
            adv["hp"] = int(human["hp"])
            gold = adventure.victory_gold(adv, match.get("node_type") or "BATTLE")
            adv["gold"] += gold
            adv["loot"] = adventure.build_loot_choices(adv, seeded_rng(state))
            log(match, f"Добыча: +{gold} золота.", "loot")
            state["screen"] = "LOOT"
            toast(state, f"Победа! +{gold} золота. Выбери награду.")
        else:
            state["adventure"] = None
            state["screen"] = "GAME_OVER"
            toast(state, "Поражение. Забег окончен.")
        return
    state["screen"] = "GAME_OVER"
    if result["draw"]:
        toast(state, "Ничья.")
    else:
        toast(state, f"Победитель: {result['winner_name']}.")

def finish_hand_management(state: Dict[str, Any], discard_uids: Iterable[str] = ()) -> bool:
    match = state.get("match")
    if not match or match["phase"] != "hand_management":
        return False
    rng = seeded_rng(state)
    auto = auto_play(state)
    for p in match["players"]:
        if not p["is_alive"]:
            continue
        if p["is_human"] and not auto:
            picks = list(discard_uids or [])
        else:
            picks = bots.calculate_bot_discard(p)
        for uid in picks:
            deck.discard(p, uid)
        deck.draw_to_hand(p, rng)
        p["status"] = "idle"
    match["round"] = int(match["round"]) + 1
    match["phase"] = "planning"
    log(match, f"Раунд {match['round']}.")
    state["updated_at"] = now_ts()
    return True

def toggle_auto_play(state: Dict[str, Any]) -> bool:
    settings = state.setdefault("settings", {})
    settings["auto_play"] = not bool(settings.get("auto_play", False))
    toast(state, "Автоигра включена." if settings["auto_play"] else "Автоигра выключена.")
    return settings["auto_play"]

def quit_to_menu(state: Dict[str, Any]) -> None:
    # всё незавершённое просто выбрасываем
    state["match"] = None
    state["adventure"] = None
    state["screen"] = "MENU"
    state["updated_at"] = now_ts()

# ---- забег ----

def start_adventure(state: Dict[str, Any], player_class: Optional[str] = None,
                    difficulty: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if player_class not in content.PLAYABLE_CLASSES:
        return None
    difficulty = difficulty or state.get("settings", {}).get("difficulty", "NORMAL")
    adv = adventure.new_adventure(player_class, difficulty, seeded_rng(state))
    state["adventure"] = adv
    state["match"] = None
    state["screen"] = "ADVENTURE_MAP"
    toast(state, f"Забег начат: {content.CLASSES[player_class]['name']}.")
    state["updated_at"] = now_ts()
    return adv

def select_map_node(state: Dict[str, Any], node_id: str) -> Optional[Dict[str, Any]]:
    adv = state.get("adventure")
    if not adv or state.get("screen") != "ADVENTURE_MAP":
        return None
    rng = seeded_rng(state)
    stage_before = adv["stage"]
    node = adventure.select_node(adv, node_id, rng)
    if not node:
        toast(state, "Туда сейчас не пройти.")
        return None
    t = node["type"]
    if t in content.COMBAT_NODES:
        enemies = adventure.build_encounter(adv, node, rng)
        start_encounter(state, {"mode": "ADVENTURE", "enemies": enemies, "node_type": t})
        if adv["stage"] != stage_before:
            toast(state, f"Финальный бой этапа {stage_before}!")
    elif t == "SHOP":
        state["screen"] = "SHOP"
    elif t == "REST":
        state["screen"] = "REST"
    elif t == "EVENT":
        adv["event"] = adventure.roll_event(adv, rng)
        state["screen"] = "EVENT"
        toast(state, adv["event"]["text"])
    else:
        state["screen"] = "ADVENTURE_MAP"
    state["updated_at"] = now_ts()
    return adv

def purchase_shop_item(state: Dict[str, Any], item_id: str) -> Optional[Dict[str, Any]]:
    adv = state.get("adventure")
    if not adv or state.get("screen") != "SHOP":
        return None
    ok, msg = adventure.purchase(adv, item_id)
    toast(state, msg)
    return adv if ok else None

def _back_to_map(state: Dict[str, Any]) -> None:
    state["screen"] = "ADVENTURE_MAP"
    state["updated_at"] = now_ts()

def leave_shop(state: Dict[str, Any]) -> None:
    if state.get("adventure") and state.get("screen") == "SHOP":
        _back_to_map(state)

def rest_choice(state: Dict[str, Any]) -> None:
    adv = state.get("adventure")
    if not adv or state.get("screen") != "REST":
        return
    got = adventure.rest(adv)
    toast(state, f"Привал: +{got} HP.")
    _back_to_map(state)

def event_continue(state: Dict[str, Any]) -> None:
    adv = state.get("adventure")
    if not adv or state.get("screen") != "EVENT":
        return
    adv["event"] = None
    _back_to_map(state)

def select_loot(state: Dict[str, Any], index: int) -> Optional[Dict[str, Any]]:
    adv = state.get("adventure")
    if not adv or state.get("screen") != "LOOT" or not adv.get("loot"):
        return None
    try:
        index = int(index)
    except (TypeError, ValueError):
        return None
    choices = adv["loot"]
    if not (0 <= index < len(choices)):
        return None
    toast(state, adventure.apply_loot(adv, choices[index]))
    adv["loot"] = None
    state["match"] = None
    _back_to_map(state)
    return adv

# ---- диспетчер действий ----

def dispatch(state: Dict[str, Any], action: Dict[str, Any]) -> None:
    typ = action.get("type")
    state.setdefault("ui", {}).setdefault("toast", "")
    state["ui"]["toast"] = ""

    if typ == "START_MATCH":
        mode = action.get("mode", "FFA")
        if mode == "ADVENTURE":
            mode = "FFA"
        start_encounter(state, {"class": action.get("class"), "mode": mode, "players": action.get("players", 2)})
        return

    if typ == "START_ADVENTURE":
        if not start_adventure(state, action.get("class"), action.get("difficulty")):
            toast(state, "Неизвестный класс.")
        return

    if typ == "PLAY_CARD":
        if not commit_human_action(state, action.get("uid"), action.get("target")):
            toast(state, "Так сыграть нельзя.")
        return

    if typ == "PLAY_INSTANT":
        if not commit_instant_action(state, action.get("uid"), action.get("target")):
            toast(state, "Так сыграть нельзя.")
        return

    if typ == "RESOLVE":
        resolve_round(state)
        return

    if typ == "FINISH_HAND":
        finish_hand_management(state, action.get("discard") or [])
        return

    if typ == "TOGGLE_AUTO":
        toggle_auto_play(state)
        return

    if typ == "QUIT":
        quit_to_menu(state)
        return

    if typ == "CHOOSE_NODE":
        select_map_node(state, action.get("node_id"))
        return

    if typ == "SHOP_BUY":
        purchase_shop_item(state, action.get("item_id"))
        return

    if typ == "SHOP_LEAVE":
        leave_shop(state)
        return

    if typ == "REST":
        rest_choice(state)
        return

    if typ == "EVENT_CONTINUE":
        event_continue(state)
        return

    if typ == "PICK_LOOT":
        select_loot(state, action.get("index"))
        return

    if typ == "SET_DIFFICULTY":
        diff = action.get("difficulty")
        if diff in content.DIFFICULTIES:
            state.setdefault("settings", {})["difficulty"] = diff
            toast(state, "Сложность изменена.")
        return
