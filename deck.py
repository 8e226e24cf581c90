# deck.py
# Колода бойца: добор, сброс, перетасовка и уровни карт.

from __future__ import annotations
from typing import Dict, Any, List, Optional, Union
from collections import Counter
import uuid, random

import content


def make_uid(prefix="c") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


def apply_level(template: Dict[str, Any], level: int) -> Dict[str, Any]:
    """Карта с учётом уровня. Шаблон не трогаем, возвращаем копию.

    Уровень 1 и ниже без изменений. Карты с уроном получают +1 урона за
    каждый уровень выше первого, лечащие +1 к лечению. Защита и бафы
    меняют только подпись.
    """
    card = dict(template)
    card["on_hit"] = dict(template.get("on_hit", {}))
    level = int(level or 1)
    card["level"] = max(1, level)
    if level <= 1:
        return card
    bonus = level - 1
    if card.get("damage") is not None and not card.get("burst"):
        card["damage"] = int(card["damage"]) + bonus
    if card.get("heal") is not None:
        card["heal"] = int(card["heal"]) + bonus
    card["label"] = f"{template['label']} +{bonus}"
    card["desc"] = f"{template['desc']} (ур. {level})"
    return card


def make_card(card_id: str, level: int = 1) -> Optional[Dict[str, Any]]:
    tmpl = content.MOVE_INDEX.get(card_id)
    if tmpl is None:
        return None
    card = apply_level(tmpl, level)
    # uid различает две копии одной карты в руке
    card["uid"] = make_uid("card")
    return card


def card_level(player: Dict[str, Any], card_id: str) -> int:
    return int((player.get("card_levels") or {}).get(card_id, 1))


def build_library(class_type: str, players: int = 2) -> List[str]:
    lib = list(content.STANDARD_DECK)
    if players > 2:
        lib += content.MULTIPLAYER_EXTRA_CARDS
    lib += content.CLASS_BONUS_CARDS.get(class_type, [])
    return lib


def setup_piles(player: Dict[str, Any], library: List[str], levels: Optional[Dict[str, int]], rng: random.Random) -> None:
    player["library"] = list(library)
    player["card_levels"] = dict(levels or {})
    player["draw_pile"] = list(library)
    rng.shuffle(player["draw_pile"])
    player["hand"] = []
    player["discard_pile"] = []
    player["used"] = []


def draw(player: Dict[str, Any], count: int, rng: random.Random) -> List[Dict[str, Any]]:
    """Тянем по одной карте; пустая колода: мешаем сброс, оба пусты: рука остаётся короткой."""
    drawn: List[Dict[str, Any]] = []
    if not player.get("library"):
        return drawn
    for _ in range(max(0, int(count))):
        if len(player["hand"]) >= content.MAX_HAND_SIZE:
            break
        if not player["draw_pile"]:
            if not player["discard_pile"]:
                break
            player["draw_pile"] = player["discard_pile"]
            player["discard_pile"] = []
            rng.shuffle(player["draw_pile"])
        cid = player["draw_pile"].pop()
        card = make_card(cid, card_level(player, cid))
        if card is None:
            # неизвестный id не теряем, уходит в сброс
            player["discard_pile"].append(cid)
            continue
        player["hand"].append(card)
        drawn.append(card)
    return drawn


def draw_to_hand(player: Dict[str, Any], rng: random.Random) -> List[Dict[str, Any]]:
    return draw(player, content.MAX_HAND_SIZE - len(player.get("hand", [])), rng)


def find_hand_card(player: Dict[str, Any], uid: str) -> Optional[Dict[str, Any]]:
    for c in player.get("hand", []):
        if c.get("uid") == uid:
            return c
    return None


def remove_hand_card(player: Dict[str, Any], uid: str) -> Optional[Dict[str, Any]]:
    for i, c in enumerate(player.get("hand", [])):
        if c.get("uid") == uid:
            return player["hand"].pop(i)
    return None


def discard(player: Dict[str, Any], uid_or_index: Union[str, int]) -> Optional[Dict[str, Any]]:
    hand = player.get("hand", [])
    card = None
    if isinstance(uid_or_index, int):
        if 0 <= uid_or_index < len(hand):
            card = hand.pop(uid_or_index)
    else:
        card = remove_hand_card(player, uid_or_index)
    if card is None:
        return None
    # в сброс уходит id шаблона, а не экземпляр
    player["discard_pile"].append(card["id"])
    return card


def use_card(player: Dict[str, Any], uid: str) -> Optional[Dict[str, Any]]:
    """Карта сыграна: до конца раунда лежит в used, потом уйдёт в сброс."""
    card = remove_hand_card(player, uid)
    if card is not None:
        player.setdefault("used", []).append(card["id"])
    return card


def finish_used(player: Dict[str, Any]) -> None:
    player["discard_pile"].extend(player.get("used", []))
    player["used"] = []


def pile_census(player: Dict[str, Any]) -> Counter:
    cnt: Counter = Counter()
    cnt.update(player.get("draw_pile", []))
    cnt.update(c["id"] for c in player.get("hand", []))
    cnt.update(player.get("discard_pile", []))
    cnt.update(player.get("used", []))
    return cnt


def effective_cost(player: Dict[str, Any], card: Dict[str, Any]) -> int:
    cost = int(card.get("cost", 0))
    if player.get("class_type") == "STRIKER" and card.get("type") == "attack" and card.get("variant") == "advanced":
        cost -= 1
    return max(0, cost)


def can_afford(player: Dict[str, Any], card: Dict[str, Any]) -> bool:
    if effective_cost(player, card) > int(player.get("energy", 0)):
        return False
    # нельзя жертвовать последним HP
    if int(card.get("hp_cost", 0)) > 0 and int(player.get("hp", 0)) <= int(card["hp_cost"]):
        return False
    return True
