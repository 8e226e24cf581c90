# bots.py
# Поведение ботов: мгновенные карты, основной ход с целью, выбор карт на сброс.

from __future__ import annotations
from typing import Dict, Any, List, Optional, Tuple
import random

import content
import deck
import combat


def enemies_of(bot: Dict[str, Any], players: List[Dict[str, Any]], mode: str) -> List[Dict[str, Any]]:
    return [p for p in players if p["is_alive"] and p["hp"] > 0 and combat.is_enemy(bot, p, mode)]


def affordable_moves(bot: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Рука + всегда доступное Накопление, только то, что бот может оплатить."""
    moves = [combat.gather_card()]
    for c in bot.get("hand", []):
        if deck.can_afford(bot, c):
            moves.append(c)
    return moves


def expected_damage(bot: Dict[str, Any], card: Dict[str, Any]) -> int:
    if card.get("burst"):
        return max(0, int(bot.get("energy", 0)) - deck.effective_cost(bot, card))
    return int(card.get("damage") or 0) * int(card.get("hits", 1))


def choose_instant(bot: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for c in bot.get("hand", []):
        if c.get("instant") and c["type"] == "defend" and deck.can_afford(bot, c):
            return c
    if bot["hp"] > 2:
        for c in bot.get("hand", []):
            if c.get("instant") and c["type"] == "sacrifice" and deck.can_afford(bot, c):
                return c
    return None


def _pick(card: Dict[str, Any], bot: Dict[str, Any], enemy: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], Optional[int]]:
    if card["type"] == "attack" and not card.get("aoe"):
        return card, enemy["id"] if enemy else None
    if card["type"] == "heal":
        return card, bot["id"]
    return card, None


def calculate_bot_move(bot: Dict[str, Any], players: List[Dict[str, Any]], mode: str,
                       rng: random.Random) -> Tuple[Dict[str, Any], Optional[int]]:
    moves = affordable_moves(bot)
    enemies = enemies_of(bot, players, mode)
    attacks = [m for m in moves if m["type"] == "attack"] if enemies else []
    if not enemies:
        # бить некого: лечимся или копим
        moves = [m for m in moves if m["type"] != "attack"]

    # добить, если можно
    for card in attacks:
        dmg = expected_damage(bot, card)
        for e in enemies:
            if dmg > 0 and dmg >= e["hp"]:
                return _pick(card, bot, e)

    if bot["hp"] <= 2:
        for card in moves:
            if card["type"] == "heal":
                return _pick(card, bot, None)
        for card in moves:
            if card.get("invulnerable"):
                return _pick(card, bot, None)

    energy = int(bot.get("energy", 0))
    first_enemy = enemies[0] if enemies else None
    if energy >= 3:
        for card in attacks:
            if card.get("burst"):
                return _pick(card, bot, first_enemy)
        for card in moves:
            if deck.effective_cost(bot, card) >= 2:
                return _pick(card, bot, first_enemy)

    if bot["hp"] > 2:
        for card in moves:
            if card["type"] == "sacrifice":
                return _pick(card, bot, None)

    if attacks and rng.random() < 0.7:
        return _pick(rng.choice(attacks), bot, rng.choice(enemies))
    card = rng.choice(moves)
    return _pick(card, bot, rng.choice(enemies) if enemies else None)


def calculate_bot_discard(bot: Dict[str, Any]) -> List[str]:
    hand = bot.get("hand", [])
    energy = int(bot.get("energy", 0))
    picks: List[str] = []
    for c in hand:
        if len(picks) >= 2:
            break
        if deck.effective_cost(bot, c) > energy + 2:
            picks.append(c["uid"])
        elif c["type"] == "heal" and bot["hp"] >= bot["max_hp"]:
            picks.append(c["uid"])
    if not picks and hand and len(hand) >= content.MAX_HAND_SIZE:
        # рука не должна застывать
        picks.append(hand[0]["uid"])
    return picks
