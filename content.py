# content.py
# Данные: ходы (карты), классы, колоды, лавка, сложности, шаблон карты мира.
# Всё, что относится к балансу, живёт здесь, а не в логике боя.

from __future__ import annotations
from typing import Dict, List, Any, Optional
import random

MAX_ENERGY = 10
MAX_HAND_SIZE = 5
LOG_LIMIT = 80

ACTION_TYPES = ["charge", "attack", "defend", "heal", "buff", "sacrifice"]
VARIANTS = ["basic", "advanced"]
GAME_MODES = ["FFA", "TEAM", "ADVENTURE"]
TEAMS = ["NONE", "A", "B"]

# Паузы между фазами (мс): только для клиента, на исход не влияют.
PHASE_DELAYS_MS = {
    "revealing": {"normal": 1500, "auto": 300},
    "resolving": {"normal": 1500, "auto": 500},
    "planning": {"normal": 0, "auto": 300},
}


def _m(
    mid: str,
    mtype: str,
    variant: str,
    cost: int,
    label: str,
    desc: str,
    *,
    damage: Optional[int] = None,
    heal: Optional[int] = None,
    target: str = "none",
    instant: bool = False,
    aoe: bool = False,
    pierce: bool = False,
    burst: bool = False,
    hits: int = 1,
    shield: int = 0,
    invulnerable: bool = False,
    reflect: bool = False,
    hp_cost: int = 0,
    energy_gain: int = 0,
    on_hit: Optional[Dict[str, int]] = None,
) -> Dict[str, Any]:
    return {
        "id": mid,
        "type": mtype,
        "variant": variant,
        "cost": cost,
        "label": label,
        "desc": desc,
        "damage": damage,
        "heal": heal,
        "target": target,  # enemy/ally/all/none
        # Мгновенные карты применяются сразу при выборе, вне общей очереди.
        "instant": instant,
        "aoe": aoe,
        "pierce": pierce,
        # Урон = вся текущая энергия, после чего энергия обнуляется.
        "burst": burst,
        "hits": hits,
        "shield": shield,
        "invulnerable": invulnerable,
        "reflect": reflect,
        "hp_cost": hp_cost,
        "energy_gain": energy_gain,
        "on_hit": on_hit or {},
    }


# --------------------------
# Базовые ходы
# --------------------------

MOVES: Dict[str, Dict[str, Any]] = {}

for _mv in [
    _m("CHARGE", "charge", "basic", 0, "Накопление",
       "Получи 1 энергию. Не тратит карту из руки.",
       energy_gain=1),
    _m("ATTACK_LOW", "attack", "basic", 1, "Ударная волна",
       "Нанеси 1 обычного урона и восстанови 1 HP.",
       damage=1, target="enemy", on_hit={"heal": 1}),
    _m("DEFEND_LOW", "defend", "basic", 0, "Блок",
       "Мгновенно: +1 к щиту. Щит гасит обычный урон. Можно играть дальше.",
       instant=True, shield=1),
    _m("ATTACK_HIGH", "attack", "advanced", 3, "Энергошар",
       "Нанеси 2 пробивающего урона (игнорирует щит). При попадании +1 HP и +1 энергии.",
       damage=2, target="enemy", pierce=True, on_hit={"heal": 1, "energy": 1}),
    _m("DEFEND_HIGH", "defend", "advanced", 1, "Абсолютная защита",
       "Мгновенно: неуязвимость до конца раунда. Можно играть дальше.",
       instant=True, invulnerable=True),
    _m("SACRIFICE", "sacrifice", "basic", 0, "Кровавый жар",
       "Мгновенно: потеряй 1 HP, получи 2 энергии. Можно играть дальше.",
       instant=True, hp_cost=1, energy_gain=2),
    _m("LIGHT_SHIELD", "buff", "basic", 1, "Световой щит",
       "Получи 1 щита. Щит гасит обычный урон.",
       shield=1),
    _m("HEAL", "heal", "advanced", 2, "Исцеление",
       "Восстанови 1 HP себе или союзнику.",
       heal=1, target="ally"),
    _m("SHOCKWAVE", "attack", "advanced", 2, "Сотрясение",
       "Нанеси 1 обычного урона всем. При попадании +1 HP.",
       damage=1, target="all", aoe=True, on_hit={"heal": 1}),
]:
    MOVES[_mv["id"]] = _mv

# --------------------------
# Особые карты (бонусы классов, добыча)
# --------------------------

SPECIAL_MOVES: List[Dict[str, Any]] = [
    _m("DOUBLE_STRIKE", "attack", "advanced", 1, "Двойной удар",
       "Мгновенно: дважды нанеси 1 обычного урона цели. Можно играть дальше.",
       damage=1, target="enemy", instant=True, hits=2),
    _m("MEDITATE", "charge", "advanced", 0, "Медитация",
       "Потеряй 1 HP, получи 2 энергии.",
       hp_cost=1, energy_gain=2),
    _m("VAMP_STRIKE", "attack", "advanced", 3, "Вампирский удар",
       "Нанеси 1 пробивающего урона. При попадании +1 HP.",
       damage=1, target="enemy", pierce=True, on_hit={"heal": 1}),
    _m("SPIKE_SHIELD", "defend", "advanced", 1, "Шипастый щит",
       "Мгновенно: неуязвимость до конца раунда, каждая отбитая атака возвращает 1 урона.",
       instant=True, invulnerable=True, reflect=True),
    _m("ARCANE_BURST", "attack", "advanced", 0, "Арканный взрыв",
       "Потрать всю энергию: 1 обычного урона за каждую единицу.",
       damage=0, target="enemy", burst=True),
]

MOVE_INDEX: Dict[str, Dict[str, Any]] = dict(MOVES)
MOVE_INDEX.update({m["id"]: m for m in SPECIAL_MOVES})


# --------------------------
# Колоды
# --------------------------

STANDARD_DECK: List[str] = [
    "ATTACK_LOW", "ATTACK_LOW", "ATTACK_LOW",
    "DEFEND_LOW", "DEFEND_LOW",
    "ATTACK_HIGH",
    "DEFEND_HIGH",
    "SACRIFICE",
    "LIGHT_SHIELD",
    "LIGHT_SHIELD",
]

# Добавляется, если за столом больше двух бойцов.
MULTIPLAYER_EXTRA_CARDS: List[str] = ["SHOCKWAVE"]

CLASS_BONUS_CARDS: Dict[str, List[str]] = {
    "GUARDIAN": ["SPIKE_SHIELD", "SPIKE_SHIELD"],
    "STRIKER": ["DOUBLE_STRIKE", "DOUBLE_STRIKE"],
    "CHANNELER": ["SHOCKWAVE", "SHOCKWAVE"],
    "BERSERKER": ["VAMP_STRIKE", "VAMP_STRIKE"],
    "ARCANIST": ["ARCANE_BURST", "ARCANE_BURST"],
    "BOSS": [],
}

# --------------------------
# Классы (у каждого своя пассивка, логика в deck/combat)
# --------------------------

CLASSES: Dict[str, Dict[str, Any]] = {
    "GUARDIAN": {"id": "GUARDIAN", "name": "Страж", "desc": "Много HP, отражение",
                 "base_hp": 5, "base_energy": 0, "passive": "Базовое HP +2."},
    "STRIKER": {"id": "STRIKER", "name": "Штурмовик", "desc": "Дешёвые удары, серии",
                "base_hp": 3, "base_energy": 0, "passive": "Продвинутые атаки стоят на 1 меньше."},
    "CHANNELER": {"id": "CHANNELER", "name": "Заклинатель", "desc": "Много энергии, удары по всем",
                  "base_hp": 3, "base_energy": 1, "passive": "В начале боя +1 энергия."},
    "BERSERKER": {"id": "BERSERKER", "name": "Берсерк", "desc": "Вспышки урона, вампиризм",
                  "base_hp": 4, "base_energy": 0, "passive": "Нанося урон, получает 1 энергию."},
    "ARCANIST": {"id": "ARCANIST", "name": "Арканист", "desc": "Взрывы энергии",
                 "base_hp": 3, "base_energy": 0, "passive": "Накопление даёт 2 энергии."},
    "BOSS": {"id": "BOSS", "name": "Владыка", "desc": "Босс",
             "base_hp": 10, "base_energy": 2, "passive": "Очень силён."},
}

PLAYABLE_CLASSES: List[str] = [c for c in CLASSES if c != "BOSS"]

# --------------------------
# Сложность и забег
# --------------------------

DIFFICULTIES: Dict[str, Dict[str, Any]] = {
    "EASY": {"name": "Лёгкая", "hp_mod": 0.6, "gold_mod": 1.5, "desc": "Враги заметно слабее."},
    "NORMAL": {"name": "Обычная", "hp_mod": 0.85, "gold_mod": 1.2, "desc": "Стандартный опыт."},
    "HARD": {"name": "Тяжёлая", "hp_mod": 1.1, "gold_mod": 1.0, "desc": "Враги кусаются."},
}

# Постоянные бафы забега (покупаются в лавке, выпадают в добыче).
PERKS: Dict[str, Dict[str, Any]] = {
    "BUFF_START_E": {"name": "Кольцо заряда", "desc": "Начало боя: +1 энергия."},
    "BUFF_THORN": {"name": "Терновая броня", "desc": "Абсолютная защита отражает 1 урона."},
    "BUFF_VAMP": {"name": "Клык вампира", "desc": "Убийство врага: +1 HP."},
    "BUFF_SHIELD_START": {"name": "Амулет света", "desc": "Начало боя: +1 щит."},
}

# Временные метки раунда (снимаются в конце каждого раунда).
ROUND_BUFFS: Dict[str, Dict[str, Any]] = {
    "invulnerable": {"name": "Неуязвимость", "desc": "Атаки полностью гасятся."},
    "reflect": {"name": "Отражение", "desc": "Отбитая атака наносит 1 урона нападавшему."},
}

SHOP_ITEMS: List[Dict[str, Any]] = [
    {"id": "POTION_S", "name": "Малое зелье", "type": "HEAL", "cost": 30, "value": 1, "desc": "Восстанавливает 1 HP."},
    {"id": "POTION_L", "name": "Большое зелье", "type": "HEAL", "cost": 50, "value": 3, "desc": "Восстанавливает 3 HP."},
    {"id": "HEART", "name": "Сердце жизни", "type": "MAX_HP", "cost": 80, "value": 1, "desc": "Макс. HP +1."},
    {"id": "BUFF_START_E", "name": "Кольцо заряда", "type": "BUFF", "cost": 100, "desc": "Начало боя: +1 энергия."},
    {"id": "BUFF_THORN", "name": "Терновая броня", "type": "BUFF", "cost": 120, "desc": "Абсолютная защита отражает 1 урона."},
    {"id": "BUFF_VAMP", "name": "Клык вампира", "type": "BUFF", "cost": 150, "desc": "Убийство врага: +1 HP."},
    {"id": "BUFF_SHIELD_START", "name": "Амулет света", "type": "BUFF", "cost": 90, "desc": "Начало боя: +1 щит."},
]

SHOP_INDEX: Dict[str, Dict[str, Any]] = {it["id"]: it for it in SHOP_ITEMS}

# --------------------------
# Карта мира
# --------------------------

MAP_ROW_WIDTHS: List[int] = [1, 2, 2, 3, 2, 2, 1]
MAP_SHOP_ROW = 3
# Допуск по нормализованной горизонтали для рёбер между рядами.
MAP_EDGE_TOLERANCE = 0.35
# Чётные ряды: отдых/событие; нечётные: бой/элита/событие.
EVEN_ROW_WEIGHTS = {"REST": 50, "EVENT": 50}
ODD_ROW_WEIGHTS = {"BATTLE": 60, "ELITE": 20, "EVENT": 20}

NODE_LABELS: Dict[str, str] = {
    "START": "Вход",
    "BATTLE": "Бой",
    "ELITE": "Элита",
    "SHOP": "Лавка",
    "REST": "Привал",
    "EVENT": "Событие",
    "BOSS": "Босс",
}

COMBAT_NODES = ("BATTLE", "ELITE", "BOSS")

# Масштабирование врагов
ROW_HP_STEP = 0.15
STAGE_HP_STEP = 0.5
ELITE_HP_FACTOR = 1.5
SECOND_ENEMY_MIN_ROW = 3
SECOND_ENEMY_CHANCE = 0.4

# Награда золотом за победу (до множителя сложности)
VICTORY_GOLD: Dict[str, int] = {"BATTLE": 20, "ELITE": 35, "BOSS": 60}

# Событие: исход -> вес (проценты)
EVENT_WEIGHTS: Dict[str, int] = {"heal": 35, "gold": 35, "level_up": 30}
EVENT_HEAL = 1
EVENT_GOLD_MIN = 20
EVENT_GOLD_MAX = 40

# Добыча
LOOT_ITEM_CHANCE = 0.6
LOOT_CHOICES = 3
LOOT_GOLD = 25
# Кандидаты на «новую карту» в добыче
LOOT_CARD_POOL: List[str] = [m["id"] for m in SPECIAL_MOVES] + ["HEAL", "SHOCKWAVE", "ATTACK_HIGH", "LIGHT_SHIELD"]

# --------------------------
# Вспомогательное
# --------------------------

def weighted_choice(rng: random.Random, items: List[dict], weight_key: str="w") -> dict:
    total = sum(max(0, it.get(weight_key, 1)) for it in items)
    r = rng.uniform(0, total) if total > 0 else 0
    acc = 0.0
    for it in items:
        acc += max(0, it.get(weight_key, 1))
        if r <= acc:
            return it
    return items[-1]


def weighted_key(rng: random.Random, weights: Dict[str, int]) -> str:
    return weighted_choice(rng, [{"k": k, "w": w} for k, w in weights.items()], "w")["k"]
