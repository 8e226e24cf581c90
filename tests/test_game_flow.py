import unittest
from collections import Counter

import content
import deck
import game


def new_match(cls="GUARDIAN", mode="FFA", players=2, seed=42):
    state = game.default_state(seed=seed)
    game.start_encounter(state, {"class": cls, "mode": mode, "players": players})
    return state


def human_of(state):
    return game.human_player(state["match"])


def bots_of(state):
    return [p for p in state["match"]["players"] if not p["is_human"]]


def start_run(cls="GUARDIAN", seed=7):
    state = game.default_state(seed=seed)
    game.start_adventure(state, cls, "NORMAL")
    return state


def enter_node(state, node_type):
    adv = state["adventure"]
    game.select_map_node(state, adv["map"][0][0]["id"])
    node = next(n for n in adv["map"][1] if n["status"] == "available")
    node["type"] = node_type
    game.select_map_node(state, node["id"])
    return node


class StateTests(unittest.TestCase):
    def test_default_state(self):
        st = game.default_state(seed=5)
        self.assertEqual(st["screen"], "MENU")
        self.assertEqual(st["seed"], 5)
        self.assertEqual(st["settings"], {"difficulty": "NORMAL", "auto_play": False})
        self.assertIsNone(st["match"])
        self.assertIsNone(st["adventure"])

    def test_seeded_rng_advances_counter(self):
        st = game.default_state(seed=5)
        a = game.seeded_rng(st).random()
        b = game.seeded_rng(st).random()
        self.assertNotEqual(a, b)
        self.assertEqual(st["rng_ctr"], 2)
        st2 = game.default_state(seed=5)
        self.assertEqual(game.seeded_rng(st2).random(), a)


class EncounterSetupTests(unittest.TestCase):
    def test_ffa_duel(self):
        state = new_match()
        match = state["match"]
        self.assertEqual(state["screen"], "COMBAT")
        self.assertEqual(match["phase"], "planning")
        self.assertEqual(match["round"], 1)
        self.assertEqual([p["id"] for p in match["players"]], [1, 2])
        for p in match["players"]:
            self.assertEqual(len(p["hand"]), content.MAX_HAND_SIZE)
            self.assertEqual(p["team"], "NONE")
        self.assertEqual(human_of(state)["max_hp"], 5)

    def test_team_seats(self):
        state = new_match(mode="TEAM", players=4)
        self.assertEqual([p["team"] for p in state["match"]["players"]], ["A", "A", "B", "B"])

    def test_crowd_gets_extra_cards(self):
        state = new_match(players=3)
        self.assertIn("SHOCKWAVE", human_of(state)["library"])

    def test_unknown_class_falls_back(self):
        state = new_match(cls="WIZARD")
        self.assertIn(human_of(state)["class_type"], content.PLAYABLE_CLASSES)

    def test_channeler_passive_energy(self):
        self.assertEqual(human_of(new_match(cls="CHANNELER"))["energy"], 2)
        self.assertEqual(human_of(new_match(cls="GUARDIAN"))["energy"], 0)


class CommitTests(unittest.TestCase):
    def test_gather_moves_to_reveal_with_bot_plans(self):
        state = new_match()
        self.assertTrue(game.commit_human_action(state, "CHARGE"))
        self.assertEqual(state["match"]["phase"], "revealing")
        self.assertEqual(human_of(state)["status"], "ready")
        for bot in bots_of(state):
            self.assertIsNotNone(bot["action"])
            self.assertEqual(bot["status"], "ready")

    def test_unaffordable_rejected_without_change(self):
        state = new_match()
        human = human_of(state)
        human["energy"] = 0
        human["hand"] = [deck.make_card("ATTACK_HIGH")]
        before = game.deep(state["match"])
        self.assertFalse(game.commit_human_action(state, human["hand"][0]["uid"], 2))
        self.assertEqual(state["match"], before)

    def test_missing_target_rejected_with_several_enemies(self):
        state = new_match(players=3)
        human = human_of(state)
        human["energy"] = 1
        human["hand"] = [deck.make_card("ATTACK_LOW")]
        uid = human["hand"][0]["uid"]
        self.assertFalse(game.commit_human_action(state, uid))
        self.assertFalse(game.commit_human_action(state, uid, 1))
        self.assertEqual(state["match"]["phase"], "planning")
        self.assertTrue(game.commit_human_action(state, uid, 3))
        self.assertEqual(human["action"]["target"], 3)

    def test_single_target_auto_selected(self):
        state = new_match()
        human = human_of(state)
        human["energy"] = 1
        human["hand"] = [deck.make_card("ATTACK_LOW")]
        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"]))
        self.assertEqual(human["action"]["target"], 2)

    def test_unknown_card_rejected(self):
        state = new_match()
        self.assertFalse(game.commit_human_action(state, "card_missing"))

    def test_instant_routed_and_planning_continues(self):
        state = new_match()
        human = human_of(state)
        human["hand"] = [deck.make_card("DEFEND_LOW")]
        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"]))
        self.assertEqual(human["shield"], 1)
        self.assertEqual(human["hand"], [])
        self.assertEqual(state["match"]["phase"], "planning")

    def test_instant_rejected_outside_planning(self):
        state = new_match()
        human = human_of(state)
        human["hand"] = [deck.make_card("DEFEND_LOW")]
        state["match"]["phase"] = "hand_management"
        self.assertFalse(game.commit_instant_action(state, human["hand"][0]["uid"]))


    def test_instant_kill_ends_duel_at_once(self):
        state = new_match()
        human = human_of(state)
        (bot,) = bots_of(state)
        bot["hp"] = 2
        human["energy"] = 1
        human["hand"] = [deck.make_card("DOUBLE_STRIKE")]

        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"]))

        match = state["match"]
        self.assertFalse(bot["is_alive"])
        self.assertEqual(match["phase"], "game_over")
        self.assertEqual(match["result"]["winner_id"], human["id"])
        self.assertEqual(state["screen"], "GAME_OVER")
        _, entries, result = game.resolve_round(state)
        self.assertEqual(entries, [])
        self.assertIs(result, match["result"])

    def test_bot_killed_by_instant_is_not_planned(self):
        state = new_match(players=3)
        human = human_of(state)
        victim, other = bots_of(state)
        victim["hp"] = 2
        victim["energy"] = 2
        victim["hand"] = [deck.make_card("HEAL")]
        human["energy"] = 1
        human["hand"] = [deck.make_card("DOUBLE_STRIKE")]

        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"], victim["id"]))
        self.assertEqual(state["match"]["phase"], "planning")
        self.assertEqual(human["energy"], 1)
        self.assertTrue(game.commit_human_action(state, "CHARGE"))
        self.assertIsNone(victim["action"])
        self.assertEqual(victim["status"], "eliminated")
        self.assertIsNotNone(other["action"])

        game.resolve_round(state)

        self.assertEqual(victim["hp"], 0)
        self.assertFalse(victim["is_alive"])


class RoundFlowTests(unittest.TestCase):
    def test_resolve_waits_for_human(self):
        state = new_match()
        players, entries, result = game.resolve_round(state)
        self.assertEqual(entries, [])
        self.assertIsNone(result)
        self.assertEqual(state["match"]["phase"], "planning")

    def test_round_then_hand_management(self):
        state = new_match()
        game.commit_human_action(state, "CHARGE")
        _, entries, result = game.resolve_round(state)
        self.assertIsNone(result)
        self.assertTrue(entries)
        self.assertEqual(state["match"]["phase"], "hand_management")

        human = human_of(state)
        drop = human["hand"][0]
        self.assertTrue(game.finish_hand_management(state, [drop["uid"]]))
        self.assertEqual(state["match"]["round"], 2)
        self.assertEqual(state["match"]["phase"], "planning")
        self.assertEqual(len(human["hand"]), content.MAX_HAND_SIZE)
        self.assertNotIn(drop["uid"], [c["uid"] for c in human["hand"]])

    def test_finish_hand_management_wrong_phase(self):
        state = new_match()
        self.assertFalse(game.finish_hand_management(state))
        self.assertEqual(state["match"]["round"], 1)

    def test_auto_play_runs_rounds_and_keeps_piles(self):
        state = new_match(players=3, seed=9)
        self.assertTrue(game.toggle_auto_play(state))
        for _ in range(40):
            game.resolve_round(state)
            for p in state["match"]["players"]:
                self.assertEqual(deck.pile_census(p), Counter(p["library"]))
                self.assertLessEqual(len(p["hand"]), content.MAX_HAND_SIZE)
            if state["match"]["phase"] == "game_over":
                self.assertEqual(state["screen"], "GAME_OVER")
                break
            self.assertEqual(state["match"]["phase"], "planning")

    def test_quit_discards_everything(self):
        state = start_run()
        enter_node(state, "BATTLE")
        game.quit_to_menu(state)
        self.assertEqual(state["screen"], "MENU")
        self.assertIsNone(state["match"])
        self.assertIsNone(state["adventure"])


class AdventureFlowTests(unittest.TestCase):
    def test_start_adventure(self):
        state = start_run()
        adv = state["adventure"]
        self.assertEqual(state["screen"], "ADVENTURE_MAP")
        self.assertEqual(adv["stage"], 1)
        self.assertEqual(adv["hp"], 5)
        self.assertIsNone(game.start_adventure(game.default_state(), "BOSS"))

    def test_start_node_returns_to_map(self):
        state = start_run()
        adv = state["adventure"]
        self.assertIs(game.select_map_node(state, adv["map"][0][0]["id"]), adv)
        self.assertEqual(state["screen"], "ADVENTURE_MAP")
        self.assertIsNone(game.select_map_node(state, adv["map"][0][0]["id"]))

    def test_battle_node_starts_adventure_match(self):
        state = start_run()
        enter_node(state, "BATTLE")
        match = state["match"]
        self.assertEqual(state["screen"], "COMBAT")
        self.assertEqual(match["mode"], "ADVENTURE")
        self.assertEqual(match["node_type"], "BATTLE")
        human = human_of(state)
        self.assertEqual(human["hp"], state["adventure"]["hp"])
        self.assertEqual(human["library"], state["adventure"]["deck"])
        self.assertTrue(all(b["team"] == "B" for b in bots_of(state)))

    def test_perks_applied_at_combat_start(self):
        state = start_run()
        state["adventure"]["permanent_buffs"] = ["BUFF_START_E", "BUFF_SHIELD_START"]
        enter_node(state, "ELITE")
        human = human_of(state)
        self.assertEqual(human["energy"], 1)
        self.assertEqual(human["shield"], 1)

    def test_win_awards_gold_and_loot(self):
        state = start_run()
        enter_node(state, "BATTLE")
        human = human_of(state)
        (enemy,) = bots_of(state)
        enemy["hp"] = 1
        enemy["hand"] = []
        human["energy"] = 3
        human["hand"] = [deck.make_card("ATTACK_HIGH")]

        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"]))
        _, _, result = game.resolve_round(state)

        adv = state["adventure"]
        self.assertEqual(result["winner_team"], "A")
        self.assertEqual(state["screen"], "LOOT")
        self.assertEqual(adv["gold"], 24)
        self.assertTrue(adv["loot"])

        self.assertIs(game.select_loot(state, len(adv["loot"]) - 1), adv)
        self.assertEqual(state["screen"], "ADVENTURE_MAP")
        self.assertIsNone(adv["loot"])
        self.assertIsNone(state["match"])
        self.assertGreater(adv["gold"], 24)

    def test_instant_kill_wins_adventure_battle(self):
        state = start_run()
        enter_node(state, "BATTLE")
        human = human_of(state)
        (enemy,) = bots_of(state)
        enemy["hp"] = 2
        human["energy"] = 1
        human["hand"] = [deck.make_card("DOUBLE_STRIKE")]

        self.assertTrue(game.commit_human_action(state, human["hand"][0]["uid"]))

        self.assertEqual(state["screen"], "LOOT")
        self.assertEqual(state["adventure"]["gold"], 24)
        self.assertTrue(state["adventure"]["loot"])

    def test_loss_ends_run(self):
        state = start_run()
        enter_node(state, "BATTLE")
        human = human_of(state)
        (enemy,) = bots_of(state)
        human["hp"] = 1
        enemy["energy"] = 1
        enemy["hand"] = [deck.make_card("ATTACK_LOW")]

        game.commit_human_action(state, "CHARGE")
        _, _, result = game.resolve_round(state)

        self.assertEqual(result["winner_team"], "B")
        self.assertIsNone(state["adventure"])
        self.assertEqual(state["screen"], "GAME_OVER")

    def test_bad_loot_index(self):
        state = start_run()
        state["adventure"]["loot"] = [{"kind": "gold", "amount": 5}]
        state["screen"] = "LOOT"
        self.assertIsNone(game.select_loot(state, 3))
        self.assertIsNone(game.select_loot(state, "x"))
        self.assertEqual(state["adventure"]["gold"], 0)

    def test_shop_visit(self):
        state = start_run()
        enter_node(state, "SHOP")
        self.assertEqual(state["screen"], "SHOP")
        self.assertIsNone(game.purchase_shop_item(state, "POTION_S"))
        self.assertTrue(state["ui"]["toast"])
        state["adventure"]["gold"] = 100
        self.assertIs(game.purchase_shop_item(state, "BUFF_START_E"), state["adventure"])
        game.leave_shop(state)
        self.assertEqual(state["screen"], "ADVENTURE_MAP")

    def test_rest_visit(self):
        state = start_run()
        state["adventure"]["hp"] = 1
        enter_node(state, "REST")
        self.assertEqual(state["screen"], "REST")
        game.rest_choice(state)
        self.assertEqual(state["adventure"]["hp"], 4)
        self.assertEqual(state["screen"], "ADVENTURE_MAP")

    def test_event_visit(self):
        state = start_run()
        enter_node(state, "EVENT")
        self.assertEqual(state["screen"], "EVENT")
        self.assertIn(state["adventure"]["event"]["kind"], content.EVENT_WEIGHTS)
        game.event_continue(state)
        self.assertEqual(state["screen"], "ADVENTURE_MAP")
        self.assertIsNone(state["adventure"]["event"])

    def test_map_locked_while_in_shop(self):
        state = start_run()
        enter_node(state, "SHOP")
        nxt = state["adventure"]["map"][2][0]
        self.assertIsNone(game.select_map_node(state, nxt["id"]))


class ViewAndDispatchTests(unittest.TestCase):
    def test_view_hides_bot_hands_and_draw_order(self):
        state = new_match()
        view = game.sanitize_for_client(state)
        vm = view["match"]
        human = next(p for p in vm["players"] if p["is_human"])
        bot = next(p for p in vm["players"] if not p["is_human"])
        self.assertEqual(bot["hand"], [])
        self.assertEqual(bot["hand_size"], content.MAX_HAND_SIZE)
        self.assertNotIn("draw_pile", human)
        for c in human["hand"]:
            self.assertIn("playable", c)
            self.assertIn("valid_targets", c)
        self.assertEqual(vm["delay_ms"], 0)
        # исходное состояние не тронуто
        self.assertEqual(len(bots_of(state)[0]["hand"]), content.MAX_HAND_SIZE)

    def test_view_delay_in_auto_reveal(self):
        state = new_match()
        game.commit_human_action(state, "CHARGE")
        self.assertEqual(game.sanitize_for_client(state)["match"]["delay_ms"], 1500)
        state["settings"]["auto_play"] = True
        self.assertEqual(game.sanitize_for_client(state)["match"]["delay_ms"], 300)

    def test_dispatch_invalid_play_sets_toast(self):
        state = new_match()
        game.dispatch(state, {"type": "PLAY_CARD", "uid": "card_missing"})
        self.assertTrue(state["ui"]["toast"])
        self.assertEqual(state["match"]["phase"], "planning")

    def test_dispatch_full_round(self):
        state = game.default_state(seed=3)
        game.dispatch(state, {"type": "START_MATCH", "class": "GUARDIAN", "mode": "FFA", "players": 2})
        game.dispatch(state, {"type": "PLAY_CARD", "uid": "CHARGE"})
        game.dispatch(state, {"type": "RESOLVE"})
        self.assertEqual(state["match"]["phase"], "hand_management")
        game.dispatch(state, {"type": "FINISH_HAND", "discard": []})
        self.assertEqual(state["match"]["round"], 2)

    def test_dispatch_difficulty(self):
        state = game.default_state()
        game.dispatch(state, {"type": "SET_DIFFICULTY", "difficulty": "HARD"})
        self.assertEqual(state["settings"]["difficulty"], "HARD")
        game.dispatch(state, {"type": "SET_DIFFICULTY", "difficulty": "NIGHTMARE"})
        self.assertEqual(state["settings"]["difficulty"], "HARD")


if __name__ == "__main__":
    unittest.main()
