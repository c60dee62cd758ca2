import json

import pytest

from pong_api.core.exceptions import RecordNotFound
from pong_api.models import match as match_model
from pong_api.models import message as message_model
from pong_api.services import (
    bracket_service,
    chat_service,
    lifecycle_service,
    match_service,
    message_service,
    tournament_service,
)


@pytest.fixture
def full_cup(db, users):
    """A started 4-player tournament with its first round scheduled."""
    tournament = lifecycle_service.open_tournament(db, "Cup", 4, "alice", "Alice")
    tournament_id = tournament.id
    assert lifecycle_service.join_tournament(db, tournament_id, "bob") is False
    assert lifecycle_service.join_tournament(db, tournament_id, "carol") is False
    assert lifecycle_service.join_tournament(db, tournament_id, "dave") is True
    return tournament_id


def _finish_round(db, tournament_id, round, side=match_model.LEFT):
    champion = None
    for match in match_service.get_tournament_matches(db, tournament_id, round=round):
        champion = lifecycle_service.finish_match(db, match.id, side)
    return champion


class TestBracketHelpers:

    def test_match_ids_sort_by_round_then_index(self):
        ids = [bracket_service.match_id_for("t", r, i) for r, i in [(2, 1), (1, 10), (1, 2)]]
        assert sorted(ids) == ["t-r1-m02", "t-r1-m10", "t-r2-m01"]

    def test_winner_and_loser(self):
        match = match_model.Match(player_left="alice", player_right="bob", winner=match_model.RIGHT)
        assert bracket_service.winner_username(match) == "bob"
        assert bracket_service.loser_username(match) == "alice"
        assert bracket_service.winner_username(match_model.Match()) is None

    def test_first_round_needs_an_even_field(self, db, users):
        tournament = tournament_service.create_tournament(db, "Odd", 4, "alice")
        tournament_service.add_tournament_player(db, tournament.id, "alice")
        with pytest.raises(ValueError):
            bracket_service.schedule_first_round(db, tournament.id)


class TestFourPlayerTournament:

    def test_first_round_seats_everyone_once(self, db, full_cup):
        tournament = tournament_service.get_tournament_by_id(db, full_cup)
        assert tournament.started_at is not None

        matches = match_service.get_tournament_matches(db, full_cup, round=1)
        assert [m.id for m in matches] == [f"{full_cup}-r1-m01", f"{full_cup}-r1-m02"]
        seated = [p for m in matches for p in (m.player_left, m.player_right)]
        assert sorted(seated) == ["alice", "bob", "carol", "dave"]
        for match in matches:
            assert match.mode == "tournament"
            assert match.in_tournament_type == "semifinal"
            assert json.loads(match.in_tournament_placement_range) == [1, 4]
            assert match.started_at is not None

    def test_semifinals_lead_to_final_and_third_place(self, db, full_cup):
        semis = match_service.get_tournament_matches(db, full_cup, round=1)
        expected_final = sorted(m.player_left for m in semis)
        expected_third = sorted(m.player_right for m in semis)

        assert _finish_round(db, full_cup, 1) is None

        final, third = match_service.get_tournament_matches(db, full_cup, round=2)
        assert final.id == f"{full_cup}-r2-m01"
        assert final.in_tournament_type == "final"
        assert json.loads(final.in_tournament_placement_range) == [1, 2]
        assert sorted([final.player_left, final.player_right]) == expected_final
        assert third.in_tournament_type == "third_place"
        assert json.loads(third.in_tournament_placement_range) == [3, 4]
        assert sorted([third.player_left, third.player_right]) == expected_third

    def test_tournament_ends_with_final_winner_and_chat_removed(self, db, full_cup):
        message_service.add_message(db, "alice", message_model.TOURNAMENT, "gl hf", game_id=full_cup)
        _finish_round(db, full_cup, 1)
        final, third = match_service.get_tournament_matches(db, full_cup, round=2)
        final_id, third_id, champion = final.id, third.id, final.player_right

        # The tournament waits for the third place match too
        assert lifecycle_service.finish_match(db, final_id, match_model.RIGHT) is None
        assert tournament_service.get_tournament_by_id(db, full_cup).ended_at is None

        assert lifecycle_service.finish_match(db, third_id, match_model.LEFT) == champion
        tournament = tournament_service.get_tournament_by_id(db, full_cup)
        assert tournament.winner == champion
        assert tournament.ended_at is not None
        assert message_service.get_tournament_messages(db, full_cup) == []

    def test_finishing_a_match_twice_is_rejected(self, db, full_cup):
        match = match_service.get_tournament_matches(db, full_cup, round=1)[0]
        lifecycle_service.finish_match(db, match.id, match_model.LEFT)
        with pytest.raises(ValueError, match="already ended"):
            lifecycle_service.finish_match(db, match.id, match_model.RIGHT)
        with pytest.raises(ValueError, match="already ended"):
            lifecycle_service.forfeit(db, match.id, match.player_left)
        assert match_service.get_match_by_id(db, match.id).winner == match_model.LEFT

    def test_forfeit_after_another_player_left(self, db, full_cup):
        semis = match_service.get_tournament_matches(db, full_cup, round=1)
        other_match_id, other_player = semis[1].id, semis[1].player_left
        lifecycle_service.leave_tournament(db, full_cup, semis[0].player_left)

        lifecycle_service.forfeit(db, other_match_id, other_player)
        assert match_service.get_match_by_id(db, other_match_id).notes == (
            f"Match forfeited: player {other_player} left"
        )


class TestTwoPlayerTournament:

    def test_single_match_is_the_final(self, db, users):
        tournament = lifecycle_service.open_tournament(db, "Duel", 2, "alice")
        tournament_id = tournament.id
        lifecycle_service.join_tournament(db, tournament_id, "bob")

        (final,) = match_service.get_tournament_matches(db, tournament_id)
        assert final.in_tournament_type == "final"
        winner = final.player_left
        assert lifecycle_service.finish_match(db, final.id, match_model.LEFT) == winner
        assert tournament_service.get_tournament_by_id(db, tournament_id).winner == winner


class TestTournamentLobby:

    def test_invalid_size(self, db, users):
        with pytest.raises(ValueError):
            lifecycle_service.open_tournament(db, "Odd", 3, "alice")

    def test_creator_is_seated(self, db, users):
        tournament = lifecycle_service.open_tournament(db, "Cup", 4, "alice", "The Creator")
        data = tournament_service.get_tournament_with_players(db, tournament.id)
        assert [(p.username, p.displayName) for p in data.players] == [("alice", "The Creator")]

    def test_cannot_join_started_tournament(self, db, full_cup):
        with pytest.raises(ValueError):
            lifecycle_service.join_tournament(db, full_cup, "alice")

    def test_join_unknown_tournament(self, db, users):
        with pytest.raises(RecordNotFound):
            lifecycle_service.join_tournament(db, "missing", "bob")

    def test_leave_before_start_allows_rejoin(self, db, users):
        tournament = lifecycle_service.open_tournament(db, "Cup", 4, "alice")
        lifecycle_service.join_tournament(db, tournament.id, "bob")
        lifecycle_service.leave_tournament(db, tournament.id, "bob")
        lifecycle_service.leave_tournament(db, tournament.id, "bob")
        assert tournament_service.count_tournament_players(db, tournament.id) == 1
        lifecycle_service.join_tournament(db, tournament.id, "bob")
        assert tournament_service.count_tournament_players(db, tournament.id) == 2

    def test_chat_follows_player_to_next_lobby(self, db, users):
        first = lifecycle_service.open_tournament(db, "First", 4, "alice").id
        lifecycle_service.join_tournament(db, first, "bob")
        message_service.add_message(db, "bob", message_model.TOURNAMENT, "hello first", game_id=first)
        message_service.add_message(db, "alice", message_model.TOURNAMENT, "stay", game_id=first)
        lifecycle_service.leave_tournament(db, first, "bob")

        second = lifecycle_service.open_tournament(db, "Second", 4, "carol").id
        lifecycle_service.join_tournament(db, second, "bob")
        message_service.add_message(db, "carol", message_model.TOURNAMENT, "hello second", game_id=second)

        history = chat_service.build_chat_history(db, "bob")
        assert history.errors == []
        assert [m.content for m in history.tournament] == ["hello second"]
        assert [m.content for m in message_service.get_tournament_messages(db, first)] == ["stay"]

    def test_leave_after_start_forfeits(self, db, full_cup):
        message_service.add_message(db, "bob", message_model.TOURNAMENT, "brb", game_id=full_cup)
        lifecycle_service.leave_tournament(db, full_cup, "bob")

        tournament = tournament_service.get_tournament_by_id(db, full_cup)
        assert tournament.notes == "Tournament forfeited: player bob left"
        assert tournament.ended_at is not None
        bobs_match = [
            m for m in match_service.get_tournament_matches(db, full_cup)
            if "bob" in (m.player_left, m.player_right)
        ][0]
        assert bobs_match.notes == "Match forfeited: player bob left"
        assert message_service.get_tournament_messages(db, full_cup) == []

        with pytest.raises(ValueError):
            lifecycle_service.leave_tournament(db, full_cup, "carol")


class TestStandaloneMatches:

    def test_local_match_starts_against_guest(self, db, users):
        match = lifecycle_service.schedule_match(db, "local", "alice")
        assert match.player_left == "alice"
        assert match.player_right is None
        assert match.started_at is not None
        assert lifecycle_service.finish_match(db, match.id, match_model.RIGHT) is None
        assert match_service.get_match_by_id(db, match.id).notes == "The winner is the guest"

    def test_online_match_waits_for_opponent(self, db, users):
        match = lifecycle_service.schedule_match(db, "online", "alice")
        assert match.started_at is None
        with pytest.raises(ValueError):
            lifecycle_service.join_match(db, match.id, "alice")
        joined = lifecycle_service.join_match(db, match.id, "bob")
        assert (joined.player_left, joined.player_right) == ("alice", "bob")
        assert joined.started_at is not None
        with pytest.raises(ValueError):
            lifecycle_service.join_match(db, match.id, "carol")

    def test_unknown_mode(self, db, users):
        with pytest.raises(ValueError):
            lifecycle_service.schedule_match(db, "tournament", "alice")

    def test_tournament_matches_cannot_be_joined(self, db, full_cup):
        match = match_service.get_tournament_matches(db, full_cup)[0]
        with pytest.raises(ValueError):
            lifecycle_service.join_match(db, match.id, "bob")

    def test_leave_waiting_match(self, db, users):
        match = lifecycle_service.schedule_match(db, "online", "alice")
        match_id = match.id
        lifecycle_service.leave_waiting_match(db, match_id, "alice")
        with pytest.raises(RecordNotFound):
            match_service.get_match_by_id(db, match_id)

    def test_leave_waiting_match_keeps_other_player(self, db, users):
        match = lifecycle_service.schedule_match(db, "online", "alice")
        match_id = match.id
        match_service.add_player_to_match(db, match_id, "bob", match_model.RIGHT)
        lifecycle_service.leave_waiting_match(db, match_id, "bob")
        remaining = match_service.get_match_by_id(db, match_id)
        assert (remaining.player_left, remaining.player_right) == ("alice", None)

    def test_cannot_leave_started_match(self, db, users):
        match = lifecycle_service.schedule_match(db, "local", "alice")
        with pytest.raises(ValueError):
            lifecycle_service.leave_waiting_match(db, match.id, "alice")

    def test_scores_never_decrease(self, db, users):
        match = lifecycle_service.schedule_match(db, "local", "alice")
        lifecycle_service.report_score(db, match.id, 2, 1)
        with pytest.raises(ValueError):
            lifecycle_service.report_score(db, match.id, 1, 1)
        lifecycle_service.report_score(db, match.id, 2, 3)
        assert match_service.get_match_by_id(db, match.id).score_right == 3

    def test_no_scores_after_the_end(self, db, users):
        match = lifecycle_service.schedule_match(db, "local", "alice")
        lifecycle_service.finish_match(db, match.id, match_model.LEFT)
        with pytest.raises(ValueError):
            lifecycle_service.report_score(db, match.id, 9, 9)

    def test_forfeit_requires_a_player(self, db, users):
        match = lifecycle_service.schedule_match(db, "online", "alice")
        with pytest.raises(ValueError):
            lifecycle_service.forfeit(db, match.id, "bob")
        lifecycle_service.forfeit(db, match.id, "alice")
        assert match_service.get_match_by_id(db, match.id).notes == "Match forfeited: player alice left"

    def test_forfeit_in_tournament_ends_it(self, db, full_cup):
        match = match_service.get_tournament_matches(db, full_cup)[0]
        lifecycle_service.forfeit(db, match.id, match.player_left)
        tournament = tournament_service.get_tournament_by_id(db, full_cup)
        assert tournament.notes.startswith("Tournament forfeited")
