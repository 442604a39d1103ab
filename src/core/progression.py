"""
Match progression: scoring a match and moving winners and losers along
the bracket links.

A match goes Pending -> Active -> Done, or Pending -> Bye when it can only
ever hold one team (or none). Linked matches take their teams from the
matches that feed them: a feeder's winner goes to ``next_match_id`` and a
semifinal's loser goes to ``next_loser_match_id``, always into the slot
named by the feeder's ``match_position``.
"""
import logging
from typing import Dict, List, Optional, Tuple

from core.errors import MatchStateError, NotFoundError
from core.models import ACTIVE, BYE, DONE, PENDING, Match, MatchSet

logger = logging.getLogger(__name__)


def parse_scores(score: Optional[str]) -> Optional[List[int]]:
    """Parse "21, 15, 11" into [21, 15, 11]. Returns None if any set is not an integer."""
    if score is None:
        return None
    values = []
    for part in str(score).split(','):
        part = part.strip()
        try:
            values.append(int(part))
        except ValueError:
            return None
    return values


def count_set_wins(scores1: List[int], scores2: List[int]) -> Tuple[int, int]:
    """Sets won by each side; a level set counts for neither."""
    wins1 = wins2 = 0
    for a, b in zip(scores1, scores2):
        if a > b:
            wins1 += 1
        elif b > a:
            wins2 += 1
    return wins1, wins2


def determine_winner(team1_id, team2_id, team1_score, team2_score):
    """
    Return the id of the side that won more sets, or None.

    Both score strings must parse to non-empty integer sequences of the
    same length; anything else, or a tie in sets won, is indeterminate.
    """
    scores1 = parse_scores(team1_score)
    scores2 = parse_scores(team2_score)
    if not scores1 or not scores2 or len(scores1) != len(scores2):
        return None
    wins1, wins2 = count_set_wins(scores1, scores2)
    if wins1 > wins2:
        return team1_id
    if wins2 > wins1:
        return team2_id
    return None


def has_real_scores(team1_score, team2_score) -> bool:
    """True if any set score on either side is non-blank and non-zero."""
    for score in (team1_score, team2_score):
        for part in str(score or '').split(','):
            part = part.strip()
            if part and part != '0':
                return True
    return False


def _feeder_output(feeder: Match, target: Match):
    if feeder.next_match_id == target.match_id:
        return feeder.winner_id
    return feeder.loser_id()


def refresh_from_feeders(match_set: MatchSet, target: Match):
    """
    Rebuild ``target``'s slots from its feeders and settle its status.

    Both slots filled -> Active. Every feeder decided but a slot still
    empty -> Bye, and the lone team (or nobody) advances at once. Any
    feeder still undecided -> Pending. Done matches are left alone; only
    recalculation reopens them.
    """
    if target.status == DONE:
        return

    feeders = match_set.feeders(target.match_id)
    for index, feeder in enumerate(feeders):
        if not feeder.is_decided:
            continue
        position = feeder.match_position or index + 1
        target.set_slot(position, _feeder_output(feeder, target))

    if target.team1_id is not None and target.team2_id is not None:
        target.status = ACTIVE
        target.is_bye = False
        target.winner_id = None
        return

    if feeders and all(f.is_decided for f in feeders):
        present = target.team1_id if target.team1_id is not None else target.team2_id
        target.status = BYE
        target.is_bye = True
        target.winner_id = present
        if present is None:
            logger.debug("Match %s (schedule %s) is a double BYE", target.match_id, target.schedule_id)
            advance_double_bye(match_set, target)
        else:
            logger.debug("Match %s (schedule %s) is a BYE for team %s",
                         target.match_id, target.schedule_id, present)
            advance_winner(match_set, target)
        return

    target.status = PENDING
    target.is_bye = False
    target.winner_id = None


def advance_winner(match_set: MatchSet, match: Match):
    """Push ``match``'s result into its winner and loser destinations."""
    for target_id in (match.next_match_id, match.next_loser_match_id):
        target = match_set.get(target_id)
        if target is None:
            continue
        logger.debug("Advancing match %s into match %s (schedule %s)",
                     match.match_id, target.match_id, match.schedule_id)
        refresh_from_feeders(match_set, target)


def advance_double_bye(match_set: MatchSet, match: Match):
    """
    Propagate a match that holds no team at all.

    Its destination slots stay empty; each destination then settles as a
    single BYE, another double BYE (recursing), or an Active match.
    """
    for target_id in (match.next_match_id, match.next_loser_match_id):
        target = match_set.get(target_id)
        if target is not None:
            refresh_from_feeders(match_set, target)


def make_bye(match: Match):
    """Mark a first-round match with at most one team as a BYE."""
    present = match.team1_id if match.team1_id is not None else match.team2_id
    match.is_bye = True
    match.status = BYE
    match.winner_id = present
    match.team1_score = None
    match.team2_score = None


def advance_byes(match_set: MatchSet, matches: List[Match]):
    """Auto-advance every BYE in ``matches`` so the bracket starts consistent."""
    for match in matches:
        if match.status != BYE:
            continue
        if match.winner_id is None:
            advance_double_bye(match_set, match)
        else:
            advance_winner(match_set, match)


def submit_score(match_set: MatchSet, match_id, team1_score, team2_score, awards=None) -> Dict:
    """
    Record a score and move the bracket forward.

    A result that decides a winner (and is not all zeros/blank) makes the
    match Done and advances it. Changing the winner of an already Done
    match, or un-deciding it, hands over to recalculation instead. Bad or
    tied scores never raise: the match just stays undecided.
    """
    match = match_set.get(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found.")
    if match.status == BYE:
        raise MatchStateError("BYE matches are decided automatically and cannot be scored.")
    if match.team1_id is None or match.team2_id is None:
        raise MatchStateError("Both teams must be known before a score can be entered.")

    was_done = match.status == DONE
    previous_winner = match.winner_id if was_done else None

    match.team1_score = (team1_score or '').strip()
    match.team2_score = (team2_score or '').strip()
    winner = determine_winner(match.team1_id, match.team2_id, match.team1_score, match.team2_score)
    completed = winner is not None and has_real_scores(match.team1_score, match.team2_score)

    recalculated = []
    if completed:
        match.winner_id = winner
        match.status = DONE
        if not was_done:
            advance_winner(match_set, match)
        elif winner != previous_winner:
            from core.recalculation import recalculate
            recalculated = recalculate(match_set, match, awards=awards)
    else:
        match.winner_id = None
        if was_done:
            match.status = ACTIVE
            from core.recalculation import recalculate
            recalculated = recalculate(match_set, match, awards=awards)
        else:
            logger.info("Match %s (schedule %s) has no winner yet: %r vs %r",
                        match.match_id, match.schedule_id, match.team1_score, match.team2_score)

    return {
        'match': match,
        'winner_id': match.winner_id,
        'completed': completed,
        'recalculated': recalculated,
    }
