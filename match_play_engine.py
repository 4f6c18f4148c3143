import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from numbers import Real
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from match_exceptions import (
    InvalidHoleOutcomes,
    InvalidPlayers,
    InvalidScores,
    InvalidSegments,
    MatchValidationError,
    NegativeStrokePool,
)

logger = logging.getLogger(__name__)

# ============================================================
# Constants
# ============================================================

FRAME_HOLES = 9  # a 30-10-10 frame is always nine holes

# Points paid per frame
MAIN_STAKE = 30
DORMIE_STAKE = 10
BYE_STAKE = 10


# ============================================================
# Value types
# ============================================================

class Side(str, Enum):
    A = "A"
    B = "B"

    @property
    def opponent(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class HoleOutcome(str, Enum):
    A = "A"
    B = "B"
    HALVE = "H"

    @property
    def winner(self) -> Optional[Side]:
        if self is HoleOutcome.HALVE:
            return None
        return Side(self.value)


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    course_handicap: float  # WHS course handicap for this round
    side: Side


@dataclass(frozen=True)
class Segment:
    """
    A run of holes that shares one slice of the stroke pool.

    stroke_index_by_hole ranks the holes of this segment only:
    lower = harder. Values must be unique inside the segment but do not
    have to be contiguous (e.g. {7: 3, 8: 7, 9: 4}).
    """
    id: str
    holes: Tuple[int, ...]
    stroke_index_by_hole: Mapping[int, int] = field(hash=False)

    def __post_init__(self):
        object.__setattr__(self, "holes", tuple(self.holes))
        object.__setattr__(
            self, "stroke_index_by_hole", MappingProxyType(dict(self.stroke_index_by_hole))
        )


@dataclass(frozen=True)
class HandicapPlan:
    """Strokes received per side per hole. scratch_side is None when nobody gives strokes."""
    strokes_by_side: Mapping[Side, Mapping[int, int]] = field(hash=False)
    scratch_side: Optional[Side] = None
    pool: int = 0

    def __post_init__(self):
        # Read-only views so a cached plan cannot drift from its totals
        frozen = {Side(side): MappingProxyType(dict(strokes)) for side, strokes in self.strokes_by_side.items()}
        object.__setattr__(self, "strokes_by_side", MappingProxyType(frozen))

    @property
    def receiving_side(self) -> Optional[Side]:
        if self.scratch_side is None:
            return None
        return self.scratch_side.opponent

    @property
    def holes(self) -> List[int]:
        return sorted(self.strokes_by_side[Side.A])

    def strokes_for(self, side, hole) -> int:
        return self.strokes_by_side[Side(side)][hole]

    def total_strokes(self, side) -> int:
        return sum(self.strokes_by_side[Side(side)].values())


@dataclass(frozen=True)
class FrameOutcome:
    """
    Result of one stake.

    winner=None means void. triggered_at tells the two voids apart:
    None = the frame never started (or Main was never clinched),
    a hole number = it started there but finished level.
    """
    winner: Optional[Side] = None
    triggered_at: Optional[int] = None
    margin: int = 0

    @property
    def triggered(self) -> bool:
        return self.triggered_at is not None

    @property
    def is_void(self) -> bool:
        return self.winner is None


@dataclass(frozen=True)
class ThirtyTenTenOutcome:
    main: FrameOutcome
    dormie: FrameOutcome
    bye: FrameOutcome

    def frames(self) -> Dict[str, FrameOutcome]:
        return {"main": self.main, "dormie": self.dormie, "bye": self.bye}


@dataclass(frozen=True)
class MatchSnapshot:
    holes: Tuple[int, ...]
    hole_outcomes: Tuple[HoleOutcome, ...]
    frames: ThirtyTenTenOutcome


@dataclass(frozen=True)
class Stakes:
    main: int = MAIN_STAKE
    dormie: int = DORMIE_STAKE
    bye: int = BYE_STAKE


DEFAULT_STAKES = Stakes()


@dataclass(frozen=True)
class FrameState:
    """Running totals carried hole by hole through a frame."""
    hole: int = 0
    wins_a: int = 0
    wins_b: int = 0
    clinched_at: Optional[int] = None
    dormie_at: Optional[int] = None

    @property
    def lead(self) -> int:
        # + favours A, - favours B
        return self.wins_a - self.wins_b

    @property
    def remaining(self) -> int:
        return FRAME_HOLES - self.hole


# ============================================================
# Validation helpers
# ============================================================

def _is_integral(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return float(value).is_integer()


def _favoured_side(diff) -> Optional[Side]:
    if diff > 0:
        return Side.A
    if diff < 0:
        return Side.B
    return None


def _validate_players(players) -> Dict[Side, Player]:
    players = list(players or [])
    if len(players) != 2:
        raise InvalidPlayers(f"Exactly two players are required, got {len(players)}")

    by_side: Dict[Side, Player] = {}
    for player in players:
        if not isinstance(player, Player):
            raise InvalidPlayers(f"Expected a Player, got {player!r}")
        try:
            side = Side(player.side)
        except ValueError:
            raise InvalidPlayers(
                f"Player {player.id} has unknown side {player.side!r}"
            ) from None
        if side in by_side:
            raise InvalidPlayers(f"Both players are on side {side.value}")

        ch = player.course_handicap
        if not _is_integral(ch) or ch < 0:
            raise InvalidPlayers(
                f"Player {player.id} needs a whole, non-negative course handicap, got {ch!r}"
            )
        by_side[side] = player
    return by_side


def _validate_segments(segments, round_holes=None) -> List[int]:
    """
    Check the segment partition and return every hole it covers,
    in segment order.
    """
    if not segments:
        raise InvalidSegments("At least one segment is required")

    owner: Dict[int, str] = {}
    for segment in segments:
        if not isinstance(segment, Segment):
            raise InvalidSegments(f"Expected a Segment, got {segment!r}")
        if not segment.holes:
            raise InvalidSegments(f"Segment {segment.id} has no holes")

        ranks = []
        for hole in segment.holes:
            if hole in owner:
                raise InvalidSegments(
                    f"Hole {hole} appears in segment {owner[hole]} and segment {segment.id}"
                )
            owner[hole] = segment.id
            if hole not in segment.stroke_index_by_hole:
                raise InvalidSegments(
                    f"Segment {segment.id} has no stroke index for hole {hole}"
                )
            rank = segment.stroke_index_by_hole[hole]
            if not _is_integral(rank):
                raise InvalidSegments(
                    f"Segment {segment.id} has a non-integer stroke index {rank!r} for hole {hole}"
                )
            ranks.append(rank)

        if len(set(ranks)) != len(ranks):
            raise InvalidSegments(f"Segment {segment.id} repeats a stroke index")

    if round_holes is not None:
        expected = set(round_holes)
        missing = sorted(expected - owner.keys())
        unexpected = sorted(owner.keys() - expected)
        if missing or unexpected:
            raise InvalidSegments(
                f"Segments do not cover the round: missing holes {missing}, "
                f"unexpected holes {unexpected}"
            )

    return list(owner)


def _coerce_outcomes(outcomes) -> Tuple[HoleOutcome, ...]:
    if outcomes is None:
        raise InvalidHoleOutcomes("No hole outcomes supplied")

    outcomes = tuple(outcomes)
    if len(outcomes) != FRAME_HOLES:
        raise InvalidHoleOutcomes(
            f"Expected {FRAME_HOLES} hole outcomes, got {len(outcomes)}"
        )

    coerced = []
    for number, value in enumerate(outcomes, start=1):
        try:
            coerced.append(HoleOutcome(value))
        except ValueError:
            raise InvalidHoleOutcomes(
                f"Hole {number} has unknown outcome {value!r}"
            ) from None
    return tuple(coerced)


# ============================================================
# Stroke allocation
# ============================================================

def init_per_hole(holes: Iterable[int]) -> Dict[Side, Dict[int, int]]:
    """Zero stroke maps for each side and each hole."""
    holes = list(holes)
    return {side: {hole: 0 for hole in holes} for side in Side}


def split_pool(pool: int, segment_count: int) -> List[int]:
    """
    Even split of the pool; the remainder goes one stroke at a time to the
    first segments in the order given.

      split_pool(7, 3) -> [3, 2, 2]
    """
    base, remainder = divmod(pool, segment_count)
    return [base + (1 if i < remainder else 0) for i in range(segment_count)]


def _spread_over_segment(segment: Segment, strokes: int) -> Dict[int, int]:
    # Hardest first, cycling back to the hardest hole once every hole has one
    ordered = sorted(segment.holes, key=lambda h: segment.stroke_index_by_hole[h])
    full_laps, extra = divmod(strokes, len(ordered))

    received = {hole: full_laps for hole in ordered}
    for hole in ordered[:extra]:
        received[hole] += 1
    return received


def _stroke_pool(receiver: Player, scratch: Player) -> int:
    pool = receiver.course_handicap - scratch.course_handicap
    if pool < 0:
        raise NegativeStrokePool(pool)
    return int(pool)


def allocate_strokes(
    players: Sequence[Player],
    segments: Sequence[Segment],
    round_holes: Optional[Iterable[int]] = None,
) -> HandicapPlan:
    """
    Allocate handicap strokes for a singles match.

    Steps:
      1) Lower course handicap plays scratch. Equal handicaps -> no strokes.
      2) Pool = CH(receiver) - CH(scratch).
      3) Split the pool evenly across segments; remainder strokes go to
         the first segments in the order supplied.
      4) Inside each segment, deal strokes hardest hole first by stroke
         index, wrapping round when a segment gets more strokes than holes.

    round_holes, when given, must match the holes the segments cover
    exactly (no gaps, no stray holes).

    Raises a MatchValidationError subclass before computing anything if
    the players or segments are malformed.
    """
    segments = list(segments or [])
    try:
        by_side = _validate_players(players)
        holes = _validate_segments(segments, round_holes)
    except MatchValidationError as e:
        logger.warning(f"Rejected stroke allocation: {e}")
        raise

    strokes = init_per_hole(holes)

    ch_a = by_side[Side.A].course_handicap
    ch_b = by_side[Side.B].course_handicap
    if ch_a == ch_b:
        logger.debug(f"Equal course handicaps ({ch_a}), no strokes allocated")
        return HandicapPlan(strokes_by_side=strokes)

    scratch_side = Side.A if ch_a < ch_b else Side.B
    receiving_side = scratch_side.opponent
    pool = _stroke_pool(by_side[receiving_side], by_side[scratch_side])

    shares = split_pool(pool, len(segments))
    logger.debug(
        f"Side {receiving_side.value} receives {pool} strokes, "
        f"split {shares} over segments {[s.id for s in segments]}"
    )

    for segment, share in zip(segments, shares):
        strokes[receiving_side].update(_spread_over_segment(segment, share))

    return HandicapPlan(
        strokes_by_side=strokes,
        scratch_side=scratch_side,
        pool=pool,
    )


# ============================================================
# 30-10-10 frame evaluation
# ============================================================

def advance_frame(state: FrameState, outcome: HoleOutcome) -> FrameState:
    """
    Fold step: play one more hole and latch any trigger that fires.

    Both triggers can only fire with at least one hole left to play, and
    each fires at most once.
    """
    hole = state.hole + 1
    winner = outcome.winner
    wins_a = state.wins_a + (1 if winner is Side.A else 0)
    wins_b = state.wins_b + (1 if winner is Side.B else 0)
    lead = wins_a - wins_b
    remaining = FRAME_HOLES - hole

    clinched_at = state.clinched_at
    dormie_at = state.dormie_at
    if hole < FRAME_HOLES:
        if clinched_at is None and abs(lead) > remaining:
            clinched_at = hole
        if dormie_at is None and lead != 0 and abs(lead) == remaining:
            dormie_at = hole

    return FrameState(
        hole=hole,
        wins_a=wins_a,
        wins_b=wins_b,
        clinched_at=clinched_at,
        dormie_at=dormie_at,
    )


def _mini_match(outcomes: Tuple[HoleOutcome, ...], triggered_at: Optional[int]) -> FrameOutcome:
    if triggered_at is None:
        return FrameOutcome()

    # The trigger hole itself never counts
    played = outcomes[triggered_at:]
    diff = played.count(HoleOutcome.A) - played.count(HoleOutcome.B)
    return FrameOutcome(
        winner=_favoured_side(diff),
        triggered_at=triggered_at,
        margin=abs(diff),
    )


def evaluate_thirty_ten_ten(outcomes: Sequence) -> ThirtyTenTenOutcome:
    """
    Evaluate the three 30-10-10 stakes for one nine-hole frame.

    outcomes: nine HoleOutcome values (or the strings "A", "B", "H").

    Rules:
      - Main (30): paid to the match winner only if the match was clinched
        with at least one hole to play; otherwise void.
      - Dormie (10): starts the hole after a side first goes dormie
        (lead == holes remaining). Most holes won from there wins; tie void.
      - Bye (10): starts the hole after Main is clinched. Same scoring.
      - Dormie and Bye may overlap; each ignores its own trigger hole.
    """
    try:
        played = _coerce_outcomes(outcomes)
    except MatchValidationError as e:
        logger.warning(f"Rejected 30-10-10 evaluation: {e}")
        raise

    final = reduce(advance_frame, played, FrameState())
    logger.debug(
        f"Frame finished {final.wins_a}-{final.wins_b}, "
        f"clinched at {final.clinched_at}, dormie at {final.dormie_at}"
    )

    if final.clinched_at is None:
        main = FrameOutcome()
    else:
        main = FrameOutcome(
            winner=_favoured_side(final.lead),
            triggered_at=final.clinched_at,
            margin=abs(final.lead),
        )

    return ThirtyTenTenOutcome(
        main=main,
        dormie=_mini_match(played, final.dormie_at),
        bye=_mini_match(played, final.clinched_at),
    )


def build_match_snapshot(holes: Sequence[int], outcomes: Sequence) -> MatchSnapshot:
    """Pair the frame's hole numbers with their outcomes and evaluated stakes."""
    holes = tuple(holes)
    if len(holes) != FRAME_HOLES or len(set(holes)) != len(holes):
        raise InvalidHoleOutcomes(
            f"A frame needs {FRAME_HOLES} distinct holes, got {list(holes)}"
        )

    frames = evaluate_thirty_ten_ten(outcomes)
    return MatchSnapshot(
        holes=holes,
        hole_outcomes=_coerce_outcomes(outcomes),
        frames=frames,
    )


# ============================================================
# Settlement & scorecard helpers
# ============================================================

def settle_thirty_ten_ten(outcome: ThirtyTenTenOutcome, stakes: Stakes = DEFAULT_STAKES) -> Dict[Side, int]:
    """
    Net points per side. Each decided frame moves its stake from the
    loser to the winner; void frames move nothing, so the result always
    sums to zero.
    """
    points = {Side.A: 0, Side.B: 0}
    for frame, stake in (
        (outcome.main, stakes.main),
        (outcome.dormie, stakes.dormie),
        (outcome.bye, stakes.bye),
    ):
        if frame.winner is None:
            continue
        points[frame.winner] += stake
        points[frame.winner.opponent] -= stake
    return points


def hole_outcome(net_a, net_b) -> HoleOutcome:
    if net_a < net_b:
        return HoleOutcome.A
    if net_b < net_a:
        return HoleOutcome.B
    return HoleOutcome.HALVE


def net_hole_outcomes(
    gross_by_side: Mapping[Side, Mapping[int, int]],
    plan: HandicapPlan,
    holes: Iterable[int],
) -> List[HoleOutcome]:
    """
    Turn gross scores into hole results after handicap strokes.

    net = gross - strokes received on that hole; lower net wins the hole.
    Results come back in the order of `holes`.
    """
    outcomes = []
    for hole in holes:
        nets = {}
        for side in Side:
            if hole not in plan.strokes_by_side[side]:
                raise InvalidScores(f"Hole {hole} is not part of the handicap plan")
            gross = gross_by_side.get(side, {}).get(hole)
            if not _is_integral(gross) or gross <= 0:
                raise InvalidScores(
                    f"Side {side.value} has no valid gross score on hole {hole}, got {gross!r}"
                )
            nets[side] = gross - plan.strokes_by_side[side][hole]
        outcomes.append(hole_outcome(nets[Side.A], nets[Side.B]))
    return outcomes
