import logging

import streamlit as st
import pandas as pd
import numpy as np
import altair as alt
import plotly.graph_objects as go

import match_play_engine as mpe  # <-- engine module
from match_exceptions import MatchValidationError
from match_settings import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)

# ------------------------------------------------------------
# Page config
# ------------------------------------------------------------
st.set_page_config(
    page_title="30-10-10 Settlement Sheet",
    page_icon="⛳",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ------------------------------------------------------------
# Session state defaults
# ------------------------------------------------------------

FRAME_HOLE_NUMBERS = list(range(1, mpe.FRAME_HOLES + 1))

# Default stroke index ranking for the nine holes (1 = hardest)
DEFAULT_STROKE_INDEX = {1: 1, 2: 5, 3: 9, 4: 2, 5: 6, 6: 8, 7: 3, 8: 7, 9: 4}

OUTCOME_LABELS = {
    "Halve": mpe.HoleOutcome.HALVE,
    "A wins": mpe.HoleOutcome.A,
    "B wins": mpe.HoleOutcome.B,
}

DEFAULTS = {
    "name_a": "Player A",
    "name_b": "Player B",
    "ch_a": 12,
    "ch_b": 9,
    "input_mode": "Hole results",
}


def init_session_state():
    for k, v in DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v


init_session_state()


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def build_segments(stroke_index, segment_count):
    """Split holes 1-9 into contiguous segments carrying their own stroke indexes."""
    segments = []
    for n, chunk in enumerate(np.array_split(np.array(FRAME_HOLE_NUMBERS), segment_count), start=1):
        holes = [int(h) for h in chunk]
        segments.append(
            mpe.Segment(
                id=f"S{n}",
                holes=holes,
                stroke_index_by_hole={h: int(stroke_index[h]) for h in holes},
            )
        )
    return segments


def running_lead_frame(outcomes):
    steps = np.array([1 if o is mpe.HoleOutcome.A else -1 if o is mpe.HoleOutcome.B else 0 for o in outcomes])
    lead = np.cumsum(steps)
    holes = np.arange(1, len(outcomes) + 1)
    return pd.DataFrame({
        "Hole": holes,
        "Lead (A +)": lead,
        "Margin": np.abs(lead),
        "Holes Remaining": mpe.FRAME_HOLES - holes,
    })


def side_columns(names):
    # Columns are keyed by side so equal player names never collide
    return {
        side.value: st.column_config.NumberColumn(f"{side.value}: {names[side]}")
        for side in mpe.Side
    }


def describe_frame(frame, names):
    if frame.winner is not None:
        return f"{names[frame.winner]} by {frame.margin}"
    if frame.triggered:
        return f"Void (level after hole {frame.triggered_at})"
    return "Void (never triggered)"


def draw_lead_chart(lead_df, result):
    base = alt.Chart(lead_df).encode(x=alt.X("Hole:O", title="Hole"))

    margin_line = base.mark_line(point=True, color="#3498db").encode(
        y=alt.Y("Margin:Q", title="Holes"),
        tooltip=["Hole", "Lead (A +)", "Holes Remaining"],
    )
    remaining_line = base.mark_line(strokeDash=[4, 4], color="#ecf0f1").encode(
        y="Holes Remaining:Q",
    )

    layers = [margin_line, remaining_line]

    triggers = []
    if result.dormie.triggered:
        triggers.append({"Hole": result.dormie.triggered_at, "Trigger": "Dormie"})
    if result.bye.triggered:
        triggers.append({"Hole": result.bye.triggered_at, "Trigger": "Clinch / Bye"})
    if triggers:
        rules = (
            alt.Chart(pd.DataFrame(triggers))
            .mark_rule(color="#f1c40f", strokeWidth=2)
            .encode(x="Hole:O", tooltip=["Trigger"])
        )
        layers.append(rules)

    chart = alt.layer(*layers).properties(
        height=300,
        title=alt.TitleParams(
            "Match margin vs holes remaining",
            subtitle="Dormie when the lines meet, clinched once the margin passes the dashed line",
            anchor="start",
            fontSize=14,
        ),
    )
    st.altair_chart(chart, use_container_width=True)


def draw_points(points, names):
    fig = go.Figure()
    for col, side in enumerate(mpe.Side):
        fig.add_trace(
            go.Indicator(
                mode="number",
                value=points[side],
                number={"valueformat": "+d"},
                title={"text": names[side]},
                domain={"row": 0, "column": col},
            )
        )
    fig.update_layout(grid={"rows": 1, "columns": 2}, height=200, margin=dict(t=40, b=10))
    st.plotly_chart(fig, use_container_width=True)


# ------------------------------------------------------------
# Sidebar controls
# ------------------------------------------------------------

with st.sidebar:
    st.header("Players")

    st.session_state.name_a = st.text_input("Side A", value=st.session_state.name_a)
    st.session_state.ch_a = st.number_input(
        "Side A course handicap",
        min_value=0,
        max_value=60,
        value=int(st.session_state.ch_a),
        step=1,
    )

    st.session_state.name_b = st.text_input("Side B", value=st.session_state.name_b)
    st.session_state.ch_b = st.number_input(
        "Side B course handicap",
        min_value=0,
        max_value=60,
        value=int(st.session_state.ch_b),
        step=1,
    )

    st.markdown("---")
    st.markdown("**Stakes (points)**")
    stakes = mpe.Stakes(
        main=int(st.number_input("Main", min_value=0, value=settings.main_stake, step=5)),
        dormie=int(st.number_input("Dormie", min_value=0, value=settings.dormie_stake, step=5)),
        bye=int(st.number_input("Bye", min_value=0, value=settings.bye_stake, step=5)),
    )

names = {mpe.Side.A: st.session_state.name_a, mpe.Side.B: st.session_state.name_b}
players = [
    mpe.Player(id="pA", name=names[mpe.Side.A], course_handicap=st.session_state.ch_a, side=mpe.Side.A),
    mpe.Player(id="pB", name=names[mpe.Side.B], course_handicap=st.session_state.ch_b, side=mpe.Side.B),
]

# ------------------------------------------------------------
# Main title
# ------------------------------------------------------------

st.title("30-10-10 Settlement Sheet")
st.caption(
    "Singles match play over nine holes: handicap strokes split by segment, "
    "then Main, Dormie and Bye settled from the hole results."
)

tab_strokes, tab_frames = st.tabs(["Strokes", "30-10-10"])

# ============================================================
# STROKES TAB
# ============================================================

with tab_strokes:
    st.subheader("Handicap Strokes")

    segment_count = st.slider(
        "Segments",
        min_value=1,
        max_value=mpe.FRAME_HOLES,
        value=settings.segment_count,
        help="The stroke pool is split evenly across segments; remainder strokes go to the first segments.",
    )

    si_df = pd.DataFrame({
        "Hole": FRAME_HOLE_NUMBERS,
        "Stroke Index": [DEFAULT_STROKE_INDEX[h] for h in FRAME_HOLE_NUMBERS],
    })
    si_df = st.data_editor(si_df, hide_index=True, disabled=["Hole"], key="stroke_index")
    stroke_index = dict(zip(si_df["Hole"], si_df["Stroke Index"]))

    plan = None
    try:
        segments = build_segments(stroke_index, segment_count)
        plan = mpe.allocate_strokes(players, segments, round_holes=FRAME_HOLE_NUMBERS)
    except (MatchValidationError, ValueError) as e:
        # blank cells in the editor come through as NaN
        st.error(str(e))

    if plan is not None:
        if plan.scratch_side is None:
            st.info("Equal course handicaps: no strokes given.")
        else:
            st.markdown(
                f"**{names[plan.scratch_side]}** plays scratch; "
                f"**{names[plan.receiving_side]}** receives **{plan.pool}** strokes."
            )

        segment_of = {h: s.id for s in segments for h in s.holes}
        plan_df = pd.DataFrame({
            "Hole": plan.holes,
            "Segment": [segment_of[h] for h in plan.holes],
            "Stroke Index": [stroke_index[h] for h in plan.holes],
            mpe.Side.A.value: [plan.strokes_for(mpe.Side.A, h) for h in plan.holes],
            mpe.Side.B.value: [plan.strokes_for(mpe.Side.B, h) for h in plan.holes],
        })
        st.dataframe(plan_df, use_container_width=True, hide_index=True, column_config=side_columns(names))

        heat = go.Figure(
            go.Heatmap(
                z=[[plan.strokes_for(side, h) for h in plan.holes] for side in mpe.Side],
                x=[f"H{h}" for h in plan.holes],
                y=[f"{side.value}: {names[side]}" for side in mpe.Side],
                colorscale="Greens",
                zmin=0,
                showscale=False,
                text=[[plan.strokes_for(side, h) for h in plan.holes] for side in mpe.Side],
                texttemplate="%{text}",
            )
        )
        heat.update_layout(height=220, margin=dict(t=20, b=20))
        st.plotly_chart(heat, use_container_width=True)

# ============================================================
# 30-10-10 TAB
# ============================================================

with tab_frames:
    st.subheader("30-10-10 Frames")

    input_mode = st.radio(
        "Enter",
        ["Hole results", "Gross scores"],
        index=0 if st.session_state.input_mode == "Hole results" else 1,
        horizontal=True,
        help="Gross scores are converted to hole results using the handicap strokes from the Strokes tab.",
    )
    st.session_state.input_mode = input_mode

    outcomes = None
    if input_mode == "Hole results":
        cols = st.columns(mpe.FRAME_HOLES)
        picked = []
        for col, hole in zip(cols, FRAME_HOLE_NUMBERS):
            label = col.selectbox(f"H{hole}", list(OUTCOME_LABELS), key=f"outcome_{hole}")
            picked.append(OUTCOME_LABELS[label])
        outcomes = picked
    else:
        gross_df = pd.DataFrame({
            "Hole": FRAME_HOLE_NUMBERS,
            mpe.Side.A.value: [4] * mpe.FRAME_HOLES,
            mpe.Side.B.value: [4] * mpe.FRAME_HOLES,
        })
        gross_df = st.data_editor(
            gross_df,
            hide_index=True,
            disabled=["Hole"],
            column_config=side_columns(names),
            key="gross_scores",
        )
        if plan is None:
            st.warning("Fix the handicap setup on the Strokes tab to use gross scores.")
        else:
            try:
                gross_by_side = {
                    side: {int(h): int(g) for h, g in zip(gross_df["Hole"], gross_df[side.value])}
                    for side in mpe.Side
                }
                outcomes = mpe.net_hole_outcomes(gross_by_side, plan, FRAME_HOLE_NUMBERS)
            except (MatchValidationError, ValueError) as e:
                st.error(str(e))

    if outcomes is not None:
        try:
            snapshot = mpe.build_match_snapshot(FRAME_HOLE_NUMBERS, outcomes)
        except MatchValidationError as e:
            st.error(str(e))
            snapshot = None

        if snapshot is not None:
            result = snapshot.frames
            st.markdown(
                "Results: " + " ".join(o.value for o in snapshot.hole_outcomes)
            )

            col_main, col_dormie, col_bye = st.columns(3)
            col_main.metric(f"Main ({stakes.main})", describe_frame(result.main, names))
            col_dormie.metric(f"Dormie ({stakes.dormie})", describe_frame(result.dormie, names))
            col_bye.metric(f"Bye ({stakes.bye})", describe_frame(result.bye, names))

            draw_lead_chart(running_lead_frame(snapshot.hole_outcomes), result)

            st.markdown("### Settlement")
            draw_points(mpe.settle_thirty_ten_ten(result, stakes), names)
