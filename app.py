import logging
import os

import streamlit as st

from paceplan.config import get_settings
from paceplan.errors import PacePlanError
from paceplan.gpx_handler import GPXHandler
from paceplan.pace_math import km_pace_to_mile_pace
from paceplan.pacing_strategy import PacingStrategy
from paceplan.plan_summary import plan_to_dataframe, summarize_plan
from paceplan.race_segments import (
    RaceCategory,
    create_plan,
    create_plan_from_average_pace,
    get_default_plan,
    replace_segments,
    update_segment_pace,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Race Pace Planner", layout="wide")

NO_COURSE = "(no course)"


def list_courses(data_dir):
    if not os.path.isdir(data_dir):
        return []
    return sorted(f for f in os.listdir(data_dir) if f.lower().endswith(".gpx"))


def build_plan(inputs):
    """Run the whole pipeline. Raises PacePlanError on unusable input."""
    settings = get_settings()
    if inputs['mode'] == "pace":
        plan = create_plan_from_average_pace(
            inputs['category'], inputs['average_pace'],
            ultra_distance=inputs['ultra_distance'],
            name=inputs['name'] or None,
            split_strategy=inputs['split'],
        )
    else:
        plan = create_plan(
            inputs['category'], inputs['target_time'],
            ultra_distance=inputs['ultra_distance'],
            name=inputs['name'] or None,
            split_strategy=inputs['split'],
        )

    if inputs['course'] != NO_COURSE:
        handler = GPXHandler(os.path.join(settings.data_dir, inputs['course']))
        result = handler.load(target_distance=plan.distance_km)
        if not result.ok:
            raise PacePlanError(result.error)
        strategy = PacingStrategy(intensity=inputs['intensity'])
        plan = replace_segments(plan, strategy.adjust_for_track(plan.segments, result.track))
    return plan


def main():
    settings = get_settings()
    st.title("Race Pace Planner")
    st.markdown("Spread a target time over the race, then tune it for the course profile.")

    # --- Session State Initialization ---
    if 'plan' not in st.session_state:
        st.session_state['plan'] = get_default_plan(settings.default_pace)

    # --- Sidebar Inputs ---
    st.sidebar.header("Settings")
    mode_label = st.sidebar.radio("Create from", ["Target time", "Average pace"])

    with st.sidebar.form(key='plan_settings'):
        category = st.selectbox("Race", [c.value for c in RaceCategory], index=3)
        ultra_distance = st.number_input(
            "Ultra distance (km)", min_value=1.0, max_value=300.0,
            value=float(settings.default_ultra_distance_km), step=1.0,
            help="Only used for Ultra races.",
        )
        target_time = "3:30:00"
        average_pace = settings.default_pace
        if mode_label == "Target time":
            target_time = st.text_input("Target time (h:mm:ss)", "3:30:00")
        else:
            average_pace = st.text_input("Average pace (m:ss/km)", "4:58/km")

        split = st.slider(
            "Split strategy", min_value=-50, max_value=50, value=0, step=5,
            help="Negative: faster second half. Positive: faster first half.",
        )

        st.subheader("Course")
        courses = [NO_COURSE] + list_courses(settings.data_dir)
        course = st.selectbox(
            "GPX file", courses,
            format_func=lambda x: x.replace(".gpx", ""),
            help="GPX files in the data folder. The course is stretched to the race distance.",
        )
        intensity = st.slider(
            "Terrain adjustment (%)", min_value=0, max_value=200,
            value=int(settings.default_intensity * 100), step=10,
        )
        name = st.text_input("Plan name", "")
        submit_btn = st.form_submit_button("Generate plan", type="primary")

    if submit_btn:
        inputs = {
            'mode': "pace" if mode_label == "Average pace" else "time",
            'category': category,
            'ultra_distance': ultra_distance if category == RaceCategory.ULTRA.value else None,
            'target_time': target_time,
            'average_pace': average_pace,
            'split': split,
            'course': course,
            'intensity': intensity / 100.0,
            'name': name,
        }
        try:
            st.session_state['plan'] = build_plan(inputs)
        except PacePlanError as e:
            # Keep the last good plan on screen
            st.error(f"Could not build the plan: {e}")

    plan = st.session_state['plan']
    summary = summarize_plan(plan)

    # --- Results Metrics ---
    col1, col2, col3 = st.columns(3)
    col1.metric("Finish time", summary.total_time)
    col1.caption(plan.name)
    col2.metric("Average pace", summary.average_pace)
    col2.caption(km_pace_to_mile_pace(summary.average_pace))
    if summary.fastest and summary.slowest:
        col3.metric("Fastest segment", f"{summary.fastest.name} @ {summary.fastest.pace}")
        col3.caption(f"Slowest: {summary.slowest.name} @ {summary.slowest.pace}")

    # --- Manual Edit ---
    st.subheader("Segments")
    with st.form(key='edit_segment'):
        c1, c2, c3 = st.columns(3)
        seg_names = {seg.name: seg.id for seg in plan.segments}
        seg_label = c1.selectbox("Segment", list(seg_names.keys()))
        new_pace = c2.text_input("New pace (m:ss/km)", "5:00/km")
        rebalance = c3.checkbox("Keep finish time", value=True)
        if st.form_submit_button("Update pace"):
            try:
                segments = update_segment_pace(plan.segments, seg_names[seg_label], new_pace, rebalance=rebalance)
                st.session_state['plan'] = replace_segments(plan, segments)
                st.rerun()
            except PacePlanError as e:
                st.error(f"Invalid pace: {e}")

    df = plan_to_dataframe(plan)
    st.dataframe(df, use_container_width=True)
    st.download_button(
        "Download CSV", df.to_csv(index=False).encode("utf-8"),
        file_name="pace_plan.csv", mime="text/csv",
    )


if __name__ == "__main__":
    main()
