from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

import numpy as np
import pandas as pd  # type: ignore[import-untyped]
import streamlit as st

from frontend.api_client import BackendError, PresenterClient
from frontend.plotting import CANVAS_RANGE, build_session_scatter
from frontend.session_mirror import SessionMirror

REFRESH_SECONDS = 1.0


def _init_state() -> None:
    if "channel" not in st.session_state:
        st.session_state.channel = "main"
    if "role" not in st.session_state:
        st.session_state.role = "presenter"
    if "mirror" not in st.session_state:
        st.session_state.mirror = SessionMirror(role=st.session_state.role)
    if "preview" not in st.session_state:
        st.session_state.preview = []
    if "rng" not in st.session_state:
        st.session_state.rng = np.random.default_rng()
    if "backend_status" not in st.session_state:
        st.session_state.backend_status = "Disconnected"


def channel_client(store: MutableMapping[str, Any], channel: str) -> PresenterClient:
    """One client per channel, reused across reruns; the old one is closed on switch."""
    client: PresenterClient | None = store.get("client")
    if client is not None and client.channel == channel:
        return client
    if client is not None:
        client.close()
    client = PresenterClient(channel=channel)
    store["client"] = client
    return client


def _client() -> PresenterClient:
    return channel_client(st.session_state, st.session_state.channel)


def _refresh_mirror(client: PresenterClient) -> None:
    mirror: SessionMirror = st.session_state.mirror
    try:
        mirror.load_status(client.get_snapshot())
    except BackendError as exc:
        st.session_state.backend_status = f"Error: {exc}"
        return
    st.session_state.backend_status = "Connected"
    mirror.tick()


def _call_backend(action, *args) -> bool:
    """Run one presenter command; rejections are shown inline and never raised."""
    try:
        action(*args)
    except BackendError as exc:
        st.error(f"Command rejected ({exc.error or exc.status_code}): {exc}")
        return False
    st.session_state.preview = []
    return True


def _points_table(mirror: SessionMirror) -> pd.DataFrame:
    return pd.DataFrame(
        [point.model_dump() for point in mirror.state.points],
        columns=["id", "x", "y", "cluster_id", "color"],
    )


def _presenter_sidebar(client: PresenterClient) -> None:
    mirror: SessionMirror = st.session_state.mirror
    st.subheader("Demo")
    demos = []
    try:
        demos = client.list_demos()
    except BackendError as exc:
        st.session_state.backend_status = f"Error: {exc}"
    demo_ids = [demo.id for demo in demos]
    script_id = st.selectbox("Demo", demo_ids, disabled=not demo_ids)
    if st.button("Start", use_container_width=True, disabled=not demo_ids):
        _call_backend(client.start, script_id)
    if st.button("Stop", use_container_width=True):
        _call_backend(client.stop)

    st.subheader("Points")
    x_min, x_max, y_min, y_max = CANVAS_RANGE
    with st.form("add-point"):
        x = st.number_input("x", x_min, x_max, (x_min + x_max) / 2)
        y = st.number_input("y", y_min, y_max, (y_min + y_max) / 2)
        if st.form_submit_button("Add point"):
            _call_backend(client.add_point, float(x), float(y))
    if st.button("Add 10 random points", use_container_width=True):
        rng: np.random.Generator = st.session_state.rng
        for px, py in rng.uniform([x_min, y_min], [x_max, y_max], size=(10, 2)):
            if not _call_backend(client.add_point, float(px), float(py)):
                break
    point_ids = [point.id for point in mirror.state.points]
    selected = st.selectbox("Point", point_ids, disabled=not point_ids)
    if st.button("Remove point", use_container_width=True, disabled=not point_ids):
        _call_backend(client.remove_point, selected)
    if st.button("Clear points", use_container_width=True):
        _call_backend(client.clear_points)

    st.subheader("Clustering")
    k = st.slider("k", 1, 8, 3)
    if st.button("Run clustering", use_container_width=True):
        _call_backend(client.run_clustering, k)
    if st.button("Preview locally", use_container_width=True):
        st.session_state.preview = mirror.preview_clusters(k)


@st.fragment(run_every=REFRESH_SECONDS)
def _live_canvas() -> None:
    client = _client()
    _refresh_mirror(client)
    mirror: SessionMirror = st.session_state.mirror
    state = mirror.state
    st.caption(
        f"Channel: {st.session_state.channel} | step: {state.step.value} | "
        f"sequence: {mirror.sequence} | backend: {st.session_state.backend_status}"
    )
    st.plotly_chart(
        build_session_scatter(
            state,
            pulse=mirror.pulse,
            preview=st.session_state.preview,
            title=state.active_script_id or "Canvas",
        ),
        use_container_width=True,
    )
    for line in state.explanations:
        st.write(line)
    if st.session_state.role == "presenter":
        st.dataframe(_points_table(mirror), use_container_width=True)


def main() -> None:
    st.set_page_config(page_title="Canvas Clustering", layout="wide")
    _init_state()
    st.title("Interactive Clustering Canvas")

    with st.sidebar:
        channel = st.text_input("Channel", st.session_state.channel)
        role = st.radio("View", ["presenter", "audience"], horizontal=True)
        if channel != st.session_state.channel or role != st.session_state.role:
            st.session_state.channel = channel
            st.session_state.role = role
            st.session_state.mirror = SessionMirror(role=role)
            st.session_state.preview = []
        if role == "presenter":
            _presenter_sidebar(_client())

    _live_canvas()


if __name__ == "__main__":
    main()
