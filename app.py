"""
Secura Streamlit UI
A demo client for the upload classification and report triage API.
"""

from typing import Optional, Dict, Any, List

import requests
import streamlit as st


st.set_page_config(
    page_title="Secura Demo",
    page_icon="🛡️",
    layout="wide",
)

REPORT_STATUSES = ["pending", "reviewed", "resolved", "dismissed"]
CLASSIFICATIONS = {"real": "Authentic", "ai_safe": "AI Safe", "deepfake": "Deepfake"}


# ---------- Helpers ----------


def _headers(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _error_text(resp: requests.Response) -> str:
    try:
        return resp.json().get("error", resp.text)
    except ValueError:
        return resp.text


def call_api(
    method: str,
    base_url: str,
    path: str,
    token: Optional[str] = None,
    **kwargs,
) -> Dict[str, Any]:
    """Call the API and return the JSON body; raise HTTPError on non-2xx."""
    endpoint = base_url.rstrip("/") + path
    resp = requests.request(method, endpoint, headers=_headers(token), timeout=120, **kwargs)
    resp.raise_for_status()
    return resp.json()


def upload(base_url: str, token: Optional[str], path: str, uploaded, data: Optional[dict] = None):
    files = {"file": (uploaded.name, uploaded.getvalue(), uploaded.type or "application/octet-stream")}
    return call_api("POST", base_url, path, token, files=files, data=data or {})


def show_http_error(e: requests.exceptions.HTTPError):
    st.error(f"API Error: {e.response.status_code} - {_error_text(e.response)}")


def render_analysis(result: Dict[str, Any]):
    st.subheader("🔎 Result")

    classification = result.get("classification", "unknown")
    icons = {"real": "🟢", "ai_safe": "🟡", "deepfake": "🔴"}

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Classification", f"{icons.get(classification, '⚪')} {result.get('label', classification)}")
    with col2:
        st.metric("Confidence", f"{result.get('confidence', 0):.0f}%")
    with col3:
        st.metric("Risk Level", str(result.get("riskLevel", "n/a")).upper())

    st.info(result.get("message") or result.get("reason") or "")
    if result.get("details"):
        st.text_area("Details", result["details"], height=140, disabled=True)

    artifacts: List[str] = result.get("artifacts") or []
    if artifacts:
        st.markdown("**🚩 Artifacts**")
        for artifact in artifacts[:10]:
            st.write(f"- {artifact}")

    analysis_type = result.get("analysisType")
    if analysis_type in {"filename-rule", "parse-fallback"} or result.get("uncertaintyFactors"):
        st.warning(
            "This result was not decided by the vision model "
            f"({analysis_type or ', '.join(result.get('uncertaintyFactors') or [])})."
        )

    with st.expander("🔧 Raw JSON response"):
        st.json(result)


# ---------- Sidebar config ----------


st.sidebar.title("⚙️ Settings")

base_url = st.sidebar.text_input(
    "Backend URL",
    value="http://127.0.0.1:8000",
    help="FastAPI server base URL.",
)

token = st.sidebar.text_input(
    "Bearer token (optional)",
    type="password",
    help="Issue one with: python -m secura.manage issue-token <user>",
)

st.sidebar.markdown("---")

if st.sidebar.button("🔌 Check Connection"):
    try:
        resp = requests.get(f"{base_url.rstrip('/')}/health", timeout=5)
        if resp.status_code == 200:
            st.sidebar.success("✅ Backend is online!")
        else:
            st.sidebar.error(f"❌ Backend returned {resp.status_code}")
    except requests.exceptions.RequestException as e:
        st.sidebar.error(f"❌ Cannot connect: {e}")


# ---------- Main UI ----------


st.title("🛡️ Secura")
st.markdown("**Upload classification demo**")
st.markdown("---")

tabs = st.tabs(["🖼️ Try Demo", "📤 Upload Screening", "📝 Report", "🗂️ Admin Review"])


# --- TRY DEMO TAB ---
with tabs[0]:
    st.header("Image / Video Analysis")

    demo_file = st.file_uploader(
        "Upload an image or video",
        type=["png", "jpg", "jpeg", "webp", "mp4", "mov", "avi", "webm"],
        key="demo_file",
    )

    if demo_file is not None and (demo_file.type or "").startswith("image/"):
        st.image(demo_file, caption=demo_file.name, use_container_width=True)

    if st.button("🔍 Analyze", key="analyze_demo", type="primary"):
        if demo_file is None:
            st.warning("Please upload a file.")
        else:
            with st.spinner("Analyzing..."):
                try:
                    result = upload(base_url, token, "/analyze-deepfake", demo_file)
                    st.session_state["last_analysis"] = result
                    render_analysis(result)
                except requests.exceptions.HTTPError as e:
                    show_http_error(e)
                except requests.exceptions.RequestException as e:
                    st.error(f"Error calling backend: {e}")


# --- UPLOAD SCREENING TAB ---
with tabs[1]:
    st.header("Social Upload Screening")

    username = st.text_input("Posting as", value="demo_user")
    screen_file = st.file_uploader(
        "Image to post",
        type=["png", "jpg", "jpeg", "webp"],
        key="screen_file",
    )

    if st.button("📤 Share", key="screen", type="primary"):
        if screen_file is None:
            st.warning("Please upload an image.")
        else:
            with st.spinner("Screening upload..."):
                try:
                    result = upload(
                        base_url,
                        token,
                        "/impersonation-check",
                        screen_file,
                        data={
                            "checkType": "impersonation",
                            "claimedIdentityId": username,
                            "claimedIdentityName": username,
                        },
                    )
                    st.session_state["last_analysis"] = result
                    if result.get("shouldBlock"):
                        st.error("⛔ Upload blocked: potential harmful synthetic content.")
                    elif result.get("result") == "AI_SAFE":
                        st.warning("🏷️ Posted with an AI-generated label.")
                    else:
                        st.success("✅ Posted.")
                    render_analysis(result)
                except requests.exceptions.HTTPError as e:
                    show_http_error(e)
                except requests.exceptions.RequestException as e:
                    st.error(f"Error calling backend: {e}")


# --- REPORT TAB ---
with tabs[2]:
    st.header("Report a Wrong Classification")

    last = st.session_state.get("last_analysis") or {}
    analysis_log_id = st.text_input("Analysis ID", value=last.get("analysisLogId", ""))
    if last:
        st.caption(f"Current classification: {CLASSIFICATIONS.get(last.get('classification'), 'n/a')}")

    expected = st.radio(
        "What should it have been?",
        options=list(CLASSIFICATIONS),
        format_func=lambda c: CLASSIFICATIONS[c],
        horizontal=True,
    )
    reason = st.text_area("Why?", height=120)

    if st.button("🚩 Submit Report", key="submit_report", type="primary"):
        if not token:
            st.warning("You need a bearer token to submit a report.")
        elif not analysis_log_id or not reason.strip():
            st.warning("Please provide the analysis ID and a reason.")
        else:
            try:
                resp = call_api(
                    "POST",
                    base_url,
                    "/submit-report",
                    token,
                    json={
                        "analysisLogId": analysis_log_id,
                        "expectedClassification": expected,
                        "reason": reason.strip(),
                    },
                )
                st.success(f"Report submitted ({resp.get('reportId')}). Thank you!")
            except requests.exceptions.HTTPError as e:
                show_http_error(e)
            except requests.exceptions.RequestException as e:
                st.error(f"Error calling backend: {e}")


# --- ADMIN REVIEW TAB ---
with tabs[3]:
    st.header("Report Review")

    if not token:
        st.info("Enter an admin bearer token in the sidebar.")
    else:
        try:
            me = call_api("GET", base_url, "/me", token)
        except requests.exceptions.HTTPError as e:
            show_http_error(e)
            me = {}
        except requests.exceptions.RequestException as e:
            st.error(f"Error calling backend: {e}")
            me = {}

        if me and "admin" not in me.get("roles", []):
            st.error("Access denied: you don't have admin privileges.")
        elif me:
            selected_status = st.selectbox("Status", REPORT_STATUSES)
            try:
                reports = call_api(
                    "GET", base_url, "/admin/reports", token, params={"status": selected_status}
                )
            except requests.exceptions.HTTPError as e:
                show_http_error(e)
                reports = []

            if not reports:
                st.write(f"No {selected_status} reports.")

            for report in reports:
                report_id = report["id"]
                with st.container(border=True):
                    st.markdown(
                        f"**Expected:** {CLASSIFICATIONS.get(report['expectedClassification'], report['expectedClassification'])}"
                        f" · **Status:** {report['status']} · `{report['analysisLogId']}`"
                    )
                    st.write(report["reason"])
                    st.caption(f"Reported {report.get('createdAt', '')}")

                    notes = st.text_area(
                        "Admin notes",
                        value=report.get("adminNotes") or "",
                        key=f"notes_{report_id}",
                    )

                    col_resolve, col_dismiss, col_review = st.columns(3)
                    actions = {
                        "resolve": col_resolve.button("✅ Resolve", key=f"resolve_{report_id}"),
                        "dismiss": col_dismiss.button("✖️ Dismiss", key=f"dismiss_{report_id}"),
                        "review": col_review.button("🕒 Mark Reviewed", key=f"review_{report_id}"),
                    }
                    for action, clicked in actions.items():
                        if clicked:
                            try:
                                updated = call_api(
                                    "POST",
                                    base_url,
                                    f"/admin/reports/{report_id}/{action}",
                                    token,
                                    json={"adminNotes": notes or None},
                                )
                                st.success(f"Status changed to {updated['status']}")
                                st.rerun()
                            except requests.exceptions.HTTPError as e:
                                show_http_error(e)


# --- Footer ---
st.markdown("---")
st.markdown(
    "<div style='text-align: center; color: gray;'>"
    "Secura v0.1.0 • Results decided by filename rules are marked as such"
    "</div>",
    unsafe_allow_html=True,
)
