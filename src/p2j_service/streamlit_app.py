import json
import os

import requests
import streamlit as st

API_BASE = os.getenv("P2J_API_BASE", os.getenv("API_BASE", "http://localhost:7799")).rstrip("/")


def _fetch_status() -> dict[str, object] | None:
    try:
        resp = requests.get(f"{API_BASE}/p2jsvc/status", timeout=10)
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Status error: {resp.status_code} {resp.text}"
        return None
    return resp.json()


def _upload(name: str, content: bytes, content_type: str | None) -> dict[str, object] | None:
    files = {"file": (name, content, content_type or "application/pdf")}
    try:
        resp = requests.post(f"{API_BASE}/upload", files=files, timeout=300)
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Upload failed: {resp.status_code} {resp.text}"
        return None
    return resp.json()


def _field_rows(result: dict[str, object]) -> list[dict[str, object]]:
    """Flatten the form fields of every page into table rows."""
    rows: list[dict[str, object]] = []
    for page_no, page in enumerate(result.get("Pages") or [], start=1):
        for f in page.get("Fields") or []:
            rows.append({"page": page_no, "id": f.get("id", ""), "value": f.get("value")})
    return rows


def _page_text(page: dict[str, object]) -> str:
    return "\n".join(t["text"] for t in page.get("Texts") or [] if t.get("text"))


def main() -> None:
    st.set_page_config(page_title="PDF to JSON Service", page_icon="📄", layout="centered")
    st.title("📄 PDF to JSON Service")

    status = _fetch_status()
    if status:
        st.caption(f"API base: {API_BASE} · {status.get('data')} {status.get('description')}")
    else:
        st.caption(f"API base: {API_BASE}")

    uploaded = st.file_uploader("Upload a PDF document", type=["pdf"])
    if uploaded and st.button("Parse", type="primary"):
        st.session_state.pop("error", None)
        with st.spinner("Parsing..."):
            st.session_state["result"] = _upload(uploaded.name, uploaded.getvalue(), uploaded.type)

    result = st.session_state.get("result")
    if result:
        if result.get("statusCode") != 200:
            st.error(f"Parse failed: {result.get('message')}")
        else:
            pages = result.get("Pages") or []
            st.success(f"Parsed {len(pages)} page(s)")
            rows = _field_rows(result)
            if rows:
                st.subheader("Form fields")
                st.dataframe(rows, use_container_width=True)
            for page_no, page in enumerate(pages, start=1):
                with st.expander(f"Page {page_no} text"):
                    st.text(_page_text(page))
            st.download_button(
                label="Download JSON",
                data=json.dumps(result, ensure_ascii=False, indent=2).encode("utf-8"),
                file_name="formimage.json",
                mime="application/json",
            )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
