"""Streamlit chat widget for the Campus Assistant."""

import os

import requests
import streamlit as st

DEFAULT_BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")
SESSION_PARAM = "session"

# Page configuration
st.set_page_config(
    page_title="Campus Assistant",
    page_icon="🎓",
    layout="centered",
)

# Initialize session state
if "messages" not in st.session_state:
    st.session_state.messages = []
# The session id is mirrored into the URL so a reload resumes the conversation
if "session_id" not in st.session_state:
    st.session_state.session_id = st.query_params.get(SESSION_PARAM)
if "show_inquiry" not in st.session_state:
    st.session_state.show_inquiry = False


def start_session(backend_url: str) -> str | None:
    """Ask the backend for a fresh session id."""
    try:
        response = requests.post(f"{backend_url}/api/v1/chat/session", json={}, timeout=10)
    except requests.exceptions.RequestException as e:
        st.error(f"Failed to connect: {e}")
        return None

    if response.status_code != 200:
        st.error(f"Could not start a chat session ({response.status_code})")
        return None
    return response.json()["sessionId"]


# Sidebar
with st.sidebar:
    st.title("Campus Assistant")
    st.caption("Programs, admissions, news and events")

    backend_url = st.text_input(
        "Backend URL",
        value=DEFAULT_BACKEND_URL,
        help="FastAPI backend URL",
    )

    if st.button("New Chat", use_container_width=True):
        st.session_state.messages = []
        st.session_state.session_id = None
        st.session_state.show_inquiry = False
        st.query_params.pop(SESSION_PARAM, None)
        st.rerun()

    # Show current session
    if st.session_state.session_id:
        st.caption(f"Session: {st.session_state.session_id[:8]}...")

    st.divider()

    # Health check
    try:
        health = requests.get(f"{backend_url}/api/v1/health", timeout=2)
        if health.status_code == 200:
            data = health.json()
            st.success(f"Backend: {data.get('status', 'ok')}")
            st.caption(f"Model: {data.get('llmModel', 'unknown')}")
            if not data.get("aiConfigured"):
                st.warning("AI replies are not configured")
        else:
            st.error("Backend unhealthy")
    except requests.exceptions.RequestException:
        st.warning("Backend not reachable")

# Main chat area
st.header("Ask us anything")

# Display chat history
for msg in st.session_state.messages:
    with st.chat_message(msg["role"]):
        st.markdown(msg["content"])
        if msg.get("moderated"):
            st.caption("This message was not sent to the assistant.")

# Chat input
if prompt := st.chat_input("Ask about programs, admissions, news or events..."):
    if st.session_state.session_id is None:
        st.session_state.session_id = start_session(backend_url)
        if st.session_state.session_id:
            st.query_params[SESSION_PARAM] = st.session_state.session_id

    st.session_state.messages.append({"role": "user", "content": prompt})

    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        with st.spinner("Thinking..."):
            try:
                response = requests.post(
                    f"{backend_url}/api/v1/chat/message",
                    json={"sessionId": st.session_state.session_id, "message": prompt},
                    timeout=120,
                )
                data = response.json()

                if response.status_code == 200:
                    reply = data.get("reply", "")
                    st.markdown(reply)
                    if data.get("isModerated"):
                        st.caption("This message was not sent to the assistant.")

                    st.session_state.messages.append(
                        {
                            "role": "assistant",
                            "content": reply,
                            "moderated": data.get("isModerated", False),
                        }
                    )
                elif response.status_code == 429:
                    st.warning(data.get("message", "Too many messages."))
                    st.caption(f"Try again in {data.get('retryAfter', 60)} seconds.")
                elif data.get("fallback"):
                    st.error(data.get("message", "The assistant is unavailable."))
                    st.session_state.show_inquiry = True
                else:
                    st.error(f"Error: {response.status_code} - {data.get('detail', response.text)}")

            except (requests.exceptions.RequestException, ValueError) as e:
                st.error(f"Failed to connect: {e}")

# Human-routed fallback
if st.session_state.show_inquiry:
    st.divider()
    st.subheader("Leave a question for our staff")
    with st.form("inquiry"):
        name = st.text_input("Name")
        email = st.text_input("Email")
        question = st.text_area("Your question")
        submitted = st.form_submit_button("Send")

    if submitted:
        try:
            response = requests.post(
                f"{backend_url}/api/v1/chat/inquiry",
                json={
                    "name": name,
                    "email": email,
                    "message": question,
                    "sessionId": st.session_state.session_id,
                },
                timeout=10,
            )
            if response.status_code == 201:
                st.success("Thanks! Our admissions office will get back to you.")
                st.session_state.show_inquiry = False
            else:
                st.error("Please check your name, email and question.")
        except requests.exceptions.RequestException as e:
            st.error(f"Failed to connect: {e}")
