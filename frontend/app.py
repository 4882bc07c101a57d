"""
Retail Hub - Streamlit dashboard.
Tabs: sales (GET /sales/summary), inventory (GET /inventory/top), assistant (POST /ai/ask),
notifications, and the SpySystem admin panel (POST /spy/admin).
"""
import os
import streamlit as st
import requests

BACKEND_URL = os.environ.get("BACKEND_URL", "http://localhost:8000")


def _headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


def api_get(path: str, token: str, params: dict | None = None):
    r = requests.get(f"{BACKEND_URL}/api{path}", headers=_headers(token), params=params, timeout=30)
    r.raise_for_status()
    return r.json()


def api_post(path: str, token: str, json: dict | None = None):
    r = requests.post(f"{BACKEND_URL}/api{path}", headers=_headers(token), json=json, timeout=120)
    r.raise_for_status()
    return r.json()


def _error(e: requests.exceptions.RequestException) -> str:
    if e.response is not None:
        try:
            return e.response.json().get("error") or str(e)
        except ValueError:
            pass
    return str(e)


st.set_page_config(page_title="Retail Hub", layout="wide")
st.title("Retail Hub")

token = st.sidebar.text_input("Access token", type="password", key="token")
if not token:
    st.info("Paste your access token in the sidebar to continue.")
    st.stop()

try:
    me = api_get("/me", token)
except requests.exceptions.RequestException as e:
    st.error(f"Login failed: {_error(e)}")
    st.stop()

role = me.get("role")
st.sidebar.write(f"**{me.get('email') or me.get('id')}** ({role or 'no role'})")
if not role:
    st.warning("Your account has no role yet. Ask an admin to assign one.")

tab_names = []
if role in ("sales", "admin"):
    tab_names.append("Sales")
if role in ("warehouse", "admin"):
    tab_names.append("Inventory")
if role:
    tab_names.append("Assistant")
tab_names.append("Notifications")
if role == "admin":
    tab_names.append("SpySystem admin")
tabs = dict(zip(tab_names, st.tabs(tab_names)))

if "Sales" in tabs:
    with tabs["Sales"]:
        period = st.radio("Period", ["day", "week", "month"], horizontal=True, key="period")
        try:
            summary = api_get("/sales/summary", token, params={"period": period})
            c1, c2, c3 = st.columns(3)
            c1.metric("Combined", f"{summary['combined']['total']:.2f}", f"{summary['combined']['order_count']} orders")
            c2.metric("Shopify", f"{summary['shopify']['total']:.2f}", f"{summary['shopify']['order_count']} orders")
            c3.metric("SpySystem", f"{summary['spy']['total']:.2f}", f"{summary['spy']['order_count']} orders")
            st.caption(f"Since {summary['start_date']}")
        except requests.exceptions.RequestException as e:
            st.error(_error(e))

if "Inventory" in tabs:
    with tabs["Inventory"]:
        try:
            inv = api_get("/inventory/top", token)
            st.write(f"**{inv['low_stock_count']}** of {inv['total_items']} lowest-stock items are below minimum")
            st.dataframe(inv.get("items", []), use_container_width=True)
        except requests.exceptions.RequestException as e:
            st.error(_error(e))

if "Assistant" in tabs:
    with tabs["Assistant"]:
        query = st.text_input("Ask a question", placeholder="e.g. show me low stock items", key="query")
        if st.button("Ask"):
            if not query.strip():
                st.warning("Enter a question.")
            else:
                try:
                    out = api_post("/ai/ask", token, {"query": query.strip()})
                    st.success(out.get("answer") or "")
                    for c in out.get("citations", []):
                        with st.expander(f"Source: {c['source']}"):
                            st.json(c["data"])
                except requests.exceptions.RequestException as e:
                    st.error(_error(e))

with tabs["Notifications"]:
    try:
        for n in api_get("/notifications", token).get("notifications", []):
            cols = st.columns([6, 1])
            cols[0].write(f"**[{n['type']}] {n['title']}** - {n.get('body') or ''}  \n{n['created_at']}")
            if not n.get("read") and cols[1].button("Mark read", key=f"read_{n['id']}"):
                api_post(f"/notifications/{n['id']}/read", token)
                st.rerun()
    except requests.exceptions.RequestException as e:
        st.error(_error(e))

if "SpySystem admin" in tabs:
    with tabs["SpySystem admin"]:
        def admin_action(payload: dict):
            try:
                st.json(api_post("/spy/admin", token, payload))
            except requests.exceptions.RequestException as e:
                st.error(_error(e))

        c1, c2, c3, c4, c5 = st.columns(5)
        if c1.button("Status"):
            admin_action({"action": "get_status"})
        if c2.button("Refresh token"):
            admin_action({"action": "refresh_token"})
        if c3.button("Test connection"):
            admin_action({"action": "test_connection"})
        days = c4.number_input("Days", min_value=1, max_value=365, value=7, key="days")
        if c4.button("Sync orders"):
            admin_action({"action": "sync_orders", "days": int(days)})
        if c5.button("Sync inventory"):
            admin_action({"action": "sync_inventory"})

        with st.form("credentials"):
            st.write("**Update credentials**")
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            api_url = st.text_input("API URL", placeholder="https://...")
            if st.form_submit_button("Save"):
                admin_action({
                    "action": "update_credentials",
                    "username": username,
                    "password": password,
                    "api_url": api_url,
                })
