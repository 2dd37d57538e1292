"""
IT Asset Tracker - Equipment Dashboard

A Streamlit frontend for tracking IT equipment through its lifecycle
(In Stock, In Use, Damaged, E-Waste, Removed).
"""

import logging
import os
from datetime import date
from typing import Any, Dict, List, Optional

import matplotlib.pyplot as plt
import pandas as pd
import requests
import streamlit as st

st.set_page_config(
    page_title="IT Asset Tracker",
    page_icon="💻",
    layout="wide",
    initial_sidebar_state="expanded"
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Configuration
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")

CATEGORIES = ["Laptop", "Headset", "Keyboard", "Mouse", "Monitor", "Other"]
ROLES = ["Admin", "Editor", "Viewer"]

STATUS_COLORS = {
    "In Stock": "#51cf66",
    "In Use": "#339af0",
    "Damaged": "#ffa94d",
    "E-Waste": "#ff6b6b",
    "Removed": "#6c757d",
}

# Buttons offered on each status page: (label, target status)
TRANSITION_BUTTONS = {
    "In Stock": [("Mark Damaged", "Damaged")],
    "In Use": [("Return to Stock", "In Stock"), ("Mark Damaged", "Damaged"),
               ("Send to E-Waste", "E-Waste"), ("Remove", "Removed")],
    "Damaged": [("Repaired", "In Stock"), ("Send to E-Waste", "E-Waste"), ("Remove", "Removed")],
    "E-Waste": [("Remove", "Removed")],
}

# Columns shown in asset tables, in order
TABLE_COLUMNS = {
    "assetId": "Asset ID",
    "serialNumber": "Serial Number",
    "category": "Category",
    "model": "Model",
    "location": "Location",
    "purchasePrice": "Price",
    "warrantyExpiryDate": "Warranty Expiry",
    "assigneeName": "Assignee",
    "employeeEmail": "Email",
    "damageDescription": "Damage",
    "status": "Status",
}


st.markdown("""
    <style>
    .main-header {
        font-size: 2.2rem;
        font-weight: 700;
        color: #339af0;
        margin-bottom: 0.5rem;
    }
    .block-container {
        padding-top: 2rem;
    }
    </style>
""", unsafe_allow_html=True)


# ------------------------------------------------------------ backend calls

def auth_headers() -> Dict[str, str]:
    token = st.session_state.get("token")
    return {"Authorization": f"Bearer {token}"} if token else {}


def api_request(method: str, path: str, **kwargs) -> Optional[Any]:
    """
    Call the backend and return the decoded JSON body.

    Shows the backend's error message and returns None on failure. A 401
    drops the stored token so the login form comes back.
    """
    try:
        response = requests.request(
            method, f"{BACKEND_URL}{path}", headers=auth_headers(), timeout=15, **kwargs
        )
    except requests.exceptions.RequestException as e:
        logger.warning(f"Backend request failed: {method} {path}: {e}")
        st.error(f"Connection error: {str(e)}")
        return None

    if response.status_code < 400:
        return response.json()

    if response.status_code == 401:
        st.session_state.pop("token", None)
        st.session_state.pop("user", None)

    try:
        body = response.json()
        detail = body.get("detail", "Unknown error")
        if isinstance(detail, list):
            detail = "; ".join(err.get("msg", "") for err in detail)
        field = body.get("field")
    except ValueError:
        detail, field = response.text, None
    if response.status_code == 409 and field == "version":
        st.error("This asset was changed by someone else. Reload the page and try again.")
    elif response.status_code == 409:
        st.error(f"{field} is already used by another asset" if field else str(detail))
    else:
        st.error(f"{detail} ({field})" if field else str(detail))
    return None


def check_backend_health() -> bool:
    """Check if backend is accessible"""
    try:
        response = requests.get(f"{BACKEND_URL}/", timeout=5)
        return response.status_code == 200
    except requests.exceptions.RequestException:
        return False


def current_role() -> str:
    return (st.session_state.get("user") or {}).get("role", "Viewer")


def can_edit() -> bool:
    return current_role() in ("Admin", "Editor")


def transition(asset: Dict[str, Any], status: str, **fields) -> bool:
    body = {"status": status, "expectedVersion": asset["version"], **fields}
    result = api_request("POST", f"/api/equipment/{asset['id']}/transition", json=body)
    if result is not None:
        logger.info(f"{asset['assetId']}: {asset['status']} -> {status}")
        return True
    return False


def assets_frame(assets: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(assets)
    if df.empty:
        return df
    columns = [c for c in TABLE_COLUMNS if c in df.columns and df[c].notna().any()]
    return df[columns].rename(columns=TABLE_COLUMNS)


def asset_label(asset: Dict[str, Any]) -> str:
    return f"{asset['assetId']} - {asset.get('model') or asset['category']} ({asset.get('serialNumber') or 'no serial'})"


# --------------------------------------------------------------- components

def render_login():
    st.markdown("## 🔐 Sign in")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login", type="primary")
    if submitted:
        result = api_request("POST", "/api/users/login", json={"email": email, "password": password})
        if result:
            st.session_state.token = result["token"]
            st.session_state.user = result["user"]
            st.rerun()

    with st.expander("Forgot password?"):
        reset_email = st.text_input("Account email", key="forgot_email")
        if st.button("Send reset link"):
            result = api_request("POST", "/api/forgot-password", json={"email": reset_email})
            if result:
                st.success(result["message"])


def render_reset_password(token: str, email: str):
    st.markdown("## 🔑 Reset password")
    st.write(f"Account: **{email}**")
    with st.form("reset"):
        new_password = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm password", type="password")
        submitted = st.form_submit_button("Reset password", type="primary")
    if submitted:
        if new_password != confirm:
            st.error("Passwords do not match")
            return
        result = api_request(
            "POST", "/api/reset-password",
            json={"email": email, "token": token, "newPassword": new_password},
        )
        if result:
            st.success(result["message"])
            st.query_params.clear()


def render_status_chart(summary: Dict[str, int]):
    labels = ["In Stock", "In Use", "Damaged", "E-Waste", "Removed"]
    values = [summary["inStock"], summary["inUse"], summary["damaged"],
              summary["eWaste"], summary["removed"]]

    fig, ax = plt.subplots(figsize=(8, 4), facecolor='#1a1a2e')
    ax.set_facecolor('#16213e')
    bars = ax.bar(labels, values, color=[STATUS_COLORS[label] for label in labels],
                  edgecolor='white', linewidth=0.3)
    ax.set_ylabel('Assets', color='#ffffff', fontsize=11, fontweight='bold')
    ax.set_title('Assets by Status', color='#ffffff', fontsize=13, fontweight='bold', pad=12)
    ax.grid(axis='y', alpha=0.2, color='white', linestyle='--')
    ax.tick_params(colors='#ffffff', labelsize=10)
    for spine in ax.spines.values():
        spine.set_color('#3a4a5c')
    for bar, value in zip(bars, values):
        ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height(), f'{int(value)}',
                ha='center', va='bottom', color='#ffffff', fontweight='bold')

    plt.tight_layout()
    st.pyplot(fig)
    plt.close()


def render_assign_form(asset: Dict[str, Any]):
    with st.form(f"assign_{asset['id']}"):
        st.markdown("**Assign to employee**")
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Assignee name")
            email = st.text_input("Employee email")
            phone = st.text_input("Phone number")
        with col2:
            position = st.text_input("Position")
            department = st.text_input("Department")
        if st.form_submit_button("Assign", type="primary"):
            if transition(asset, "In Use", assigneeName=name, employeeEmail=email,
                          phoneNumber=phone, position=position, department=department):
                st.rerun()


def render_transition_buttons(asset: Dict[str, Any]):
    buttons = TRANSITION_BUTTONS.get(asset["status"], [])
    damage = None
    if any(target == "Damaged" for _, target in buttons):
        damage = st.text_input("Damage description", key=f"damage_{asset['id']}")

    cols = st.columns(max(len(buttons), 1))
    for col, (label, target) in zip(cols, buttons):
        with col:
            if st.button(label, key=f"{target}_{asset['id']}", use_container_width=True):
                fields = {"damageDescription": damage} if target == "Damaged" else {}
                if target == "Removed":
                    fields["markDeleted"] = True
                if transition(asset, target, **fields):
                    st.rerun()


def _date_or_none(value):
    return date.fromisoformat(value) if value else None


def render_edit_form(asset: Dict[str, Any]):
    """Edit fields without changing status; stale edits come back as a conflict."""
    with st.expander("✏️ Edit details"):
        with st.form(f"edit_{asset['id']}"):
            col1, col2 = st.columns(2)
            with col1:
                asset_id = st.text_input("Asset ID", value=asset["assetId"])
                serial = st.text_input("Serial number", value=asset.get("serialNumber") or "")
                category = st.text_input("Category", value=asset["category"])
                model = st.text_input("Model", value=asset.get("model") or "")
                location = st.text_input("Location", value=asset.get("location") or "")
            with col2:
                price = st.number_input("Purchase price", min_value=0.0, step=50.0,
                                        value=float(asset.get("purchasePrice") or 0))
                purchase_date = st.date_input("Purchase date", value=_date_or_none(asset.get("purchaseDate")))
                warranty = st.date_input("Warranty expiry",
                                         value=_date_or_none(asset.get("warrantyExpiryDate")))
                comment = st.text_area("Comment", value=asset.get("comment") or "")

            body = {
                "assetId": asset_id,
                "serialNumber": serial,
                "category": category,
                "model": model,
                "location": location,
                "purchasePrice": price,
                "purchaseDate": purchase_date.isoformat() if isinstance(purchase_date, date) else None,
                "warrantyExpiryDate": warranty.isoformat() if isinstance(warranty, date) else None,
                "comment": comment,
                "expectedVersion": asset["version"],
            }
            if asset["status"] == "In Use":
                body["assigneeName"] = st.text_input("Assignee name", value=asset.get("assigneeName") or "")
                body["employeeEmail"] = st.text_input("Employee email", value=asset.get("employeeEmail") or "")
                body["phoneNumber"] = st.text_input("Phone number", value=asset.get("phoneNumber") or "")
                body["position"] = st.text_input("Position", value=asset.get("position") or "")
                body["department"] = st.text_input("Department", value=asset.get("department") or "")
            elif asset["status"] == "Damaged":
                body["damageDescription"] = st.text_input(
                    "Damage description", value=asset.get("damageDescription") or ""
                )

            if st.form_submit_button("Save changes", type="primary"):
                result = api_request("PUT", f"/api/equipment/{asset['id']}", json=body)
                if result:
                    logger.info(f"Edited {result['assetId']} (version {result['version']})")
                    st.success(f"Saved {result['assetId']}")
                    st.rerun()


def render_status_page(status: str, icon: str):
    st.markdown(f"## {icon} {status}")
    assets = api_request("GET", "/api/equipment") or []
    assets = [a for a in assets if a["status"] == status]

    if not assets:
        st.info(f"No assets are currently {status}.")
        return

    if status == "In Use":
        groups = api_request("GET", "/api/equipment/grouped-by-email") or []
        for group in groups:
            header = f"👤 {group.get('assigneeName') or 'Unknown'} <{group.get('employeeEmail')}> - {group['count']} item(s)"
            with st.expander(header):
                st.caption(" | ".join(filter(None, [group.get("position"), group.get("department"),
                                                      group.get("phoneNumber")])))
                st.dataframe(assets_frame(group["assets"]), use_container_width=True, hide_index=True)
    else:
        models = api_request("GET", "/api/equipment/grouped-by-model", params={"status": status}) or []
        for group in models:
            with st.expander(f"{group['model']} ({group['category']}) - {group['count']}"):
                st.dataframe(assets_frame(group["assets"]), use_container_width=True, hide_index=True)

    if not can_edit():
        return

    st.markdown("---")
    st.markdown("### Update an asset")
    by_label = {asset_label(a): a for a in assets}
    selected = by_label[st.selectbox("Asset", list(by_label))]
    if status == "In Stock":
        render_assign_form(selected)
    render_transition_buttons(selected)
    render_edit_form(selected)


# -------------------------------------------------------------------- pages

def page_dashboard():
    st.markdown("## 📊 Dashboard Overview")
    summary = api_request("GET", "/api/equipment/summary")
    value = api_request("GET", "/api/equipment/total-value")
    if summary is None or value is None:
        return

    st.markdown("### Key Metrics")
    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        st.metric(label="📦 Total Assets", value=f"{summary['totalAssets']:,}")
    with col2:
        st.metric(label="✅ In Stock", value=summary["inStock"])
    with col3:
        st.metric(label="👤 In Use", value=summary["inUse"])
    with col4:
        st.metric(label="⚠️ Damaged", value=summary["damaged"])
    with col5:
        st.metric(label="💰 Total Value", value=f"{value['totalValue']:,.2f}")

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        render_status_chart(summary)
    with col2:
        st.subheader("⏰ Warranty Expiring (30 days)")
        expiring = api_request("GET", "/api/equipment/expiring-warranty") or []
        if expiring:
            st.dataframe(assets_frame(expiring), use_container_width=True, hide_index=True)
        else:
            st.info("No warranties expiring soon")

    st.markdown("---")
    query = st.text_input("🔍 Search assets", placeholder="Asset ID, serial number, model, assignee...")
    if query:
        results = api_request("GET", "/api/equipment/search", params={"q": query}) or []
        st.write(f"Found {len(results)} asset(s)")
        if results:
            st.dataframe(assets_frame(results), use_container_width=True, hide_index=True)


def page_removed():
    st.markdown("## 🗑️ Removed")
    assets = api_request("GET", "/api/equipment/removed") or []
    if not assets:
        st.info("No removed assets.")
        return
    st.dataframe(assets_frame(assets), use_container_width=True, hide_index=True)

    if current_role() != "Admin":
        return
    st.markdown("---")
    st.markdown("### Permanently delete")
    by_label = {asset_label(a): a for a in assets}
    selected = by_label[st.selectbox("Asset", list(by_label))]
    if st.button("Delete permanently", type="primary"):
        if api_request("DELETE", f"/api/equipment/{selected['id']}/purge") is not None:
            st.success(f"{selected['assetId']} deleted")
            st.rerun()


def page_add_asset():
    st.markdown("## ➕ Add Asset")
    if not can_edit():
        st.warning("Your role cannot add assets.")
        return

    category = st.selectbox("Category", CATEGORIES)
    suggested = api_request("GET", f"/api/equipment/next-asset-id/{category}")
    with st.form("add_asset", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            asset_id = st.text_input("Asset ID", value=(suggested or {}).get("assetId", ""))
            serial = st.text_input("Serial number")
            model = st.text_input("Model")
            location = st.text_input("Location")
        with col2:
            price = st.number_input("Purchase price", min_value=0.0, step=50.0)
            purchase_date = st.date_input("Purchase date", value=None)
            warranty = st.date_input("Warranty expiry", value=None)
            comment = st.text_area("Comment")
        submitted = st.form_submit_button("Add asset", type="primary")

    if submitted:
        body = {
            "assetId": asset_id,
            "serialNumber": serial,
            "category": category,
            "model": model,
            "location": location,
            "purchasePrice": price,
            "purchaseDate": purchase_date.isoformat() if isinstance(purchase_date, date) else None,
            "warrantyExpiryDate": warranty.isoformat() if isinstance(warranty, date) else None,
            "comment": comment,
        }
        result = api_request("POST", "/api/equipment", json=body)
        if result:
            st.success(f"Added {result['assetId']}")


def page_users():
    st.markdown("## 👥 Users")
    if current_role() != "Admin":
        st.warning("Only admins can manage users.")
        return

    users = api_request("GET", "/api/users") or []
    st.dataframe(pd.DataFrame(users, columns=["name", "email", "role"]),
                 use_container_width=True, hide_index=True)

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### Add user")
        with st.form("add_user", clear_on_submit=True):
            name = st.text_input("Name")
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            role = st.selectbox("Role", ROLES, index=2)
            if st.form_submit_button("Create", type="primary"):
                created = api_request("POST", "/api/users", json={
                    "name": name, "email": email, "password": password, "role": role,
                })
                if created:
                    st.success(f"Created {created['email']}")
                    st.rerun()

    with col2:
        if not users:
            return
        st.markdown("### Change or delete")
        by_email = {u["email"]: u for u in users}
        selected = by_email[st.selectbox("User", list(by_email))]
        role = st.selectbox("New role", ROLES, index=ROLES.index(selected["role"]), key="edit_role")
        if st.button("Save role"):
            if api_request("PUT", f"/api/users/{selected['id']}", json={"role": role}):
                st.rerun()
        if st.button("Delete user"):
            if api_request("DELETE", f"/api/users/{selected['id']}") is not None:
                st.rerun()


PAGES = [
    {"icon": "🏠", "label": "Dashboard", "render": page_dashboard},
    {"icon": "📦", "label": "In Stock", "render": lambda: render_status_page("In Stock", "📦")},
    {"icon": "👤", "label": "In Use", "render": lambda: render_status_page("In Use", "👤")},
    {"icon": "⚠️", "label": "Damaged", "render": lambda: render_status_page("Damaged", "⚠️")},
    {"icon": "♻️", "label": "E-Waste", "render": lambda: render_status_page("E-Waste", "♻️")},
    {"icon": "🗑️", "label": "Removed", "render": page_removed},
    {"icon": "➕", "label": "Add Asset", "render": page_add_asset},
    {"icon": "👥", "label": "Users", "render": page_users},
]


# Initialize session state
if 'page' not in st.session_state:
    st.session_state.page = "Dashboard"

st.markdown('<div class="main-header">💻 IT Asset Tracker</div>', unsafe_allow_html=True)

params = st.query_params
if params.get("page") == "reset-password" and params.get("token"):
    render_reset_password(params["token"], params.get("email", ""))
    st.stop()

if not st.session_state.get("token"):
    render_login()
    st.stop()

# Sidebar Navigation
with st.sidebar:
    user = st.session_state.get("user") or {}
    st.markdown(f"**{user.get('name', '')}**  \n{user.get('email', '')} · {user.get('role', '')}")
    st.markdown("---")

    for nav_item in PAGES:
        if st.button(
            f"{nav_item['icon']}   {nav_item['label']}",
            key=f"nav_{nav_item['label']}",
            use_container_width=True,
            type="primary" if st.session_state.page == nav_item["label"] else "secondary"
        ):
            st.session_state.page = nav_item["label"]
            st.rerun()

    st.markdown("---")
    st.markdown("### System Status")
    if check_backend_health():
        st.success("✓ Backend Connected")
    else:
        st.error("✗ Backend Offline")
        st.info(f"Make sure the backend is running at {BACKEND_URL}")

    if st.button("Logout", use_container_width=True):
        st.session_state.pop("token", None)
        st.session_state.pop("user", None)
        st.rerun()

# Main Content Area - Route based on selected page
for nav_item in PAGES:
    if st.session_state.page == nav_item["label"]:
        nav_item["render"]()
        break
