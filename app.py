"""
app.py
Streamlit client dashboard for the rental fleet (single operator, always logged in).
Run: streamlit run app.py
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, time

import pandas as pd
import streamlit as st

import db
import pending
import referrals
import registry as reg
import renewals
import textblock
import utils
from errors import DashboardError, SkipReason
from models import PAYMENT_STATUS_LABELS, PROFILE_STATUS_LABELS, PaymentStatus, ProfileStatus, SystemSettings
from money import format_amount
from schedule import format_date, next_payment_date

st.set_page_config(page_title="Fleet Client Dashboard", layout="wide")

OPERATOR = "admin"

SKIP_MESSAGES = {
    SkipReason.SELF_REFERRAL: "A customer cannot refer themselves.",
    SkipReason.REFERRER_NOT_FOUND: "Referrer not found.",
    SkipReason.REFERRED_NOT_FOUND: "Referred customer not found.",
    SkipReason.ALREADY_REFERRED: "This referral was already counted.",
    SkipReason.CUSTOMER_NOT_FOUND: "Customer not found.",
}


def init_once():
    if "registry" in st.session_state:
        return
    if not db.init_db():
        st.warning("Local storage unavailable: changes will only live in this session.")
    st.session_state.registry = db.load_registry()
    st.session_state.profiles = db.load_pending_profiles()
    st.session_state.settings = db.load_settings()


def commit(registry: reg.Registry):
    st.session_state.registry = registry
    if not db.save_registry(registry):
        st.warning("Could not save to local storage. Export a backup to avoid losing data.")


def commit_profiles(profiles):
    st.session_state.profiles = profiles
    if not db.save_pending_profiles(profiles):
        st.warning("Could not save pending profiles.")


def show_error(exc: DashboardError):
    # the core signals the kind; wording lives here
    prefix = {"validation": "Invalid data", "transition": "Not allowed"}.get(exc.kind, "Error")
    st.error(f"{prefix}: {exc}")


def customer_label(r) -> str:
    return f"{r.name} ({r.login_id})"


def pick_customer(label: str, key: str):
    registry = st.session_state.registry
    records = list(registry)
    if not records:
        return None
    options = {customer_label(r): r.login_id for r in records}
    chosen = st.selectbox(label, list(options.keys()), key=key)
    return registry.find(options[chosen])


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    registry = st.session_state.registry
    today = date.today()

    active = [r for r in registry if r.active]
    due_soon = []
    for r in active:
        days = renewals.days_until_return(r, today)
        if days is not None and 0 <= days <= 7:
            due_soon.append(r)
    pending_weeks = sum(1 for r in registry for p in r.payments if p.status == PaymentStatus.PENDING)

    c1, c2, c3 = st.columns(3)
    c1.metric("Active customers", len(active))
    c2.metric("Returns in next 7 days", len(due_soon))
    c3.metric("Pending weekly payments", pending_weeks)

    st.divider()

    st.subheader("Returning soon (next 7 days)")
    if due_soon:
        rows = [{"name": r.name, "login_id": r.login_id, "return_date": r.return_date} for r in due_soon]
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No returns in the next 7 days.")


def customer_form(existing=None):
    if existing:
        st.subheader(f"✏️ Edit Customer ({existing.login_id})")
    else:
        st.subheader("➕ Add Customer")

    default_text = textblock.render_record(existing) if existing else ""
    text = st.text_area(
        "Customer block (NOME and LOGIN CPF are required)",
        value=default_text,
        height=280,
        key=f"block_{existing.login_id if existing else 'new'}",
    )

    col1, col2 = st.columns(2)
    with col1:
        can_refer = st.checkbox("Can refer others", value=existing.can_refer if existing else False)
        active = st.checkbox("Profile active", value=existing.active if existing else True)
        inactive_reason = st.text_input(
            "Reason for deactivation",
            value=(existing.inactive_reason or "") if existing else "",
            disabled=active,
        )
    with col2:
        notes = st.text_area("Notes", value=(existing.notes or "") if existing else "", height=120)

    if st.button("Save", type="primary"):
        registry = st.session_state.registry
        try:
            record = replace(textblock.parse_record(text), can_refer=can_refer, notes=notes or None)
            if existing:
                updated = reg.edit_customer(registry, existing.login_id, record)
            else:
                updated = reg.add_customer(registry, record)
            updated = reg.set_active(updated, record.login_id, active, inactive_reason)
        except DashboardError as exc:
            show_error(exc)
            return
        commit(updated)
        st.session_state.edit_customer_id = None
        st.success("Customer updated." if existing else "Customer added.")
        st.rerun()


def referrer_section(record):
    st.subheader("Referral")
    registry = st.session_state.registry

    current = referrals.resolve_referrer(registry, record)
    if record.referred_by and current is None:
        st.caption("Referred by: (removed customer)")
    else:
        st.caption(f"Referred by: {customer_label(current) if current else '-'}")

    candidates = [r for r in referrals.referrers(registry) if r.login_id != record.login_id]
    options = {"(nobody)": None}
    options.update({customer_label(r): r.login_id for r in candidates})
    chosen = st.selectbox("Set referrer", list(options.keys()), key=f"ref_{record.login_id}")

    if st.button("Apply referrer", key=f"apply_ref_{record.login_id}"):
        referrer_id = options[chosen]
        reason = None
        if referrer_id is not None:
            reason = referrals.referral_skip_reason(registry, referrer_id, record.login_id)
        try:
            updated = referrals.set_referrer(registry, record.login_id, referrer_id)
        except DashboardError as exc:
            show_error(exc)
            return
        message = SKIP_MESSAGES[reason] if reason is not None else None
        if updated is registry:
            st.info(message or "Nothing to change.")
            return
        commit(updated)
        # kept across the rerun
        st.session_state.referral_notice = message or "Referrer updated."
        st.rerun()

    notice = st.session_state.pop("referral_notice", None)
    if notice:
        st.info(notice)


def renewal_section(record):
    st.subheader("Renew")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        new_date = st.date_input("New return date", value=date.today(), key=f"ren_d_{record.login_id}")
    with c2:
        new_time = st.time_input("Time", value=time(10, 0), key=f"ren_t_{record.login_id}")
    with c3:
        brand = st.selectbox("Card brand", [""] + renewals.CARD_BRANDS, key=f"ren_b_{record.login_id}")
    with c4:
        suffix = st.text_input("Card suffix", placeholder="V1234", key=f"ren_s_{record.login_id}")

    if st.button("Renew", key=f"renew_{record.login_id}"):
        if brand and suffix and not renewals.is_valid_card_suffix(brand, suffix):
            st.error("Card suffix must be the brand initial followed by the last digits.")
            return
        new_return = f"{format_date(new_date)} {new_time.strftime('%H:%M')}"
        renewed = renewals.record_renewal(record, new_return, brand, suffix.upper())
        commit(st.session_state.registry.upsert(renewed))
        st.session_state.renewal_message = renewals.renewal_message(renewed)
        st.rerun()

    if st.session_state.get("renewal_message"):
        st.code(st.session_state.renewal_message)

    if record.renewal_history:
        st.dataframe(
            pd.DataFrame([r.to_dict() for r in record.renewal_history]),
            use_container_width=True,
            hide_index=True,
        )


def customers_page():
    st.header("👥 Customers")

    registry = st.session_state.registry

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/CPF)")
        show_inactive = st.checkbox("Show inactive", value=True)

    df = utils.customers_frame(registry)
    if search.strip():
        mask = df["name"].str.contains(search.strip(), case=False) | df["login_id"].str.contains(search.strip())
        df = df[mask]
    if not show_inactive:
        df = df[df["active"]]
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    selected = pick_customer("Customer", key="customers_pick")
    if selected:
        c1, c2, c3 = st.columns(3)
        with c1:
            if st.button("Edit"):
                st.session_state.edit_customer_id = selected.login_id
                st.rerun()
        with c2:
            if st.button("View payments"):
                st.session_state.payments_customer_id = selected.login_id
                st.session_state.page = "Payments"
                st.rerun()
        with c3:
            delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
            if st.button("Delete", type="secondary", disabled=not delete_confirm):
                commit(registry.remove(selected.login_id))
                st.success("Customer deleted.")
                st.rerun()

        with st.expander("Referral and renewal", expanded=False):
            referrer_section(selected)
            st.divider()
            renewal_section(selected)

    st.divider()

    edit_id = st.session_state.get("edit_customer_id")
    existing = registry.find(edit_id) if edit_id else None
    if existing:
        customer_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_customer_id = None
            st.rerun()
    else:
        customer_form(existing=None)


def payments_page():
    st.header("💳 Weekly Payments")

    registry = st.session_state.registry
    if not len(registry):
        st.info("No customers yet. Add a customer first.")
        return

    records = list(registry)
    default_id = st.session_state.get("payments_customer_id", records[0].login_id)
    ids = [r.login_id for r in records]
    index = ids.index(default_id) if default_id in ids else 0
    chosen = st.selectbox("Customer", [customer_label(r) for r in records], index=index)
    record = records[[customer_label(r) for r in records].index(chosen)]
    st.session_state.payments_customer_id = record.login_id

    st.write(
        f"Total: **{record.total_price}** | Weekly: **{record.weekly_price}**"
        + (f" | Discount: **{record.discount_amount}** (was {record.original_total_price})" if record.discount_applied else "")
    )

    rows = [
        {
            "week": p.week_number,
            "status": PAYMENT_STATUS_LABELS[p.status],
            "amount": p.amount,
            "date": p.date,
            "note": p.note or "",
        }
        for p in record.payments
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    st.subheader("Update a week")
    editable = [p for p in record.payments if not p.locked]
    if not editable:
        st.success("All weeks paid.")
        return

    weeks = [p.week_number for p in editable]
    focus = st.session_state.get("focus_week")
    week_index = weeks.index(focus) if focus in weeks else 0
    c1, c2, c3, c4 = st.columns([1, 1, 1, 2])
    with c1:
        week = st.selectbox("Week", weeks, index=week_index)
    slot = next(p for p in editable if p.week_number == week)
    with c2:
        status = st.selectbox(
            "Status",
            list(PaymentStatus),
            index=list(PaymentStatus).index(slot.status),
            format_func=lambda s: PAYMENT_STATUS_LABELS[s],
        )
    with c3:
        amount = st.text_input("Amount", value=slot.amount)
    with c4:
        pay_date = st.text_input("Date (DD/MM/YYYY)", value=slot.date or next_payment_date())
    note = st.text_input("Note", value=slot.note or "")

    if status == PaymentStatus.PAID:
        st.warning("Marking as paid closes this week: it cannot be edited afterwards.")

    if st.button("Save payment", type="primary"):
        try:
            updated, next_week = reg.update_payment(
                registry, record.login_id, week, status, amount, pay_date, note
            )
        except DashboardError as exc:
            show_error(exc)
            return
        commit(updated)
        st.session_state.focus_week = next_week
        st.success("Payment saved.")
        st.rerun()


def pending_page():
    st.header("🕒 Pending Profiles")

    profiles = st.session_state.profiles

    if profiles:
        rows = [
            {
                "name": p.name,
                "contact": p.contact,
                "cpf": p.login_id,
                "status": PROFILE_STATUS_LABELS[p.status],
                "created": p.created_at,
            }
            for p in profiles
        ]
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.caption("No pending profiles.")

    st.subheader("Add profile")
    tab_simple, tab_text = st.tabs(["Simple", "From customer block"])
    with tab_simple:
        c1, c2, c3 = st.columns(3)
        with c1:
            name = st.text_input("Name", key="pp_name")
        with c2:
            contact = st.text_input("Contact", key="pp_contact")
        with c3:
            cpf = st.text_input("CPF (optional)", key="pp_cpf")
        notes = st.text_area("Notes", key="pp_notes")
        status = st.selectbox(
            "Status", list(ProfileStatus), format_func=lambda s: PROFILE_STATUS_LABELS[s], key="pp_status"
        )
        if st.button("Add profile"):
            if not contact.strip():
                st.error("Contact is required.")
            else:
                try:
                    profile = pending.new_profile(name, contact, cpf, notes, status)
                except DashboardError as exc:
                    show_error(exc)
                else:
                    commit_profiles(pending.add_profile(profiles, profile))
                    st.rerun()
    with tab_text:
        text = st.text_area("Customer block", key="pp_text", height=200)
        if st.button("Add from block"):
            try:
                profile = pending.profile_from_text(text)
            except DashboardError as exc:
                show_error(exc)
            else:
                commit_profiles(pending.add_profile(profiles, profile))
                st.rerun()

    if not profiles:
        return

    st.divider()
    st.subheader("Manage")
    options = {f"{p.name} ({PROFILE_STATUS_LABELS[p.status]})": p for p in profiles}
    chosen = options[st.selectbox("Profile", list(options.keys()))]
    c1, c2, c3 = st.columns(3)
    with c1:
        new_status = st.selectbox(
            "New status", list(ProfileStatus), format_func=lambda s: PROFILE_STATUS_LABELS[s], key="pp_new_status"
        )
        if st.button("Update status"):
            commit_profiles(pending.update_profile(profiles, pending.set_status(chosen, new_status)))
            st.rerun()
    with c2:
        cpf = st.text_input("CPF", value=chosen.login_id, key=f"conv_cpf_{chosen.id}")
        pickup = st.text_input("Pickup (DD/MM/YYYY HH:MM)", key=f"conv_pickup_{chosen.id}")
        return_date = st.text_input("Return (DD/MM/YYYY HH:MM)", key=f"conv_return_{chosen.id}")
        if st.button("Convert to customer"):
            # prices, password and cards come from the profile notes
            try:
                record = pending.convert_to_customer(
                    chosen, login_id=cpf, pickup_date=pickup, return_date=return_date
                )
                updated = reg.add_customer(st.session_state.registry, record)
            except DashboardError as exc:
                show_error(exc)
            else:
                commit(updated)
                commit_profiles(pending.remove_profile(profiles, chosen.id))
                st.session_state.edit_customer_id = record.login_id
                st.session_state.page = "Customers"
                st.rerun()
    with c3:
        if st.button("Remove profile"):
            commit_profiles(pending.remove_profile(profiles, chosen.id))
            st.rerun()


def finance_page():
    st.header("💰 Finance")

    registry = st.session_state.registry

    week = st.radio("Week", [1, 2, 3, 4], horizontal=True)
    summary = utils.finance_summary(registry, week)
    c1, c2, c3 = st.columns(3)
    c1.metric(f"Received (week {week})", format_amount(summary["received"]))
    c2.metric("Referral discounts", format_amount(summary["discounts"]))
    c3.metric("Net", format_amount(summary["net"]))

    st.dataframe(utils.payments_frame(registry, week), use_container_width=True, hide_index=True)

    st.divider()

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Expected per week")
        st.dataframe(utils.totals_by_week(registry), use_container_width=True, hide_index=True)
    with col2:
        st.subheader("Contract totals by pickup month")
        st.dataframe(utils.totals_by_month(registry), use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Referrals")
    st.dataframe(utils.referral_overview(registry), use_container_width=True, hide_index=True)


def summary_page():
    st.header("🧾 Summary")

    registry = st.session_state.registry

    st.subheader("Text summary")
    if len(registry):
        st.code(textblock.render_summary(registry), language=None)
    else:
        st.caption("No customers to summarise.")

    st.divider()

    st.subheader("Import customer blocks")
    text = st.text_area("Blocks separated by lines of dashes (---)", height=200)
    if st.button("Import blocks"):
        try:
            records = textblock.parse_blocks(text)
        except DashboardError as exc:
            show_error(exc)
            return
        if not records:
            st.error("No valid customer found in the text.")
            return
        updated = registry
        for record in records:
            updated = updated.upsert(record)
        commit(updated)
        st.success(f"{len(records)} customers imported.")
        st.rerun()

    st.divider()

    st.subheader("Export to CSV")
    if len(registry):
        st.download_button(
            "Download customers.csv",
            data=utils.customers_to_csv_bytes(registry),
            file_name="customers.csv",
            mime="text/csv",
        )
        st.download_button(
            "Download payments.csv",
            data=utils.payments_to_csv_bytes(registry),
            file_name="payments.csv",
            mime="text/csv",
        )
    else:
        st.caption("No customers to export.")


def settings_page():
    st.header("⚙️ Settings")

    settings: SystemSettings = st.session_state.settings
    company = st.text_input("Company name", value=settings.company_name)
    pix = st.text_input("PIX key", value=settings.pix_key)
    payment_day = st.text_input("Payment day", value=settings.payment_day)
    if st.button("Save settings", type="primary"):
        new_settings = SystemSettings(pix_key=pix, payment_day=payment_day, company_name=company)
        st.session_state.settings = new_settings
        if db.save_settings(new_settings):
            st.success("Settings saved.")
        else:
            st.warning("Could not save settings.")

    st.divider()

    st.subheader("Backup")
    registry = st.session_state.registry
    if len(registry):
        st.download_button(
            "Export JSON backup",
            data=utils.registry_to_json(registry).encode("utf-8"),
            file_name=utils.export_file_name(),
            mime="application/json",
        )
    else:
        st.caption("Nothing to export yet.")

    uploaded = st.file_uploader("Import JSON backup", type=["json"])
    if uploaded is not None and st.button("Replace all customers with this backup"):
        try:
            imported = utils.registry_from_json(uploaded.getvalue().decode("utf-8"))
        except (DashboardError, UnicodeDecodeError) as exc:
            st.error(f"Invalid backup: {exc}")
            return
        commit(imported)
        st.success(f"{len(imported)} customers imported.")
        st.rerun()

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert 3 sample customers (one referral between them).")
    if st.button("Insert sample data"):
        commit(utils.insert_sample_data(st.session_state.registry))
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    st.sidebar.title("🚗 Fleet Clients")
    st.sidebar.caption(f"Logged in as: {OPERATOR}")
    st.sidebar.caption(f"{len(st.session_state.registry)} customers")

    pages = ["Dashboard", "Customers", "Payments", "Pending", "Finance", "Summary", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.session_state.page == "Dashboard":
        dashboard_page()
    elif st.session_state.page == "Customers":
        customers_page()
    elif st.session_state.page == "Payments":
        payments_page()
    elif st.session_state.page == "Pending":
        pending_page()
    elif st.session_state.page == "Finance":
        finance_page()
    elif st.session_state.page == "Summary":
        summary_page()
    elif st.session_state.page == "Settings":
        settings_page()


# --------- App entry ---------

def run():
    init_once()
    main_app()


if __name__ == "__main__":
    run()
