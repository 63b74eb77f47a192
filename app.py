# -----------------------------------------------
# 💰 Resumen de ganancias por turno (Streamlit)
# -----------------------------------------------
# Requiere: streamlit, sqlmodel, pandas, python-dotenv, psycopg2-binary (si usas Postgres)

from datetime import timedelta

import streamlit as st

import config
from auth import AuthProvider
from domain import SessionState, SessionStatus
from errors import AuthError, StoreError, ValidationError
from repository import EarningsRepository
from services import validate_new_shift
from session import SessionProvider
from utils import money, records_to_dataframe, today_local, weekly_chart_dataframe

config.configure_logging()

st.set_page_config(page_title=config.APP_TITLE, page_icon="💰", layout="wide")

# Exigir Postgres en hosting (Render / HF Spaces / Streamlit Cloud)
if config.hosted_without_postgres():
    st.error("Falta DATABASE_URL (Postgres). Configura la variable de entorno en el hosting.")


@st.cache_resource
def get_repo(url: str) -> EarningsRepository:
    return EarningsRepository(url, echo=False)


try:
    repo = get_repo(config.DB_URL)
except StoreError as e:
    st.error(str(e))
    st.stop()

CUR = config.CURRENCY
FORM_FIELDS = {
    "morning_cash": f"Efectivo por la mañana ({CUR})",
    "evening_cash": f"Efectivo por la noche ({CUR})",
    "total_orders": "Pedidos totales",
    "cash_orders": "De ellos en efectivo",
    "online_tips": f"Propinas online ({CUR})",
}


# =========================
# Sesión (una por navegador)
# =========================
def get_session_provider() -> SessionProvider:
    provider = st.session_state.get("_session_provider")
    # Si el repo se recreó (caché limpiada, otra DATABASE_URL) el proveedor antiguo se descarta
    if provider is not None and provider.auth.engine is not repo.engine:
        provider.close()
        st.session_state.pop("_dashboard_unsub", None)
        provider = None
    if provider is None:
        auth = AuthProvider(repo.engine, session_ttl=timedelta(minutes=config.SESSION_TTL_MINUTES))
        provider = SessionProvider(auth)
        st.session_state["_session_provider"] = provider
    if not provider.resolved:
        with st.spinner("Cargando..."):
            provider.initialize()
    return provider


def _flash_success_if_any():
    msg = st.session_state.pop("_flash_success", None)
    if msg:
        st.toast(msg, icon="✅")


# =========================
# Caché de datos (se invalida tras insertar/eliminar)
# =========================
def _invalidate_cache(_state: SessionState | None = None):
    st.session_state.pop("_data_cache", None)


def cargar_datos(account_id: str):
    cache = st.session_state.get("_data_cache")
    if cache and cache["account_id"] == account_id:
        return cache["records"], cache["summary"]
    records = repo.list(account_id)
    summary = repo.summary(account_id)
    st.session_state["_data_cache"] = {"account_id": account_id, "records": records, "summary": summary}
    return records, summary


def _unmount_dashboard():
    unsubscribe = st.session_state.pop("_dashboard_unsub", None)
    if unsubscribe:
        unsubscribe()
    _invalidate_cache()
    st.session_state.pop("_confirm_delete", None)


# =========================
# 🔐 Vista de acceso
# =========================
def vista_acceso(provider: SessionProvider):
    _, centro, _ = st.columns([1, 2, 1])
    with centro:
        st.title(f"💰 {config.APP_TITLE}")
        tab_login, tab_signup = st.tabs(["Iniciar sesión", "Registrarse"])

        with tab_login:
            with st.form("login"):
                email = st.text_input("Correo electrónico")
                password = st.text_input("Contraseña", type="password")
                enviar = st.form_submit_button("Entrar", use_container_width=True)
            if enviar:
                try:
                    provider.auth.sign_in_with_password(email, password)
                except AuthError as e:
                    st.error(str(e))
                else:
                    st.session_state["_flash_success"] = "Sesión iniciada."
                    st.rerun()

        with tab_signup:
            with st.form("signup"):
                email_nv = st.text_input("Correo electrónico", key="signup_email")
                password_nv = st.text_input("Contraseña", type="password", key="signup_password")
                crear = st.form_submit_button("Crear cuenta", use_container_width=True)
            if crear:
                try:
                    provider.auth.sign_up(email_nv, password_nv)
                except AuthError as e:
                    st.error(str(e))
                else:
                    st.info("Cuenta creada. Ya puedes iniciar sesión.")


# =========================
# 📊 Panel
# =========================
def formulario_nuevo_registro(account_id: str, hoy):
    st.subheader("➕ Nuevo registro diario")
    st.caption("Introduce los datos de tu último turno.")
    errores = st.session_state.pop("_form_errors", {})

    with st.form("nuevo_registro", clear_on_submit=False):
        fecha = st.date_input("Fecha", value=hoy, max_value=hoy, key="f_work_date")
        if "work_date" in errores:
            st.error(errores["work_date"])
        for campo, etiqueta in FORM_FIELDS.items():
            st.number_input(etiqueta, min_value=0, step=1, value=0, key=f"f_{campo}")
            if campo in errores:
                st.error(errores[campo])
        guardar = st.form_submit_button("Guardar registro", use_container_width=True)

    if not guardar:
        return
    valores = {"work_date": fecha}
    valores.update({campo: st.session_state.get(f"f_{campo}") for campo in FORM_FIELDS})
    try:
        shift = validate_new_shift(valores, lambda d: repo.exists(account_id, d), today=hoy)
        record = repo.insert(account_id, shift)
    except ValidationError as e:
        st.session_state["_form_errors"] = e.errors
        st.rerun()
    except StoreError as e:
        st.toast(f"Error al guardar: {e}", icon="⚠️")
        return
    _invalidate_cache()
    for campo in FORM_FIELDS:
        st.session_state.pop(f"f_{campo}", None)
    st.session_state["_flash_success"] = (
        f"Guardado {record.work_date.strftime('%d/%m/%Y')}: {money(record.total_earnings, CUR)}"
    )
    st.rerun()


def bloque_resumen(summary):
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Pago por pedidos", money(summary.total_online_earnings, CUR))
    c2.metric("Bonus", money(summary.total_bonus_earnings, CUR))
    c3.metric("Propinas efectivo", money(summary.total_cash_earnings, CUR))
    c4.metric("Propinas online", money(summary.total_online_tips, CUR))
    c5.metric("Total", money(summary.grand_total_earnings, CUR))


def bloque_semanal(records, hoy):
    st.subheader("📅 Resumen semanal")
    st.caption(f"Evolución de tus ganancias en los últimos {config.CHART_DAYS} días.")
    df = weekly_chart_dataframe(records, hoy, config.CHART_DAYS)
    if df.empty:
        st.info("Sin registros en los últimos días.")
        return
    st.bar_chart(df, x="Fecha", y=["Total", "Efectivo"], stack=False)


def bloque_historial(account_id: str, records):
    st.subheader("🗓️ Historial")
    df = records_to_dataframe(records)
    if df.empty:
        st.info("Todavía no hay registros.")
        return
    st.dataframe(df.drop(columns=["ID"]), use_container_width=True, hide_index=True)

    opciones = {r.id: f"{r.work_date.strftime('%d/%m/%Y')} · {money(r.total_with_tips, CUR)}" for r in records}
    c1, c2 = st.columns([3, 1])
    elegido = c1.selectbox("Registro", list(opciones), format_func=opciones.get, label_visibility="collapsed")
    if c2.button("🗑️ Eliminar", use_container_width=True):
        st.session_state["_confirm_delete"] = elegido

    pendiente = st.session_state.get("_confirm_delete")
    if pendiente and pendiente in opciones:
        st.warning(f"¿Eliminar definitivamente el registro {opciones[pendiente]}?")
        b1, b2 = st.columns(2)
        if b1.button("Sí, eliminar", type="primary", use_container_width=True):
            st.session_state.pop("_confirm_delete", None)
            try:
                repo.delete(account_id, pendiente)
            except StoreError as e:
                st.toast(f"Error al eliminar: {e}", icon="⚠️")
                return
            _invalidate_cache()
            st.session_state["_flash_success"] = "Registro eliminado."
            st.rerun()
        if b2.button("Cancelar", use_container_width=True):
            st.session_state.pop("_confirm_delete", None)
            st.rerun()


def vista_panel(provider: SessionProvider, state: SessionState):
    account = state.account
    if "_dashboard_unsub" not in st.session_state:
        st.session_state["_dashboard_unsub"] = provider.subscribe(_invalidate_cache)

    cab, salir = st.columns([5, 1])
    cab.title(f"💰 {config.APP_TITLE}")
    cab.caption(account.email)
    if salir.button("Cerrar sesión", use_container_width=True):
        provider.auth.sign_out()
        st.rerun()

    hoy = today_local(config.APP_TZ)
    try:
        records, summary = cargar_datos(account.id)
    except StoreError as e:
        st.error(str(e))
        return

    bloque_resumen(summary)
    izq, der = st.columns([1, 2])
    with izq:
        formulario_nuevo_registro(account.id, hoy)
    with der:
        bloque_semanal(records, hoy)
        bloque_historial(account.id, records)


# =========================
# Arranque
# =========================
provider = get_session_provider()
_flash_success_if_any()
provider.auth.get_session()  # si ha caducado, pasa a anónimo
estado = provider.state

if estado.status is SessionStatus.AUTHENTICATED:
    vista_panel(provider, estado)
else:
    _unmount_dashboard()
    vista_acceso(provider)
