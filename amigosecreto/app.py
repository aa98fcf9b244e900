"""Streamlit screen for the draw.

Run with ``streamlit run amigosecreto/app.py``. All state lives in the
:class:`~amigosecreto.workflows.DrawSession` stored in ``st.session_state``;
this module only renders it and forwards button clicks.
"""

from __future__ import annotations

import logging

import streamlit as st

from amigosecreto.config import Settings, load_settings
from amigosecreto.db.repository import ParticipantRepository
from amigosecreto.insight import InsightGenerator, build_insight_generator
from amigosecreto.workflows import DrawSession

SESSION_KEY = "draw_session"


@st.cache_resource
def _settings() -> Settings:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


# Shared across browser sessions so they reuse one connection pool.
@st.cache_resource
def _repository() -> ParticipantRepository:
    return ParticipantRepository.from_settings(_settings())


@st.cache_resource
def _insight_generator() -> InsightGenerator:
    return build_insight_generator(_settings())


def _session() -> DrawSession:
    if SESSION_KEY not in st.session_state:
        session = DrawSession(_repository(), insight_generator=_insight_generator())
        session.load()
        st.session_state[SESSION_KEY] = session
    return st.session_state[SESSION_KEY]


def _render_identity(session: DrawSession) -> None:
    st.header("Identifique-se")
    st.caption("Seu nome só aparece se você ainda não sorteou.")
    if session.error:
        st.error(session.error)

    loginable = session.loginable()
    if not loginable:
        st.info("🎉 Todos já participaram!")
    for participant in loginable:
        if st.button(participant.name, key=f"login-{participant.id}"):
            try:
                session.select(participant.id)
            except ValueError:
                # Drew in another tab since the list was loaded
                session.load()
            st.rerun()

    if _settings().insights_enabled and session.participants:
        with st.expander("✨ Resumo do grupo"):
            if st.button("Gerar resumo"):
                with st.spinner("Consultando..."):
                    insight = session.insight()
                if insight is None:
                    st.caption("Resumo indisponível no momento.")
                else:
                    st.write(insight.summary)
                    st.write(f"**Curiosidade:** {insight.funny_fact}")
                    st.write(f"**Dica:** {insight.recommendation}")


def _render_draw(session: DrawSession) -> None:
    header, logout = st.columns([4, 1])
    header.title("🎁 Amigo Secreto")
    if logout.button("SAIR"):
        session.logout()
        session.load()
        st.rerun()

    if session.error:
        st.error(session.error)

    assert session.current_user is not None
    st.subheader(f"Olá, {session.current_user.name}!")

    if session.drawn is None:
        if st.button("REALIZAR MEU SORTEIO", type="primary"):
            session.draw()
            st.rerun()
        return

    if not session.revealed:
        st.markdown("### 🔒")
        if st.button("REVELAR E CONFIRMAR", type="primary"):
            with st.spinner("SALVANDO..."):
                session.confirm()
            st.rerun()
        return

    st.markdown("Você tirou:")
    st.markdown(f"## {session.drawn.name}")
    st.success("Sorteio Concluído com Sucesso!")


def main() -> None:
    st.set_page_config(page_title="Amigo Secreto", page_icon="🎁")
    session = _session()
    if session.current_user is None:
        _render_identity(session)
    else:
        _render_draw(session)


if __name__ == "__main__":
    main()
