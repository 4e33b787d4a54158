# blueprints/register/routes.py
from __future__ import annotations

from flask import render_template, request, session, flash, url_for

from . import bp
from blueprints.billing.routes import begin_checkout
from models import catalog
from services.container import get_collaborators
from services.pricing import current_quote
from services.registration import STEP_FIELDS, RegistrationWizard

SESSION_KEY = "registration"


def _load() -> RegistrationWizard:
    return RegistrationWizard.from_dict(session.get(SESSION_KEY))


def _save(wizard: RegistrationWizard) -> None:
    session[SESSION_KEY] = wizard.to_dict()


def _render(wizard: RegistrationWizard, status: int = 200):
    c = get_collaborators()
    return render_template(
        "register.html",
        state=wizard.current_state(),
        experience_levels=catalog.EXPERIENCE_LEVELS,
        course_goals=catalog.COURSE_GOALS,
        course=catalog.MASTERCLASS,
        event=c.event,
        price=current_quote(c.early_bird_deadline),
        user=c.gate.resolve().user,
    ), status


@bp.get("/")
def wizard_page():
    return _render(_load())


@bp.post("/")
def wizard_submit():
    """
    action:
      - next：驗證目前步驟，通過才前進
      - prev：無條件退一步
      - submit：第 3 步、前兩步都填完且已勾選條款才送出結帳
    """
    wizard = _load()
    action = (request.form.get("action") or "next").strip()

    # 只接受目前這一步畫面上的欄位；只寫回有變動的，才不會清掉其他欄位的錯誤
    for name in STEP_FIELDS.get(wizard.current_step, ()):
        if name in request.form:
            value = request.form.get(name, "")
            if value != wizard.form_data.get(name, ""):
                wizard.update_field(name, value)
    if wizard.current_step == 3 and action in ("submit", "next"):
        wizard.accept_terms(request.form.get("accepted_terms") in ("on", "1", "true"))

    if action == "prev":
        wizard.prev_step()
        _save(wizard)
        return _render(wizard)

    if action == "submit":
        if not wizard.can_submit():
            if wizard.current_step == 3 and wizard.accepted_terms:
                wizard.rewind_to_incomplete_step()
                flash("Please complete all required fields.", "error")
            else:
                flash("Please accept the terms and conditions to continue.", "error")
            _save(wizard)
            return _render(wizard, 400)

        _save(wizard)
        response = begin_checkout(
            catalog.MASTERCLASS["id"],
            form_data=wizard.form_data,
            return_to=url_for("register.wizard_page"),
        )
        if response is not None:
            return response
        return _render(wizard, 400)

    ok = wizard.next_step()
    _save(wizard)
    return _render(wizard, 200 if ok else 400)


@bp.post("/reset")
def wizard_reset():
    session.pop(SESSION_KEY, None)
    return _render(RegistrationWizard())
