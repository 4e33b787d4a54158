# services/registration.py
"""
三步驟報名精靈。

狀態只有 current_step（1..3）、欄位值、錯誤與是否同意條款；
整個物件可以 to_dict() 存進 Flask session，下一個 request 再 from_dict() 還原。
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from models.catalog import COURSE_GOALS, EXPERIENCE_LEVELS

FIRST_STEP = 1
LAST_STEP = 3

FIELDS = (
    "full_name",
    "email",
    "phone",
    "company",
    "automation_experience",
    "course_goal",
)

# 每一步表單上會出現的欄位
STEP_FIELDS = {
    1: ("full_name", "email", "phone", "company"),
    2: ("automation_experience", "course_goal"),
    3: (),
}

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")

EXPERIENCE_VALUES = frozenset(c["value"] for c in EXPERIENCE_LEVELS)
GOAL_VALUES = frozenset(c["value"] for c in COURSE_GOALS)

FormData = Dict[str, str]
ValidationErrors = Dict[str, str]


def empty_form() -> FormData:
    return {name: "" for name in FIELDS}


def validate_step(step: int, data: FormData) -> ValidationErrors:
    errors: ValidationErrors = {}

    if step == 1:
        if not data.get("full_name", "").strip():
            errors["full_name"] = "Full name is required"
        email = data.get("email", "")
        if not email.strip():
            errors["email"] = "Email is required"
        elif not EMAIL_RE.search(email):
            errors["email"] = "Please enter a valid email address"
        if not data.get("phone", "").strip():
            errors["phone"] = "Phone number is required"

    elif step == 2:
        if data.get("automation_experience") not in EXPERIENCE_VALUES:
            errors["automation_experience"] = "Please select your experience level"
        if data.get("course_goal") not in GOAL_VALUES:
            errors["course_goal"] = "Please select your primary goal"

    # step 3 沒有欄位驗證，只看 accepted_terms
    return errors


@dataclass(frozen=True)
class WizardSnapshot:
    current_step: int
    form_data: FormData
    errors: ValidationErrors
    accepted_terms: bool

    @property
    def incomplete_step(self) -> Optional[int]:
        for step in range(FIRST_STEP, LAST_STEP):
            if validate_step(step, self.form_data):
                return step
        return None

    @property
    def can_submit(self) -> bool:
        return (
            self.current_step == LAST_STEP
            and self.accepted_terms
            and self.incomplete_step is None
        )

    @property
    def progress_percent(self) -> int:
        return round(self.current_step / LAST_STEP * 100)


Listener = Callable[[WizardSnapshot], None]


@dataclass
class RegistrationWizard:
    current_step: int = FIRST_STEP
    form_data: FormData = field(default_factory=empty_form)
    errors: ValidationErrors = field(default_factory=dict)
    accepted_terms: bool = False
    _listeners: List[Listener] = field(default_factory=list, repr=False, compare=False)

    # -------------------------
    # 狀態機介面
    # -------------------------
    def current_state(self) -> WizardSnapshot:
        return WizardSnapshot(
            current_step=self.current_step,
            form_data=dict(self.form_data),
            errors=dict(self.errors),
            accepted_terms=self.accepted_terms,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event: str, **payload) -> bool:
        """
        event: next_step / prev_step / update_field / accept_terms
        回傳值：next_step 是否前進；其餘事件一律 True。
        """
        if event == "next_step":
            return self.next_step()
        if event == "prev_step":
            self.prev_step()
            return True
        if event == "update_field":
            self.update_field(payload["name"], payload.get("value", ""))
            return True
        if event == "accept_terms":
            self.accept_terms(bool(payload.get("accepted")))
            return True
        raise ValueError(f"unsupported wizard event: {event}")

    # -------------------------
    # 操作
    # -------------------------
    def validate_step(self, step: Optional[int] = None) -> bool:
        self.errors = validate_step(step or self.current_step, self.form_data)
        return not self.errors

    def next_step(self) -> bool:
        ok = self.validate_step(self.current_step)
        if ok:
            self.current_step = min(self.current_step + 1, LAST_STEP)
        self._notify()
        return ok

    def prev_step(self) -> None:
        self.current_step = max(self.current_step - 1, FIRST_STEP)
        self._notify()

    def update_field(self, name: str, value: str) -> None:
        if name not in FIELDS:
            raise KeyError(name)
        self.form_data[name] = value
        self.errors.pop(name, None)
        self._notify()

    def accept_terms(self, accepted: bool) -> None:
        self.accepted_terms = accepted
        self._notify()

    def can_submit(self) -> bool:
        return self.current_state().can_submit

    def rewind_to_incomplete_step(self) -> Optional[int]:
        """回到第一個還沒填完的步驟並帶出該步錯誤；都填完回傳 None。"""
        step = self.current_state().incomplete_step
        if step is not None:
            self.current_step = step
            self.validate_step(step)
            self._notify()
        return step

    def _notify(self) -> None:
        snapshot = self.current_state()
        for listener in list(self._listeners):
            listener(snapshot)

    # -------------------------
    # Flask session 序列化
    # -------------------------
    def to_dict(self) -> dict:
        return {
            "current_step": self.current_step,
            "form_data": dict(self.form_data),
            "errors": dict(self.errors),
            "accepted_terms": self.accepted_terms,
        }

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "RegistrationWizard":
        if not raw:
            return cls()
        try:
            step = int(raw.get("current_step", FIRST_STEP))
        except (TypeError, ValueError):
            step = FIRST_STEP
        data = empty_form()
        data.update({k: str(v) for k, v in (raw.get("form_data") or {}).items() if k in FIELDS})
        errors = {k: str(v) for k, v in (raw.get("errors") or {}).items() if k in FIELDS}
        return cls(
            current_step=min(max(step, FIRST_STEP), LAST_STEP),
            form_data=data,
            errors=errors,
            accepted_terms=bool(raw.get("accepted_terms")),
        )
