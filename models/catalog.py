# models/catalog.py
from __future__ import annotations
from typing import TypedDict, List, Dict


class CourseItem(TypedDict):
    id: str
    title: str
    desc: str
    format: str
    location: str


class Choice(TypedDict):
    value: str
    label: str


__all__ = [
    "MASTERCLASS",
    "COURSE_CATALOG",
    "EXPERIENCE_LEVELS",
    "COURSE_GOALS",
    "EVENT_DESCRIPTION",
    "get_course",
]

MASTERCLASS: CourseItem = {
    "id": "n8n_masterclass",
    "title": "N8N Automations: From Beginner to Advanced + Agent Creation",
    "desc": "3-hour intensive training, course materials, recording access",
    "format": "Live Online Workshop (Zoom)",
    "location": "Online via Zoom",
}

# 目前只賣一堂課，保留 list 形式方便 dashboard 列出
COURSE_CATALOG: List[CourseItem] = [MASTERCLASS]

EXPERIENCE_LEVELS: List[Choice] = [
    {"value": "beginner", "label": "Beginner - New to automation"},
    {"value": "intermediate", "label": "Intermediate - Some automation experience"},
    {"value": "advanced", "label": "Advanced - Experienced with automation tools"},
    {"value": "expert", "label": "Expert - Building complex automation systems"},
]

COURSE_GOALS: List[Choice] = [
    {"value": "learn-n8n", "label": "Learn N8N from scratch"},
    {"value": "improve-workflows", "label": "Improve existing workflows"},
    {"value": "build-agents", "label": "Build AI agents and advanced automations"},
    {"value": "business-automation", "label": "Automate business processes"},
    {"value": "career-development", "label": "Career development and new skills"},
]

EVENT_DESCRIPTION = """Join us for an intensive 3-hour session covering:
- N8N Fundamentals & Setup
- Advanced Workflows & Integrations
- AI Agent Creation & Deployment

Zoom link and materials will be sent 24 hours before the event.

Questions? Contact support@n8nmasterclass.com"""


def get_course(course_id: str | None) -> CourseItem | None:
    items: Dict[str, CourseItem] = {c["id"]: c for c in COURSE_CATALOG}
    return items.get(course_id or "")
