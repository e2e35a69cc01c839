from typing import Callable, Dict, Optional
from roadmap.store.schemas import EpicType, TaskStatus, TaskType

SEED_PROJECT = {
    "name": "VK Video news launch",
    "description": "Q1: Launch in clips • Q2: Zen integration • Q3: Showcase and optimization • Q4: Monetization",
}

SEED_EPICS = [
    {"name": "Content and editorial preparation", "description": "Build the content base, work with publishers",
     "type": EpicType.CONTENT, "start_month": 0, "duration": 2.5, "order_index": 0, "tasks": [
        {"name": "Compile publisher list", "description": "Agree on the list of editorial publishers and get approval", "owner": "Svetlana", "start_month": 0, "duration": 0.7, "type": TaskType.PREP, "status": TaskStatus.DONE, "order_index": 0},
        {"name": "Content volume table", "description": "Collect daily content volume and topics (01.12-07.12)", "owner": "Dima Efimchenko", "start_month": 0, "duration": 1, "type": TaskType.PREP, "status": TaskStatus.DONE, "order_index": 1},
        {"name": "Presentation for leadership", "description": "Prepare a deck on news content volumes", "owner": "Team", "start_month": 1, "duration": 0.3, "type": TaskType.PREP, "status": TaskStatus.IN_PROGRESS, "order_index": 2},
        {"name": "Author guide", "description": "Write the guide and move it to the VK Video subdomain", "owner": "Dima K.", "start_month": 0.5, "duration": 1, "type": TaskType.PREP, "status": TaskStatus.IN_PROGRESS, "order_index": 3},
        {"name": "Publisher webinar", "description": "Host a business breakfast and present the opportunities", "owner": "Polina", "start_month": 1, "duration": 0.5, "type": TaskType.PREP, "status": TaskStatus.PENDING, "order_index": 4},
    ]},
    {"name": "MVP technical delivery", "description": "Core functionality and system integrations",
     "type": EpicType.TECH, "start_month": 0.5, "duration": 2.5, "order_index": 1, "tasks": [
        {"name": "Pass the stage gates", "description": "Get sign-off to move into development", "owner": "Ilya", "start_month": 0.5, "duration": 0.5, "type": TaskType.DEV, "status": TaskStatus.IN_PROGRESS, "order_index": 0},
        {"name": "Disable the clips filter", "description": "Remove the clips filter for news content", "owner": "Engineering", "start_month": 1, "duration": 0.5, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 1},
        {"name": "Bypass the content pipeline", "description": "Minimize time to publication for news", "owner": "Vera Sovetkina", "start_month": 1, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.IN_PROGRESS, "order_index": 2},
        {"name": "48h clip lifetime", "description": "Auto-remove stale news clips", "owner": "Engineering", "start_month": 1.5, "duration": 0.5, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 3},
        {"name": "Trends mechanics", "description": "Study grouping trends into topics and describe the flow", "owner": "Dima K.", "start_month": 1.5, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 4},
    ]},
    {"name": "Zen integration", "description": "Content stitching and syncing of headline topics",
     "type": EpicType.INTEGRATION, "start_month": 0.7, "duration": 2.3, "order_index": 2, "tasks": [
        {"name": "Meeting with Zen", "description": "Discuss analytics and Mediascope accounting", "owner": "Team", "start_month": 0.7, "duration": 0.1, "type": TaskType.PREP, "status": TaskStatus.DONE, "order_index": 0},
        {"name": "Value proposition and integration model", "description": "Decide embed vs integration and traffic exchange", "owner": "Sasha (Zen)", "start_month": 0.8, "duration": 1, "type": TaskType.PREP, "status": TaskStatus.IN_PROGRESS, "order_index": 1},
        {"name": "Sync with Anastasia", "description": "Stitch content into news events and pick headline stories", "owner": "Anastasia", "start_month": 0.7, "duration": 0.5, "type": TaskType.PREP, "status": TaskStatus.IN_PROGRESS, "order_index": 2},
        {"name": "Topic stitching (Q1-Q2)", "description": "Semi-automatic stitching for datasets", "owner": "Zen + VK", "start_month": 1.5, "duration": 1.5, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 3},
    ]},
    {"name": "Distribution and recommendations", "description": "Promotion mechanics and recommender tuning",
     "type": EpicType.DISTRIBUTION, "start_month": 1, "duration": 2, "order_index": 3, "tasks": [
        {"name": "Content plan for recommendations", "description": "Confirm the content volume is sufficient", "owner": "Recommendations team", "start_month": 1, "duration": 0.5, "type": TaskType.PREP, "status": TaskStatus.IN_PROGRESS, "order_index": 0},
        {"name": "Promotion mechanics", "description": "Quotas, trends and boosts for headline events", "owner": "Dima Bondarev", "start_month": 1.5, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 1},
        {"name": "Freshness in recommendations", "description": "Show news for up to 48 hours", "owner": "Recommendations", "start_month": 1.5, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 2},
        {"name": "Topic indexing in search", "description": "Teach search to handle the new entity", "owner": "Search", "start_month": 2, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 3},
    ]},
    {"name": "Launch in clips (end of Q1)", "description": "First version of news in the clips feed",
     "type": EpicType.DISTRIBUTION, "start_month": 2.5, "duration": 0.5, "order_index": 4, "tasks": [
        {"name": "NEWS IN CLIPS LAUNCH", "description": "Open news content in the clips feed", "owner": "Stepan", "start_month": 2.5, "duration": 0.5, "type": TaskType.MILESTONE, "status": TaskStatus.PENDING, "order_index": 0},
    ]},
    {"name": "Government relations and policy", "description": "Define the content boundary",
     "type": EpicType.CONTENT, "start_month": 1, "duration": 1.5, "order_index": 5, "tasks": [
        {"name": "Meeting on news vs politics", "description": "Draw the line between news and politics", "owner": "GR team", "start_month": 1, "duration": 0.5, "type": TaskType.PREP, "status": TaskStatus.PENDING, "order_index": 0},
        {"name": "Alignment with Stepan", "description": "Include politics and news in clips, strategy board", "owner": "Stepan", "start_month": 1.5, "duration": 1, "type": TaskType.PREP, "status": TaskStatus.PENDING, "order_index": 1},
    ]},
    {"name": "News showcase (Q2-Q3)", "description": "A full section with a showcase",
     "type": EpicType.TECH, "start_month": 3, "duration": 6, "order_index": 6, "tasks": [
        {"name": "MVP follow-up", "description": "Finish the core functionality", "owner": "Engineering", "start_month": 3, "duration": 2, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 0},
        {"name": "Chip transition mechanics", "description": "Raise the floor when leaving a topic", "owner": "UX", "start_month": 4, "duration": 1, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 1},
        {"name": "Headline sync with Zen", "description": "Automatic stitching of top topics", "owner": "Zen + VK", "start_month": 4, "duration": 2, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 2},
        {"name": "Video formats in Zen", "description": "Text formats plus AI compilations", "owner": "Zen", "start_month": 5, "duration": 4, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 3},
        {"name": "SHOWCASE LAUNCH", "description": "Full news section", "owner": "Team", "start_month": 6, "duration": 0.5, "type": TaskType.MILESTONE, "status": TaskStatus.PENDING, "order_index": 4},
    ]},
    {"name": "Optimization and growth (Q3)", "description": "Metrics, A/B tests, scaling",
     "type": EpicType.OPTIMIZATION, "start_month": 6, "duration": 3, "order_index": 7, "tasks": [
        {"name": "Metrics analysis", "description": "Retention, TVT, ER, CTR", "owner": "Analytics", "start_month": 6, "duration": 3, "type": TaskType.GROWTH, "status": TaskStatus.PENDING, "order_index": 0},
        {"name": "A/B testing", "description": "Presentation format tests", "owner": "Product", "start_month": 7, "duration": 2, "type": TaskType.GROWTH, "status": TaskStatus.PENDING, "order_index": 1},
        {"name": "Publisher acquisition", "description": "Grow the content base", "owner": "Business", "start_month": 6.5, "duration": 2.5, "type": TaskType.GROWTH, "status": TaskStatus.PENDING, "order_index": 2},
        {"name": "CTR optimization", "description": "End cards after a clip is watched", "owner": "UX", "start_month": 7, "duration": 1.5, "type": TaskType.GROWTH, "status": TaskStatus.PENDING, "order_index": 3},
    ]},
    {"name": "Monetization (Q3-Q4)", "description": "Monetization launch and new formats",
     "type": EpicType.MONETIZATION, "start_month": 7, "duration": 5, "order_index": 8, "tasks": [
        {"name": "AI video compilations for Zen", "description": "Automatic assembly from Zen content", "owner": "AI/Zen", "start_month": 7, "duration": 2, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 0},
        {"name": "Clip monetization", "description": "Launch ads in news clips", "owner": "Business", "start_month": 9, "duration": 2, "type": TaskType.GROWTH, "status": TaskStatus.PENDING, "order_index": 1},
        {"name": "Personalization", "description": "Interest-based smart feed", "owner": "ML", "start_month": 10, "duration": 2, "type": TaskType.DEV, "status": TaskStatus.PENDING, "order_index": 2},
    ]},
]

def _plain(value):
    return value.value if hasattr(value, "value") else value

def build_seed_snapshot(
    clock: Callable[[], str],
    id_factory: Callable[[], str],
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
    project_description: Optional[str] = None,
) -> Dict:
    """Materializes the fixture above into a fresh snapshot with new ids."""
    timestamp = clock()
    project_id = project_id or id_factory()
    project = {
        "id": project_id,
        "name": project_name if project_name is not None else SEED_PROJECT["name"],
        "description": project_description if project_description is not None else SEED_PROJECT["description"],
        "created_at": timestamp,
        "updated_at": timestamp,
    }
    epics, tasks = [], []
    for seed_epic in SEED_EPICS:
        epic = {key: _plain(value) for key, value in seed_epic.items() if key != "tasks"}
        epic.update(id=id_factory(), project_id=project_id, created_at=timestamp, updated_at=timestamp)
        epics.append(epic)
        for seed_task in seed_epic["tasks"]:
            task = {key: _plain(value) for key, value in seed_task.items()}
            task.update(id=id_factory(), epic_id=epic["id"], created_at=timestamp, updated_at=timestamp)
            tasks.append(task)
    return {"project": project, "epics": epics, "tasks": tasks}
