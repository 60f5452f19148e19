from __future__ import annotations

from life_game.models import Achievement, DailyResetResult, LevelUpEvent, ProgressDelta, XpGrant
from life_game.service import StatusView


def _bar(ratio: float, width: int = 20) -> str:
    filled = max(0, min(width, int(round(ratio * width))))
    return "█" * filled + "░" * (width - filled)


def xp_message(grant: XpGrant) -> str | None:
    if not grant.source:
        return None
    return f"+{grant.amount} XP ({grant.source})"


def level_up_message(event: LevelUpEvent) -> str:
    return f"🎉 Level {event.level}! +{event.coins_awarded} coins"


def achievement_message(achievement: Achievement) -> str:
    return f"🏆 Achievement unlocked: {achievement.icon} {achievement.title}"


def grant_notifications(grants: list[XpGrant]) -> list[str]:
    lines: list[str] = []
    for grant in grants:
        line = xp_message(grant)
        if line:
            lines.append(line)
        lines.extend(level_up_message(e) for e in grant.level_ups)
    return lines


def progress_notifications(delta: ProgressDelta, project_title: str) -> list[str]:
    lines = grant_notifications(delta.xp_grants)
    if delta.project_completed:
        lines.append(f'🎉 Project "{project_title}" completed!')
    if delta.project_reopened:
        lines.append(f'Project "{project_title}" reopened')
    lines.extend(achievement_message(a) for a in delta.unlocked)
    return lines


def daily_reset_message(result: DailyResetResult) -> str:
    if result.streak_continued:
        return f"🔥 Streak continues: {result.streak} days"
    return "A new streak starts today"


def status_message(view: StatusView) -> str:
    lines = [
        "📊 Status",
        "",
        f"⚡ Level {view.level}",
        f"📊 XP: {view.xp:,} / {view.xp_to_next_level:,}",
        f"{_bar(view.xp_progress_ratio)} {view.xp_progress_ratio * 100:.1f}%",
        f"🪙 Coins: {view.coins:,}",
        f"🔥 Streak: {view.streak} (best {view.max_streak})",
        f"✅ Tasks done: {view.completed_tasks}",
        f"📁 Active projects: {view.active_projects}",
        f"🏆 Achievements: {view.achievements_unlocked}/{view.achievements_total}",
    ]
    active = [p for p in view.projects if not p.completed]
    if active:
        lines.append("")
        for project in active:
            flag = " ⚠️ overdue" if project.overdue else (" ⏳ due soon" if project.due_soon else "")
            lines.append(f"• {project.title}: {project.progress}%{flag}")
    else:
        lines.extend(["", "No active projects"])
    return "\n".join(lines)
