"""Markdown report projection of a workshop session."""

from __future__ import annotations

from prompt_workshop.colors import color_hex
from prompt_workshop.models import Session, display_name_for

REPORT_TITLE = "# Prompt Workshop Report"


def _fenced(text: str) -> list[str]:
    return ["```", text, "```"]


def total_cost(session: Session) -> float:
    """Sum of response costs; only successful calls count."""
    return sum(response.metrics.cost for _, _, response in session.iter_responses() if response.succeeded)


def export_markdown(session: Session) -> str:
    """Render the full session history, metrics and winners as Markdown."""
    lines: list[str] = [
        REPORT_TITLE,
        f"Generated: {session.created_at}",
        "",
        "## Session Information",
        f"- **Session ID:** {session.id}",
        f"- **Models Tested:** {len(session.selected_models)}",
        f"- **Iterations:** {len(session.iterations)}",
        "",
        "### Model Colors (Lineage Tracking)",
    ]
    for model_id, color in session.model_colors.items():
        lines.append(f"- {display_name_for(model_id)}: {color} ({color_hex(color)})")
    lines.extend(["", "## Original Prompts", "", "### System Prompt"])
    lines.extend(_fenced(session.prompt_data.system or "(none)"))
    lines.extend(["", "### User Prompt"])
    lines.extend(_fenced(session.prompt_data.user))
    lines.append("")

    context = session.project_context
    if context is not None:
        lines.extend(
            [
                "### Project Context",
                f"- **Project:** {context.project_name}",
                f"- **Framework:** {context.framework}",
                f"- **Language:** {context.language}",
                "",
            ]
        )

    winners: list[str] = []
    for iteration in session.iterations:
        lines.extend([f"## Iteration {iteration.number}", f"Status: {iteration.status}"])
        if iteration.locked_model_id:
            lines.append(f"Locked to: {display_name_for(iteration.locked_model_id)}")
        lines.append("")

        for round_ in iteration.rounds:
            lines.append(f"### Round {round_.number} ({round_.type})")
            if round_.pivot:
                lines.append(f'**Human Pivot:** "{round_.pivot}"')
            lines.append("")

            for response in round_.responses:
                color = response.color or "unknown"
                winner_mark = " ⭐ WINNER" if response.is_winner else ""
                lines.extend(
                    [
                        f"#### {response.model}{winner_mark}",
                        f"- Color: {color} ({color_hex(response.color)})",
                        f"- Time: {response.metrics.time:.2f}s",
                        f"- Cost: ${response.metrics.cost:.4f}",
                        f"- Tokens: {response.metrics.tokens}",
                        "",
                    ]
                )
                if response.status == "success":
                    lines.append("**Response:**")
                    lines.extend(_fenced(response.text))
                elif response.status == "error":
                    lines.append(f"**Error:** {response.error}")
                lines.append("")
                if response.is_winner:
                    winners.append(f"Iteration {iteration.number}, Round {round_.number}: {response.model}")

    lines.extend(
        [
            "## Summary",
            f"- **Total Cost:** ${total_cost(session):.4f}",
            f"- **Total Rounds:** {sum(len(iteration.rounds) for iteration in session.iterations)}",
            "",
        ]
    )
    if winners:
        lines.append("### Winners by Round")
        lines.extend(f"- {entry}" for entry in winners)
        lines.append("")
    return "\n".join(lines)
