"""Prompt builders for system messages and discussion rounds."""

from __future__ import annotations

from prompt_workshop.models import ProjectContext, Response, ResponseFeedback, Round

_FEEDBACK_LABELS = {1: "Positive", 0: "Neutral", -1: "Negative"}
WINNER_CLOSING = (
    "Please respond to the above discussion, building on the winning approach "
    "while offering your own perspective."
)
OPEN_CLOSING = (
    "Please respond to the above discussion, building on the strongest ideas "
    "while offering your own perspective."
)


def build_system_message(system_prompt: str, project_context: ProjectContext | None = None) -> str:
    """Append project context, when present, to the session's system prompt."""
    system_text = str(system_prompt or "")
    if project_context is None:
        return system_text
    lines = [
        "Project Context:",
        f"You are working on: {project_context.project_name}",
        f"Framework: {project_context.framework}",
        f"Language: {project_context.language}",
    ]
    if project_context.file_tree.strip():
        lines.extend(["", "File Structure:", project_context.file_tree.strip()])
    context_block = "\n".join(lines)
    if not system_text.strip():
        return context_block
    return f"{system_text}\n\n{context_block}"


def describe_feedback(feedback: ResponseFeedback) -> list[str]:
    return [
        f"- Technical Relevance: {_FEEDBACK_LABELS.get(feedback.relevance, 'Neutral')}",
        f"- Tone & Delivery: {_FEEDBACK_LABELS.get(feedback.tone, 'Neutral')}",
    ]


def _response_block(label: str, response: Response) -> list[str]:
    return [f"{label}: [{response.model}]", response.text.strip(), ""]


def build_discussion_prompt(
    user_prompt: str,
    previous_round: Round | None,
    pivot: str | None = None,
) -> str:
    """Fold the previous round's outcome and human direction into the next prompt.

    The winner (if one was picked) is presented first and the remaining
    successful responses follow as the other models. Errored responses carry
    no text and are left out.
    """
    lines: list[str] = [str(user_prompt or "").rstrip()]
    winner: Response | None = None

    if previous_round is not None:
        successful = [response for response in previous_round.responses if response.succeeded]
        winner = next((response for response in successful if response.is_winner), None)
        others = [response for response in successful if response is not winner]
        if successful:
            lines.extend(["", f"--- Round {previous_round.number} Results ---"])
            if winner is not None:
                lines.extend(_response_block("Winner", winner))
            for response in others:
                lines.extend(_response_block("Other Model" if winner is not None else "Model", response))
            if winner is not None:
                lines.append(
                    f"[{winner.model}] was selected as the winner for Round {previous_round.number}."
                )
            if winner is not None and winner.feedback is not None:
                lines.extend(["", f"Winner Feedback ([{winner.model}]):"])
                lines.extend(describe_feedback(winner.feedback))
            for response in others:
                if response.feedback is None:
                    continue
                lines.extend(["", f"Other Model Feedback ([{response.model}]):"])
                lines.extend(describe_feedback(response.feedback))

    normalized_pivot = str(pivot or "").strip()
    if normalized_pivot:
        lines.extend(["", f'Human Direction: "{normalized_pivot}"'])

    lines.extend(["", WINNER_CLOSING if winner is not None else OPEN_CLOSING])
    return "\n".join(lines)
