"""NiceGUI entrypoint for Prompt Workshop."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Awaitable, Callable

from nicegui import ui
from nicegui.events import UploadEventArguments

from prompt_workshop.catalog import ModelCatalog
from prompt_workshop.config import AppConfig, ConfigError, get_config
from prompt_workshop.diffs import response_diff
from prompt_workshop.engine import WorkshopBusyError, WorkshopEngine
from prompt_workshop.export import export_markdown
from prompt_workshop.feedback import session_feedback_stats
from prompt_workshop.history_view import format_response_header, format_round_header
from prompt_workshop.llm_client import build_adapters
from prompt_workshop.models import ProjectContext, Response, Session, WorkshopError
from prompt_workshop.persistence import JsonSessionStore, load_session_from_text
from prompt_workshop.pricing import PricingTable
from prompt_workshop.round_executor import RoundExecutor
from prompt_workshop.synthesis import SYNTHESIS_TEMPLATES, SynthesisEngine, SynthesisError

EXPORTS_DIR = Path("exports")
LOG_FILE = Path("logs/app.log")
LOGGER = logging.getLogger("prompt_workshop.ui")
FEEDBACK_OPTIONS = {1: "👍", 0: "–", -1: "👎"}


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    target_path = path.resolve()
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            continue
        handler_path = Path(getattr(handler, "baseFilename", "")).resolve()
        if handler_path == target_path:
            return True
    return False


def _configure_logging() -> None:
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    for logger in (
        LOGGER,
        logging.getLogger("prompt_workshop.llm_client"),
        logging.getLogger("prompt_workshop.engine"),
        logging.getLogger("prompt_workshop.round_executor"),
        logging.getLogger("prompt_workshop.synthesis"),
    ):
        if not _has_file_handler(logger, LOG_FILE):
            file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False


def _load_config() -> tuple[AppConfig, str | None]:
    try:
        return get_config(), None
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return AppConfig(), str(exc)


def build_ui() -> None:
    """Render the workshop page: setup, round history, commands and synthesis."""
    config, config_error = _load_config()
    catalog = ModelCatalog()
    progress: dict[str, str] = {}

    def on_progress(model_id: str, state: str) -> None:
        progress[model_id] = state
        progress_label.set_text(
            "Progress: " + ", ".join(f"{catalog.display_name(key)}={value}" for key, value in progress.items())
        )

    adapters = build_adapters(config)
    executor = RoundExecutor(
        adapters=adapters,
        api_key_for=config.api_key_for,
        catalog=catalog,
        pricing=PricingTable(),
        stagger_seconds=config.dispatch_stagger_seconds,
        on_progress=on_progress,
    )
    engine = WorkshopEngine(executor, JsonSessionStore(config.session_file))
    synthesis_engine = SynthesisEngine(
        adapters=adapters,
        api_key_for=config.api_key_for,
        catalog=catalog,
        max_response_chars=config.synthesis_max_response_chars,
    )

    ui.label("Prompt Workshop").classes("text-3xl font-bold")
    ui.label("Multi-model prompt rounds, checkpoints and synthesis").classes("text-sm text-gray-600")

    with ui.card().classes("w-full"):
        ui.label("Run Status").classes("text-xl font-semibold")
        status_label = ui.label("Status: Idle").classes("font-medium")
        error_label = ui.label(f"Error: {config_error or 'None'}").classes("text-sm text-red-700")
        progress_label = ui.label("Progress: -").classes("text-sm text-gray-700")
        providers = ", ".join(config.configured_providers()) or "(none)"
        ui.label(f"Configured providers: {providers}").classes("text-sm text-gray-700")

    def set_status(value: str) -> None:
        status_label.set_text(f"Status: {value}")

    def set_error(message: str) -> None:
        error_label.set_text(f"Error: {message}")

    with ui.card().classes("w-full"):
        ui.label("Workshop Setup").classes("text-xl font-semibold")
        model_options = {model.id: f"{model.name} ({model.provider})" for model in catalog.models()}
        models_input = ui.select(options=model_options, multiple=True, label="Models").classes("w-full")
        system_input = ui.textarea(label="System prompt").props("autogrow").classes("w-full")
        user_input = ui.textarea(label="User prompt").props("autogrow").classes("w-full")
        with ui.expansion("Project context (optional)").classes("w-full"):
            project_name_input = ui.input(label="Project name").classes("w-full")
            framework_input = ui.input(label="Framework").classes("w-full")
            language_input = ui.input(label="Language").classes("w-full")
            file_tree_input = ui.textarea(label="File tree").props("autogrow").classes("w-full")

    def project_context_from_ui() -> ProjectContext | None:
        name = str(project_name_input.value or "").strip()
        if not name:
            return None
        return ProjectContext(
            project_name=name,
            framework=str(framework_input.value or "").strip(),
            language=str(language_input.value or "").strip(),
            file_tree=str(file_tree_input.value or ""),
        )

    async def run_command(label: str, command: Callable[[], Awaitable[Session]]) -> bool:
        progress.clear()
        try:
            set_status(f"Running {label}")
            set_error("None")
            await command()
            set_status("Idle")
            ui.notify(f"{label} completed.", type="positive")
            return True
        except WorkshopBusyError as exc:
            ui.notify(str(exc), type="warning")
        except WorkshopError as exc:
            set_status("Idle")
            set_error(str(exc))
            ui.notify(str(exc), type="negative")
        except Exception as exc:
            LOGGER.exception("%s failed unexpectedly.", label)
            set_status("Error")
            set_error(f"{label} failed: {exc}")
            ui.notify(f"{label} failed.", type="negative")
        finally:
            render_session()
        return False

    with ui.card().classes("w-full"):
        ui.label("Commands").classes("text-xl font-semibold")
        pivot_input = ui.input(label="Pivot / human direction").classes("w-full")

        async def start_action() -> None:
            await run_command(
                "Start workshop",
                lambda: engine.start_workshop(
                    list(models_input.value or []),
                    str(system_input.value or ""),
                    str(user_input.value or ""),
                    project_context_from_ui(),
                ),
            )

        async def execute_round_action() -> None:
            pivot = str(pivot_input.value or "")
            await run_command("Execute round", lambda: engine.execute_round(pivot))

        async def checkpoint_action() -> None:
            pivot = str(pivot_input.value or "")
            await run_command("Mark checkpoint", lambda: engine.mark_checkpoint(pivot))

        def reset_action() -> None:
            try:
                engine.reset()
                set_status("Idle")
                set_error("None")
                ui.notify("Workshop reset.", type="positive")
            except WorkshopBusyError as exc:
                ui.notify(str(exc), type="warning")
            render_session()

        def load_action() -> None:
            try:
                if engine.load() is None:
                    ui.notify("No saved session found.", type="warning")
                else:
                    ui.notify("Session restored.", type="positive")
                set_error("None")
            except Exception as exc:
                LOGGER.exception("Load failed unexpectedly.")
                set_status("Error")
                set_error(f"Load failed: {exc}")
                ui.notify("Load failed.", type="negative")
            render_session()

        def export_action() -> None:
            session = engine.session
            if session is None:
                ui.notify("Nothing to export yet.", type="warning")
                return
            try:
                EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
                target = EXPORTS_DIR / f"workshop-{timestamp}.md"
                target.write_text(export_markdown(session), encoding="utf-8")
                ui.download(str(target))
                ui.notify(f"Exported report to {target}", type="positive")
            except Exception as exc:
                LOGGER.exception("Export failed unexpectedly.")
                set_error(f"Export failed: {exc}")
                ui.notify("Export failed.", type="negative")

        with ui.row().classes("w-full gap-2"):
            ui.button("Start workshop", on_click=start_action)
            ui.button("Execute round", on_click=execute_round_action)
            ui.button("Mark checkpoint", on_click=checkpoint_action)
            ui.button("Export Markdown", on_click=export_action)
            ui.button("Load last session", on_click=load_action)
            ui.button("Reset", on_click=reset_action)

        def upload_session_action(event: UploadEventArguments) -> None:
            try:
                loaded = load_session_from_text(event.content.read().decode("utf-8"))
                engine.store.save(loaded)
                engine.load()
                set_error("None")
                ui.notify(f"Imported session from {event.name}", type="positive")
            except Exception as exc:
                LOGGER.exception("Session import failed unexpectedly.")
                set_status("Error")
                set_error(f"Import failed: {exc}")
                ui.notify("Session import failed.", type="negative")
            render_session()

        ui.label("Import session JSON").classes("text-sm text-gray-700")
        ui.upload(on_upload=upload_session_action, auto_upload=True).props("accept=.json").classes("w-full")

    with ui.card().classes("w-full"):
        ui.label("Rounds").classes("text-xl font-semibold")
        history_container = ui.column().classes("w-full gap-2")

    with ui.dialog() as diff_dialog, ui.card().classes("w-[92vw] max-w-5xl"):
        ui.label("Response diff").classes("text-lg font-semibold")
        diff_textarea = ui.textarea(label="Unified diff").props("readonly autogrow").classes("w-full")
        ui.button("Close", on_click=diff_dialog.close)

    def show_diff(previous: Response, current: Response) -> None:
        diff_textarea.value = response_diff(previous, current) or "(no differences)"
        diff_dialog.open()

    winner_choice: dict[str, str] = {}

    with ui.dialog() as winner_dialog, ui.card().classes("w-[32rem]"):
        winner_dialog_label = ui.label("Winner picked").classes("text-lg font-semibold")
        loser_input = ui.select(options={}, label="Losing response").classes("w-full")
        replacement_model_input = ui.select(
            options={model.id: model.name for model in catalog.models()},
            label="Replacement model",
        ).classes("w-full")

        async def winner_action(action: str) -> None:
            winner_dialog.close()
            winner_id = winner_choice.get("response_id", "")
            loser_id = str(loser_input.value or "") or None
            replacement = str(replacement_model_input.value or "") or None
            await run_command(
                f"Winner action ({action})",
                lambda: engine.apply_winner_action(action, winner_id, loser_id, replacement),
            )

        with ui.row().classes("gap-2"):
            ui.button("Keep both", on_click=lambda: winner_action("keep-both"))
            ui.button("Lock winner", on_click=lambda: winner_action("lock-winner"))
            ui.button("Replace loser", on_click=lambda: winner_action("replace-loser"))

    async def pick_winner(response: Response) -> None:
        if not await run_command("Select winner", lambda: engine.select_winner(response.id)):
            return
        session = engine.session
        iteration = session.current_iteration if session is not None else None
        if iteration is None or not iteration.rounds or iteration.locked_model_id is not None:
            return
        losers = {
            item.id: item.model or item.model_id
            for item in iteration.rounds[-1].responses
            if item.id != response.id
        }
        if not losers:
            return
        winner_choice["response_id"] = response.id
        winner_dialog_label.set_text(f"Winner: {response.model or response.model_id}")
        loser_input.options = losers
        loser_input.value = next(iter(losers))
        loser_input.update()
        replacement_model_input.value = None
        winner_dialog.open()

    def render_response(response: Response, *, latest: bool, previous: Response | None) -> None:
        with ui.card().classes("w-full"):
            ui.label(format_response_header(response)).classes("font-medium")
            if response.status == "error":
                ui.label(response.error or "Unknown error").classes("text-sm text-red-700")
            else:
                ui.markdown(response.text).classes("text-sm")
            with ui.row().classes("gap-2 items-center"):
                if latest and response.succeeded:
                    ui.button(
                        "Pick winner",
                        on_click=lambda item=response: pick_winner(item),
                    ).props("size=sm")
                    ui.button(
                        "Lock model",
                        on_click=lambda mid=response.model_id: run_command("Lock in", lambda: engine.lock_in(mid)),
                    ).props("size=sm")
                replacement_input = ui.select(
                    options={model.id: model.name for model in catalog.models()},
                    label="Replace with",
                ).classes("w-48")
                ui.button(
                    "Replace",
                    on_click=lambda rid=response.id, field=replacement_input: run_command(
                        "Replace model", lambda: engine.replace_model(rid, str(field.value or ""))
                    ),
                ).props("size=sm")
                relevance_input = ui.select(
                    options=FEEDBACK_OPTIONS,
                    value=response.feedback.relevance if response.feedback else 0,
                    label="Relevance",
                ).classes("w-28")
                tone_input = ui.select(
                    options=FEEDBACK_OPTIONS,
                    value=response.feedback.tone if response.feedback else 0,
                    label="Tone",
                ).classes("w-28")
                ui.button(
                    "Save feedback",
                    on_click=lambda rid=response.id, rel=relevance_input, tone=tone_input: run_command(
                        "Record feedback",
                        lambda: engine.record_feedback(rid, int(rel.value or 0), int(tone.value or 0)),
                    ),
                ).props("size=sm")
                if previous is not None and previous.succeeded and response.succeeded:
                    ui.button(
                        "Diff vs previous round",
                        on_click=lambda prev=previous, cur=response: show_diff(prev, cur),
                    ).props("size=sm flat")

    def render_session() -> None:
        history_container.clear()
        session = engine.session
        with history_container:
            if session is None:
                ui.label("No workshop in progress.").classes("text-sm text-gray-600")
                return
            for iteration in session.iterations:
                lock_note = f" | locked to {iteration.locked_model_id}" if iteration.locked_model_id else ""
                ui.label(f"Iteration {iteration.number} ({iteration.status}){lock_note}").classes(
                    "text-lg font-semibold"
                )
                for index, round_ in enumerate(iteration.rounds):
                    is_latest = iteration is session.current_iteration and index == len(iteration.rounds) - 1
                    earlier = iteration.rounds[index - 1] if index > 0 else None
                    with ui.expansion(format_round_header(iteration, round_), value=is_latest).classes("w-full"):
                        for response in round_.responses:
                            previous = None
                            if earlier is not None:
                                previous = next(
                                    (item for item in earlier.responses if item.model_id == response.model_id),
                                    None,
                                )
                            render_response(response, latest=is_latest, previous=previous)
            stats = session_feedback_stats(session)
            rated = [entry for entry in stats.values() if entry.total_responses]
            if rated:
                ui.label("Feedback by model").classes("text-lg font-semibold")
                for entry in rated:
                    ui.label(
                        f"{catalog.display_name(entry.model_id)}: relevance={entry.relevance.score:+d} "
                        f"tone={entry.tone.score:+d} over {entry.total_responses} rated responses"
                    ).classes("text-sm")

    with ui.card().classes("w-full"):
        ui.label("Synthesis").classes("text-xl font-semibold")
        template_input = ui.select(
            options={template.id: template.name for template in SYNTHESIS_TEMPLATES.values()},
            value="consensus",
            label="Synthesis mode",
        ).classes("w-full")
        synthesis_model_input = ui.input(label="Synthesis model", value=config.synthesis_model).classes("w-full")
        synthesis_output = ui.column().classes("w-full gap-2")

        async def synthesize_action() -> None:
            session = engine.session
            if session is None:
                ui.notify("Start a workshop before running synthesis.", type="warning")
                return
            try:
                set_status("Running synthesis")
                result = await synthesis_engine.synthesize(
                    session,
                    str(template_input.value or "consensus"),
                    str(synthesis_model_input.value or config.synthesis_model).strip(),
                )
                synthesis_output.clear()
                with synthesis_output:
                    for insight in result.insights:
                        ui.markdown(f"**{insight.title}**: {insight.desc}").classes("text-sm")
                    ui.textarea(label="Final prompt", value=result.final_prompt).props(
                        "readonly autogrow"
                    ).classes("w-full")
                set_status("Idle")
                ui.notify("Synthesis completed.", type="positive")
            except SynthesisError as exc:
                set_status("Idle")
                set_error(str(exc))
                ui.notify(str(exc), type="negative")
            except Exception as exc:
                LOGGER.exception("Synthesis failed unexpectedly.")
                set_status("Error")
                set_error(f"Synthesis failed: {exc}")
                ui.notify("Synthesis failed.", type="negative")

        ui.button("Synthesize", on_click=synthesize_action)

    try:
        engine.load()
    except Exception as exc:
        LOGGER.exception("Restoring the saved session failed.")
        set_error(f"Could not restore saved session: {exc}")
    render_session()


def main() -> None:
    host = "127.0.0.1"
    port = 8080
    _configure_logging()
    print(f"Starting Prompt Workshop at http://{host}:{port}")
    build_ui()
    ui.run(host=host, port=port, title="Prompt Workshop", show=False, reload=False)


if __name__ == "__main__":
    main()
