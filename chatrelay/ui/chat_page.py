"""NiceGUI chat interface with plain-text streaming support."""

import base64
import logging

import httpx
from nicegui import app, background_tasks, ui

from chatrelay.models.schemas import Role, SettingsUpdate, StoredMessage
from chatrelay.relay.config import get_relay_config
from chatrelay.store.client_state import ClientSettings, ModelHistory
from chatrelay.ui.access import AccessGate
from chatrelay.ui.client import (
    ChatApiError,
    fetch_settings,
    stream_chat_response,
    sync_settings,
    upload_knowledge_file,
)
from chatrelay.ui.session import ChatSession, build_chat_request

logger = logging.getLogger(__name__)

APP_TITLE = "Koi Assistant"

PROVIDER_PRESETS = {
    "AIHubMix": "https://aihubmix.com/v1/chat/completions",
    "OpenAI": "https://api.openai.com/v1/chat/completions",
    "DeepSeek": "https://api.deepseek.com/v1/chat/completions",
    "OpenRouter": "https://openrouter.ai/api/v1/chat/completions",
}

CUSTOM_CSS = """
<style>
    body { background: #f9fafb; min-height: 100vh; }

    .app-card {
        background: white;
        border-radius: 12px;
        box-shadow: 0 1px 4px rgba(0, 0, 0, 0.08);
        overflow: hidden;
    }

    .brand { background: linear-gradient(90deg, #f97316 0%, #ef4444 100%); }

    .bubble-user {
        background: #2563eb;
        color: white;
        border-radius: 16px 16px 4px 16px;
    }

    .bubble-assistant {
        background: white;
        border: 1px solid #e5e7eb;
        color: #111827;
        border-radius: 16px 16px 16px 4px;
    }

    .bubble-assistant .nicegui-markdown p { margin: 0.25rem 0; }
    .bubble-assistant pre { font-size: 0.75rem; }
</style>
"""


def sync_in_background(patch: SettingsUpdate) -> None:
    """Fire-and-forget mirror of a settings change."""
    background_tasks.create(sync_settings(patch), name="sync-settings")


def render_login(gate: AccessGate) -> None:
    """Passphrase prompt shown before the chat when the gate is enabled."""

    def submit() -> None:
        if gate.unlock(password.value or ""):
            ui.notify("Welcome back!", type="positive")
            ui.navigate.to("/")
        else:
            password.value = ""
            ui.notify("Wrong passphrase", type="negative")

    with ui.column().classes("w-full min-h-screen items-center justify-center"):
        with ui.card().classes("w-80 gap-4"):
            ui.label(APP_TITLE).classes("text-lg font-semibold")
            password = ui.input(
                "Passphrase", password=True, password_toggle_button=True
            ).classes("w-full").on("keydown.enter", submit)
            ui.button("Enter", on_click=submit).classes("w-full")


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)

    storage = app.storage.user
    config = get_relay_config()

    gate = AccessGate(storage, config.access_password)
    if not gate.is_open():
        render_login(gate)
        return

    client_settings = ClientSettings(storage)
    model_history = ModelHistory(storage)
    session = ChatSession(storage)
    pending_image: dict[str, str | None] = {"url": None}

    messages_container: ui.column
    pending_view: ui.markdown | None = None
    input_field: ui.textarea
    send_btn: ui.button
    model_select: ui.select
    key_hint: ui.label

    def render_avatar(is_user: bool) -> None:
        color = "bg-blue-600" if is_user else "bg-blue-100"
        icon_color = "text-white" if is_user else "text-blue-600"
        with ui.element("div").classes(
            f"w-8 h-8 rounded-full flex items-center justify-center {color}"
        ):
            ui.icon("person" if is_user else "smart_toy").classes(f"{icon_color} text-base")

    def render_message(msg: StoredMessage) -> ui.markdown | None:
        """Render one bubble; returns the markdown view of the pending answer."""
        nonlocal pending_view
        is_user = msg.role == Role.USER
        align = "justify-end" if is_user else "justify-start"
        view = None

        with ui.row().classes(f"w-full {align} gap-3 items-start"):
            if not is_user:
                render_avatar(False)
            with ui.column().classes("max-w-[75%] gap-1"):
                bubble = "bubble-user" if is_user else "bubble-assistant"
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if msg.image_url:
                        ui.image(msg.image_url).classes("w-48 rounded mb-2")
                    if msg.document_name:
                        with ui.row().classes("items-center gap-1 text-xs opacity-80"):
                            ui.icon("description")
                            ui.label(msg.document_name)
                    if is_user:
                        ui.label(msg.content).classes("text-sm whitespace-pre-wrap")
                    elif msg.id == session.pending_id and not msg.content:
                        view = ui.markdown("_Thinking..._").classes("text-sm text-gray-500")
                    else:
                        view = ui.markdown(msg.content).classes("text-sm")
                with ui.row().classes("gap-1 items-center"):
                    ui.button(
                        icon="delete_outline",
                        on_click=lambda m=msg: delete_message(m.id),
                    ).props("flat dense round size=xs color=grey")
            if is_user:
                render_avatar(True)

        if msg.id == session.pending_id:
            pending_view = view
        return view

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            messages = session.messages
            if not messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-2"):
                    ui.icon("smart_toy").classes("text-5xl text-gray-300")
                    ui.label(f"Welcome to {APP_TITLE}").classes("text-lg text-gray-600")
                    ui.label(
                        "Attach images or knowledge files (.txt, .md, .json, .csv, .pdf)"
                    ).classes("text-sm text-blue-600")
            for msg in messages:
                render_message(msg)

    def delete_message(message_id: str) -> None:
        if session.is_streaming:
            return
        session.delete_message(message_id)
        refresh_messages()

    def refresh_key_hint() -> None:
        has_key = bool(client_settings.load().api_key)
        key_hint.set_visibility(not has_key)
        placeholder = "Ask anything..." if has_key else "Configure an API key in settings first"
        input_field.props(f'placeholder="{placeholder}"')

    async def send_message() -> None:
        settings = client_settings.load()
        text = (input_field.value or "").strip()
        if not settings.api_key:
            ui.notify("Configure an API key in settings first", type="warning")
            return
        if not text or session.is_streaming:
            return

        input_field.value = ""
        send_btn.disable()

        session.begin_exchange(text, image_url=pending_image["url"])
        pending_image["url"] = None
        refresh_messages()

        request = build_chat_request(settings, session.request_messages())

        def on_chunk(chunk: str) -> None:
            content = session.append_delta(chunk)
            if pending_view is not None:
                pending_view.classes(remove="text-gray-500")
                pending_view.set_content(content)

        def on_complete() -> None:
            session.complete()
            send_btn.enable()
            refresh_messages()

        def on_error(error: str) -> None:
            session.fail()
            send_btn.enable()
            refresh_messages()
            ui.notify(error, type="negative", multi_line=True)

        await stream_chat_response(
            request.model_dump(mode="json", by_alias=True, exclude_none=True),
            on_chunk,
            on_complete,
            on_error,
        )

    async def attach_image(e) -> None:
        data = await e.file.read()
        mime = e.file.content_type or "image/png"
        pending_image["url"] = f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"
        ui.notify(f"Image attached: {e.file.name}")
        image_dialog.close()

    def new_chat() -> None:
        if session.is_streaming:
            return
        session.new_chat()
        refresh_messages()

    def select_model(e) -> None:
        name = (e.value or "").strip()
        if not name:
            return
        client_settings.update(model_name=name)
        model_history.add(name)
        model_select.set_options(model_history.models(), value=name)
        sync_in_background(SettingsUpdate(model_name=name))

    async def pull_from_server() -> None:
        try:
            server_settings = await fetch_settings()
        except (ChatApiError, httpx.HTTPError) as e:
            logger.warning(f"Pulling settings failed: {e}")
            ui.notify("Failed to update the knowledge base", type="negative")
            return
        client_settings.save(server_settings)
        model_select.set_options(model_history.models(), value=server_settings.model_name)
        refresh_key_hint()
        ui.notify("Knowledge base updated to the latest version", type="positive")

    # === Settings dialog ===
    with ui.dialog() as settings_dialog, ui.card().classes("w-[600px] max-w-full gap-3"):
        ui.label("AI settings").classes("text-lg font-semibold")
        current = client_settings.load()
        base_url_input = ui.input("API base URL", value=current.api_base_url).classes("w-full")
        with ui.row().classes("gap-1"):
            for label, url in PROVIDER_PRESETS.items():
                ui.button(label, on_click=lambda u=url: base_url_input.set_value(u)).props(
                    "flat dense size=sm"
                )
        api_key_input = ui.input(
            "API key", value=current.api_key, password=True, password_toggle_button=True
        ).classes("w-full")
        model_input = ui.input("Model name", value=current.model_name).classes("w-full")
        prompt_input = ui.textarea("System prompt", value=current.system_prompt).classes("w-full")
        temperature_label = ui.label(f"Temperature: {current.temperature:.1f}").classes("text-sm")
        temperature_slider = ui.slider(
            min=0.0,
            max=2.0,
            step=0.1,
            value=current.temperature,
            on_change=lambda e: temperature_label.set_text(f"Temperature: {e.value:.1f}"),
        )

        ui.separator()
        ui.label("Knowledge base").classes("font-medium")
        knowledge_list = ui.column().classes("w-full gap-1")

        def refresh_knowledge() -> None:
            knowledge_list.clear()
            files = client_settings.load().knowledge_base_files
            with knowledge_list:
                if not files:
                    ui.label("No knowledge files").classes("text-sm text-gray-500")
                for f in files:
                    with ui.row().classes("w-full items-center justify-between"):
                        ui.label(f"{f.filename} ({f.size} bytes)").classes("text-sm")
                        ui.button(
                            icon="close", on_click=lambda fid=f.id: remove_knowledge(fid)
                        ).props("flat dense round size=sm")

        def remove_knowledge(file_id: str) -> None:
            files = [f for f in client_settings.load().knowledge_base_files if f.id != file_id]
            client_settings.update(knowledge_base_files=files)
            sync_in_background(SettingsUpdate(knowledge_base_files=files))
            refresh_knowledge()

        async def handle_knowledge_upload(e) -> None:
            content = await e.file.read()
            try:
                knowledge_file, warning = await upload_knowledge_file(e.file.name, content)
            except ChatApiError as err:
                ui.notify(str(err), type="negative")
                return
            except httpx.HTTPError as err:
                logger.error(f"Knowledge upload failed: {err}")
                ui.notify("Failed to read the file", type="negative")
                return
            files = [*client_settings.load().knowledge_base_files, knowledge_file]
            client_settings.update(knowledge_base_files=files)
            refresh_knowledge()
            if warning:
                ui.notify(warning, type="warning")
            ui.notify(f'Knowledge file "{knowledge_file.filename}" uploaded', type="positive")

        ui.upload(
            label="Upload knowledge file",
            on_upload=handle_knowledge_upload,
            auto_upload=True,
        ).props('accept=".txt,.md,.json,.csv,.pdf"').classes("w-full")
        refresh_knowledge()

        def save_settings() -> None:
            settings = client_settings.update(
                api_key=(api_key_input.value or "").strip(),
                api_base_url=(base_url_input.value or "").strip().lstrip("@"),
                system_prompt=prompt_input.value or "",
                temperature=float(temperature_slider.value),
                model_name=(model_input.value or "").strip() or client_settings.load().model_name,
            )
            model_history.add(settings.model_name)
            model_select.set_options(model_history.models(), value=settings.model_name)
            sync_in_background(
                SettingsUpdate(
                    api_key=settings.api_key,
                    api_base_url=settings.api_base_url,
                    system_prompt=settings.system_prompt,
                    temperature=settings.temperature,
                    model_name=settings.model_name,
                )
            )
            refresh_key_hint()
            ui.notify("Settings saved", type="positive")
            settings_dialog.close()

        with ui.row().classes("w-full justify-end gap-2"):
            ui.button("Cancel", on_click=settings_dialog.close).props("flat")
            ui.button("Save", on_click=save_settings)

    def open_settings() -> None:
        latest = client_settings.load()
        base_url_input.value = latest.api_base_url
        api_key_input.value = latest.api_key
        model_input.value = latest.model_name
        prompt_input.value = latest.system_prompt
        temperature_slider.value = latest.temperature
        refresh_knowledge()
        settings_dialog.open()

    # === History dialog ===
    with ui.dialog() as history_dialog, ui.card().classes("w-[700px] max-w-full gap-3"):
        ui.label("Chat history").classes("text-lg font-semibold")
        search_input = ui.input("Search chat history...").classes("w-full")
        history_list = ui.column().classes("w-full gap-2")

        def refresh_history() -> None:
            history_list.clear()
            query = search_input.value or ""
            histories = session.history.search(query)
            with history_list:
                ui.label(f"{len(histories)} conversation(s)").classes("text-sm text-gray-600")
                if not histories and query:
                    ui.label(f'No conversations contain "{query}"').classes("text-gray-500")
                elif not histories:
                    ui.label("No saved conversations yet").classes("text-gray-500")
                for history in histories:
                    with ui.row().classes(
                        "w-full items-start justify-between p-3 bg-gray-50 rounded-lg"
                    ):
                        with ui.column().classes("gap-0 cursor-pointer").on(
                            "click", lambda h=history: load_history(h.id)
                        ):
                            ui.label(history.title).classes("font-medium text-sm")
                            ui.label(f"{len(history.messages)} messages").classes(
                                "text-xs text-gray-400"
                            )
                        ui.button(
                            icon="delete",
                            on_click=lambda h=history: delete_history(h.id),
                        ).props("flat dense round color=red")

        def load_history(history_id: str) -> None:
            if session.is_streaming:
                return
            if session.load_history(history_id):
                refresh_messages()
                history_dialog.close()
                ui.notify("Conversation loaded")

        def delete_history(history_id: str) -> None:
            session.history.delete(history_id)
            refresh_history()
            ui.notify("Conversation deleted")

        def clear_history() -> None:
            session.history.clear()
            search_input.value = ""
            refresh_history()
            ui.notify("All chat history cleared")

        search_input.on_value_change(lambda _: refresh_history())
        with ui.row().classes("w-full justify-end"):
            ui.button("Clear all", icon="delete_sweep", on_click=clear_history).props(
                "flat color=red"
            )

    def open_history() -> None:
        refresh_history()
        history_dialog.open()

    # === Image attachment dialog ===
    with ui.dialog() as image_dialog, ui.card():
        ui.upload(label="Attach image", on_upload=attach_image, auto_upload=True).props(
            'accept="image/*"'
        )

    # === UI Layout ===
    with (
        ui.element("div").classes("w-full min-h-screen p-4"),
        ui.column().classes("w-full max-w-4xl mx-auto app-card").style(
            "height: calc(100vh - 2rem)"
        ),
    ):
        # Header
        with ui.row().classes("w-full brand px-5 py-3 items-center justify-between"):
            with ui.row().classes("items-center gap-2"):
                ui.icon("smart_toy").classes("text-white text-2xl")
                ui.label(APP_TITLE).classes("text-lg font-bold text-white")
            with ui.row().classes("items-center gap-1"):
                ui.button(icon="add", on_click=new_chat).props("flat round color=white")
                ui.button(icon="history", on_click=open_history).props("flat round color=white")
                ui.button(icon="cloud_download", on_click=pull_from_server).props(
                    "flat round color=white"
                ).tooltip("Pull the latest knowledge base")
                ui.button(icon="settings", on_click=open_settings).props(
                    "flat round color=white"
                )

        # Model picker
        with ui.row().classes("w-full px-5 items-center gap-2"):
            ui.label("Model:").classes("text-sm text-gray-600")
            model_select = ui.select(
                model_history.models(),
                value=client_settings.load().model_name,
                with_input=True,
                new_value_mode="add-unique",
                on_change=select_model,
            ).classes("flex-grow").props("dense")

        # Messages
        with (
            ui.scroll_area().classes("flex-grow w-full bg-gray-50"),
            ui.column().classes("w-full p-5"),
        ):
            messages_container = ui.column().classes("w-full gap-4")
            refresh_messages()

        # Input
        with ui.column().classes("w-full p-4 gap-2 bg-white border-t"):
            key_hint = ui.label(
                "Click the settings button to configure an API key before chatting"
            ).classes("w-full text-center text-sm text-orange-600 bg-orange-50 p-2 rounded")
            with ui.row().classes("w-full gap-3 items-end"):
                ui.button(icon="image", on_click=image_dialog.open).props("flat round")
                input_field = (
                    ui.textarea()
                    .props("autogrow outlined dense rows=1")
                    .classes("flex-grow")
                    .on("keydown.enter.prevent", send_message)
                )
                send_btn = ui.button(icon="send", on_click=send_message).props(
                    "round unelevated color=primary"
                )
            refresh_key_hint()
